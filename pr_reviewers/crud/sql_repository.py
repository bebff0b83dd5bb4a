#pr_reviewers/crud/sql_repository.py
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Tuple

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from pr_reviewers.core.exceptions import (
    BaseAppException,
    PrAlreadyExistsError,
    PrMergedError,
    PrNotFoundError,
    RepositoryError,
    TeamAlreadyExistsError,
    TeamNotFoundError,
    UserNotFoundError,
)
from pr_reviewers.entities import PRStatus, PullRequest, Team, User
from pr_reviewers.models.pull_request import PullRequest as PullRequestModel, pull_request_reviewers
from pr_reviewers.models.team import Team as TeamModel
from pr_reviewers.models.user import User as UserModel

logger = logging.getLogger("PRService.SqlRepo")


def _to_user(row: UserModel) -> User:
    return User(id=row.user_id, name=row.username, is_active=row.is_active, team_id=row.team_id)


def _to_team(row: TeamModel) -> Team:
    return Team(id=row.id, name=row.team_name, members=[_to_user(u) for u in row.members])


def _to_pr(row: PullRequestModel) -> PullRequest:
    return PullRequest(
        id=row.pull_request_id,
        name=row.pull_request_name,
        author=_to_user(row.author),
        reviewers=[_to_user(u) for u in row.reviewers],
        status=PRStatus(row.status),
        need_more_reviewers=row.need_more_reviewers,
        created_at=row.created_at,
        merged_at=row.merged_at,
    )


class SqlAlchemyRepository:
    """
    Persistence port backed by SQLAlchemy.

    Each call opens its own session from ``session_factory`` and commits or
    rolls back before returning, so one instance can be shared by the
    rebalance worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except BaseAppException:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"{operation} failed: {e}")
            raise RepositoryError(f"{operation} failed: {e}") from e
        finally:
            db.close()

    def _pr_query(self, db: Session):
        return db.query(PullRequestModel).options(
            selectinload(PullRequestModel.author),
            selectinload(PullRequestModel.reviewers),
        )

    # ==== Teams ====

    def get_team_by_name(self, name: str) -> Team:
        with self._session("get_team_by_name") as db:
            row = db.query(TeamModel).options(selectinload(TeamModel.members)).filter(TeamModel.team_name == name).first()
            if not row:
                raise TeamNotFoundError(name)
            return _to_team(row)

    def get_team(self, team_id: int) -> Team:
        with self._session("get_team") as db:
            row = db.query(TeamModel).options(selectinload(TeamModel.members)).filter(TeamModel.id == team_id).first()
            if not row:
                raise TeamNotFoundError(team_id)
            return _to_team(row)

    def add_team(self, name: str, users: List[User]) -> Team:
        db = self._session_factory()
        try:
            if db.query(TeamModel.id).filter(TeamModel.team_name == name).first():
                raise TeamAlreadyExistsError(name)
            team = TeamModel(team_name=name)
            db.add(team)
            db.flush()
            for user in users:
                row = db.get(UserModel, user.id)
                if row is None:
                    row = UserModel(user_id=user.id)
                    db.add(row)
                row.username = user.name
                row.is_active = user.is_active
                row.team_id = team.id
            db.commit()
            db.refresh(team)
            logger.info(f"Created team '{name}' (ID: {team.id}) with {len(users)} member(s)")
            return _to_team(team)
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Integrity error while creating team '{name}': {e}")
            raise TeamAlreadyExistsError(name) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Exception while creating team '{name}': {e}")
            raise RepositoryError(f"add_team failed: {e}") from e
        finally:
            db.close()

    # ==== Users ====

    def get_user(self, user_id: str) -> User:
        with self._session("get_user") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            return _to_user(row)

    def get_user_with_team(self, user_id: str) -> Tuple[User, str]:
        with self._session("get_user_with_team") as db:
            row = db.query(UserModel).options(selectinload(UserModel.team)).filter(UserModel.user_id == user_id).first()
            if row is None:
                raise UserNotFoundError(user_id)
            return _to_user(row), row.team.team_name if row.team else ""

    def update_user(self, user: User) -> None:
        with self._session("update_user") as db:
            row = db.get(UserModel, user.id)
            if row is None:
                raise UserNotFoundError(user.id)
            row.username = user.name
            row.is_active = user.is_active
            row.team_id = user.team_id
            logger.info(f"Updated user '{user.id}' (active={user.is_active}, team_id={user.team_id})")

    # ==== Pull requests ====

    def get_pr(self, pr_id: str) -> PullRequest:
        with self._session("get_pr") as db:
            row = self._pr_query(db).filter(PullRequestModel.pull_request_id == pr_id).first()
            if row is None:
                raise PrNotFoundError(pr_id)
            return _to_pr(row)

    def add_pr(self, pr: PullRequest) -> None:
        db = self._session_factory()
        try:
            if db.get(PullRequestModel, pr.id) is not None:
                raise PrAlreadyExistsError(pr.id)
            if db.get(UserModel, pr.author.id) is None:
                raise UserNotFoundError(pr.author.id)
            row = PullRequestModel(
                pull_request_id=pr.id,
                pull_request_name=pr.name,
                author_id=pr.author.id,
                status=pr.status.value,
                need_more_reviewers=pr.need_more_reviewers,
                created_at=pr.created_at,
                merged_at=pr.merged_at,
            )
            row.reviewers = self._load_users(db, pr.reviewer_ids)
            db.add(row)
            db.commit()
            logger.info(f"Created pull request '{pr.id}' with reviewers {pr.reviewer_ids}")
        except BaseAppException:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Integrity error while creating pull request '{pr.id}': {e}")
            raise PrAlreadyExistsError(pr.id) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Exception while creating pull request '{pr.id}': {e}")
            raise RepositoryError(f"add_pr failed: {e}") from e
        finally:
            db.close()

    def _load_users(self, db: Session, user_ids: List[str]) -> List[UserModel]:
        if not user_ids:
            return []
        rows = db.query(UserModel).filter(UserModel.user_id.in_(user_ids)).all()
        found = {r.user_id for r in rows}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise UserNotFoundError(missing[0])
        return rows

    def update_pr(self, pr_id: str, pr: PullRequest) -> None:
        with self._session("update_pr") as db:
            row = (
                db.query(PullRequestModel)
                .filter(PullRequestModel.pull_request_id == pr_id)
                .with_for_update()
                .first()
            )
            if row is None:
                raise PrNotFoundError(pr_id)
            if row.status == PRStatus.MERGED.value:
                raise PrMergedError(pr_id)
            row.status = pr.status.value
            row.need_more_reviewers = pr.need_more_reviewers
            row.merged_at = pr.merged_at
            row.reviewers = self._load_users(db, pr.reviewer_ids)
            logger.info(f"Updated pull request '{pr_id}' (status={row.status}, reviewers={pr.reviewer_ids})")

    def get_users_prs(self, user_id: str, only_open: bool) -> List[PullRequest]:
        with self._session("get_users_prs") as db:
            reviewed = select(pull_request_reviewers.c.pull_request_id).where(
                pull_request_reviewers.c.reviewer_id == user_id
            )
            query = self._pr_query(db).filter(PullRequestModel.pull_request_id.in_(reviewed))
            if only_open:
                query = query.filter(PullRequestModel.status == PRStatus.OPEN.value)
            return [_to_pr(row) for row in query.order_by(PullRequestModel.created_at).all()]

    def get_team_prs(self, team_id: int) -> List[PullRequest]:
        with self._session("get_team_prs") as db:
            members = select(UserModel.user_id).where(UserModel.team_id == team_id)
            reviewed = select(pull_request_reviewers.c.pull_request_id).where(
                pull_request_reviewers.c.reviewer_id.in_(members)
            )
            query = self._pr_query(db).filter(
                or_(
                    PullRequestModel.author_id.in_(members),
                    PullRequestModel.pull_request_id.in_(reviewed),
                )
            )
            return [_to_pr(row) for row in query.order_by(PullRequestModel.created_at.desc()).all()]

    def remove_reviewer_from_all_open_prs(self, user_id: str) -> None:
        with self._session("remove_reviewer_from_all_open_prs") as db:
            open_prs = select(PullRequestModel.pull_request_id).where(
                PullRequestModel.status == PRStatus.OPEN.value
            )
            affected = db.execute(
                select(pull_request_reviewers.c.pull_request_id).where(
                    pull_request_reviewers.c.reviewer_id == user_id,
                    pull_request_reviewers.c.pull_request_id.in_(open_prs),
                )
            ).scalars().all()
            if not affected:
                return
            db.execute(
                delete(pull_request_reviewers).where(
                    pull_request_reviewers.c.reviewer_id == user_id,
                    pull_request_reviewers.c.pull_request_id.in_(affected),
                )
            )
            db.query(PullRequestModel).filter(PullRequestModel.pull_request_id.in_(affected)).update(
                {"need_more_reviewers": True}, synchronize_session=False
            )
            logger.info(f"Removed reviewer '{user_id}' from {len(affected)} open pull request(s)")

    def add_reviewer_to_pr(self, pr_id: str, user_id: str) -> None:
        with self._session("add_reviewer_to_pr") as db:
            if db.get(PullRequestModel, pr_id) is None:
                raise PrNotFoundError(pr_id)
            if db.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            exists = db.execute(
                select(pull_request_reviewers.c.reviewer_id).where(
                    pull_request_reviewers.c.pull_request_id == pr_id,
                    pull_request_reviewers.c.reviewer_id == user_id,
                )
            ).first()
            if exists is None:
                db.execute(insert(pull_request_reviewers).values(pull_request_id=pr_id, reviewer_id=user_id))

    def list_prs(self, only_open: bool = False) -> List[PullRequest]:
        with self._session("list_prs") as db:
            query = self._pr_query(db)
            if only_open:
                query = query.filter(PullRequestModel.status == PRStatus.OPEN.value)
            return [_to_pr(row) for row in query.order_by(PullRequestModel.created_at).all()]
