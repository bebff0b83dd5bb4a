#pr_reviewers/services/assignment_service.py
"""
Use cases of the reviewer assignment engine.

``AssignmentService`` is the only entry point the HTTP layer talks to. It
reads through the persistence port, asks the selection policy for
reviewers and hands reassignment work to the coordinator.
"""
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pr_reviewers.core.exceptions import (
    AuthorOrTeamNotFoundError,
    BulkRebalanceError,
    PrAlreadyExistsError,
    PrMergedError,
    PrNotFoundError,
    TeamAlreadyExistsError,
    TeamNotFoundError,
    UnableToMergeError,
    UserNotFoundError,
)
from pr_reviewers.crud.port import PullRequestRepository
from pr_reviewers.entities import PRStatus, PullRequest, Team, User, utcnow
from pr_reviewers.services.reassignment import (
    RebalanceReport,
    ReassignmentCoordinator,
    port_call,
)
from pr_reviewers.services.selection import DEFAULT_MAX_REVIEWERS, SelectionPolicy

logger = logging.getLogger("PRService.Assignment")


@dataclass
class TeamDeactivationReport:
    team_name: str
    deactivated_user_ids: List[str] = field(default_factory=list)
    # user_id -> {pr_id: replaced_by}
    reassignments: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)


@dataclass
class ReviewStatistics:
    assignments_by_user: Dict[str, int] = field(default_factory=dict)
    reviewers_by_pr: Dict[str, int] = field(default_factory=dict)
    open_prs: int = 0
    merged_prs: int = 0
    understaffed_prs: List[str] = field(default_factory=list)


class AssignmentService:

    def __init__(
        self,
        repository: PullRequestRepository,
        policy: Optional[SelectionPolicy] = None,
        *,
        max_reviewers: int = DEFAULT_MAX_REVIEWERS,
        admin_ids: Iterable[str] = ("admin",),
        max_workers: int = 8,
        rebalance_timeout: Optional[float] = None,
    ):
        self._repo = repository
        self._policy = policy if policy is not None else SelectionPolicy(max_reviewers=max_reviewers)
        self._admin_ids = frozenset(admin_ids)
        self.coordinator = ReassignmentCoordinator(
            repository,
            self._policy,
            max_workers=max_workers,
            default_timeout=rebalance_timeout,
        )

    # ==== Teams ====

    def add_team(self, name: str, members: Sequence[User]) -> Team:
        """
        Create a team and move every listed user into it.

        Users the store already knows change team, so their open reviews are
        rebalanced inside their previous team before the membership write.
        Afterwards understaffed pull requests of the new team get a chance
        to pick reviewers from it.
        """
        try:
            port_call("GetTeamByName", name, self._repo.get_team_by_name, name)
        except TeamNotFoundError:
            pass
        else:
            raise TeamAlreadyExistsError(name)

        unique = list({m.id: m for m in members}.values())
        moving = [m.id for m in unique]
        failures: List[tuple] = []
        for member in unique:
            try:
                port_call("GetUserByID", member.id, self._repo.get_user, member.id)
            except UserNotFoundError:
                continue
            open_prs = port_call("GetUsersPr", member.id, self._repo.get_users_prs, member.id, True)
            if not open_prs:
                continue
            logger.info(f"User '{member.id}' moves to team '{name}', rebalancing {len(open_prs)} review(s)")
            try:
                self.coordinator.rebalance_user(member.id, open_prs, exclude_ids=moving)
            except BulkRebalanceError as e:
                failures.extend(e.failures)

        team = port_call("AddTeam", name, self._repo.add_team, name, unique)
        logger.info(f"Team '{name}' created with {len(team.members)} member(s)")
        self.coordinator.rescan_team(team.id)

        if failures:
            raise BulkRebalanceError(name, failures)
        return port_call("GetTeam", team.id, self._repo.get_team, team.id)

    def get_team(self, name: str) -> Team:
        return port_call("GetTeamByName", name, self._repo.get_team_by_name, name)

    def deactivate_team_members(
        self,
        team_name: str,
        user_ids: Optional[Iterable[str]] = None,
    ) -> TeamDeactivationReport:
        """
        Deactivate several members of one team and rebalance their reviews.

        Everybody is marked inactive before the first rebalance starts so no
        one being deactivated is picked as a replacement for another.
        """
        team = port_call("GetTeamByName", team_name, self._repo.get_team_by_name, team_name)
        by_id = {m.id: m for m in team.members}
        if user_ids is None:
            targets = team.active_members()
        else:
            targets = []
            for user_id in dict.fromkeys(user_ids):
                if user_id not in by_id:
                    raise UserNotFoundError(user_id)
                if by_id[user_id].is_active:
                    targets.append(by_id[user_id])

        for user in targets:
            user.is_active = False
            port_call("UpdateUser", user.id, self._repo.update_user, user)

        report = TeamDeactivationReport(team_name=team_name, deactivated_user_ids=[u.id for u in targets])
        failures: List[tuple] = []
        for user in targets:
            try:
                result = self.coordinator.rebalance_user(user.id)
            except BulkRebalanceError as e:
                failures.extend(e.failures)
                result = e.report
            if isinstance(result, RebalanceReport):
                report.reassignments[user.id] = dict(result.reassigned)

        logger.info(f"Deactivated {len(targets)} member(s) of team '{team_name}'")
        if failures:
            raise BulkRebalanceError(team_name, failures, report=report)
        return report

    # ==== Users ====

    def set_user_active(
        self,
        user_id: str,
        is_active: bool,
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> User:
        user = port_call("GetUserByID", user_id, self._repo.get_user, user_id)
        if user.is_active == is_active:
            return user
        user.is_active = is_active
        port_call("UpdateUser", user_id, self._repo.update_user, user)
        logger.info(f"User '{user_id}' is_active set to {is_active}")

        if is_active:
            self.coordinator.backfill_user(user_id)
        else:
            self.coordinator.rebalance_user(user_id, cancel_event=cancel_event, timeout=timeout)
        return user

    def get_user_with_team(self, user_id: str) -> Tuple[User, str]:
        return port_call("GetUserWithTeam", user_id, self._repo.get_user_with_team, user_id)

    def get_users_prs(self, user_id: str) -> List[PullRequest]:
        """Every pull request the user reviews, open and merged."""
        port_call("GetUserByID", user_id, self._repo.get_user, user_id)
        return port_call("GetUsersPr", user_id, self._repo.get_users_prs, user_id, False)

    # ==== Pull requests ====

    def create_pr(self, pr_id: str, name: str, author_id: str) -> PullRequest:
        try:
            port_call("GetPr", pr_id, self._repo.get_pr, pr_id)
        except PrNotFoundError:
            pass
        else:
            raise PrAlreadyExistsError(pr_id)

        try:
            author = port_call("GetUserByID", author_id, self._repo.get_user, author_id)
            if author.team_id is None:
                raise AuthorOrTeamNotFoundError(author_id)
            team = port_call("GetTeam", author.team_id, self._repo.get_team, author.team_id)
        except (UserNotFoundError, TeamNotFoundError) as e:
            raise AuthorOrTeamNotFoundError(author_id) from e

        selection = self._policy.pick_initial_reviewers(author.id, team.members)
        pr = PullRequest(
            id=pr_id,
            name=name,
            author=author,
            reviewers=selection.reviewers,
            status=PRStatus.OPEN,
            need_more_reviewers=selection.need_more_reviewers,
            created_at=utcnow(),
        )
        port_call("AddPr", pr_id, self._repo.add_pr, pr)
        if selection.need_more_reviewers:
            logger.warning(f"PR '{pr_id}' created with {len(selection.reviewers)} reviewer(s), needs more")
        else:
            logger.info(f"PR '{pr_id}' created, reviewers {selection.reviewer_ids}")
        return pr

    def merge(self, acting_user_id: str, pr_id: str) -> PullRequest:
        pr = port_call("GetPr", pr_id, self._repo.get_pr, pr_id)
        if pr.status != PRStatus.OPEN:
            raise UnableToMergeError(f"pull request {pr_id!r} is already {pr.status.value}")
        if acting_user_id not in self._admin_ids and not pr.has_reviewer(acting_user_id):
            raise UnableToMergeError(f"user {acting_user_id!r} is neither a reviewer of {pr_id!r} nor an admin")
        pr.status = PRStatus.MERGED
        pr.merged_at = utcnow()
        try:
            port_call("UpdatePr", pr_id, self._repo.update_pr, pr_id, pr)
        except PrMergedError as e:
            raise UnableToMergeError(f"pull request {pr_id!r} is already MERGED") from e
        logger.info(f"PR '{pr_id}' merged by '{acting_user_id}'")
        return pr

    def reassign(self, pr_id: str, old_reviewer_id: str) -> Tuple[PullRequest, str]:
        result = self.coordinator.reassign(pr_id, old_reviewer_id, explicit=True)
        return result.pull_request, result.replaced_by

    # ==== Statistics ====

    def get_statistics(self) -> ReviewStatistics:
        prs = port_call("ListPrs", "*", self._repo.list_prs, False)
        assignments: Counter = Counter()
        stats = ReviewStatistics()
        for pr in prs:
            stats.reviewers_by_pr[pr.id] = len(pr.reviewers)
            if pr.is_merged:
                stats.merged_prs += 1
                continue
            stats.open_prs += 1
            assignments.update(pr.reviewer_ids)
            if pr.need_more_reviewers:
                stats.understaffed_prs.append(pr.id)
        stats.assignments_by_user = dict(assignments)
        return stats
