#pr_reviewers/crud/memory_repository.py
import itertools
import logging
import threading
from typing import Dict, List, Tuple

from pr_reviewers.core.exceptions import (
    PrAlreadyExistsError,
    PrMergedError,
    PrNotFoundError,
    TeamAlreadyExistsError,
    TeamNotFoundError,
    UserNotFoundError,
)
from pr_reviewers.entities import PRStatus, PullRequest, Team, User

logger = logging.getLogger("PRService.MemoryRepo")


class InMemoryRepository:
    """
    Dict-backed implementation of the persistence port.

    Used for local runs and service tests. All state sits behind one
    re-entrant lock, values are copied on the way in and out so callers
    never share mutable objects with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._team_ids = itertools.count(1)
        self._teams: Dict[int, str] = {}
        self._users: Dict[str, User] = {}
        self._prs: Dict[str, PullRequest] = {}

    # ==== Teams ====

    def _build_team(self, team_id: int) -> Team:
        members = [u.copy() for u in self._users.values() if u.team_id == team_id]
        return Team(id=team_id, name=self._teams[team_id], members=members)

    def get_team_by_name(self, name: str) -> Team:
        with self._lock:
            for team_id, team_name in self._teams.items():
                if team_name == name:
                    return self._build_team(team_id)
        raise TeamNotFoundError(name)

    def get_team(self, team_id: int) -> Team:
        with self._lock:
            if team_id not in self._teams:
                raise TeamNotFoundError(team_id)
            return self._build_team(team_id)

    def add_team(self, name: str, users: List[User]) -> Team:
        with self._lock:
            if name in self._teams.values():
                raise TeamAlreadyExistsError(name)
            team_id = next(self._team_ids)
            self._teams[team_id] = name
            for user in users:
                stored = user.copy()
                stored.team_id = team_id
                self._users[stored.id] = stored
            logger.info(f"Created team '{name}' (ID: {team_id}) with {len(users)} member(s)")
            return self._build_team(team_id)

    # ==== Users ====

    def get_user(self, user_id: str) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            return user.copy()

    def get_user_with_team(self, user_id: str) -> Tuple[User, str]:
        with self._lock:
            user = self.get_user(user_id)
            return user, self._teams.get(user.team_id, "")

    def update_user(self, user: User) -> None:
        with self._lock:
            if user.id not in self._users:
                raise UserNotFoundError(user.id)
            self._users[user.id] = user.copy()

    # ==== Pull requests ====

    def _hydrate(self, pr: PullRequest) -> PullRequest:
        result = pr.copy()
        result.reviewers = [
            self._users[r.id].copy() if r.id in self._users else r
            for r in result.reviewers
        ]
        return result

    def get_pr(self, pr_id: str) -> PullRequest:
        with self._lock:
            pr = self._prs.get(pr_id)
            if pr is None:
                raise PrNotFoundError(pr_id)
            return self._hydrate(pr)

    def add_pr(self, pr: PullRequest) -> None:
        with self._lock:
            if pr.id in self._prs:
                raise PrAlreadyExistsError(pr.id)
            self._prs[pr.id] = pr.copy()

    def update_pr(self, pr_id: str, pr: PullRequest) -> None:
        with self._lock:
            current = self._prs.get(pr_id)
            if current is None:
                raise PrNotFoundError(pr_id)
            if current.status == PRStatus.MERGED:
                raise PrMergedError(pr_id)
            current.status = pr.status
            current.need_more_reviewers = pr.need_more_reviewers
            current.merged_at = pr.merged_at
            current.reviewers = [r.copy() for r in pr.reviewers]

    def get_users_prs(self, user_id: str, only_open: bool) -> List[PullRequest]:
        with self._lock:
            return [
                self._hydrate(pr) for pr in self._prs.values()
                if pr.has_reviewer(user_id)
                and (not only_open or pr.status == PRStatus.OPEN)
            ]

    def get_team_prs(self, team_id: int) -> List[PullRequest]:
        with self._lock:
            member_ids = {u.id for u in self._users.values() if u.team_id == team_id}
            prs = [
                pr for pr in self._prs.values()
                if pr.author.id in member_ids or member_ids.intersection(pr.reviewer_ids)
            ]
            prs.sort(key=lambda p: p.created_at, reverse=True)
            return [self._hydrate(pr) for pr in prs]

    def remove_reviewer_from_all_open_prs(self, user_id: str) -> None:
        with self._lock:
            for pr in self._prs.values():
                if pr.status == PRStatus.OPEN and pr.has_reviewer(user_id):
                    pr.remove_reviewer(user_id)
                    pr.need_more_reviewers = True

    def add_reviewer_to_pr(self, pr_id: str, user_id: str) -> None:
        with self._lock:
            pr = self._prs.get(pr_id)
            if pr is None:
                raise PrNotFoundError(pr_id)
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            if not pr.has_reviewer(user_id):
                pr.reviewers.append(user.copy())

    def list_prs(self, only_open: bool = False) -> List[PullRequest]:
        with self._lock:
            return [
                self._hydrate(pr) for pr in self._prs.values()
                if not only_open or pr.status == PRStatus.OPEN
            ]
