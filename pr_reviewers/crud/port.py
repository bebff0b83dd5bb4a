#pr_reviewers/crud/port.py
"""
Persistence port consumed by the assignment services.

Adapters raise the typed NotFound / AlreadyExists errors from
``pr_reviewers.core.exceptions`` for business outcomes and
``RepositoryError`` for everything else. Every call must be safe to make
from several worker threads at once; writes to one pull request are
serialised by the adapter (last committed write wins).
"""
from typing import List, Protocol, Tuple

from pr_reviewers.entities import PullRequest, Team, User


class PullRequestRepository(Protocol):

    def get_team_by_name(self, name: str) -> Team:
        """Raises TeamNotFoundError."""
        ...

    def get_team(self, team_id: int) -> Team:
        """Raises TeamNotFoundError."""
        ...

    def get_user(self, user_id: str) -> User:
        """Raises UserNotFoundError."""
        ...

    def get_user_with_team(self, user_id: str) -> Tuple[User, str]:
        """Return the user and the name of their team ("" when teamless)."""
        ...

    def update_user(self, user: User) -> None:
        """Raises UserNotFoundError."""
        ...

    def add_team(self, name: str, users: List[User]) -> Team:
        """Create the team and upsert its members. Raises TeamAlreadyExistsError."""
        ...

    def get_pr(self, pr_id: str) -> PullRequest:
        """Raises PrNotFoundError."""
        ...

    def add_pr(self, pr: PullRequest) -> None:
        """Raises PrAlreadyExistsError."""
        ...

    def update_pr(self, pr_id: str, pr: PullRequest) -> None:
        """
        Replace status, flag, merge time and the full reviewer set atomically.
        Raises PrMergedError when the stored pull request is already MERGED.
        """
        ...

    def get_users_prs(self, user_id: str, only_open: bool) -> List[PullRequest]:
        """Pull requests where ``user_id`` is a reviewer."""
        ...

    def get_team_prs(self, team_id: int) -> List[PullRequest]:
        """Pull requests authored or reviewed by members of the team."""
        ...

    def remove_reviewer_from_all_open_prs(self, user_id: str) -> None:
        """Idempotent; flags every touched pull request as needing reviewers."""
        ...

    def add_reviewer_to_pr(self, pr_id: str, user_id: str) -> None:
        """Idempotent."""
        ...

    def list_prs(self, only_open: bool = False) -> List[PullRequest]:
        ...
