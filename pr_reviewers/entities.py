#pr_reviewers/entities.py
"""
Plain domain structures shared by the services and the persistence adapters.

They carry no ORM state: adapters build fresh instances on every read, so a
value held by a caller is a snapshot and must be re-read before it is used
to compute a new reviewer set.
"""
import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional


class PRStatus(str, enum.Enum):
    OPEN = "OPEN"
    MERGED = "MERGED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: str
    name: str = ""
    is_active: bool = True
    team_id: Optional[int] = None

    def copy(self) -> "User":
        return replace(self)


@dataclass
class Team:
    id: Optional[int]
    name: str
    members: List[User] = field(default_factory=list)

    def active_members(self) -> List[User]:
        return [m for m in self.members if m.is_active]

    def member_ids(self) -> set:
        return {m.id for m in self.members}


@dataclass
class PullRequest:
    """
    Pull request with its reviewer set.

    ``author`` is a snapshot taken at creation time. Reviewers are referenced
    by id; the ``is_active``/``team_id`` fields on them may be stale.
    """
    id: str
    name: str
    author: User
    reviewers: List[User] = field(default_factory=list)
    status: PRStatus = PRStatus.OPEN
    need_more_reviewers: bool = False
    created_at: datetime = field(default_factory=utcnow)
    merged_at: Optional[datetime] = None

    @property
    def reviewer_ids(self) -> List[str]:
        return [r.id for r in self.reviewers]

    @property
    def is_merged(self) -> bool:
        return self.status == PRStatus.MERGED

    def has_reviewer(self, user_id: str) -> bool:
        return any(r.id == user_id for r in self.reviewers)

    def remove_reviewer(self, user_id: str) -> None:
        self.reviewers = [r for r in self.reviewers if r.id != user_id]

    def add_reviewer(self, user: User) -> None:
        if user.id == self.author.id:
            raise ValueError(f"author {user.id!r} cannot review their own pull request")
        if not self.has_reviewer(user.id):
            self.reviewers.append(user)

    def dedupe_reviewers(self) -> None:
        """Drop repeated reviewer ids (first occurrence wins) and the author."""
        seen = set()
        unique = []
        for r in self.reviewers:
            if r.id in seen or r.id == self.author.id:
                continue
            seen.add(r.id)
            unique.append(r)
        self.reviewers = unique

    def copy(self) -> "PullRequest":
        return replace(
            self,
            author=self.author.copy(),
            reviewers=[r.copy() for r in self.reviewers],
        )
