#pr_reviewers/services/selection.py
"""
Reviewer selection policy.

Pure functions over a team roster: no store access, no history. Selection
is uniformly random and memoryless; the random source is injected so tests
can pin it with a seeded ``random.Random``.
"""
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from pr_reviewers.entities import User

DEFAULT_MAX_REVIEWERS = 2


@dataclass(frozen=True)
class SelectionResult:
    reviewers: List[User] = field(default_factory=list)
    need_more_reviewers: bool = False

    @property
    def reviewer_ids(self) -> List[str]:
        return [r.id for r in self.reviewers]


def eligible_candidates(roster: Iterable[User], exclude_ids: Iterable[str]) -> List[User]:
    """Active roster members whose id is not excluded, in roster order."""
    excluded = set(exclude_ids)
    seen = set()
    result = []
    for user in roster:
        if not user.is_active or user.id in excluded or user.id in seen:
            continue
        seen.add(user.id)
        result.append(user)
    return result


class SelectionPolicy:

    def __init__(self, rng: Optional[random.Random] = None, max_reviewers: int = DEFAULT_MAX_REVIEWERS):
        if max_reviewers < 1:
            raise ValueError(f"max_reviewers must be positive, got {max_reviewers}")
        self._rng = rng if rng is not None else random.SystemRandom()
        self.max_reviewers = max_reviewers

    @property
    def required_reviewers(self) -> int:
        return self.max_reviewers

    def pick_initial_reviewers(
        self,
        author_id: str,
        roster: Iterable[User],
        max_reviewers: Optional[int] = None,
    ) -> SelectionResult:
        """
        Choose up to ``max_reviewers`` active teammates of the author.

        When the eligible pool is not larger than the limit everyone in it
        is taken; otherwise a uniform random sample is drawn. The result is
        flagged as understaffed when fewer than the limit were found.
        """
        limit = self.max_reviewers if max_reviewers is None else max_reviewers
        eligible = eligible_candidates(roster, [author_id])
        if len(eligible) <= limit:
            selected = list(eligible)
        else:
            selected = self._rng.sample(eligible, limit)
        return SelectionResult(reviewers=selected, need_more_reviewers=len(selected) < limit)

    def pick_replacement(self, exclude_ids: Iterable[str], roster: Iterable[User]) -> Optional[User]:
        """One uniformly random active member outside ``exclude_ids``, or None."""
        eligible = eligible_candidates(roster, exclude_ids)
        if not eligible:
            return None
        return self._rng.choice(eligible)

    def needs_more_reviewers(self, reviewers: Iterable[User]) -> bool:
        """
        True while fewer than the required number of reviewers are active.
        ``reviewers`` must carry freshly read activity flags.
        """
        active = {r.id for r in reviewers if r.is_active}
        return len(active) < self.required_reviewers
