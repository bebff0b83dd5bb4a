#pr_reviewers/services/reassignment.py
"""
Reviewer reassignment: single pull request replacement, concurrent fan-out
when a reviewer leaves, and backfill when a reviewer comes back.

Nothing here holds a lock across pull requests. Every computation starts
from a fresh read through the persistence port and ends in one
``update_pr`` write; serialising writes to the same pull request is the
adapter's job.
"""
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from pr_reviewers.core.exceptions import (
    BulkRebalanceError,
    NoCandidateError,
    PrMergedError,
    PrNotFoundError,
    RebalanceCancelledError,
    RepositoryError,
    ReviewerNotAssignedError,
    UpstreamError,
    UserNotFoundError,
)
from pr_reviewers.crud.port import PullRequestRepository
from pr_reviewers.entities import PullRequest, User
from pr_reviewers.services.selection import SelectionPolicy

logger = logging.getLogger("PRService.Reassign")

_BARRIER_POLL_SECONDS = 0.05


def port_call(operation: str, entity_id: object, fn: Callable, *args, **kwargs):
    """Run a persistence call, wrapping infrastructure failures with context."""
    try:
        return fn(*args, **kwargs)
    except RepositoryError as e:
        logger.error(f"{operation}({entity_id}) failed: {e}")
        raise UpstreamError(operation, entity_id, e) from e


class ErrorCollector:
    """Append-only list of (pr_id, error) shared by fan-out workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: List[Tuple[Optional[str], BaseException]] = []

    def add(self, pr_id: Optional[str], error: BaseException) -> None:
        with self._lock:
            self._errors.append((pr_id, error))

    def snapshot(self) -> List[Tuple[Optional[str], BaseException]]:
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)


@dataclass
class ReassignmentResult:
    pull_request: PullRequest
    replaced_by: Optional[str] = None


@dataclass
class RebalanceReport:
    user_id: str
    reassigned: Dict[str, Optional[str]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    failures: List[Tuple[Optional[str], BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class ReassignmentCoordinator:

    def __init__(
        self,
        repository: PullRequestRepository,
        policy: SelectionPolicy,
        max_workers: int = 8,
        default_timeout: Optional[float] = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self._repo = repository
        self._policy = policy
        self._max_workers = max_workers
        self._default_timeout = default_timeout

    # ==== Shared helpers ====

    def _team_roster(self, pr: PullRequest, departing_id: str, explicit: bool) -> List[User]:
        """
        Current members of the team the pull request draws reviewers from:
        the author's team, or for availability-driven moves the departing
        reviewer's team when the author has none.
        """
        author = port_call("GetUserByID", pr.author.id, self._repo.get_user, pr.author.id)
        team_id = author.team_id
        if team_id is None and not explicit:
            departing = port_call("GetUserByID", departing_id, self._repo.get_user, departing_id)
            team_id = departing.team_id
        if team_id is None:
            return []
        team = port_call("GetTeam", team_id, self._repo.get_team, team_id)
        return team.members

    def _fresh_reviewers(self, pr: PullRequest, roster: Iterable[User]) -> List[User]:
        by_id = {u.id: u for u in roster}
        fresh = []
        for reviewer in pr.reviewers:
            if reviewer.id in by_id:
                fresh.append(by_id[reviewer.id])
                continue
            try:
                fresh.append(port_call("GetUserByID", reviewer.id, self._repo.get_user, reviewer.id))
            except UserNotFoundError:
                fresh.append(User(id=reviewer.id, name=reviewer.name, is_active=False))
        return fresh

    # ==== Single pull request ====

    def reassign(
        self,
        pr_id: str,
        departing_reviewer_id: str,
        *,
        explicit: bool,
        exclude_ids: Iterable[str] = (),
    ) -> ReassignmentResult:
        """
        Replace one reviewer on one pull request.

        Explicit (admin) requests fail with NoCandidateError and leave the
        pull request untouched when nobody can take over. Availability-driven
        requests drop the reviewer anyway and flag the pull request as
        needing more reviewers.
        """
        pr = port_call("GetPr", pr_id, self._repo.get_pr, pr_id)
        if pr.is_merged:
            raise PrMergedError(pr_id)
        if not pr.has_reviewer(departing_reviewer_id):
            raise ReviewerNotAssignedError(pr_id, departing_reviewer_id)

        roster = self._team_roster(pr, departing_reviewer_id, explicit)
        pr.remove_reviewer(departing_reviewer_id)
        excluded = {pr.author.id, departing_reviewer_id, *pr.reviewer_ids, *exclude_ids}
        replacement = self._policy.pick_replacement(excluded, roster)

        if replacement is None:
            if explicit:
                raise NoCandidateError(pr_id)
            logger.warning(f"No replacement for '{departing_reviewer_id}' on PR '{pr_id}', flagging it understaffed")
        else:
            pr.add_reviewer(replacement)

        pr.dedupe_reviewers()
        pr.reviewers = self._fresh_reviewers(pr, roster)
        pr.need_more_reviewers = replacement is None or self._policy.needs_more_reviewers(pr.reviewers)
        port_call("UpdatePr", pr_id, self._repo.update_pr, pr_id, pr)

        replaced_by = replacement.id if replacement else None
        logger.info(f"PR '{pr_id}': reviewer '{departing_reviewer_id}' replaced by {replaced_by!r}")
        return ReassignmentResult(pull_request=pr, replaced_by=replaced_by)

    # ==== Fan-out ====

    def _rebalance_one(
        self,
        pr_id: str,
        user_id: str,
        cancel_events: Tuple[threading.Event, ...],
        errors: ErrorCollector,
        exclude_ids: Tuple[str, ...],
    ) -> Optional[ReassignmentResult]:
        if any(e.is_set() for e in cancel_events):
            errors.add(pr_id, RebalanceCancelledError(pr_id))
            return None
        try:
            return self.reassign(pr_id, user_id, explicit=False, exclude_ids=exclude_ids)
        except (PrMergedError, PrNotFoundError, ReviewerNotAssignedError) as e:
            # merged or already rebalanced since the pull request list was read
            logger.info(f"Skipping PR '{pr_id}' for '{user_id}': {e}")
            return None
        except Exception as e:
            logger.error(f"Reassignment of '{user_id}' on PR '{pr_id}' failed: {e}", exc_info=True)
            errors.add(pr_id, e)
            return None

    def _barrier(
        self,
        futures: Iterable[Future],
        cancel_events: Tuple[threading.Event, ...],
        timeout_event: threading.Event,
        timeout: Optional[float],
    ) -> Set[Future]:
        """
        Wait for every future; return those still unfinished on cancel or
        timeout. A timeout sets ``timeout_event`` only, never an event owned
        by the caller.
        """
        pending = set(futures)
        deadline = None if timeout is None else time.monotonic() + timeout
        while pending:
            if any(e.is_set() for e in cancel_events):
                logger.warning(f"Rebalance cancelled with {len(pending)} task(s) unfinished")
                break
            wait_for = _BARRIER_POLL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Rebalance timed out after {timeout}s with {len(pending)} task(s) unfinished")
                    timeout_event.set()
                    break
                wait_for = min(wait_for, remaining)
            _, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)
        return pending

    def rebalance_user(
        self,
        user_id: str,
        pull_requests: Optional[List[PullRequest]] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
        exclude_ids: Iterable[str] = (),
    ) -> RebalanceReport:
        """
        Move every open review of ``user_id`` to someone else, in parallel.

        One task per pull request runs on a thread pool; the call returns
        once all of them finished (or the barrier was cancelled / timed
        out). The user is then removed from every still-open pull request
        regardless of individual task outcomes. Failures are raised together
        as BulkRebalanceError; successful updates stay committed.
        """
        if pull_requests is None:
            pull_requests = port_call("GetUsersPr", user_id, self._repo.get_users_prs, user_id, True)
        targets = list(dict.fromkeys(pr.id for pr in pull_requests if not pr.is_merged))
        timed_out = threading.Event()
        cancel_events = (timed_out,) if cancel_event is None else (timed_out, cancel_event)
        timeout = self._default_timeout if timeout is None else timeout
        excluded = tuple(exclude_ids)
        errors = ErrorCollector()
        report = RebalanceReport(user_id=user_id)
        logger.info(f"Rebalancing {len(targets)} open review(s) of '{user_id}'")

        futures: Dict[Future, str] = {}
        unfinished: Set[Future] = set()
        if targets:
            pool = ThreadPoolExecutor(
                max_workers=min(self._max_workers, len(targets)),
                thread_name_prefix="rebalance",
            )
            try:
                for pr_id in targets:
                    futures[pool.submit(self._rebalance_one, pr_id, user_id, cancel_events, errors, excluded)] = pr_id
                unfinished = self._barrier(futures, cancel_events, timed_out, timeout)
            finally:
                # in-flight tasks are left to finish on their own once the barrier gave up
                pool.shutdown(wait=not unfinished, cancel_futures=True)

        for future in unfinished:
            errors.add(futures[future], RebalanceCancelledError(futures[future]))

        try:
            self._repo.remove_reviewer_from_all_open_prs(user_id)
        except RepositoryError as e:
            logger.error(f"Cleanup of reviewer '{user_id}' failed: {e}")
            errors.add(None, UpstreamError("RemoveReviewerFromAllOpenPR", user_id, e))

        failed = set()
        for pr_id, error in errors.snapshot():
            # a task that saw the cancel flag and the barrier may both report the same PR
            if pr_id is not None and pr_id in failed:
                continue
            failed.add(pr_id)
            report.failures.append((pr_id, error))
        for future, pr_id in futures.items():
            if future in unfinished or pr_id in failed:
                continue
            result = future.result()
            if result is None:
                report.skipped.append(pr_id)
            else:
                report.reassigned[pr_id] = result.replaced_by

        if report.failures:
            raise BulkRebalanceError(user_id, report.failures, report=report)
        logger.info(f"Rebalanced '{user_id}': {len(report.reassigned)} reassigned, {len(report.skipped)} skipped")
        return report

    # ==== Backfill ====

    def _write_open_pr(self, pr: PullRequest) -> bool:
        """Persist ``pr``; False when it was merged since it was read."""
        try:
            port_call("UpdatePr", pr.id, self._repo.update_pr, pr.id, pr)
        except PrMergedError:
            logger.info(f"PR '{pr.id}' was merged meanwhile, left untouched")
            return False
        return True

    def backfill_user(self, user_id: str) -> List[PullRequest]:
        """
        Offer a reactivated user to every understaffed open pull request
        authored inside their team. Sequential by design.
        """
        user = port_call("GetUserByID", user_id, self._repo.get_user, user_id)
        if not user.is_active or user.team_id is None:
            return []
        team = port_call("GetTeam", user.team_id, self._repo.get_team, user.team_id)
        members = team.member_ids()
        updated = []
        for pr in port_call("GetTeamPr", team.id, self._repo.get_team_prs, team.id):
            if pr.is_merged or not pr.need_more_reviewers or pr.author.id not in members:
                continue
            if pr.author.id == user.id or pr.has_reviewer(user.id):
                continue
            # inactive reviewers do not hold a slot
            active = [r for r in self._fresh_reviewers(pr, team.members) if r.is_active]
            if len(active) >= self._policy.max_reviewers:
                continue
            pr.reviewers = active
            pr.add_reviewer(user)
            pr.dedupe_reviewers()
            pr.need_more_reviewers = self._policy.needs_more_reviewers(pr.reviewers)
            if not self._write_open_pr(pr):
                continue
            updated.append(pr)
        logger.info(f"Backfilled '{user_id}' into {len(updated)} pull request(s)")
        return updated

    def rescan_team(self, team_id: int) -> List[PullRequest]:
        """Fill free reviewer slots on understaffed open pull requests of a team."""
        team = port_call("GetTeam", team_id, self._repo.get_team, team_id)
        members = team.member_ids()
        updated = []
        for pr in port_call("GetTeamPr", team_id, self._repo.get_team_prs, team_id):
            if pr.is_merged or not pr.need_more_reviewers or pr.author.id not in members:
                continue
            fresh = self._fresh_reviewers(pr, team.members)
            reviewers = [r for r in fresh if r.is_active]
            changed = len(reviewers) != len(fresh)
            while len(reviewers) < self._policy.max_reviewers:
                excluded = {pr.author.id, *(r.id for r in reviewers)}
                candidate = self._policy.pick_replacement(excluded, team.members)
                if candidate is None:
                    break
                reviewers.append(candidate)
                changed = True
            need_more = self._policy.needs_more_reviewers(reviewers)
            if not changed and need_more == pr.need_more_reviewers:
                continue
            pr.reviewers = reviewers
            pr.dedupe_reviewers()
            pr.need_more_reviewers = need_more
            if not self._write_open_pr(pr):
                continue
            updated.append(pr)
        if updated:
            logger.info(f"Team {team_id} rescan staffed {len(updated)} pull request(s)")
        return updated
