import threading

import pytest

from pr_reviewers.core.exceptions import (
    BulkRebalanceError,
    NoCandidateError,
    PrMergedError,
    RebalanceCancelledError,
    RepositoryError,
    ReviewerNotAssignedError,
    UpstreamError,
)
from pr_reviewers.crud.memory_repository import InMemoryRepository
from pr_reviewers.entities import PRStatus, PullRequest, User, utcnow
from pr_reviewers.services.reassignment import ErrorCollector, ReassignmentCoordinator, port_call


def seed_team(repo, name, *ids, inactive=()):
    return repo.add_team(name, [User(id=i, name=i, is_active=i not in inactive) for i in ids])


def seed_pr(repo, pr_id, author_id, reviewer_ids, need_more=False, status=PRStatus.OPEN):
    pr = PullRequest(
        id=pr_id,
        name=f"PR {pr_id}",
        author=repo.get_user(author_id),
        reviewers=[repo.get_user(r) for r in reviewer_ids],
        status=status,
        need_more_reviewers=need_more,
        merged_at=utcnow() if status == PRStatus.MERGED else None,
    )
    repo.add_pr(pr)
    return pr


def coordinator_for(repo, policy, **kwargs):
    kwargs.setdefault("max_workers", 8)
    kwargs.setdefault("default_timeout", 5)
    return ReassignmentCoordinator(repo, policy, **kwargs)


class BarrierRepo(InMemoryRepository):
    """update_pr only proceeds once ``parties`` writers are inside it at the same time."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self.threads = set()

    def update_pr(self, pr_id, pr):
        self.threads.add(threading.current_thread().name)
        self.barrier.wait()
        super().update_pr(pr_id, pr)


class FlakyRepo(InMemoryRepository):

    def __init__(self, failing_pr_id):
        super().__init__()
        self.failing_pr_id = failing_pr_id

    def update_pr(self, pr_id, pr):
        if pr_id == self.failing_pr_id:
            raise RepositoryError("connection reset by peer")
        super().update_pr(pr_id, pr)


class MergeOnTeamReadRepo(InMemoryRepository):
    """Runs ``hook`` once, on the first team read after it was armed."""

    def __init__(self):
        super().__init__()
        self.hook = None

    def get_team(self, team_id):
        hook, self.hook = self.hook, None
        if hook is not None:
            hook()
        return super().get_team(team_id)


class BlockingRepo(InMemoryRepository):

    def __init__(self, blocked_pr_id):
        super().__init__()
        self.blocked_pr_id = blocked_pr_id
        self.release = threading.Event()

    def update_pr(self, pr_id, pr):
        if pr_id == self.blocked_pr_id:
            self.release.wait(timeout=5)
        super().update_pr(pr_id, pr)


# ==== Single pull request ====

def test_explicit_reassign_picks_teammate(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])

    result = coordinator_for(memory_repo, policy).reassign("pr-1", "b", explicit=True)

    assert result.replaced_by == "d"
    stored = memory_repo.get_pr("pr-1")
    assert sorted(stored.reviewer_ids) == ["c", "d"]
    assert stored.need_more_reviewers is False


def test_explicit_reassign_without_candidate_leaves_pr_untouched(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])

    with pytest.raises(NoCandidateError):
        coordinator_for(memory_repo, policy).reassign("pr-1", "b", explicit=True)

    stored = memory_repo.get_pr("pr-1")
    assert sorted(stored.reviewer_ids) == ["b", "c"]
    assert stored.need_more_reviewers is False


def test_availability_reassign_without_candidate_flags_pr(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])

    result = coordinator_for(memory_repo, policy).reassign("pr-1", "b", explicit=False)

    assert result.replaced_by is None
    stored = memory_repo.get_pr("pr-1")
    assert stored.reviewer_ids == ["c"]
    assert stored.need_more_reviewers is True


def test_reassign_on_merged_pr_is_rejected(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"], status=PRStatus.MERGED)

    with pytest.raises(PrMergedError):
        coordinator_for(memory_repo, policy).reassign("pr-1", "b", explicit=True)

    stored = memory_repo.get_pr("pr-1")
    assert stored.status == PRStatus.MERGED
    assert sorted(stored.reviewer_ids) == ["b", "c"]


def test_reassign_of_unassigned_reviewer_is_rejected(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])

    with pytest.raises(ReviewerNotAssignedError):
        coordinator_for(memory_repo, policy).reassign("pr-1", "d", explicit=True)


def test_reassign_never_picks_author_or_inactive(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d", "e", inactive=("d",))
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])
    coordinator = coordinator_for(memory_repo, policy)

    result = coordinator.reassign("pr-1", "b", explicit=True)

    assert result.replaced_by == "e"
    assert "a" not in memory_repo.get_pr("pr-1").reviewer_ids


def test_reassign_uses_fresh_activity_flags(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d")
    seed_pr(memory_repo, "pr-1", "a", ["b", "c"])
    # c goes inactive after the pull request was loaded by anyone
    c = memory_repo.get_user("c")
    c.is_active = False
    memory_repo.update_user(c)

    coordinator_for(memory_repo, policy).reassign("pr-1", "b", explicit=True)

    stored = memory_repo.get_pr("pr-1")
    assert sorted(stored.reviewer_ids) == ["c", "d"]
    assert stored.need_more_reviewers is True


# ==== Fan-out ====

def test_rebalance_runs_tasks_in_parallel(policy):
    repo = BarrierRepo(parties=3)
    seed_team(repo, "core", "a", "b", "u", "x", "y", "z")
    for i in range(3):
        seed_pr(repo, f"pr-{i}", "a", ["u", "b"])

    report = coordinator_for(repo, policy).rebalance_user("u")

    assert report.ok
    assert set(report.reassigned) == {"pr-0", "pr-1", "pr-2"}
    assert len(repo.threads) == 3
    for i in range(3):
        assert "u" not in repo.get_pr(f"pr-{i}").reviewer_ids


def test_rebalance_partial_failure_keeps_other_updates(policy):
    repo = FlakyRepo(failing_pr_id="pr-3")
    seed_team(repo, "home", "u")
    for i in range(5):
        seed_team(repo, f"team-{i}", f"a{i}", f"b{i}", f"c{i}")
        seed_pr(repo, f"pr-{i}", f"a{i}", ["u", f"b{i}"])

    with pytest.raises(BulkRebalanceError) as exc_info:
        coordinator_for(repo, policy).rebalance_user("u")

    error = exc_info.value
    assert error.failed_pr_ids == ["pr-3"]
    assert isinstance(error.failures[0][1], UpstreamError)
    assert set(error.report.reassigned) == {"pr-0", "pr-1", "pr-2", "pr-4"}
    for i in range(5):
        stored = repo.get_pr(f"pr-{i}")
        assert "u" not in stored.reviewer_ids
        if i == 3:
            assert stored.reviewer_ids == ["b3"]
            assert stored.need_more_reviewers is True
        else:
            assert sorted(stored.reviewer_ids) == [f"b{i}", f"c{i}"]
            assert stored.need_more_reviewers is False


def test_rebalance_skips_prs_merged_meanwhile(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "u")
    seed_pr(memory_repo, "pr-open", "a", ["u", "b"])
    merged = seed_pr(memory_repo, "pr-merged", "a", ["u", "b"])
    stale = [memory_repo.get_pr("pr-open"), memory_repo.get_pr("pr-merged")]
    merged.status = PRStatus.MERGED
    merged.merged_at = utcnow()
    memory_repo.update_pr("pr-merged", merged)

    report = coordinator_for(memory_repo, policy).rebalance_user("u", stale)

    assert report.reassigned == {"pr-open": "c"}
    assert report.skipped == ["pr-merged"]
    assert memory_repo.get_pr("pr-merged").has_reviewer("u")


def test_rebalance_cancelled_before_start(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "u")
    for i in range(3):
        seed_pr(memory_repo, f"pr-{i}", "a", ["u", "b"])
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(BulkRebalanceError) as exc_info:
        coordinator_for(memory_repo, policy).rebalance_user("u", cancel_event=cancel)

    error = exc_info.value
    assert sorted(error.failed_pr_ids) == ["pr-0", "pr-1", "pr-2"]
    assert all(isinstance(e, RebalanceCancelledError) for _, e in error.failures)
    # the cleanup step still takes the user off every open pull request
    for i in range(3):
        stored = memory_repo.get_pr(f"pr-{i}")
        assert stored.reviewer_ids == ["b"]
        assert stored.need_more_reviewers is True


def test_rebalance_timeout_reports_unfinished_tasks(policy):
    repo = BlockingRepo(blocked_pr_id="pr-slow")
    seed_team(repo, "core", "a", "b", "c", "u")
    seed_pr(repo, "pr-fast", "a", ["u", "b"])
    seed_pr(repo, "pr-slow", "a", ["u", "b"])
    try:
        with pytest.raises(BulkRebalanceError) as exc_info:
            coordinator_for(repo, policy).rebalance_user("u", timeout=0.3)
    finally:
        repo.release.set()

    error = exc_info.value
    assert error.failed_pr_ids == ["pr-slow"]
    assert isinstance(error.failures[0][1], RebalanceCancelledError)
    assert error.report.reassigned == {"pr-fast": "c"}


def test_rebalance_timeout_leaves_caller_event_alone(policy):
    repo = BlockingRepo(blocked_pr_id="pr-slow")
    seed_team(repo, "core", "a", "b", "c", "u")
    seed_pr(repo, "pr-slow", "a", ["u", "b"])
    cancel = threading.Event()
    try:
        with pytest.raises(BulkRebalanceError) as exc_info:
            coordinator_for(repo, policy).rebalance_user("u", cancel_event=cancel, timeout=0.3)
    finally:
        repo.release.set()

    assert exc_info.value.failed_pr_ids == ["pr-slow"]
    assert not cancel.is_set()


def test_rebalance_does_not_reopen_pr_merged_mid_task(policy):
    repo = MergeOnTeamReadRepo()
    seed_team(repo, "core", "a", "b", "c", "u")
    seed_pr(repo, "pr-1", "a", ["u", "b"])

    def merge_pr():
        pr = repo.get_pr("pr-1")
        pr.status = PRStatus.MERGED
        pr.merged_at = utcnow()
        repo.update_pr("pr-1", pr)

    repo.hook = merge_pr
    report = coordinator_for(repo, policy).rebalance_user("u")

    assert report.skipped == ["pr-1"]
    stored = repo.get_pr("pr-1")
    assert stored.status == PRStatus.MERGED
    assert stored.merged_at is not None
    assert stored.reviewer_ids == ["u", "b"]


def test_rebalance_with_nothing_to_do(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "u")
    report = coordinator_for(memory_repo, policy).rebalance_user("u")
    assert report.ok
    assert report.reassigned == {}


def test_rebalance_honours_extra_exclusions(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "d", "u")
    seed_pr(memory_repo, "pr-1", "a", ["u", "b"])

    report = coordinator_for(memory_repo, policy).rebalance_user("u", exclude_ids=["c"])

    assert report.reassigned == {"pr-1": "d"}


# ==== Backfill and rescan ====

def test_backfill_fills_understaffed_prs(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", inactive=("c",))
    seed_pr(memory_repo, "pr-1", "a", ["b"], need_more=True)
    seed_pr(memory_repo, "pr-own", "c", ["b"], need_more=True)
    seed_pr(memory_repo, "pr-done", "a", ["b"], need_more=True, status=PRStatus.MERGED)
    c = memory_repo.get_user("c")
    c.is_active = True
    memory_repo.update_user(c)

    updated = coordinator_for(memory_repo, policy).backfill_user("c")

    assert [pr.id for pr in updated] == ["pr-1"]
    stored = memory_repo.get_pr("pr-1")
    assert sorted(stored.reviewer_ids) == ["b", "c"]
    assert stored.need_more_reviewers is False
    assert memory_repo.get_pr("pr-own").reviewer_ids == ["b"]
    assert memory_repo.get_pr("pr-done").reviewer_ids == ["b"]


def test_backfill_does_not_count_inactive_reviewers(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", "x", inactive=("c", "x"))
    seed_pr(memory_repo, "pr-1", "a", ["b", "x"], need_more=True)
    c = memory_repo.get_user("c")
    c.is_active = True
    memory_repo.update_user(c)

    updated = coordinator_for(memory_repo, policy).backfill_user("c")

    assert [pr.id for pr in updated] == ["pr-1"]
    stored = memory_repo.get_pr("pr-1")
    assert stored.reviewer_ids == ["b", "c"]
    assert stored.need_more_reviewers is False


def test_backfill_ignores_inactive_user(memory_repo, policy):
    seed_team(memory_repo, "core", "a", "b", "c", inactive=("c",))
    seed_pr(memory_repo, "pr-1", "a", ["b"], need_more=True)

    assert coordinator_for(memory_repo, policy).backfill_user("c") == []


def test_rescan_is_idempotent(memory_repo, policy):
    team = seed_team(memory_repo, "core", "a", "b", "c", "d")
    seed_pr(memory_repo, "pr-1", "a", ["b"], need_more=True)
    coordinator = coordinator_for(memory_repo, policy)

    first = coordinator.rescan_team(team.id)
    after_first = memory_repo.get_pr("pr-1")
    second = coordinator.rescan_team(team.id)
    after_second = memory_repo.get_pr("pr-1")

    assert [pr.id for pr in first] == ["pr-1"]
    assert second == []
    assert len(after_first.reviewer_ids) == 2
    assert after_second.reviewer_ids == after_first.reviewer_ids
    assert after_second.need_more_reviewers is False


def test_rescan_replaces_inactive_reviewers(memory_repo, policy):
    team = seed_team(memory_repo, "core", "a", "b", "c", "d", "x", inactive=("x",))
    seed_pr(memory_repo, "pr-1", "a", ["b", "x"], need_more=True)

    updated = coordinator_for(memory_repo, policy).rescan_team(team.id)

    assert [pr.id for pr in updated] == ["pr-1"]
    stored = memory_repo.get_pr("pr-1")
    assert "x" not in stored.reviewer_ids
    assert stored.reviewer_ids[0] == "b"
    assert stored.reviewer_ids[1] in {"c", "d"}
    assert stored.need_more_reviewers is False


# ==== Helpers ====

def test_error_collector_concurrent_appends():
    collector = ErrorCollector()

    def worker(n):
        for i in range(200):
            collector.add(f"pr-{n}-{i}", RuntimeError(str(i)))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(collector) == 2000
    assert len({pr_id for pr_id, _ in collector.snapshot()}) == 2000


def test_port_call_wraps_repository_errors():
    def broken(pr_id):
        raise RepositoryError("db down")

    with pytest.raises(UpstreamError) as exc_info:
        port_call("GetPr", "pr-9", broken, "pr-9")

    assert exc_info.value.operation == "GetPr"
    assert exc_info.value.entity_id == "pr-9"
    assert "GetPr(pr-9) failed" in exc_info.value.message
