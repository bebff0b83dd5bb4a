# pr_reviewers/core/exceptions.py
from typing import List, Optional


class BaseAppException(Exception):
    """Base class for every business and infrastructure error of the service."""
    code: str = "INTERNAL"
    status_code: int = 500

    def __init__(self, message: str = "App exception"):
        super().__init__(message)
        self.message = message

# ==== NotFound ====

class NotFoundError(BaseAppException):
    """Requested resource does not exist."""
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)

class TeamNotFoundError(NotFoundError):
    def __init__(self, team: object = None):
        super().__init__(f"Team {team!r} not found" if team is not None else "Team not found")
        self.team = team

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Optional[str] = None):
        super().__init__(f"User {user_id!r} not found" if user_id else "User not found")
        self.user_id = user_id

class PrNotFoundError(NotFoundError):
    def __init__(self, pr_id: Optional[str] = None):
        super().__init__(f"Pull request {pr_id!r} not found" if pr_id else "Pull request not found")
        self.pr_id = pr_id

class AuthorOrTeamNotFoundError(NotFoundError):
    """Author of a new pull request, or the author's team, is unknown."""
    def __init__(self, author_id: Optional[str] = None):
        super().__init__(f"Author {author_id!r} or their team not found")
        self.author_id = author_id

# ==== Conflict ====

class ConflictError(BaseAppException):
    """Resource already exists or is in a terminal state."""
    code = "CONFLICT"
    status_code = 409

class TeamAlreadyExistsError(ConflictError):
    code = "TEAM_EXISTS"
    status_code = 400

    def __init__(self, name: str = ""):
        super().__init__(f"team_name {name!r} already exists")
        self.name = name

class PrAlreadyExistsError(ConflictError):
    code = "PR_EXISTS"

    def __init__(self, pr_id: str = ""):
        super().__init__(f"Pull request {pr_id!r} already exists")
        self.pr_id = pr_id

class PrMergedError(ConflictError):
    code = "PR_MERGED"

    def __init__(self, pr_id: str = ""):
        super().__init__(f"cannot reassign on merged PR {pr_id!r}")
        self.pr_id = pr_id

PrIsMergedError = PrMergedError

# ==== Invalid state ====

class InvalidStateError(BaseAppException):
    code = "INVALID_STATE"
    status_code = 409

class UnableToMergeError(InvalidStateError):
    code = "UNABLE_TO_MERGE"

    def __init__(self, message: str = "Unable to merge pull request"):
        super().__init__(message)

class ReviewerNotAssignedError(InvalidStateError):
    code = "NOT_ASSIGNED"

    def __init__(self, pr_id: str = "", reviewer_id: str = ""):
        super().__init__(f"reviewer {reviewer_id!r} is not assigned to PR {pr_id!r}")
        self.pr_id = pr_id
        self.reviewer_id = reviewer_id

# ==== No candidate ====

class NoCandidateError(BaseAppException):
    code = "NO_CANDIDATE"
    status_code = 409

    def __init__(self, pr_id: str = ""):
        super().__init__(f"no active replacement candidate in team for PR {pr_id!r}")
        self.pr_id = pr_id

# ==== Upstream / persistence ====

class RepositoryError(BaseAppException):
    """Raised by persistence adapters for infrastructure failures."""
    code = "UPSTREAM_ERROR"
    status_code = 503

class UpstreamError(BaseAppException):
    """A persistence failure wrapped with the operation and entity it hit."""
    code = "UPSTREAM_ERROR"
    status_code = 503

    def __init__(self, operation: str, entity_id: object, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation}({entity_id}) failed{detail}")
        self.operation = operation
        self.entity_id = entity_id
        self.cause = cause

# ==== Bulk rebalance ====

class RebalanceCancelledError(BaseAppException):
    """A fan-out task did not finish before cancellation or timeout."""
    code = "CANCELLED"
    status_code = 504

    def __init__(self, pr_id: str = ""):
        super().__init__(f"reassignment of PR {pr_id!r} was cancelled")
        self.pr_id = pr_id

class BulkRebalanceError(BaseAppException):
    """
    One or more per-PR reassignments failed. Updates that did commit are
    kept: the operation is not all-or-nothing.
    """
    code = "PARTIAL_FAILURE"
    status_code = 500

    def __init__(self, subject: str, failures: List[tuple], report: object = None):
        super().__init__(
            f"rebalance for {subject!r} failed on {len(failures)} step(s); "
            f"other updates were committed"
        )
        self.subject = subject
        self.failures = list(failures)
        self.report = report

    @property
    def failed_pr_ids(self) -> List[str]:
        return [pr_id for pr_id, _ in self.failures if pr_id is not None]

# ==== Auth ====

class AuthError(BaseAppException):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)
