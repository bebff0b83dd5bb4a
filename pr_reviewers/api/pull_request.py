#pr_reviewers/api/pull_request.py
from fastapi import APIRouter, Depends, status

from pr_reviewers.core.settings import settings
from pr_reviewers.dependencies import Identity, get_assignment_service, get_current_identity, require_admin
from pr_reviewers.schemas.pull_request import (
    PullRequestCreate,
    PullRequestMerge,
    PullRequestReassign,
    PullRequestRead,
    PullRequestResponse,
    ReassignResponse,
)
from pr_reviewers.schemas.response import ErrorResponse
from pr_reviewers.services.assignment_service import AssignmentService

router = APIRouter(prefix="/pullRequest", tags=["Pull Requests"])

@router.post(
    "/create",
    response_model=PullRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def create_pr_api(
    data: PullRequestCreate,
    service: AssignmentService = Depends(get_assignment_service),
    admin: Identity = Depends(require_admin),
):
    """
    Open a pull request and assign up to the configured number of reviewers
    from the author's team.
    """
    pr = service.create_pr(data.pull_request_id, data.pull_request_name, data.author_id)
    return PullRequestResponse(pr=PullRequestRead.from_entity(pr))

@router.post(
    "/merge",
    response_model=PullRequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def merge_pr_api(
    data: PullRequestMerge,
    service: AssignmentService = Depends(get_assignment_service),
    identity: Identity = Depends(get_current_identity),
):
    """
    Merge a pull request. Allowed for its reviewers and for the admin.
    """
    acting = settings.ADMIN_USER_ID if identity.is_admin else identity.user_id
    pr = service.merge(acting, data.pull_request_id)
    return PullRequestResponse(pr=PullRequestRead.from_entity(pr))

@router.post(
    "/reassign",
    response_model=ReassignResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def reassign_pr_api(
    data: PullRequestReassign,
    service: AssignmentService = Depends(get_assignment_service),
    admin: Identity = Depends(require_admin),
):
    pr, replaced_by = service.reassign(data.pull_request_id, data.old_user_id)
    return ReassignResponse(pr=PullRequestRead.from_entity(pr), replaced_by=replaced_by)
