#pr_reviewers/api/user.py
from fastapi import APIRouter, Depends, Query

from pr_reviewers.dependencies import Identity, get_assignment_service, get_current_identity, require_admin
from pr_reviewers.schemas.pull_request import PullRequestShort
from pr_reviewers.schemas.response import ErrorResponse
from pr_reviewers.schemas.user import SetIsActiveRequest, UserRead, UserResponse, UserReviewsResponse
from pr_reviewers.services.assignment_service import AssignmentService

router = APIRouter(prefix="/users", tags=["Users"])

@router.post("/setIsActive", response_model=UserResponse, responses={404: {"model": ErrorResponse}})
def set_is_active_api(
    data: SetIsActiveRequest,
    service: AssignmentService = Depends(get_assignment_service),
    admin: Identity = Depends(require_admin),
):
    """
    Switch a user's availability. Deactivation hands all of their open
    reviews to teammates; activation offers them to understaffed pull requests.
    """
    service.set_user_active(data.user_id, data.is_active)
    user, team_name = service.get_user_with_team(data.user_id)
    return UserResponse(user=UserRead.from_entity(user, team_name))

@router.get("/getReview", response_model=UserReviewsResponse, responses={404: {"model": ErrorResponse}})
def get_review_api(
    user_id: str = Query(..., min_length=1),
    service: AssignmentService = Depends(get_assignment_service),
    identity: Identity = Depends(get_current_identity),
):
    prs = service.get_users_prs(user_id)
    return UserReviewsResponse(
        user_id=user_id,
        pull_requests=[PullRequestShort.from_entity(pr) for pr in prs],
    )
