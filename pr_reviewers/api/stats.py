#pr_reviewers/api/stats.py
from fastapi import APIRouter, Depends

from pr_reviewers.dependencies import Identity, get_assignment_service, require_admin
from pr_reviewers.schemas.stats import ReviewStatisticsRead
from pr_reviewers.services.assignment_service import AssignmentService

router = APIRouter(prefix="/stats", tags=["Statistics"])

@router.get("", response_model=ReviewStatisticsRead)
def get_stats_api(
    service: AssignmentService = Depends(get_assignment_service),
    admin: Identity = Depends(require_admin),
):
    """
    Review load: open reviews per user and reviewer count per pull request.
    """
    stats = service.get_statistics()
    return ReviewStatisticsRead(
        assignments_by_user=stats.assignments_by_user,
        reviewers_by_pr=stats.reviewers_by_pr,
        open_prs=stats.open_prs,
        merged_prs=stats.merged_prs,
        understaffed_prs=stats.understaffed_prs,
    )
