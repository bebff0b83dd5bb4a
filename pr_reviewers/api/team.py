#pr_reviewers/api/team.py
from fastapi import APIRouter, Depends, Query, status

from pr_reviewers.dependencies import Identity, get_assignment_service, get_current_identity, require_admin
from pr_reviewers.schemas.response import ErrorResponse
from pr_reviewers.schemas.team import (
    TeamCreate,
    TeamDeactivate,
    TeamDeactivationRead,
    TeamRead,
    TeamResponse,
)
from pr_reviewers.services.assignment_service import AssignmentService

router = APIRouter(prefix="/team", tags=["Teams"])

@router.post(
    "/add",
    response_model=TeamResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def add_team_api(
    data: TeamCreate,
    service: AssignmentService = Depends(get_assignment_service),
):
    """
    Create a team. Members that already belong to another team are moved
    here and their open reviews are handed over inside the old team.
    """
    team = service.add_team(data.team_name, [m.to_entity() for m in data.members])
    return TeamResponse(team=TeamRead.from_entity(team))

@router.get("/get", response_model=TeamRead, responses={404: {"model": ErrorResponse}})
def get_team_api(
    team_name: str = Query(..., min_length=1, description="Team name"),
    service: AssignmentService = Depends(get_assignment_service),
    identity: Identity = Depends(get_current_identity),
):
    return TeamRead.from_entity(service.get_team(team_name))

@router.post("/deactivate", response_model=TeamDeactivationRead, responses={404: {"model": ErrorResponse}})
def deactivate_team_api(
    data: TeamDeactivate,
    service: AssignmentService = Depends(get_assignment_service),
    admin: Identity = Depends(require_admin),
):
    """
    Deactivate team members (all active ones by default) and reassign
    their open reviews.
    """
    report = service.deactivate_team_members(data.team_name, data.user_ids)
    return TeamDeactivationRead(
        team_name=report.team_name,
        deactivated_user_ids=report.deactivated_user_ids,
        reassignments=report.reassignments,
    )
