#pr_reviewers/schemas/team.py
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from pr_reviewers.entities import Team, User


class TeamMember(BaseModel):
    """
    TeamMember: one user as listed in a team payload.
    """
    user_id: str = Field(..., min_length=1, examples=["u1"], description="User ID")
    username: str = Field("", examples=["Alice"], description="Display name")
    is_active: bool = Field(True, description="Can be picked as a reviewer")

    def to_entity(self) -> User:
        return User(id=self.user_id, name=self.username, is_active=self.is_active)

    @classmethod
    def from_entity(cls, user: User) -> "TeamMember":
        return cls(user_id=user.id, username=user.name, is_active=user.is_active)


class TeamCreate(BaseModel):
    team_name: str = Field(..., min_length=1, examples=["backend"], description="Unique team name")
    members: List[TeamMember] = Field(..., min_length=1, description="Team members")


class TeamRead(BaseModel):
    team_name: str
    members: List[TeamMember] = []

    @classmethod
    def from_entity(cls, team: Team) -> "TeamRead":
        members = sorted(team.members, key=lambda m: m.id)
        return cls(team_name=team.name, members=[TeamMember.from_entity(m) for m in members])


class TeamResponse(BaseModel):
    team: TeamRead


class TeamDeactivate(BaseModel):
    """
    TeamDeactivate: members to switch off. Without user_ids every active
    member of the team is deactivated.
    """
    team_name: str = Field(..., min_length=1)
    user_ids: Optional[List[str]] = Field(None, description="Subset of members to deactivate")


class TeamDeactivationRead(BaseModel):
    team_name: str
    deactivated_user_ids: List[str] = []
    reassignments: Dict[str, Dict[str, Optional[str]]] = Field(
        default_factory=dict,
        description="user_id -> {pull_request_id: replaced_by}",
    )
