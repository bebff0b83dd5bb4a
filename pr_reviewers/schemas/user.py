#pr_reviewers/schemas/user.py
from pydantic import BaseModel, Field
from typing import List

from pr_reviewers.entities import User
from pr_reviewers.schemas.pull_request import PullRequestShort


class UserRead(BaseModel):
    user_id: str
    username: str
    team_name: str = ""
    is_active: bool

    @classmethod
    def from_entity(cls, user: User, team_name: str = "") -> "UserRead":
        return cls(user_id=user.id, username=user.name, team_name=team_name, is_active=user.is_active)


class UserResponse(BaseModel):
    user: UserRead


class SetIsActiveRequest(BaseModel):
    user_id: str = Field(..., min_length=1, examples=["u2"])
    is_active: bool


class UserReviewsResponse(BaseModel):
    """
    UserReviewsResponse: pull requests where the user is a reviewer.
    """
    user_id: str
    pull_requests: List[PullRequestShort] = []
