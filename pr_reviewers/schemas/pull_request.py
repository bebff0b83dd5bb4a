#pr_reviewers/schemas/pull_request.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from pr_reviewers.entities import PRStatus, PullRequest


class PullRequestCreate(BaseModel):
    pull_request_id: str = Field(..., min_length=1, examples=["pr-1001"])
    pull_request_name: str = Field(..., min_length=1, examples=["Add search"])
    author_id: str = Field(..., min_length=1, examples=["u1"])


class PullRequestMerge(BaseModel):
    pull_request_id: str = Field(..., min_length=1)


class PullRequestReassign(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    old_user_id: str = Field(..., min_length=1, description="Reviewer to replace")


class PullRequestShort(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PRStatus

    @classmethod
    def from_entity(cls, pr: PullRequest) -> "PullRequestShort":
        return cls(
            pull_request_id=pr.id,
            pull_request_name=pr.name,
            author_id=pr.author.id,
            status=pr.status,
        )


class PullRequestRead(PullRequestShort):
    assigned_reviewers: List[str] = []
    need_more_reviewers: bool = False
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, pr: PullRequest) -> "PullRequestRead":
        return cls(
            pull_request_id=pr.id,
            pull_request_name=pr.name,
            author_id=pr.author.id,
            status=pr.status,
            assigned_reviewers=pr.reviewer_ids,
            need_more_reviewers=pr.need_more_reviewers,
            created_at=pr.created_at,
            merged_at=pr.merged_at,
        )


class PullRequestResponse(BaseModel):
    pr: PullRequestRead


class ReassignResponse(BaseModel):
    pr: PullRequestRead
    replaced_by: Optional[str] = Field(None, description="ID of the new reviewer")
