#pr_reviewers/schemas/stats.py
from pydantic import BaseModel, Field
from typing import Dict, List


class ReviewStatisticsRead(BaseModel):
    """
    ReviewStatisticsRead: review load snapshot.
    """
    assignments_by_user: Dict[str, int] = Field(default_factory=dict, description="Open reviews per user")
    reviewers_by_pr: Dict[str, int] = Field(default_factory=dict, description="Reviewer count per pull request")
    open_prs: int = 0
    merged_prs: int = 0
    understaffed_prs: List[str] = []
