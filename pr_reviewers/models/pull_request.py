#pr_reviewers/models/pull_request.py
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Table, Index
)
from sqlalchemy.orm import relationship
from pr_reviewers.models.base import Base

pull_request_reviewers = Table(
    "pull_request_reviewers",
    Base.metadata,
    Column("pull_request_id", String(64), ForeignKey("pull_requests.pull_request_id", ondelete="CASCADE"), primary_key=True),
    Column("reviewer_id", String(64), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
    Index("ix_pull_request_reviewers_reviewer_id", "reviewer_id"),
)

class PullRequest(Base):
    """
    PullRequest: OPEN until merged; MERGED rows are never changed again.
    """
    __tablename__ = "pull_requests"

    pull_request_id = Column(String(64), primary_key=True, doc="Caller supplied id")
    pull_request_name = Column(String(255), nullable=False, doc="Title")
    author_id = Column(String(64), ForeignKey("users.user_id"), nullable=False, index=True, doc="Author user id")
    status = Column(String(16), nullable=False, default="OPEN", index=True, doc="OPEN or MERGED")
    need_more_reviewers = Column(Boolean, nullable=False, default=False, doc="Fewer active reviewers than required")
    created_at = Column(DateTime(timezone=True), nullable=False, doc="Creation time")
    merged_at = Column(DateTime(timezone=True), nullable=True, doc="Set iff status is MERGED")

    author = relationship("User", foreign_keys=[author_id])
    reviewers = relationship("User", secondary=pull_request_reviewers, order_by="User.user_id")

    def __repr__(self):
        return (
            f"<PullRequest(pull_request_id='{self.pull_request_id}', status={self.status}, "
            f"author_id='{self.author_id}', need_more_reviewers={self.need_more_reviewers})>"
        )
