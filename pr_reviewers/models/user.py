#pr_reviewers/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from pr_reviewers.models.base import Base

class User(Base):
    """
    User: a developer who can author and review pull requests.
    Never deleted, availability is toggled through is_active.
    """
    __tablename__ = "users"

    user_id = Column(String(64), primary_key=True, doc="Externally assigned user id")
    username = Column(String(128), nullable=False, doc="Display name")
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True, doc="Current team")
    is_active = Column(Boolean, default=True, nullable=False, doc="Available for review assignment")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, doc="Creation time")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False, doc="Last update time")

    team = relationship("Team", back_populates="members")

    def __repr__(self):
        return f"<User(user_id='{self.user_id}', username='{self.username}', team_id={self.team_id}, is_active={self.is_active})>"
