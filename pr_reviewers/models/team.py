#pr_reviewers/models/team.py
from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from pr_reviewers.models.base import Base

class Team(Base):
    """
    Team: named group of users; reviewers are drawn from the author's team.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_name = Column(String(128), nullable=False, unique=True, index=True, doc="Unique team name")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, doc="Creation time")

    members = relationship("User", back_populates="team", order_by="User.user_id")

    def __repr__(self):
        return f"<Team(id={self.id}, team_name='{self.team_name}')>"
