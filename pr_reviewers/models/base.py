#pr_reviewers/models/base.py
"""
Declarative base for every ORM table of the service.

    from pr_reviewers.models.base import Base
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
