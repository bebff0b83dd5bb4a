# pr_reviewers/dependencies.py

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, HTTPException, status

from pr_reviewers.core.security import ROLE_ADMIN, oauth2_scheme, verify_access_token
from pr_reviewers.core.settings import settings
from pr_reviewers.crud.port import PullRequestRepository
from pr_reviewers.crud.sql_repository import SqlAlchemyRepository
from pr_reviewers.database import SessionLocal
from pr_reviewers.services.assignment_service import AssignmentService


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_admin: bool = False


@lru_cache()
def get_repository() -> PullRequestRepository:
    """
    One repository per process; it opens a fresh session for every call.
    """
    return SqlAlchemyRepository(SessionLocal)


def get_assignment_service(
    repository: PullRequestRepository = Depends(get_repository),
) -> AssignmentService:
    return AssignmentService(
        repository,
        max_reviewers=settings.MAX_REVIEWERS,
        admin_ids=(settings.ADMIN_USER_ID,),
        max_workers=settings.REBALANCE_MAX_WORKERS,
        rebalance_timeout=settings.REBALANCE_TIMEOUT_SECONDS,
    )


def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    """
    Decodes the bearer JWT. The token only names a user id; whether that
    user exists is decided by the use case itself.
    """
    payload = verify_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Identity(user_id=payload["sub"], is_admin=payload.get("role") == ROLE_ADMIN)


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin token required")
    return identity
