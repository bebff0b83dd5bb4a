# pr_reviewers/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Dict
from jose import JWTError, jwt
from fastapi.security import OAuth2PasswordBearer

from pr_reviewers.core.settings import settings

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

ROLE_ADMIN = "admin"
ROLE_USER = "user"

def create_access_token(
    user_id: str,
    role: str = ROLE_USER,
    expires_delta: Optional[timedelta] = None
) -> tuple[str, datetime]:
    """
    Issue an access token (JWT) for a user id and return (token, expire_time).
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "role": role, "exp": expire, "type": "access"}
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt, expire

def create_admin_token(expires_delta: Optional[timedelta] = None) -> tuple[str, datetime]:
    return create_access_token(settings.ADMIN_USER_ID, role=ROLE_ADMIN, expires_delta=expires_delta)

def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate an access token. Returns None for anything invalid.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access" or not payload.get("sub"):
        return None
    return payload

# tokenUrl is informational only, tokens are issued out of band
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
