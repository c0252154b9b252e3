from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from taskmanager.core.database import get_db
from taskmanager.models.user import User
from taskmanager.services.session_service import session_service

# Bearer scheme - extracts the token from "Authorization: Bearer <token>"
# auto_error=False so every failure goes through the same 401 below
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedSession:
    """The user behind a request and the token they presented"""
    user: User
    token: str


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> AuthenticatedSession:
    """
    Resolve the bearer token of the current request.

    This is a FastAPI dependency used by every protected route.
    A missing header, a malformed or forged token, a deleted user and a
    revoked token all raise 401, so the route handler never runs.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or not credentials.credentials:
        raise credentials_exception

    resolved = session_service.resolve(db, credentials.credentials)
    if resolved is None:
        raise credentials_exception

    user, token = resolved
    return AuthenticatedSession(user=user, token=token)


def get_current_user(session: AuthenticatedSession = Depends(get_current_session)) -> User:
    """Get current authenticated user"""
    return session.user
