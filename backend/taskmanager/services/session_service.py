"""
Per-device session tokens.

Each login issues a signed token that is also stored on the user row.
A token is only accepted while it is still in that list, so logging out
one device (or all of them) takes effect immediately even though the
signature itself stays valid.
"""

import logging
from typing import Optional, Tuple
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from taskmanager.core.config import settings
from taskmanager.core.security import create_access_token, decode_access_token
from taskmanager.models.user import User

logger = logging.getLogger(__name__)


class SessionService:

    @staticmethod
    def _commit(db: Session, user: User) -> None:
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Database error while saving sessions for user {user.id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )

    @staticmethod
    def issue(db: Session, user: User) -> str:
        """Create a token for user, store it on the user and return it"""
        token = create_access_token(data={"sub": str(user.id)})
        tokens = list(user.tokens or [])
        tokens.append(token)

        cap = settings.MAX_SESSIONS_PER_USER
        if cap is not None and len(tokens) > cap:
            # Keep the newest sessions
            tokens = tokens[-cap:]

        user.tokens = tokens
        SessionService._commit(db, user)
        logger.info(f"Issued session for user {user.id} ({len(tokens)} active)")
        return token

    @staticmethod
    def revoke(db: Session, user: User, token: str) -> None:
        """Remove one token; a token that is not present is ignored"""
        user.tokens = [t for t in (user.tokens or []) if t != token]
        SessionService._commit(db, user)
        logger.info(f"Revoked session for user {user.id}")

    @staticmethod
    def revoke_all(db: Session, user: User) -> None:
        user.tokens = []
        SessionService._commit(db, user)
        logger.info(f"Revoked all sessions for user {user.id}")

    @staticmethod
    def resolve(db: Session, token: str) -> Optional[Tuple[User, str]]:
        """
        Map a token to (user, token).

        Returns None if the signature is invalid, the subject is malformed,
        the user no longer exists, or the token has been revoked.
        """
        payload = decode_access_token(token)
        if payload is None:
            logger.debug("Rejected token with invalid signature")
            return None

        try:
            user_id = int(payload.get("sub"))
        except (ValueError, TypeError):
            logger.debug("Rejected token with malformed subject")
            return None

        user = db.get(User, user_id)
        if user is None or token not in (user.tokens or []):
            logger.debug(f"Rejected revoked or orphaned token for user {user_id}")
            return None

        return user, token


session_service = SessionService()
