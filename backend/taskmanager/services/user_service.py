import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from taskmanager.core.database import parse_row_id
from taskmanager.core.security import get_password_hash, verify_password
from taskmanager.models.user import User

logger = logging.getLogger(__name__)


def apply_pending_side_effects(user: User) -> User:
    """
    Run the derived-field updates a user needs before it is written.

    Hashes the password when it changed since the last flush.
    Every write path (sign-up, whitelisted update) calls this explicitly
    before committing. The digest produced here is remembered on the
    instance, so calling it twice before a flush hashes only once.
    """
    history = inspect(user).attrs.password.history
    if history.has_changes() and user.password != getattr(user, "_hashed_password", None):
        user.password = get_password_hash(user.password)
        user._hashed_password = user.password
    return user


class UserService:
    """Account creation, credential checks and deletion"""

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def create_user(db: Session, data: Dict[str, Any]) -> User:
        """Persist a new user from already-validated sign-up data"""
        # Explicit check gives a clearer error than the constraint violation
        if UserService.get_by_email(db, data["email"]):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        user = User(**data)
        user.tokens = []
        apply_pending_side_effects(user)
        try:
            db.add(user)
            db.commit()
            db.refresh(user)
        except IntegrityError:
            # Two sign-ups with the same email raced past the check above
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Database error while creating user")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )

        logger.info(f"Created user {user.id}")
        return user

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Optional[User]:
        """Return the user when email and password match, else None"""
        user = UserService.get_by_email(db, email)
        # Same outcome for unknown email and wrong password
        if not user or not verify_password(password, user.password):
            return None
        return user

    @staticmethod
    def get_user(db: Session, user_id: Any) -> Optional[User]:
        """Look a user up by a client-supplied id; None when it names no row"""
        row_id = parse_row_id(user_id)
        if row_id is None:
            return None
        return db.get(User, row_id)

    @staticmethod
    def delete_user(db: Session, user: User) -> None:
        """Delete a user and, through the ORM cascade, every task they own"""
        user_id = user.id
        try:
            db.delete(user)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Database error while deleting user {user_id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )
        logger.info(f"Deleted user {user_id}")


user_service = UserService()
