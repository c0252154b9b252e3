from sqlalchemy import Column, Integer, String, DateTime, LargeBinary, JSON
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from taskmanager.core.database import Base


class User(Base):
    """
    User model representing application users.

    Stores credentials, the list of active session tokens and an optional avatar.
    Passwords are stored as hashes (never plaintext).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    # Email is unique and indexed for fast lookups during login
    email = Column(String, unique=True, index=True, nullable=False)
    age = Column(Integer, nullable=False, default=0)
    # bcrypt hash; see apply_pending_side_effects in user_service
    password = Column(String, nullable=False)
    # Active session tokens in issue order; MutableList tracks in-place edits
    tokens = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    # 250x250 PNG, None when the user has no avatar
    avatar = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Deleting a user deletes the tasks they own
    tasks = relationship(
        "Task",
        back_populates="owner",
        cascade="all, delete-orphan",
    )
