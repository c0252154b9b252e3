import logging
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, File as FastAPIFile, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from sqlalchemy.orm import Session
from taskmanager.core.database import get_db
from taskmanager.api.dependencies import AuthenticatedSession, get_current_session, get_current_user
from taskmanager.models.user import User
from taskmanager.services.avatar_service import AVATAR_MEDIA_TYPE, avatar_service
from taskmanager.services.email_service import send_goodbye_email, send_welcome_email
from taskmanager.services.session_service import session_service
from taskmanager.services.update_service import update_service
from taskmanager.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

ALLOWED_USER_UPDATES = ("name", "email", "password", "age")
MIN_PASSWORD_LENGTH = 7


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_password(value: str) -> str:
    if "password" in value.lower():
        raise ValueError('password cannot contain "password"')
    return value


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    age: int = Field(default=0, ge=0)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_is_strong(cls, value: str) -> str:
        return _check_password(value)


class UserUpdate(BaseModel):
    """Same rules as sign-up, every field optional but never null"""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    age: Optional[int] = Field(default=None, ge=0)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_is_strong(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_password(value)

    @model_validator(mode="after")
    def reject_nulls(self):
        for field in self.model_fields_set:
            if getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    age: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserWithToken(BaseModel):
    user: UserResponse
    token: str


@router.post("", response_model=UserWithToken, status_code=status.HTTP_201_CREATED)
def sign_up(
    user_data: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Register a new user and open their first session"""
    user = user_service.create_user(db, user_data.model_dump())
    token = session_service.issue(db, user)
    background_tasks.add_task(send_welcome_email, user.email, user.name)
    return {"user": user, "token": token}


@router.post("/login", response_model=UserWithToken)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get a new session token"""
    user = user_service.authenticate(db, credentials.email, credentials.password)
    if user is None:
        # Same answer for unknown email and wrong password
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unable to login"
        )

    token = session_service.issue(db, user)
    logger.info(f"User {user.id} logged in")
    return {"user": user, "token": token}


@router.post("/logout")
def logout(
    session: AuthenticatedSession = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    """End the session the request was made with"""
    session_service.revoke(db, session.user, session.token)
    return Response(status_code=status.HTTP_200_OK)


@router.post("/logoutAll")
def logout_all(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """End every session of the current user"""
    session_service.revoke_all(db, current_user)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/me", response_model=UserResponse)
def read_me(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update name, email, password or age of the current user"""
    return update_service.apply_update(
        db, current_user, payload, ALLOWED_USER_UPDATES, UserUpdate
    )


@router.delete("/me", response_model=UserResponse)
def delete_me(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete the current user and all of their tasks"""
    # Snapshot before the row is gone; the instance is detached after commit
    snapshot = UserResponse.model_validate(current_user)
    user_service.delete_user(db, current_user)
    background_tasks.add_task(send_goodbye_email, snapshot.email, snapshot.name)
    return snapshot


@router.post("/me/avatar")
async def upload_avatar(
    avatar: UploadFile = FastAPIFile(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Upload a .jpg/.jpeg/.png avatar; stored as a 250x250 PNG"""
    await avatar_service.set_avatar(db, current_user, avatar)
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/me/avatar")
def delete_avatar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove the current user's avatar"""
    avatar_service.clear_avatar(db, current_user)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/{user_id}/avatar")
def get_avatar(user_id: str, db: Session = Depends(get_db)):
    """Public avatar of any user, as PNG"""
    content = avatar_service.get_avatar(db, user_id)
    return Response(content=content, media_type=AVATAR_MEDIA_TYPE)
