from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.orm import Session
from taskmanager.core.database import get_db
from taskmanager.api.dependencies import get_current_user
from taskmanager.models.user import User
from taskmanager.services.task_service import task_service
from taskmanager.services.update_service import update_service

router = APIRouter(prefix="/tasks", tags=["tasks"])

ALLOWED_TASK_UPDATES = ("description", "completed")


class TaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(min_length=1)
    completed: bool = False


class TaskUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, min_length=1)
    completed: Optional[bool] = None

    @model_validator(mode="after")
    def reject_nulls(self):
        for field in self.model_fields_set:
            if getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class TaskResponse(BaseModel):
    id: int
    description: str
    completed: bool
    owner_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a task owned by the current user"""
    return task_service.create_task(db, current_user, task.description, task.completed)


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    completed: Optional[bool] = Query(None, description="Only tasks with this completion state"),
    limit: Optional[int] = Query(None, ge=1),
    skip: int = Query(0, ge=0),
    order: Literal["asc", "desc"] = Query("asc", description="Sort by creation time"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's tasks"""
    return task_service.list_tasks(
        db,
        current_user,
        completed=completed,
        limit=limit,
        skip=skip,
        descending=order == "desc",
    )


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a specific task"""
    return task_service.get_task(db, current_user, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update description or completion state of a task"""
    task = task_service.get_task(db, current_user, task_id)
    return update_service.apply_update(db, task, payload, ALLOWED_TASK_UPDATES, TaskUpdate)


@router.delete("/{task_id}", response_model=TaskResponse)
def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a task and return what it was"""
    task = task_service.get_task(db, current_user, task_id)
    snapshot = TaskResponse.model_validate(task)
    task_service.delete_task(db, task)
    return snapshot
