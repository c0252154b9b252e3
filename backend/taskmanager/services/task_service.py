import logging
from typing import Any, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from taskmanager.core.database import parse_row_id
from taskmanager.models.task import Task
from taskmanager.models.user import User

logger = logging.getLogger(__name__)

TASK_NOT_FOUND_MESSAGE = "Task not found"


class TaskService:
    """Owner-scoped task persistence"""

    @staticmethod
    def create_task(db: Session, owner: User, description: str, completed: bool = False) -> Task:
        task = Task(owner_id=owner.id, description=description, completed=completed)
        try:
            db.add(task)
            db.commit()
            db.refresh(task)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Database error while creating task for user {owner.id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )
        return task

    @staticmethod
    def list_tasks(
        db: Session,
        owner: User,
        completed: Optional[bool] = None,
        limit: Optional[int] = None,
        skip: int = 0,
        descending: bool = False,
    ) -> List[Task]:
        query = db.query(Task).filter(Task.owner_id == owner.id)
        if completed is not None:
            query = query.filter(Task.completed == completed)

        order = Task.created_at.desc() if descending else Task.created_at.asc()
        # id breaks ties between tasks created within the same timestamp
        tie = Task.id.desc() if descending else Task.id.asc()
        query = query.order_by(order, tie).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_task(db: Session, owner: User, task_id: Any) -> Task:
        """A malformed id or a task owned by someone else is reported exactly like a missing one"""
        row_id = parse_row_id(task_id)
        task = None
        if row_id is not None:
            task = db.query(Task).filter(
                Task.id == row_id,
                Task.owner_id == owner.id
            ).first()

        if not task:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TASK_NOT_FOUND_MESSAGE)
        return task

    @staticmethod
    def delete_task(db: Session, task: Task) -> None:
        task_id = task.id
        try:
            db.delete(task)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Database error while deleting task {task_id}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )


task_service = TaskService()
