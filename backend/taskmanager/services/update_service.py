import logging
from typing import Any, Dict, Iterable, Type, TypeVar
from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from taskmanager.models.user import User
from taskmanager.services.user_service import apply_pending_side_effects

logger = logging.getLogger(__name__)

INVALID_UPDATES_MESSAGE = "Invalid updates"

EntityT = TypeVar("EntityT")


class UpdateService:
    """Whitelisted partial updates for ORM entities"""

    @staticmethod
    def is_valid_operation(payload: Dict[str, Any], allowed_fields: Iterable[str]) -> bool:
        allowed = set(allowed_fields)
        return all(field in allowed for field in payload)

    @staticmethod
    def apply_update(
        db: Session,
        entity: EntityT,
        payload: Dict[str, Any],
        allowed_fields: Iterable[str],
        schema: Type[BaseModel],
    ) -> EntityT:
        """
        Apply payload to entity and persist it.

        Either every field is applied or none is: an unknown key or a value
        that fails schema validation rejects the whole update with 400
        before the entity is touched. The write goes through the normal
        save path so user side effects (password hashing) still run.
        """
        if not UpdateService.is_valid_operation(payload, allowed_fields):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=INVALID_UPDATES_MESSAGE
            )

        try:
            validated = schema.model_validate(payload)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=e.errors(include_url=False, include_context=False)
            )

        for field, value in validated.model_dump(exclude_unset=True).items():
            setattr(entity, field, value)

        if isinstance(entity, User):
            apply_pending_side_effects(entity)

        try:
            db.commit()
            db.refresh(entity)
        except IntegrityError:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Update conflicts with an existing record"
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Database error while applying update")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error occurred"
            )

        return entity


update_service = UpdateService()
