"""
Base repository with the query and persistence helpers shared by every
lending repository.

Repositories never commit: the service that owns the operation decides when
the unit of work ends. Concurrency failures raised by SQLAlchemy during a
flush are translated into ``OptimisticLockError`` so services can retry.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from wellness_lending.config.logging import get_logger
from wellness_lending.core.exceptions import DatabaseError, OptimisticLockError
from wellness_lending.models.base import Base

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=Base)


def translate_db_error(error: Exception, model_name: str = "Entity") -> Exception:
    """
    Map a SQLAlchemy failure to the application exception hierarchy.

    A stale version counter and a uniqueness violation both mean another
    transaction won the race for the same row.
    """
    if isinstance(error, StaleDataError):
        return OptimisticLockError(
            f"{model_name} was modified concurrently",
            details={"entity": model_name},
        )
    if isinstance(error, IntegrityError):
        return OptimisticLockError(
            f"Concurrent write to {model_name} violated a uniqueness constraint",
            details={"entity": model_name, "constraint": str(error.orig)},
        )
    if isinstance(error, SQLAlchemyError):
        return DatabaseError(f"{model_name} persistence failed: {error}")
    return error


class BaseRepository(Generic[ModelType]):
    """
    Base repository with standardized operations.
    """

    def __init__(self, model: Type[ModelType], session: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Database session
        """
        self.model = model
        self.session = session

    # ==================== Read Operations ====================

    def get_by_id(self, entity_id: Any) -> Optional[ModelType]:
        """
        Get entity by primary key.

        Args:
            entity_id: Primary key value

        Returns:
            Entity or None if not found
        """
        return self.session.get(self.model, entity_id)

    def get_for_update(self, entity_id: Any) -> Optional[ModelType]:
        """
        Get entity by primary key with a row lock.

        ``SELECT ... FOR UPDATE`` on backends that support it; SQLite ignores
        the clause and relies on the version counter instead.
        """
        return self.session.get(
            self.model,
            entity_id,
            with_for_update=True,
            populate_existing=True,
        )

    def count(self, *conditions: Any) -> int:
        """Count rows matching the given SQL conditions."""
        query = select(func.count()).select_from(self.model)
        if conditions:
            query = query.where(and_(*conditions))
        return self.session.execute(query).scalar_one()

    # ==================== Write Operations ====================

    def add(self, entity: ModelType) -> ModelType:
        """
        Add a new entity and flush so database defaults and constraints apply.

        Raises:
            OptimisticLockError: If a concurrent write won a uniqueness race
        """
        self.session.add(entity)
        self.flush()
        logger.debug(f"Added {self.model.__name__}")
        return entity

    def flush(self) -> None:
        """Flush pending changes, translating concurrency failures."""
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            raise translate_db_error(e, self.model.__name__) from e

    def refresh(self, entity: ModelType) -> ModelType:
        self.session.refresh(entity)
        return entity
