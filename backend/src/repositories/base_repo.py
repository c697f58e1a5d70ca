"""
Base repository with strict scope enforcement.

Every repository is bound to one scope value (a user id for projects, a
project id for tokens, sync connections and sync logs). No query issued
through a repository can read or write rows outside that scope.
"""

import logging
from typing import TypeVar, Generic, Optional, List
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from src.db_base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


class ScopeIsolationError(Exception):
    """Raised when an operation targets a different scope than the repository's."""
    pass


class BaseRepository(Generic[T], ABC):
    """
    Base repository with a mandatory scope value.

    Subclasses name the model and the column that carries the scope.
    Any scope value passed explicitly to a method must match the
    repository's own, otherwise ScopeIsolationError is raised.
    """

    def __init__(self, db_session: Session, scope_id: str):
        """
        Args:
            db_session: SQLAlchemy database session
            scope_id: Value of the scope column (user id or project id)

        Raises:
            ValueError: If scope_id is empty or None
        """
        if not scope_id:
            raise ValueError("scope_id is required and cannot be empty")

        self.db_session = db_session
        self.scope_id = scope_id
        self._model_class = self._get_model_class()

    @abstractmethod
    def _get_model_class(self) -> type[T]:
        """Return the SQLAlchemy model class for this repository."""
        pass

    @abstractmethod
    def _get_scope_column_name(self) -> str:
        """Return the name of the scope column in the model."""
        pass

    def _query(self):
        scope_column = getattr(self._model_class, self._get_scope_column_name())
        return self.db_session.query(self._model_class).filter(scope_column == self.scope_id)

    def _validate_scope(self, scope_id: Optional[str], operation: str) -> None:
        if scope_id and scope_id != self.scope_id:
            logger.error(
                "Scope mismatch detected",
                extra={
                    "repository_scope_id": self.scope_id,
                    "provided_scope_id": scope_id,
                    "operation": operation,
                    "entity_type": self._model_class.__name__,
                }
            )
            raise ScopeIsolationError(
                f"Scope mismatch: repository scoped to {self.scope_id}, "
                f"but operation attempted with {scope_id}"
            )

    def _commit(self, entity: T, action: str) -> T:
        try:
            self.db_session.commit()
            self.db_session.refresh(entity)
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(
                f"Failed to {action} entity",
                extra={
                    "scope_id": self.scope_id,
                    "entity_type": self._model_class.__name__,
                    "error": str(e),
                }
            )
            raise

        logger.info(
            f"Entity {action}d",
            extra={
                "scope_id": self.scope_id,
                "entity_id": getattr(entity, "id", None),
                "entity_type": self._model_class.__name__,
            }
        )
        return entity

    def get_by_id(self, entity_id: str, scope_id: Optional[str] = None) -> Optional[T]:
        """Get entity by ID within the repository scope."""
        self._validate_scope(scope_id, "get_by_id")
        return self._query().filter(self._model_class.id == entity_id).first()

    def get_all(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        scope_id: Optional[str] = None
    ) -> List[T]:
        """Get all entities within the repository scope."""
        self._validate_scope(scope_id, "get_all")

        query = self._query()
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def create(self, entity_data: dict, scope_id: Optional[str] = None) -> T:
        """
        Create a new entity in the repository scope.

        SECURITY: a scope value inside entity_data is ignored; the
        repository's scope is always written.
        """
        self._validate_scope(scope_id, "create")

        scope_column = self._get_scope_column_name()
        provided = entity_data.pop(scope_column, None)
        if provided and provided != self.scope_id:
            logger.warning(
                "Foreign scope value found in entity_data, ignoring it",
                extra={"repository_scope_id": self.scope_id, "removed_scope_id": provided}
            )
        entity_data[scope_column] = self.scope_id

        entity = self._model_class(**entity_data)
        self.db_session.add(entity)
        return self._commit(entity, "create")

    def update(
        self,
        entity_id: str,
        entity_data: dict,
        scope_id: Optional[str] = None
    ) -> Optional[T]:
        """Update an entity within the scope. Returns None when not found."""
        self._validate_scope(scope_id, "update")

        entity_data.pop(self._get_scope_column_name(), None)

        entity = self.get_by_id(entity_id)
        if not entity:
            return None

        for key, value in entity_data.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        return self._commit(entity, "update")

    def delete(self, entity_id: str, scope_id: Optional[str] = None) -> bool:
        """Delete an entity within the scope. Returns False when not found."""
        self._validate_scope(scope_id, "delete")

        entity = self.get_by_id(entity_id)
        if not entity:
            return False

        try:
            self.db_session.delete(entity)
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(
                "Failed to delete entity",
                extra={"scope_id": self.scope_id, "entity_id": entity_id, "error": str(e)}
            )
            raise

        logger.info(
            "Entity deleted",
            extra={
                "scope_id": self.scope_id,
                "entity_id": entity_id,
                "entity_type": self._model_class.__name__,
            }
        )
        return True

    def count(self, scope_id: Optional[str] = None) -> int:
        self._validate_scope(scope_id, "count")
        return self._query().count()

    def exists(self, entity_id: str, scope_id: Optional[str] = None) -> bool:
        return self.get_by_id(entity_id, scope_id) is not None
