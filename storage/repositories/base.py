"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for the journal repositories:
- Session injection and a "repository.<Name>" logger
- Account-scoped lookups
- Wrapping of SQLAlchemy errors

Repositories flush but never commit; the caller owns the
transaction (see storage.database.session_scope).

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConstraintViolationError,
    DatabaseUnavailableError,
    DuplicateRecordError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)


T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base for repositories over account-owned rows.

    The model must have an account_id column.

    Usage:
        class TradeEntryRepository(BaseRepository[TradeEntryRecord]):
            def __init__(self, session: Session):
                super().__init__(session, TradeEntryRecord, "TradeEntryRepository")
    """

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    # =========================================================
    # ERROR WRAPPING
    # =========================================================

    def _wrap_error(
        self,
        error: SQLAlchemyError,
        operation: str,
        constraint_field: Optional[str] = None,
        value: Any = None,
    ) -> RepositoryException:
        """Translate a SQLAlchemy error into the repository hierarchy."""
        reason = str(getattr(error, "orig", None) or error)

        if isinstance(error, IntegrityError):
            if "unique" in reason.lower() and constraint_field:
                self._logger.info(f"{operation}: {constraint_field}={value} already recorded")
                return DuplicateRecordError(self._repository_name, constraint_field, value)
            self._logger.error(f"{operation}: constraint violated: {reason}")
            return ConstraintViolationError(self._repository_name, operation, reason)

        self._logger.error(f"{operation} failed: {reason}", exc_info=True)
        if isinstance(error, OperationalError):
            return DatabaseUnavailableError(self._repository_name, operation, reason)
        return QueryError(self._repository_name, operation, reason)

    # =========================================================
    # HELPERS
    # =========================================================

    def _add(
        self,
        entity: T,
        constraint_field: Optional[str] = None,
        value: Any = None,
    ) -> T:
        """
        Add and flush an entity.

        On failure the session is rolled back. A unique violation
        raises DuplicateRecordError naming constraint_field.
        """
        try:
            self._session.add(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise self._wrap_error(e, "insert", constraint_field, value) from e
        self._logger.debug(f"Inserted {entity!r}")
        return entity

    def _get_owned(self, account_id: str, record_id: Any) -> T:
        """
        Load a row by primary key for one account.

        Raises:
            RecordNotFoundError: Unknown id, or owned by another account
        """
        try:
            entity = self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            raise self._wrap_error(e, "lookup") from e
        if entity is None or entity.account_id != account_id:
            raise RecordNotFoundError(self._repository_name, record_id, account_id)
        return entity

    def _delete(self, entity: T) -> None:
        try:
            self._session.delete(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise self._wrap_error(e, "delete") from e

    def _all(self, stmt: Any) -> List[Any]:
        """Run a select and return every scalar row."""
        try:
            return list(self._session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise self._wrap_error(e, "select") from e

    def _one_or_none(self, stmt: Any) -> Optional[Any]:
        """Run a select expected to yield at most one scalar."""
        try:
            return self._session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._wrap_error(e, "select") from e
