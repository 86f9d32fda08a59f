"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
SQLAlchemy errors are wrapped before they leave a repository.
Services translate these into core exceptions.

Every journal row is owned by an account, so lookups and
uniqueness failures carry the account they were scoped to.

============================================================
HIERARCHY
============================================================
RepositoryException
- RecordNotFoundError        missing, or owned by another account
- DuplicateRecordError       one strategy per coin, one fill per step
- ConstraintViolationError   foreign key / not-null / check
- DatabaseUnavailableError   connection or locking failure
- QueryError                 anything else SQLAlchemy raised

============================================================
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base exception for journal repositories."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"{repository_name}.{operation}: {message}")


class RecordNotFoundError(RepositoryException):
    """
    The record does not exist for the requesting account.

    A row owned by another account is reported the same way so
    callers cannot probe for foreign ids.
    """

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        account_id: Optional[str] = None,
    ) -> None:
        scope = f" for account {account_id}" if account_id else ""
        super().__init__(
            message=f"{record_id} not found{scope}",
            repository_name=repository_name,
            operation="lookup",
            details={"record_id": str(record_id), "account_id": account_id},
        )
        self.record_id = record_id
        self.account_id = account_id


class DuplicateRecordError(RepositoryException):
    """A write would break a journal uniqueness rule."""

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        value: Any,
    ) -> None:
        super().__init__(
            message=f"{constraint_field}={value} is already recorded",
            repository_name=repository_name,
            operation="insert",
            details={"field": constraint_field, "value": str(value)},
        )
        self.constraint_field = constraint_field
        self.value = value


class ConstraintViolationError(RepositoryException):
    """Database rejected the row for a reason other than uniqueness."""

    def __init__(self, repository_name: str, operation: str, reason: str) -> None:
        super().__init__(
            message=reason,
            repository_name=repository_name,
            operation=operation,
        )


class DatabaseUnavailableError(RepositoryException):

    def __init__(self, repository_name: str, operation: str, reason: str) -> None:
        super().__init__(
            message=f"database unavailable ({reason})",
            repository_name=repository_name,
            operation=operation,
        )


class QueryError(RepositoryException):

    def __init__(self, repository_name: str, operation: str, reason: str) -> None:
        super().__init__(
            message=reason,
            repository_name=repository_name,
            operation=operation,
        )
