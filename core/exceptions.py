"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Service-level exceptions for the trading journal.

- Raised by services and configuration loaders
- Mapped to HTTP status codes by the routers
- Carry the account/asset/field context needed in logs

The position ledger never raises these for bad journal rows;
it drops them instead.

============================================================
EXCEPTION HIERARCHY
============================================================
JournalException (base)
├── ConfigurationError         bad settings, fails at startup
├── DataValidationError        request breaks a journal rule (400)
├── InsufficientBalanceError   not enough cash or holding (400)
├── ResourceNotFoundError      unknown id for this account (404)
└── ConflictError              uniqueness rule (409)

============================================================
"""

import logging
from typing import Any, Dict, Optional


class JournalException(Exception):
    """
    Base exception for all trading journal errors.

    Attributes:
        message: Human readable, safe to return to API clients
        context: Extra key/values for logs
        log_level: Level used when the error is logged
    """

    log_level: int = logging.WARNING

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in (context or {}).items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ConfigurationError(JournalException):
    """A setting or ledger configuration value is invalid."""

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
    ):
        super().__init__(
            message,
            context={
                "config_key": config_key,
                "actual_value": None if actual_value is None else str(actual_value)[:100],
            },
        )


class DataValidationError(JournalException):
    """Input failed a business rule the request schema cannot express."""

    log_level = logging.INFO

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, context={"field": field})


class InsufficientBalanceError(JournalException):
    """Not enough cash or asset quantity for a buy or sell."""

    log_level = logging.INFO

    def __init__(
        self,
        message: str,
        asset: Optional[str] = None,
        required: Optional[float] = None,
        available: Optional[float] = None,
    ):
        super().__init__(
            message,
            context={"asset": asset, "required": required, "available": available},
        )
        self.asset = asset
        self.required = required
        self.available = available


class ResourceNotFoundError(JournalException):
    """Resource does not exist or belongs to another account."""

    log_level = logging.INFO

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            context={"resource": resource, "resource_id": str(resource_id)},
        )
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(JournalException):
    """Write would violate a uniqueness rule."""

    log_level = logging.INFO

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message, context={"resource": resource})


__all__ = [
    "JournalException",
    "ConfigurationError",
    "DataValidationError",
    "InsufficientBalanceError",
    "ResourceNotFoundError",
    "ConflictError",
]
