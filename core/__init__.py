"""
Core Module Package.

Infrastructure shared by the ledger engine, storage and API.

Components:
- clock: Injectable UTC clock
- exceptions: Service-level exception hierarchy
"""

from .clock import ClockProtocol, MockClock, SystemClock, ensure_utc, now_utc
from .exceptions import (
    ConfigurationError,
    ConflictError,
    DataValidationError,
    InsufficientBalanceError,
    JournalException,
    ResourceNotFoundError,
)

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ensure_utc",
    "now_utc",
    "JournalException",
    "ConfigurationError",
    "DataValidationError",
    "InsufficientBalanceError",
    "ResourceNotFoundError",
    "ConflictError",
]
