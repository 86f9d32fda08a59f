"""
Portfolio API - Error translation.

Routers catch service exceptions and raise what these helpers
return, so every error is logged once with a consistent prefix.
"""

import logging

from fastapi import HTTPException

from core.exceptions import JournalException


logger = logging.getLogger("portfolio_api")


def client_error(status_code: int, operation: str, error: JournalException) -> HTTPException:
    """4xx carrying the exception message, logged at the exception's level."""
    logger.log(error.log_level, f"[{operation}] {status_code}: {error.to_dict()}")
    return HTTPException(status_code=status_code, detail=error.message)


def internal_error(operation: str, error: Exception) -> HTTPException:
    """500 with a generic body; the traceback goes to the log only."""
    logger.exception(f"[{operation}] error: {error}")
    return HTTPException(status_code=500, detail="Internal error")
