"""
Storage Models Package.

ORM models for the trading journal database.

============================================================
MODEL ORGANIZATION
============================================================

Base (base.py)
- Base
- TimestampMixin

Portfolio (portfolio.py)
- TradeEntryRecord

Exit Strategies (exit_strategy.py)
- ExitStrategyRecord
- ExitStrategyExecutionRecord

============================================================
"""

from storage.models.base import Base, TimestampMixin
from storage.models.portfolio import TradeEntryRecord
from storage.models.exit_strategy import (
    ExitStrategyExecutionRecord,
    ExitStrategyRecord,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "TradeEntryRecord",
    "ExitStrategyRecord",
    "ExitStrategyExecutionRecord",
]
