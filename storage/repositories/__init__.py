"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access goes through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: sessions are injected, not created internally
2. Account Scoping: every read and write names the account
3. Explicit Methods: no generic 'execute', clear method names
4. Exception Handling: all DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- TradeEntryRepository: trade and cash journal entries
- ExitStrategyRepository: exit strategies and executions

============================================================
USAGE
============================================================

    from storage.database import session_scope
    from storage.repositories import TradeEntryRepository

    with session_scope(factory) as session:
        repo = TradeEntryRepository(session)
        repo.create_trade_entry(
            account_id="acct-1",
            symbol="BTC",
            side="buy",
            quantity=0.5,
            price_usd=60000.0,
        )
        events = repo.list_spot_events("acct-1")

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    DuplicateRecordError,
    ConstraintViolationError,
    DatabaseUnavailableError,
    QueryError,
)

from storage.repositories.base import BaseRepository

from storage.repositories.trade_repo import TradeEntryRepository

from storage.repositories.exit_strategy_repo import (
    ExitStrategyRepository,
    to_execution,
    to_strategy_config,
)


__all__ = [
    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "ConstraintViolationError",
    "DatabaseUnavailableError",
    "QueryError",

    # Base
    "BaseRepository",

    # Repositories
    "TradeEntryRepository",
    "ExitStrategyRepository",
    "to_execution",
    "to_strategy_config",
]
