"""
Storage Package.

Persistence for the trading journal. Positions are derived,
never stored: only trade entries and exit strategies are.

Modules:
- database: engine, session factory and transaction scope
- models/: ORM tables
- repositories/: data access layer
"""

from storage.database import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
    get_database_url,
    session_scope,
)


__all__ = [
    "create_all_tables",
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "session_scope",
]
