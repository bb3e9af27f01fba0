"""
Database layer for the FuelEU compliance service
"""

from fueleu.db.base import (
    Base,
    create_db_engine,
    get_engine,
    get_session_factory,
    init_db,
    reset_engine,
    session_scope,
)
from fueleu.db.repository import SqlAlchemyRepository

__all__ = [
    "Base",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "init_db",
    "reset_engine",
    "session_scope",
    "SqlAlchemyRepository",
]
