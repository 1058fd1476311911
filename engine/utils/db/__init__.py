"""
Database utilities for the quote engine.

Connection management plus the quote store (groups, quotes, items). Supports
real PostgreSQL and a mock in-memory implementation for development/testing.
"""

from utils.db.connection import get_db_connection, init_db, reset_mock_db
from utils.db.quote_store import (
    create_group,
    list_groups,
    get_group,
    delete_group,
    save_quote,
    save_items,
    load_group_quotes,
    delete_quote,
)

__all__ = [
    "get_db_connection",
    "init_db",
    "reset_mock_db",
    "create_group",
    "list_groups",
    "get_group",
    "delete_group",
    "save_quote",
    "save_items",
    "load_group_quotes",
    "delete_quote",
]
