"""
Deploy Hook persistence module.

This module contains the database implementation for triggered job records.
Currently supports SQLite, but can be extended to PostgreSQL, MySQL, etc.

The persistence layer depends on hook_common for domain models and interfaces,
and is used by both hook_server and hook_admin.
"""

from .sqlite_repository import SQLiteTriggeredJobRepository

__all__ = ["SQLiteTriggeredJobRepository"]
