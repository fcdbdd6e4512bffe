"""
Snapforge Database - asyncpg-based data access.

- Database: shared connection pool manager (one per app)
- Repository: base class for table-backed data access
- ensure_schema: create all tables on first run
"""

from .database import Database
from .repository import Repository
from .initialize import ensure_schema

__all__ = ["Database", "Repository", "ensure_schema"]
