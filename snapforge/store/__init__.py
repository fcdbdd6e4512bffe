"""
Snapforge Store - durable records for projects, versions and sealed secrets.
"""

from .base import IntegrityViolation, VersionRepository
from .memory import MemoryVersionRepository
from .postgres import PostgresVersionRepository

__all__ = [
    "IntegrityViolation",
    "VersionRepository",
    "MemoryVersionRepository",
    "PostgresVersionRepository",
]
