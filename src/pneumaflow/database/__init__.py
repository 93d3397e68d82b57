"""Relational aggregate store for PneumaFlow."""

from pneumaflow.database.repository import AggregateRepository
from pneumaflow.database.session import Database

__all__ = [
    "AggregateRepository",
    "Database",
]
