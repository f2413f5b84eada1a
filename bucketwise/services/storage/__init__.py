"""
Storage Services Package

Provides the abstract budget store and its implementations: SQLAlchemy
for real use and an in-memory store for tests.
"""

from bucketwise.services.storage.interface import (
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PersistenceError,
)
from bucketwise.services.storage.memory import InMemoryBudgetStorage
from bucketwise.services.storage.sql import SqlBudgetStorage

__all__ = [
    # Interface
    "BudgetStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "PersistenceError",
    # Implementations
    "InMemoryBudgetStorage",
    "SqlBudgetStorage",
]
