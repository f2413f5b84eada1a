"""Services package."""

from bucketwise.services.storage import (
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryBudgetStorage,
    NotFoundError,
    PersistenceError,
    SqlBudgetStorage,
)

__all__ = [
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryBudgetStorage",
    "NotFoundError",
    "PersistenceError",
    "SqlBudgetStorage",
]
