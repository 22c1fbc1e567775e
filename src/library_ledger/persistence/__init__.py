"""Persistence layer - File-backed ledger and collections."""

from .catalog import BookCatalog, BookRecord, UserRecord, UserRegistry
from .errors import (
    BookNotFoundError,
    LoanNotFoundError,
    NotFoundError,
    PersistenceError,
    StorageError,
    UserNotFoundError,
)
from .ledger import LoanLedger, LoanRecord

__all__ = [
    "BookCatalog",
    "BookRecord",
    "BookNotFoundError",
    "LoanLedger",
    "LoanNotFoundError",
    "LoanRecord",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    "UserNotFoundError",
    "UserRecord",
    "UserRegistry",
]
