"""Exceptions raised by the persistence layer."""

from __future__ import annotations

from pathlib import Path


class PersistenceError(Exception):
    """Base class for persistence failures."""


class NotFoundError(PersistenceError):
    """A record with the requested id does not exist."""

    kind = "record"

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"{self.kind} {record_id} not found")


class LoanNotFoundError(NotFoundError):
    kind = "loan"


class BookNotFoundError(NotFoundError):
    kind = "book"


class UserNotFoundError(NotFoundError):
    kind = "user"


class StorageError(PersistenceError):
    """The backing file could not be read or written."""

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")
