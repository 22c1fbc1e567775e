"""Book catalog and user registry.

Both are plain id-keyed collections persisted as one JSON document each,
without secondary lookups or lifecycle state. Ids are one greater than the
largest id held, and removals leave the other ids as they are.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

from .errors import BookNotFoundError, NotFoundError, StorageError, UserNotFoundError
from .storage import read_document, write_document

logger = logging.getLogger(__name__)

DEFAULT_BOOK_PRICE = 100.0


@dataclass
class BookRecord:
    id: int
    name: str
    author: str
    price: float = DEFAULT_BOOK_PRICE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BookRecord:
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            author=str(data.get("author", "")),
            price=float(data.get("price", DEFAULT_BOOK_PRICE)),
        )


@dataclass
class UserRecord:
    id: int
    name: str
    surname: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserRecord:
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            surname=str(data.get("surname", "")),
        )


R = TypeVar("R", BookRecord, UserRecord)


class _RecordCollection(Generic[R]):
    """Shared load/save/CRUD for a JSON-backed collection."""

    record_type: ClassVar[type]
    document_key: ClassVar[str]
    not_found: ClassVar[type[NotFoundError]]

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._lock = threading.RLock()
        self._records: list[R] = []
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        return len(self._records)

    def load(self) -> None:
        """Load the collection; a missing document yields an empty one.

        Raises:
            StorageError: If the document is malformed
        """
        document = read_document(self._path)
        with self._lock:
            if document is None:
                self._records = []
                return
            try:
                self._records = [
                    self.record_type.from_dict(item)
                    for item in document.get(self.document_key) or []
                ]
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise StorageError(self._path, f"malformed {self.document_key} entry: {e}") from e
            logger.info(f"Loaded {len(self._records)} {self.document_key} from {self._path}")

    def save(self) -> None:
        with self._lock:
            write_document(
                self._path,
                {
                    self.document_key: [asdict(r) for r in self._records],
                    "total": len(self._records),
                },
            )

    def get(self, record_id: int) -> R | None:
        with self._lock:
            for record in self._records:
                if record.id == record_id:
                    return replace(record)
        return None

    def get_all(self) -> list[R]:
        with self._lock:
            return [replace(r) for r in self._records]

    def exists(self, record_id: int) -> bool:
        with self._lock:
            return any(r.id == record_id for r in self._records)

    def update(self, record: R) -> None:
        """Replace the stored record having ``record.id``.

        Raises:
            NotFoundError: If no record has this id
        """
        with self._lock:
            for i, existing in enumerate(self._records):
                if existing.id == record.id:
                    self._records[i] = replace(record)
                    self.save()
                    return
            raise self.not_found(record.id)

    def remove(self, record_id: int) -> None:
        """Remove a record by id.

        Raises:
            NotFoundError: If no record has this id
        """
        with self._lock:
            for i, record in enumerate(self._records):
                if record.id == record_id:
                    del self._records[i]
                    self.save()
                    return
            raise self.not_found(record_id)

    def _append(self, **fields: Any) -> R:
        with self._lock:
            next_id = max((r.id for r in self._records), default=0) + 1
            record = self.record_type(id=next_id, **fields)
            self._records.append(record)
            self.save()
            return replace(record)


class BookCatalog(_RecordCollection[BookRecord]):
    """Books available for lending.

    Example:
        catalog = BookCatalog("storage/books.json")
        book = catalog.add_book("War and Peace", "Leo Tolstoy", 599.99)
        catalog.get(book.id)
    """

    record_type = BookRecord
    document_key = "books"
    not_found = BookNotFoundError

    def add_book(self, name: str, author: str, price: float | None = None) -> BookRecord:
        book = self._append(
            name=name,
            author=author,
            price=DEFAULT_BOOK_PRICE if price is None else price,
        )
        logger.debug(f"Book {book.id} added: {name!r}")
        return book


class UserRegistry(_RecordCollection[UserRecord]):
    """Registered library users."""

    record_type = UserRecord
    document_key = "users"
    not_found = UserNotFoundError

    def add_user(self, name: str, surname: str) -> UserRecord:
        user = self._append(name=name, surname=surname)
        logger.debug(f"User {user.id} added")
        return user
