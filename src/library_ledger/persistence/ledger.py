"""Loan Ledger - File-backed history of book loans.

The ledger keeps every loan (a book lent to a user) in insertion order and
rewrites its JSON document after each mutation. Loans are queried by id or
by the book/user they reference, closed once through ``end_loan``, and
removed one at a time or in bulk by book or user.

Loan ids are compact: a new loan gets ``count + 1`` and every delete that
removes something renumbers the survivors to ``0..count-1`` in storage
order. Since no id ever exceeds ``count``, new ids never collide with
surviving ones, but ids handed out before a delete are stale afterwards.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from .errors import LoanNotFoundError, StorageError
from .storage import read_document, write_document

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILE = "purchases.json"

# RFC 3339 fractions run from 1 to 9 digits; fromisoformat wants 6 on 3.10
_FRACTION = re.compile(r"\.(\d+)")


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp; null, empty and the zero time mean unset."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.year == 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_id(data: dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


@dataclass
class LoanRecord:
    """A single loan of a book to a user.

    ``ended_at`` stays None while the loan is open.
    """

    id: int
    book_id: int
    user_id: int
    started_at: datetime
    ended_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        return {
            "id": self.id,
            "book_id": self.book_id,
            "user_id": self.user_id,
            "start_at": _format_timestamp(self.started_at),
            "end_at": _format_timestamp(self.ended_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoanRecord:
        """Build a record from its persisted dictionary shape."""
        started_at = _parse_timestamp(data.get("start_at"))
        if started_at is None:
            raise ValueError("loan has no start_at")
        return cls(
            id=_parse_id(data, "id"),
            book_id=_parse_id(data, "book_id"),
            user_id=_parse_id(data, "user_id"),
            started_at=started_at,
            ended_at=_parse_timestamp(data.get("end_at")),
        )


class LoanLedger:
    """Persistent ledger of loan records.

    All reads and read-modify-persist steps run under one re-entrant lock,
    so a single ledger instance can be shared by request handlers running
    in a thread pool. Returned records are copies; mutate them and pass
    them back through ``update_purchase`` to change stored state.

    Example:
        ledger = LoanLedger("storage/purchases.json")

        loan_id = ledger.add_loan(book_id=5, user_id=9)
        ledger.get_by_book(5)      # [LoanRecord(id=1, book_id=5, ...)]
        ledger.end_loan(loan_id)

        ledger.delete_by_user(9)   # survivors renumbered 0..count-1
    """

    def __init__(
        self,
        ledger_path: Path | str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Load the ledger from disk.

        Args:
            ledger_path: Path to the JSON document. Defaults to storage/purchases.json
            clock: Time source for loan timestamps (for testing)

        Raises:
            StorageError: If the persisted document exists but is unreadable
        """
        if ledger_path is None:
            ledger_path = Path.cwd() / "storage" / DEFAULT_LEDGER_FILE
        self._ledger_path = Path(ledger_path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._records: list[LoanRecord] = []
        self._count = 0
        self.load()

    @property
    def ledger_path(self) -> Path:
        """Get the ledger file path."""
        return self._ledger_path

    @property
    def count(self) -> int:
        """Number of loans currently held."""
        return self._count

    def load(self) -> None:
        """(Re)load records from the persisted document.

        A missing document yields an empty ledger.

        Raises:
            StorageError: If the document is malformed
        """
        document = read_document(self._ledger_path)
        with self._lock:
            if document is None:
                self._records = []
                self._count = 0
                logger.info(f"No ledger at {self._ledger_path}, starting empty")
                return

            try:
                records = [
                    LoanRecord.from_dict(item)
                    for item in document.get("purchases") or []
                ]
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise StorageError(self._ledger_path, f"malformed loan record: {e}") from e

            seen: set[int] = set()
            for record in records:
                if record.id in seen:
                    raise StorageError(self._ledger_path, f"duplicate loan id {record.id}")
                seen.add(record.id)

            total = document.get("total", len(records))
            if total != len(records):
                logger.warning(
                    f"Ledger total {total} does not match {len(records)} records, "
                    "using record count"
                )
            self._records = records
            self._count = len(records)
            logger.info(f"Loaded {self._count} loans from {self._ledger_path}")

    def save(self) -> None:
        """Write the whole ledger to disk.

        Raises:
            StorageError: If the document cannot be written. In-memory
                state is kept as is.
        """
        with self._lock:
            document = {
                "purchases": [record.to_dict() for record in self._records],
                "total": self._count,
            }
            write_document(self._ledger_path, document)

    # -----------------------------------------------------------------------
    # Creation & lifecycle
    # -----------------------------------------------------------------------

    def add_loan(self, book_id: int, user_id: int) -> int:
        """Open a new loan.

        The ledger does not check that the book or user exist.

        Returns:
            The id assigned to the new loan
        """
        with self._lock:
            record = LoanRecord(
                id=self._count + 1,
                book_id=book_id,
                user_id=user_id,
                started_at=self._clock(),
            )
            self._records.append(record)
            self._count += 1
            logger.debug(f"Loan {record.id} opened: book={book_id} user={user_id}")
            self.save()
            return record.id

    def end_loan(self, loan_id: int) -> LoanRecord:
        """Close a loan by stamping its end time.

        Ending an already closed loan stamps it again; ``started_at`` is
        never touched.

        Raises:
            LoanNotFoundError: If no loan has this id
        """
        with self._lock:
            record = self._find(loan_id)
            record.ended_at = self._clock()
            logger.debug(f"Loan {loan_id} ended")
            self.save()
            return replace(record)

    def update_purchase(self, record: LoanRecord) -> None:
        """Replace the stored loan having ``record.id`` with ``record``.

        Every field is overwritten, timestamps included.

        Raises:
            LoanNotFoundError: If no loan has this id
        """
        with self._lock:
            for i, existing in enumerate(self._records):
                if existing.id == record.id:
                    self._records[i] = replace(record)
                    logger.debug(f"Loan {record.id} updated")
                    self.save()
                    return
            raise LoanNotFoundError(record.id)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_by_id(self, loan_id: int) -> LoanRecord | None:
        """Get a loan by id.

        Returns:
            A copy of the loan if found, None otherwise
        """
        with self._lock:
            for record in self._records:
                if record.id == loan_id:
                    return replace(record)
        return None

    def get_by_book(self, book_id: int) -> list[LoanRecord]:
        """Get loans of a book in storage order."""
        with self._lock:
            return [replace(r) for r in self._records if r.book_id == book_id]

    def get_by_user(self, user_id: int) -> list[LoanRecord]:
        """Get loans of a user in storage order."""
        with self._lock:
            return [replace(r) for r in self._records if r.user_id == user_id]

    def get_all(self) -> list[LoanRecord]:
        """Snapshot of every loan in storage order."""
        with self._lock:
            return [replace(r) for r in self._records]

    # -----------------------------------------------------------------------
    # Deletion
    # -----------------------------------------------------------------------

    def delete_by_id(self, loan_id: int) -> None:
        """Remove one loan and renumber the rest.

        Raises:
            LoanNotFoundError: If no loan has this id
        """
        with self._lock:
            for i, record in enumerate(self._records):
                if record.id == loan_id:
                    del self._records[i]
                    self._renumber()
                    logger.debug(f"Loan {loan_id} deleted, {self._count} remain")
                    self.save()
                    return
            raise LoanNotFoundError(loan_id)

    def delete_by_book(self, book_id: int) -> int:
        """Remove every loan of a book.

        Returns:
            Number of loans removed (zero is not an error)
        """
        return self._delete_where(lambda r: r.book_id == book_id)

    def delete_by_user(self, user_id: int) -> int:
        """Remove every loan of a user.

        Returns:
            Number of loans removed (zero is not an error)
        """
        return self._delete_where(lambda r: r.user_id == user_id)

    def _delete_where(self, predicate: Callable[[LoanRecord], bool]) -> int:
        with self._lock:
            kept = [r for r in self._records if not predicate(r)]
            removed = len(self._records) - len(kept)
            # nothing matched: leave ids and the document untouched
            if removed == 0:
                return 0
            self._records = kept
            self._renumber()
            logger.debug(f"Deleted {removed} loans, {self._count} remain")
            self.save()
            return removed

    def _renumber(self) -> None:
        for i, record in enumerate(self._records):
            record.id = i
        self._count = len(self._records)

    def _find(self, loan_id: int) -> LoanRecord:
        for record in self._records:
            if record.id == loan_id:
                return record
        raise LoanNotFoundError(loan_id)

    def stats(self) -> dict[str, Any]:
        """Get ledger statistics."""
        with self._lock:
            open_loans = sum(1 for r in self._records if r.is_open)
            return {
                "total_loans": self._count,
                "open_loans": open_loans,
                "closed_loans": self._count - open_loans,
            }
