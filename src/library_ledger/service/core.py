"""Core library service - business rules over the persistent stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..persistence.catalog import BookCatalog, BookRecord, UserRecord, UserRegistry
from ..persistence.errors import BookNotFoundError, LoanNotFoundError, UserNotFoundError
from ..persistence.ledger import LoanLedger, LoanRecord
from .config import LibraryConfig
from .logging import get_logger
from .models import (
    Book,
    BookCreateRequest,
    BookUpdateRequest,
    Loan,
    LoanUpdateRequest,
    User,
    UserCreateRequest,
    UserUpdateRequest,
)

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LibraryService:
    """Library business logic.

    Owns the book catalog, the user registry and the loan ledger, and
    enforces the rules the stores leave to their callers:
    - loans may only reference existing books and users
    - removing a book or user removes its loans

    Store errors (``NotFoundError``, ``StorageError``) propagate to the
    HTTP layer, which maps them to responses.
    """

    def __init__(
        self,
        config: LibraryConfig,
        *,
        book_catalog: BookCatalog | None = None,
        user_registry: UserRegistry | None = None,
        loan_ledger: LoanLedger | None = None,
    ) -> None:
        self.config = config
        self._books = book_catalog or BookCatalog(config.books_path)
        self._users = user_registry or UserRegistry(config.users_path)
        self._ledger = loan_ledger or LoanLedger(config.ledger_path)

    @property
    def books(self) -> BookCatalog:
        return self._books

    @property
    def users(self) -> UserRegistry:
        return self._users

    @property
    def ledger(self) -> LoanLedger:
        return self._ledger

    # -----------------------------------------------------------------------
    # Books
    # -----------------------------------------------------------------------

    def list_books(self) -> list[Book]:
        return [Book.from_record(b) for b in self._books.get_all()]

    def get_book(self, book_id: int) -> Book:
        record = self._books.get(book_id)
        if record is None:
            raise BookNotFoundError(book_id)
        return Book.from_record(record)

    def add_book(self, request: BookCreateRequest) -> Book:
        price = request.price if request.price is not None else self.config.default_book_price
        record = self._books.add_book(request.name, request.author, price)
        logger.info("book_added", book_id=record.id)
        return Book.from_record(record)

    def update_book(self, request: BookUpdateRequest) -> Book:
        current = self._books.get(request.id)
        if current is None:
            raise BookNotFoundError(request.id)
        record = BookRecord(
            id=request.id,
            name=request.name,
            author=request.author,
            price=current.price if request.price is None else request.price,
        )
        self._books.update(record)
        logger.info("book_updated", book_id=record.id)
        return Book.from_record(record)

    def remove_book(self, book_id: int) -> int:
        """Remove a book and its loans. Returns the number of loans removed."""
        self._books.remove(book_id)
        removed = self._ledger.delete_by_book(book_id)
        logger.info("book_removed", book_id=book_id, loans_removed=removed)
        return removed

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return [User.from_record(u) for u in self._users.get_all()]

    def get_user(self, user_id: int) -> User:
        record = self._users.get(user_id)
        if record is None:
            raise UserNotFoundError(user_id)
        return User.from_record(record)

    def add_user(self, request: UserCreateRequest) -> User:
        record = self._users.add_user(request.name, request.surname)
        logger.info("user_added", user_id=record.id)
        return User.from_record(record)

    def update_user(self, request: UserUpdateRequest) -> User:
        record = UserRecord(id=request.id, name=request.name, surname=request.surname)
        self._users.update(record)
        logger.info("user_updated", user_id=record.id)
        return User.from_record(record)

    def remove_user(self, user_id: int) -> int:
        """Remove a user and their loans. Returns the number of loans removed."""
        self._users.remove(user_id)
        removed = self._ledger.delete_by_user(user_id)
        logger.info("user_removed", user_id=user_id, loans_removed=removed)
        return removed

    # -----------------------------------------------------------------------
    # Loans
    # -----------------------------------------------------------------------

    def _check_refs(self, book_id: int, user_id: int) -> None:
        if not self._books.exists(book_id):
            raise BookNotFoundError(book_id)
        if not self._users.exists(user_id):
            raise UserNotFoundError(user_id)

    def list_loans(self) -> list[Loan]:
        return [Loan.from_record(r) for r in self._ledger.get_all()]

    def get_loan(self, loan_id: int) -> Loan:
        record = self._ledger.get_by_id(loan_id)
        if record is None:
            raise LoanNotFoundError(loan_id)
        return Loan.from_record(record)

    def loans_by_book(self, book_id: int) -> list[Loan]:
        return [Loan.from_record(r) for r in self._ledger.get_by_book(book_id)]

    def loans_by_user(self, user_id: int) -> list[Loan]:
        return [Loan.from_record(r) for r in self._ledger.get_by_user(user_id)]

    def add_loan(self, book_id: int, user_id: int) -> int:
        self._check_refs(book_id, user_id)
        loan_id = self._ledger.add_loan(book_id, user_id)
        logger.info("loan_opened", loan_id=loan_id, book_id=book_id, user_id=user_id)
        return loan_id

    def end_loan(self, loan_id: int) -> Loan:
        record = self._ledger.end_loan(loan_id)
        logger.info("loan_ended", loan_id=loan_id)
        return Loan.from_record(record)

    def update_loan(self, loan_id: int, request: LoanUpdateRequest) -> Loan:
        current = self._ledger.get_by_id(loan_id)
        if current is None:
            raise LoanNotFoundError(loan_id)
        self._check_refs(request.book_id, request.user_id)

        started_at = current.started_at
        if request.start_at is not None:
            started_at = _as_utc(request.start_at)

        ended_at = current.ended_at
        if "end_at" in request.model_fields_set:
            ended_at = _as_utc(request.end_at) if request.end_at is not None else None

        record = LoanRecord(
            id=loan_id,
            book_id=request.book_id,
            user_id=request.user_id,
            started_at=started_at,
            ended_at=ended_at,
        )
        self._ledger.update_purchase(record)
        logger.info("loan_updated", loan_id=loan_id)
        return Loan.from_record(record)

    def delete_loan(self, loan_id: int) -> None:
        self._ledger.delete_by_id(loan_id)
        logger.info("loan_deleted", loan_id=loan_id)

    def delete_loans_by_book(self, book_id: int) -> int:
        removed = self._ledger.delete_by_book(book_id)
        logger.info("loans_deleted", book_id=book_id, removed=removed)
        return removed

    def delete_loans_by_user(self, user_id: int) -> int:
        removed = self._ledger.delete_by_user(user_id)
        logger.info("loans_deleted", user_id=user_id, removed=removed)
        return removed

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    def health_checks(self) -> dict[str, dict[str, Any]]:
        """Status and size of each store."""
        checks: dict[str, dict[str, Any]] = {}
        for name, store in (("books", self._books), ("users", self._users)):
            checks[name] = {
                "status": "healthy",
                "count": store.count,
                "path": str(store.path),
            }
        checks["ledger"] = {
            "status": "healthy",
            **self._ledger.stats(),
            "path": str(self._ledger.ledger_path),
        }
        return checks
