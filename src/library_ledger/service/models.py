"""Pydantic models backing the library API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..persistence.catalog import BookRecord, UserRecord
from ..persistence.ledger import LoanRecord


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


class Book(BaseModel):
    """A book in the catalog."""

    id: int
    name: str
    author: str
    price: float

    @classmethod
    def from_record(cls, record: BookRecord) -> Book:
        return cls(id=record.id, name=record.name, author=record.author, price=record.price)


class BookCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    price: float | None = Field(default=None, ge=0, description="Defaults to the configured price")


class BookUpdateRequest(BaseModel):
    id: int
    name: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    price: float | None = Field(default=None, ge=0, description="Omit to keep the current price")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A registered library user."""

    id: int
    name: str
    surname: str

    @classmethod
    def from_record(cls, record: UserRecord) -> User:
        return cls(id=record.id, name=record.name, surname=record.surname)


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    surname: str = Field(..., min_length=1, max_length=200)


class UserUpdateRequest(UserCreateRequest):
    id: int


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------


class Loan(BaseModel):
    """A loan of a book to a user. ``end_at`` is null while the loan is open."""

    id: int
    book_id: int
    user_id: int
    start_at: datetime
    end_at: datetime | None = None

    @classmethod
    def from_record(cls, record: LoanRecord) -> Loan:
        return cls(
            id=record.id,
            book_id=record.book_id,
            user_id=record.user_id,
            start_at=record.started_at,
            end_at=record.ended_at,
        )


class LoanCreateRequest(BaseModel):
    book_id: int
    user_id: int


class LoanCreateResponse(BaseModel):
    id: int


class LoanUpdateRequest(BaseModel):
    """Replacement values for a loan.

    Omitted timestamps keep their stored values; an explicit
    ``"end_at": null`` reopens the loan.
    """

    book_id: int
    user_id: int
    start_at: datetime | None = None
    end_at: datetime | None = None


class LoanDeleteResponse(BaseModel):
    removed: int


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str


class VersionInfo(BaseModel):
    version: str
    status: str = "active"
    message: str
    features: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    reason: str | None = None
    correlation_id: str | None = None
