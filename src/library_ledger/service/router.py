"""FastAPI routers for the library service.

Implements the versioned API:
- Users (/users/*)
- Books (/books/*)
- Loan history (/story/*)

v1 is read/create/update only; v2 adds the delete operations. Create and
update bodies may be form-encoded or JSON.
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends

from .auth import require_api_key
from .bodies import form_or_json
from .models import (
    Book,
    BookCreateRequest,
    BookUpdateRequest,
    Loan,
    LoanCreateRequest,
    LoanCreateResponse,
    LoanDeleteResponse,
    LoanUpdateRequest,
    MessageResponse,
    User,
    UserCreateRequest,
    UserUpdateRequest,
    VersionInfo,
)

if TYPE_CHECKING:
    from .core import LibraryService

API_VERSIONS = {
    "v1": VersionInfo(version="1.0", message="API v1 is running"),
    "v2": VersionInfo(
        version="2.0",
        message="API v2 is running",
        features=["delete_operations"],
    ),
}


def build_router(service: "LibraryService", version: str) -> APIRouter:
    """Build the API router for one version.

    Args:
        service: The LibraryService instance
        version: "v1" or "v2"; v2 also exposes DELETE routes

    Returns:
        APIRouter guarded by API key authentication
    """
    info = API_VERSIONS[version]
    allow_delete = "delete_operations" in info.features

    router = APIRouter(dependencies=[Depends(require_api_key)])

    @router.get("", response_model=VersionInfo)
    def version_info() -> VersionInfo:
        return info

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    @router.get("/users", response_model=list[User], tags=["users"])
    def list_users() -> list[User]:
        return service.list_users()

    @router.get("/users/{user_id}", response_model=User, tags=["users"])
    def get_user(user_id: int) -> User:
        return service.get_user(user_id)

    @router.post("/users/add", response_model=User, tags=["users"])
    def add_user(request: UserCreateRequest = Depends(form_or_json(UserCreateRequest))) -> User:
        return service.add_user(request)

    @router.post("/users/update", response_model=User, tags=["users"])
    def update_user(request: UserUpdateRequest = Depends(form_or_json(UserUpdateRequest))) -> User:
        return service.update_user(request)

    # -----------------------------------------------------------------------
    # Books
    # -----------------------------------------------------------------------

    @router.get("/books", response_model=list[Book], tags=["books"])
    def list_books() -> list[Book]:
        return service.list_books()

    @router.get("/books/{book_id}", response_model=Book, tags=["books"])
    def get_book(book_id: int) -> Book:
        return service.get_book(book_id)

    @router.post("/books/add", response_model=Book, tags=["books"])
    def add_book(request: BookCreateRequest = Depends(form_or_json(BookCreateRequest))) -> Book:
        return service.add_book(request)

    @router.post("/books/update", response_model=Book, tags=["books"])
    def update_book(request: BookUpdateRequest = Depends(form_or_json(BookUpdateRequest))) -> Book:
        return service.update_book(request)

    # -----------------------------------------------------------------------
    # Loan history
    # -----------------------------------------------------------------------

    @router.get("/story", response_model=list[Loan], tags=["story"])
    def list_loans() -> list[Loan]:
        return service.list_loans()

    @router.post("/story", response_model=LoanCreateResponse, tags=["story"])
    def add_loan(
        request: LoanCreateRequest = Depends(form_or_json(LoanCreateRequest)),
    ) -> LoanCreateResponse:
        return LoanCreateResponse(id=service.add_loan(request.book_id, request.user_id))

    @router.get("/story/id/{loan_id}", response_model=Loan, tags=["story"])
    def get_loan(loan_id: int) -> Loan:
        return service.get_loan(loan_id)

    @router.get("/story/book/{book_id}", response_model=list[Loan], tags=["story"])
    def loans_by_book(book_id: int) -> list[Loan]:
        return service.loans_by_book(book_id)

    @router.get("/story/user/{user_id}", response_model=list[Loan], tags=["story"])
    def loans_by_user(user_id: int) -> list[Loan]:
        return service.loans_by_user(user_id)

    @router.put("/story/end/{loan_id}", response_model=Loan, tags=["story"])
    def end_loan(loan_id: int) -> Loan:
        return service.end_loan(loan_id)

    @router.put("/story/update/{loan_id}", response_model=Loan, tags=["story"])
    def update_loan(
        loan_id: int,
        request: LoanUpdateRequest = Depends(form_or_json(LoanUpdateRequest)),
    ) -> Loan:
        return service.update_loan(loan_id, request)

    if not allow_delete:
        return router

    # -----------------------------------------------------------------------
    # Delete operations (v2)
    # -----------------------------------------------------------------------

    @router.delete("/users/{user_id}", response_model=MessageResponse, tags=["users"])
    def remove_user(user_id: int) -> MessageResponse:
        removed = service.remove_user(user_id)
        return MessageResponse(message=f"User removed successfully ({removed} loans removed)")

    @router.delete("/books/{book_id}", response_model=MessageResponse, tags=["books"])
    def remove_book(book_id: int) -> MessageResponse:
        removed = service.remove_book(book_id)
        return MessageResponse(message=f"Book removed successfully ({removed} loans removed)")

    @router.delete("/story/id/{loan_id}", response_model=LoanDeleteResponse, tags=["story"])
    def delete_loan(loan_id: int) -> LoanDeleteResponse:
        service.delete_loan(loan_id)
        return LoanDeleteResponse(removed=1)

    @router.delete("/story/book/{book_id}", response_model=LoanDeleteResponse, tags=["story"])
    def delete_loans_by_book(book_id: int) -> LoanDeleteResponse:
        return LoanDeleteResponse(removed=service.delete_loans_by_book(book_id))

    @router.delete("/story/user/{user_id}", response_model=LoanDeleteResponse, tags=["story"])
    def delete_loans_by_user(user_id: int) -> LoanDeleteResponse:
        return LoanDeleteResponse(removed=service.delete_loans_by_user(user_id))

    return router
