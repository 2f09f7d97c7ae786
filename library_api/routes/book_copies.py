"""
Book copy endpoints: admin CRUD plus the borrow and return actions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from library_api.database import LibraryDatabaseService
from library_api.dependencies import get_current_user, get_db_service, require_admin
from library_api.errors import InvalidTransition, TransitionForbidden
from library_api.models import (
    BookCopyPayload, BookCopyUpdatePayload, LoanRequest, User, wrap, wrap_many
)
from utilities.logger import LoanLogger

router = APIRouter(prefix="/book_copies", tags=["Book copies"])


def _loan_logger(user: User) -> LoanLogger:
    return LoanLogger().bind_context(actor_id=user.id, actor_role=user.role.value)


def _missing_user_id() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        detail="user_id is required"
    )


@router.get("")
async def list_book_copies(
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """List every book copy."""
    book_copies = await db_service.list_book_copies()
    return JSONResponse(content=wrap_many("book_copies", book_copies))


@router.get("/{book_copy_id}")
async def get_book_copy(
    book_copy_id: int,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Get a single book copy by ID."""
    book_copy = await db_service.get_book_copy(book_copy_id)
    return JSONResponse(content=wrap("book_copy", book_copy))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_book_copy(
    payload: BookCopyPayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Create a book copy.

    - **isbn**: ISBN of the copy's edition
    - **published**: Publication date (YYYY-MM-DD)
    - **book_id**: Existing book identifier
    - **format**: hardback, paperback, ebook or audiobook
    """
    book_copy = await db_service.create_book_copy(payload.book_copy)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=wrap("book_copy", book_copy)
    )


@router.put("/{book_copy_id}")
async def update_book_copy(
    book_copy_id: int,
    payload: BookCopyUpdatePayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Update a book copy. Supplied fields may not be null."""
    book_copy = await db_service.update_book_copy(book_copy_id, payload.book_copy)
    return JSONResponse(content=wrap("book_copy", book_copy))


@router.delete("/{book_copy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book_copy(
    book_copy_id: int,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Delete a book copy."""
    await db_service.delete_book_copy(book_copy_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{book_copy_id}/borrow")
async def borrow_book_copy(
    book_copy_id: int,
    payload: Optional[LoanRequest] = None,
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Borrow an available book copy on behalf of ``user_id``.

    Admins and users follow the same rules: ``user_id`` is required and the
    copy must not already be borrowed.
    """
    loan_logger = _loan_logger(user)
    if payload is None or payload.user_id is None:
        loan_logger.log_rejected("borrow", book_copy_id, "missing user_id")
        raise _missing_user_id()

    try:
        book_copy = await db_service.borrow_book_copy(book_copy_id, payload.user_id)
    except InvalidTransition as e:
        loan_logger.log_rejected("borrow", book_copy_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e)
        )

    loan_logger.log_borrowed(book_copy.id, payload.user_id)
    return JSONResponse(content=wrap("book_copy", book_copy))


@router.put("/{book_copy_id}/return_book")
async def return_book_copy(
    book_copy_id: int,
    payload: Optional[LoanRequest] = None,
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Return a borrowed book copy.

    - Admins must name a ``user_id`` and may return a copy held by anyone.
    - Users return on their own behalf and only copies they hold.
    """
    loan_logger = _loan_logger(user)
    if user.is_admin:
        if payload is None or payload.user_id is None:
            loan_logger.log_rejected("return_book", book_copy_id, "missing user_id")
            raise _missing_user_id()
        returned_by = None
    else:
        returned_by = user.id

    try:
        book_copy, borrower_id = await db_service.return_book_copy(book_copy_id, returned_by)
    except InvalidTransition as e:
        loan_logger.log_rejected("return_book", book_copy_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e)
        )
    except TransitionForbidden as e:
        loan_logger.log_rejected("return_book", book_copy_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )

    loan_logger.log_returned(book_copy.id, borrower_id, forced=borrower_id != user.id)
    return JSONResponse(content=wrap("book_copy", book_copy))
