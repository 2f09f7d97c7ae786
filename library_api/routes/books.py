"""
Book endpoints. Reads are open to any principal, writes are admin-only.
"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from library_api.database import LibraryDatabaseService
from library_api.dependencies import get_current_user, get_db_service, require_admin
from library_api.models import BookPayload, BookUpdatePayload, User, wrap, wrap_many

router = APIRouter(prefix="/books", tags=["Books"])


@router.get("")
async def list_books(
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    books = await db_service.list_books()
    return JSONResponse(content=wrap_many("books", books))


@router.get("/{book_id}")
async def get_book(
    book_id: int,
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    book = await db_service.get_book(book_id)
    return JSONResponse(content=wrap("book", book))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: BookPayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """
    Create a book.

    - **title**: Book title
    - **author_id**: Existing author identifier
    """
    book = await db_service.create_book(payload.book)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=wrap("book", book))


@router.put("/{book_id}")
async def update_book(
    book_id: int,
    payload: BookUpdatePayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    book = await db_service.update_book(book_id, payload.book)
    return JSONResponse(content=wrap("book", book))


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
    book_id: int,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Delete a book that has no copies left."""
    await db_service.delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
