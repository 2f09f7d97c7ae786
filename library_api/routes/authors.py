"""
Author endpoints. Reads are open to any principal, writes are admin-only.
"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from library_api.database import LibraryDatabaseService
from library_api.dependencies import get_current_user, get_db_service, require_admin
from library_api.models import AuthorPayload, AuthorUpdatePayload, User, wrap, wrap_many

router = APIRouter(prefix="/authors", tags=["Authors"])


@router.get("")
async def list_authors(
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    authors = await db_service.list_authors()
    return JSONResponse(content=wrap_many("authors", authors))


@router.get("/{author_id}")
async def get_author(
    author_id: int,
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    author = await db_service.get_author(author_id)
    return JSONResponse(content=wrap("author", author))


@router.get("/{author_id}/books")
async def list_author_books(
    author_id: int,
    user: User = Depends(get_current_user),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """List the books written by an author."""
    books = await db_service.list_author_books(author_id)
    return JSONResponse(content=wrap_many("books", books))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_author(
    payload: AuthorPayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    author = await db_service.create_author(payload.author)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=wrap("author", author))


@router.put("/{author_id}")
async def update_author(
    author_id: int,
    payload: AuthorUpdatePayload,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    author = await db_service.update_author(author_id, payload.author)
    return JSONResponse(content=wrap("author", author))


@router.delete("/{author_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_author(
    author_id: int,
    admin: User = Depends(require_admin),
    db_service: LibraryDatabaseService = Depends(get_db_service)
):
    """Delete an author who has no books left."""
    await db_service.delete_author(author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
