"""
Database service layer for the FastAPI application.

Records use integer primary keys allocated from the ``counters`` collection.
Borrow and return are single conditional ``find_one_and_update`` calls, so
the state check and the write cannot interleave with a concurrent request.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from library_api.errors import (
    InvalidTransition, RecordInvalid, RecordNotFound, TransitionForbidden
)
from library_api.models import (
    AuthorCreate, AuthorResponse, AuthorUpdate,
    BookCopyCreate, BookCopyResponse, BookCopyUpdate,
    BookCreate, BookResponse, BookUpdate,
    User, UserRole, date_to_storage
)

logger = structlog.get_logger(__name__)


class LibraryDatabaseService:
    """Database service for API operations."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.counters_collection = database.counters
        self.users_collection = database.users
        self.authors_collection = database.authors
        self.books_collection = database.books
        self.book_copies_collection = database.book_copies

    async def create_indexes(self) -> None:
        """Create indexes used by authentication and reference lookups."""
        try:
            await self.users_collection.create_index("api_key", unique=True)
            await self.users_collection.create_index("email", unique=True)
            await self.books_collection.create_index("author_id")
            await self.book_copies_collection.create_index("book_id")
            await self.book_copies_collection.create_index("user_id")
            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def next_id(self, name: str) -> int:
        """Atomically allocate the next integer id for a collection."""
        counter = await self.counters_collection.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    @staticmethod
    def _timestamps(created: bool = False) -> Dict[str, datetime]:
        now = datetime.utcnow()
        if created:
            return {"created_at": now, "updated_at": now}
        return {"updated_at": now}

    async def _require(self, collection, resource: str, record_id: int) -> Dict:
        doc = await collection.find_one({"_id": record_id})
        if doc is None:
            raise RecordNotFound(resource, record_id)
        return doc

    async def _list(self, collection, query: Optional[Dict] = None) -> List[Dict]:
        cursor = collection.find(query or {}).sort("_id", ASCENDING)
        return await cursor.to_list(length=None)

    # Users

    async def create_user(
        self,
        email: str,
        api_key: str,
        role: UserRole = UserRole.USER,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Create a principal.

        Args:
            email: Unique e-mail address
            api_key: Unique API key used in the Authorization header
            role: Admin or regular user
            first_name: Optional first name
            last_name: Optional last name

        Returns:
            The created User
        """
        if await self.users_collection.find_one({"email": email}):
            raise RecordInvalid(f"Email '{email}' has already been taken")

        user_doc = {
            "_id": await self.next_id("users"),
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "role": UserRole(role).value,
            "api_key": api_key,
            **self._timestamps(created=True),
        }
        await self.users_collection.insert_one(user_doc)
        logger.info("User created", user_id=user_doc["_id"], role=user_doc["role"])
        return User.from_document(user_doc)

    async def get_user(self, user_id: int) -> Optional[User]:
        user_doc = await self.users_collection.find_one({"_id": user_id})
        return User.from_document(user_doc) if user_doc else None

    async def get_user_by_api_key(self, api_key: str) -> Optional[User]:
        """Resolve an API key to its principal, or None if the key is unknown."""
        try:
            user_doc = await self.users_collection.find_one({"api_key": api_key})
        except Exception as e:
            logger.error("Failed to look up API key", error=str(e))
            raise
        return User.from_document(user_doc) if user_doc else None

    async def list_users(self) -> List[User]:
        return [User.from_document(doc) for doc in await self._list(self.users_collection)]

    async def rotate_api_key(self, user_id: int, api_key: str) -> User:
        """Replace a principal's API key, invalidating the old one."""
        user_doc = await self.users_collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {"api_key": api_key, **self._timestamps()}},
            return_document=ReturnDocument.AFTER,
        )
        if user_doc is None:
            raise RecordNotFound("User", user_id)
        logger.info("API key rotated", user_id=user_id)
        return User.from_document(user_doc)

    # Authors

    async def list_authors(self) -> List[AuthorResponse]:
        return [AuthorResponse.from_document(doc) for doc in await self._list(self.authors_collection)]

    async def get_author(self, author_id: int) -> AuthorResponse:
        return AuthorResponse.from_document(
            await self._require(self.authors_collection, "Author", author_id)
        )

    async def create_author(self, data: AuthorCreate) -> AuthorResponse:
        author_doc = {
            "_id": await self.next_id("authors"),
            **data.model_dump(),
            **self._timestamps(created=True),
        }
        await self.authors_collection.insert_one(author_doc)
        logger.info("Author created", author_id=author_doc["_id"])
        return AuthorResponse.from_document(author_doc)

    async def update_author(self, author_id: int, data: AuthorUpdate) -> AuthorResponse:
        await self._require(self.authors_collection, "Author", author_id)
        author_doc = await self.authors_collection.find_one_and_update(
            {"_id": author_id},
            {"$set": {**data.changes(), **self._timestamps()}},
            return_document=ReturnDocument.AFTER,
        )
        return AuthorResponse.from_document(author_doc)

    async def delete_author(self, author_id: int) -> None:
        """Delete an author. Authors who still own books cannot be deleted."""
        await self._require(self.authors_collection, "Author", author_id)
        if await self.books_collection.count_documents({"author_id": author_id}):
            raise RecordInvalid("Cannot delete an author who still has books")
        await self.authors_collection.delete_one({"_id": author_id})
        logger.info("Author deleted", author_id=author_id)

    async def list_author_books(self, author_id: int) -> List[BookResponse]:
        await self._require(self.authors_collection, "Author", author_id)
        docs = await self._list(self.books_collection, {"author_id": author_id})
        return [BookResponse.from_document(doc) for doc in docs]

    # Books

    async def _require_author_reference(self, author_id: int) -> None:
        if not await self.authors_collection.find_one({"_id": author_id}):
            raise RecordInvalid(f"Author with ID '{author_id}' must exist")

    async def list_books(self) -> List[BookResponse]:
        return [BookResponse.from_document(doc) for doc in await self._list(self.books_collection)]

    async def get_book(self, book_id: int) -> BookResponse:
        return BookResponse.from_document(
            await self._require(self.books_collection, "Book", book_id)
        )

    async def create_book(self, data: BookCreate) -> BookResponse:
        await self._require_author_reference(data.author_id)
        book_doc = {
            "_id": await self.next_id("books"),
            **data.model_dump(),
            **self._timestamps(created=True),
        }
        await self.books_collection.insert_one(book_doc)
        logger.info("Book created", book_id=book_doc["_id"], author_id=data.author_id)
        return BookResponse.from_document(book_doc)

    async def update_book(self, book_id: int, data: BookUpdate) -> BookResponse:
        await self._require(self.books_collection, "Book", book_id)
        changes = data.changes()
        if "author_id" in changes:
            await self._require_author_reference(changes["author_id"])
        book_doc = await self.books_collection.find_one_and_update(
            {"_id": book_id},
            {"$set": {**changes, **self._timestamps()}},
            return_document=ReturnDocument.AFTER,
        )
        return BookResponse.from_document(book_doc)

    async def delete_book(self, book_id: int) -> None:
        """Delete a book. Books that still have copies cannot be deleted."""
        await self._require(self.books_collection, "Book", book_id)
        if await self.book_copies_collection.count_documents({"book_id": book_id}):
            raise RecordInvalid("Cannot delete a book that still has copies")
        await self.books_collection.delete_one({"_id": book_id})
        logger.info("Book deleted", book_id=book_id)

    # Book copies

    async def _require_book_reference(self, book_id: int) -> None:
        if not await self.books_collection.find_one({"_id": book_id}):
            raise RecordInvalid(f"Book with ID '{book_id}' must exist")

    @staticmethod
    def _book_copy_fields(values: Dict[str, Any]) -> Dict[str, Any]:
        if values.get("published") is not None:
            values["published"] = date_to_storage(values["published"])
        if values.get("format") is not None:
            values["format"] = values["format"].value
        return values

    async def count_book_copies(self) -> int:
        return await self.book_copies_collection.count_documents({})

    async def list_book_copies(self) -> List[BookCopyResponse]:
        docs = await self._list(self.book_copies_collection)
        return [BookCopyResponse.from_document(doc) for doc in docs]

    async def get_book_copy(self, book_copy_id: int) -> BookCopyResponse:
        return BookCopyResponse.from_document(
            await self._require(self.book_copies_collection, "BookCopy", book_copy_id)
        )

    async def create_book_copy(self, data: BookCopyCreate) -> BookCopyResponse:
        """
        Create an available book copy.

        Raises:
            RecordInvalid: If the referenced book does not exist
        """
        await self._require_book_reference(data.book_id)
        copy_doc = {
            "_id": await self.next_id("book_copies"),
            **self._book_copy_fields(data.model_dump()),
            "user_id": None,
            **self._timestamps(created=True),
        }
        await self.book_copies_collection.insert_one(copy_doc)
        logger.info("Book copy created", book_copy_id=copy_doc["_id"], book_id=data.book_id)
        return BookCopyResponse.from_document(copy_doc)

    async def update_book_copy(self, book_copy_id: int, data: BookCopyUpdate) -> BookCopyResponse:
        """Apply a partial update. The borrower reference is not editable here."""
        await self._require(self.book_copies_collection, "BookCopy", book_copy_id)
        changes = data.changes()
        if "book_id" in changes:
            await self._require_book_reference(changes["book_id"])
        copy_doc = await self.book_copies_collection.find_one_and_update(
            {"_id": book_copy_id},
            {"$set": {**self._book_copy_fields(changes), **self._timestamps()}},
            return_document=ReturnDocument.AFTER,
        )
        logger.info("Book copy updated", book_copy_id=book_copy_id, fields=sorted(changes))
        return BookCopyResponse.from_document(copy_doc)

    async def delete_book_copy(self, book_copy_id: int) -> None:
        result = await self.book_copies_collection.delete_one({"_id": book_copy_id})
        if result.deleted_count == 0:
            raise RecordNotFound("BookCopy", book_copy_id)
        logger.info("Book copy deleted", book_copy_id=book_copy_id)

    async def borrow_book_copy(self, book_copy_id: int, user_id: int) -> BookCopyResponse:
        """
        Mark an available copy as borrowed by ``user_id``.

        Raises:
            RecordNotFound: If the copy does not exist
            RecordInvalid: If the borrowing user does not exist
            InvalidTransition: If the copy is already borrowed
        """
        await self._require(self.book_copies_collection, "BookCopy", book_copy_id)
        if await self.get_user(user_id) is None:
            raise RecordInvalid(f"User with ID '{user_id}' must exist")

        copy_doc = await self.book_copies_collection.find_one_and_update(
            {"_id": book_copy_id, "user_id": None},
            {"$set": {"user_id": user_id, **self._timestamps()}},
            return_document=ReturnDocument.AFTER,
        )
        if copy_doc is None:
            # the copy may have been deleted since the first lookup
            await self._require(self.book_copies_collection, "BookCopy", book_copy_id)
            raise InvalidTransition("Book copy is already borrowed")
        return BookCopyResponse.from_document(copy_doc)

    async def return_book_copy(
        self,
        book_copy_id: int,
        returned_by: Optional[int] = None
    ) -> Tuple[BookCopyResponse, int]:
        """
        Mark a borrowed copy as available again.

        Args:
            book_copy_id: Book copy identifier
            returned_by: The user returning the copy. None returns on behalf
                of whoever holds it (admin override).

        Returns:
            The now available copy and the id of the user who held it

        Raises:
            RecordNotFound: If the copy does not exist
            InvalidTransition: If the copy is not borrowed
            TransitionForbidden: If the copy is held by someone other than ``returned_by``
        """
        if returned_by is None:
            query = {"_id": book_copy_id, "user_id": {"$ne": None}}
        else:
            query = {"_id": book_copy_id, "user_id": returned_by}

        copy_doc = await self.book_copies_collection.find_one_and_update(
            query,
            {"$set": {"user_id": None, **self._timestamps()}},
            return_document=ReturnDocument.BEFORE,
        )
        if copy_doc is None:
            current = await self._require(self.book_copies_collection, "BookCopy", book_copy_id)
            if current.get("user_id") is None:
                raise InvalidTransition("Book copy is not borrowed")
            raise TransitionForbidden("Book copy is borrowed by another user")

        returned = BookCopyResponse.from_document(copy_doc)
        return returned.model_copy(update={"user_id": None}), returned.user_id

    # Health

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            book_copies_count = await self.book_copies_collection.count_documents({})
            return {
                "status": "healthy",
                "book_copies_collection": "accessible",
                "book_copies_count": book_copies_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
