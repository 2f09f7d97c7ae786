"""
Pytest configuration and shared fixtures.

The API runs against an in-memory motor-compatible database, so tests need
no MongoDB server. ``Factory`` seeds records synchronously for HTTP tests.
"""

import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from library_api.database import LibraryDatabaseService
from library_api.main import app
from library_api.models import (
    AuthorCreate, BookCopyCreate, BookCopyResponse, BookCreate, BookFormat, UserRole
)


class Factory:
    """Creates records through the database service."""

    def __init__(self, db_service: LibraryDatabaseService):
        self.db_service = db_service
        self.sequence = 0

    def _next(self) -> int:
        self.sequence += 1
        return self.sequence

    def run(self, coro):
        return asyncio.run(coro)

    def user(self, role: UserRole = UserRole.USER):
        n = self._next()
        return self.run(self.db_service.create_user(
            email=f"{role.value}{n}@example.com",
            api_key=f"{role.value}-key-{n}",
            role=role,
            first_name="Test",
            last_name=f"Person{n}",
        ))

    def admin(self):
        return self.user(role=UserRole.ADMIN)

    def author(self, first_name: str = "Ursula", last_name: str = "Le Guin"):
        return self.run(self.db_service.create_author(
            AuthorCreate(first_name=first_name, last_name=last_name)
        ))

    def book(self, author_id: int = None, title: str = "A Wizard of Earthsea"):
        if author_id is None:
            author_id = self.author().id
        return self.run(self.db_service.create_book(
            BookCreate(title=title, author_id=author_id)
        ))

    def book_copy(self, book_id: int = None, **overrides):
        if book_id is None:
            book_id = self.book().id
        fields = {
            "isbn": f"978-0-00-{self._next():06d}",
            "published": date(1968, 11, 1),
            "book_id": book_id,
            "format": BookFormat.HARDBACK,
        }
        fields.update(overrides)
        return self.run(self.db_service.create_book_copy(BookCopyCreate(**fields)))

    def set_borrower(self, book_copy_id: int, user_id: int) -> None:
        """Write the borrower reference directly, skipping the borrow rules."""
        self.run(self.db_service.book_copies_collection.update_one(
            {"_id": book_copy_id}, {"$set": {"user_id": user_id}}
        ))

    def reload_copy(self, book_copy_id: int) -> BookCopyResponse:
        return self.run(self.db_service.get_book_copy(book_copy_id))

    def count_copies(self) -> int:
        return self.run(self.db_service.count_book_copies())


@pytest.fixture
def db_service():
    """Database service over a fresh in-memory database."""
    client = AsyncMongoMockClient()
    return LibraryDatabaseService(client["library_test"])


@pytest.fixture
def factory(db_service):
    return Factory(db_service)


@pytest.fixture
def client(db_service):
    """Create test client wired to the in-memory database."""
    app.state.db_service = db_service
    yield TestClient(app)
    app.state.db_service = None


@pytest.fixture
def headers():
    """Build the Authorization header for a principal."""
    def _headers(user) -> dict:
        return {"Authorization": f"Token token={user.api_key}"}
    return _headers


@pytest.fixture
def admin(factory):
    return factory.admin()


@pytest.fixture
def user(factory):
    return factory.user()


@pytest.fixture
def another_user(factory):
    return factory.user()


@pytest.fixture
def book(factory):
    return factory.book()


@pytest.fixture
def book_copy(factory, book):
    return factory.book_copy(book_id=book.id)
