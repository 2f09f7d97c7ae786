"""
Unit tests for Pydantic models and configuration.
Tests data validation, serialization, and edge cases.
"""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from library_api.config import LibraryAPIConfig
from library_api.models import (
    AuthorCreate, AuthorUpdate, BookCopyCreate, BookCopyResponse, BookCopyUpdate,
    BookFormat, User, UserRole, date_from_storage, date_to_storage
)


class TestAuthor:
    """Test cases for author validation."""

    def test_valid_author(self):
        """Test names are stripped."""
        author = AuthorCreate(first_name=" Ursula ", last_name="Le Guin")
        assert author.first_name == "Ursula"

    def test_first_name_presence(self):
        """Test first_name is required."""
        with pytest.raises(ValidationError):
            AuthorCreate(last_name="Le Guin")

    def test_last_name_presence(self):
        """Test last_name cannot be blank."""
        with pytest.raises(ValidationError) as exc_info:
            AuthorCreate(first_name="Ursula", last_name="   ")
        assert "can't be blank" in str(exc_info.value)


class TestPartialUpdates:
    """Test cases for partial update payloads."""

    def test_omitted_fields_are_not_changes(self):
        """Test only supplied fields are reported."""
        update = BookCopyUpdate(isbn="123")
        assert update.changes() == {"isbn": "123"}

    def test_explicit_null_is_rejected(self):
        """Test a supplied null fails validation."""
        with pytest.raises(ValidationError) as exc_info:
            BookCopyUpdate(isbn=None)
        assert "isbn can't be blank" in str(exc_info.value)

    def test_explicit_null_on_author(self):
        """Test the same rule applies to authors."""
        with pytest.raises(ValidationError):
            AuthorUpdate(first_name=None)

    def test_empty_update(self):
        """Test an empty update is valid and changes nothing."""
        assert AuthorUpdate().changes() == {}


class TestBookCopy:
    """Test cases for book copy payloads and serialization."""

    def test_format_must_be_known(self):
        """Test format is an enumeration."""
        with pytest.raises(ValidationError):
            BookCopyCreate(isbn="1", published=date(2000, 1, 1), book_id=1, format="scroll")

    def test_book_id_must_be_positive(self):
        """Test book_id is a positive integer."""
        with pytest.raises(ValidationError):
            BookCopyCreate(isbn="1", published=date(2000, 1, 1), book_id=0, format="ebook")

    def test_serialized_attributes(self):
        """Test the document is rendered with the fixed attribute set."""
        doc = {
            "_id": 3,
            "isbn": "0000033",
            "published": datetime(2001, 2, 3),
            "format": "audiobook",
            "book_id": 9,
            "user_id": None,
            "created_at": datetime(2024, 1, 1),
        }
        rendered = BookCopyResponse.from_document(doc).model_dump(mode="json")
        assert rendered == {
            "id": 3,
            "isbn": "0000033",
            "published": "2001-02-03",
            "format": "audiobook",
            "book_id": 9,
            "user_id": None,
        }

    def test_is_borrowed(self):
        """Test the borrowed flag follows the borrower reference."""
        copy = BookCopyResponse(id=1, isbn="1", book_id=1, user_id=4)
        assert copy.is_borrowed
        assert not copy.model_copy(update={"user_id": None}).is_borrowed

    def test_date_storage_round_trip(self):
        """Test dates survive the BSON datetime conversion."""
        assert date_to_storage(date(1999, 12, 31)) == datetime(1999, 12, 31)
        assert date_from_storage(datetime(1999, 12, 31)) == date(1999, 12, 31)
        assert date_from_storage(None) is None


class TestUser:
    """Test cases for principals."""

    def test_from_document(self):
        """Test building a principal from storage."""
        user = User.from_document({
            "_id": 1, "email": "a@example.com", "role": "admin", "api_key": "k"
        })
        assert user.is_admin
        assert user.role == UserRole.ADMIN

    def test_default_role(self):
        """Test principals default to regular users."""
        user = User(id=2, email="b@example.com", api_key="k")
        assert not user.is_admin


class TestConfig:
    """Test cases for configuration validation."""

    def test_log_level_is_normalised(self):
        """Test log level is upper-cased."""
        assert LibraryAPIConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            LibraryAPIConfig(log_level="chatty")

    def test_invalid_log_format(self):
        """Test unknown log formats are rejected."""
        with pytest.raises(ValidationError):
            LibraryAPIConfig(log_format="xml")

    def test_format_values(self):
        """Test the supported copy formats."""
        assert {f.value for f in BookFormat} == {"hardback", "paperback", "ebook", "audiobook"}
