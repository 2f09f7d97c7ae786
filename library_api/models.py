"""
API models and schemas for the FastAPI application.

Response models double as serializers: their field order is the attribute
order rendered in JSON, and ``from_document`` builds them from a MongoDB
document.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.types import PositiveInt


class UserRole(str, Enum):
    """Principal role enumeration."""
    ADMIN = "admin"
    USER = "user"


class BookFormat(str, Enum):
    """Physical or digital format of a book copy."""
    HARDBACK = "hardback"
    PAPERBACK = "paperback"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"


def not_blank(v: Optional[str]) -> Optional[str]:
    """Strip a string and reject it when nothing is left."""
    if v is not None:
        v = v.strip()
        if not v:
            raise ValueError("can't be blank")
    return v


def date_to_storage(value: date) -> datetime:
    """BSON has no date type; dates are stored as midnight datetimes."""
    return datetime.combine(value, time.min)


def date_from_storage(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    return value


class PartialUpdate(BaseModel):
    """Base for update payloads: fields may be omitted but not nulled out."""

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulled = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"{', '.join(nulled)} can't be blank")
        return self

    def changes(self) -> Dict[str, Any]:
        """Fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


# Principals

class User(BaseModel):
    """Authenticated principal resolved from an API key."""
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.USER
    api_key: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_document(cls, doc: Dict) -> "User":
        return cls(
            id=doc["_id"],
            email=doc["email"],
            first_name=doc.get("first_name"),
            last_name=doc.get("last_name"),
            role=doc.get("role", UserRole.USER),
            api_key=doc["api_key"],
        )


# Authors

class AuthorCreate(BaseModel):
    first_name: str = Field(..., description="Author first name")
    last_name: str = Field(..., description="Author last name")

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        return not_blank(v)


class AuthorUpdate(PartialUpdate):
    first_name: Optional[str] = Field(None, description="Author first name")
    last_name: Optional[str] = Field(None, description="Author last name")

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        return not_blank(v)


class AuthorPayload(BaseModel):
    author: AuthorCreate


class AuthorUpdatePayload(BaseModel):
    author: AuthorUpdate


class AuthorResponse(BaseModel):
    """Author response model for API."""
    id: int = Field(..., description="Author identifier")
    first_name: str = Field(..., description="Author first name")
    last_name: str = Field(..., description="Author last name")

    @classmethod
    def from_document(cls, doc: Dict) -> "AuthorResponse":
        return cls(id=doc["_id"], first_name=doc["first_name"], last_name=doc["last_name"])


# Books

class BookCreate(BaseModel):
    title: str = Field(..., description="Book title")
    author_id: PositiveInt = Field(..., description="Author identifier")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return not_blank(v)


class BookUpdate(PartialUpdate):
    title: Optional[str] = Field(None, description="Book title")
    author_id: Optional[PositiveInt] = Field(None, description="Author identifier")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return not_blank(v)


class BookPayload(BaseModel):
    book: BookCreate


class BookUpdatePayload(BaseModel):
    book: BookUpdate


class BookResponse(BaseModel):
    """Book response model for API."""
    id: int = Field(..., description="Book identifier")
    title: str = Field(..., description="Book title")
    author_id: int = Field(..., description="Author identifier")

    @classmethod
    def from_document(cls, doc: Dict) -> "BookResponse":
        return cls(id=doc["_id"], title=doc["title"], author_id=doc["author_id"])


# Book copies

class BookCopyCreate(BaseModel):
    isbn: str = Field(..., description="ISBN of the copy's edition")
    published: date = Field(..., description="Publication date")
    book_id: PositiveInt = Field(..., description="Book identifier")
    format: BookFormat = Field(..., description="Copy format")

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v):
        return not_blank(v)


class BookCopyUpdate(PartialUpdate):
    isbn: Optional[str] = Field(None, description="ISBN of the copy's edition")
    published: Optional[date] = Field(None, description="Publication date")
    book_id: Optional[PositiveInt] = Field(None, description="Book identifier")
    format: Optional[BookFormat] = Field(None, description="Copy format")

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v):
        return not_blank(v)


class BookCopyPayload(BaseModel):
    book_copy: BookCopyCreate


class BookCopyUpdatePayload(BaseModel):
    book_copy: BookCopyUpdate


class LoanRequest(BaseModel):
    """Body of the borrow and return actions."""
    user_id: Optional[PositiveInt] = Field(None, description="Borrowing user identifier")


class BookCopyResponse(BaseModel):
    """Book copy response model for API."""
    id: int = Field(..., description="Book copy identifier")
    isbn: str = Field(..., description="ISBN of the copy's edition")
    published: Optional[date] = Field(None, description="Publication date")
    format: Optional[BookFormat] = Field(None, description="Copy format")
    book_id: int = Field(..., description="Book identifier")
    user_id: Optional[int] = Field(None, description="Borrower identifier, null when available")

    @property
    def is_borrowed(self) -> bool:
        return self.user_id is not None

    @classmethod
    def from_document(cls, doc: Dict) -> "BookCopyResponse":
        return cls(
            id=doc["_id"],
            isbn=doc["isbn"],
            published=date_from_storage(doc.get("published")),
            format=doc.get("format"),
            book_id=doc["book_id"],
            user_id=doc.get("user_id"),
        )


# Misc

class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")


def wrap(key: str, record: BaseModel) -> Dict:
    """Render a single record under its root key."""
    return {key: record.model_dump(mode="json")}


def wrap_many(key: str, records: List[BaseModel]) -> Dict:
    """Render a list of records under their plural root key."""
    return {key: [record.model_dump(mode="json") for record in records]}
