"""
API models and schemas for the FastAPI application.

Documents are stored with snake_case keys; the HTTP representation uses
camelCase aliases and a string ``id``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookCreate(APIModel):
    """Request body for creating a book."""
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    genre: str = Field(..., description="Book genre")
    description: str = Field(..., description="Book description")

    @field_validator('title', 'author', 'genre')
    @classmethod
    def validate_not_blank(cls, v, info):
        """Trim surrounding whitespace and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError(f'{info.field_name} must not be empty')
        return v


class BookResponse(APIModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    genre: str = Field(..., description="Book genre")
    description: str = Field("", description="Book description")
    average_rating: float = Field(0, description="Mean rating over all reviews")
    review_count: int = Field(0, ge=0, description="Number of reviews")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookResponse":
        """Build a response model from a raw MongoDB document."""
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return cls(**doc)


class BookListResponse(APIModel):
    """Response model for book list with pagination."""
    books: List[BookResponse] = Field(..., description="List of books")
    total_pages: int = Field(..., description="Total number of pages")
    current_page: int = Field(..., description="Current page number")


class BookQueryParams(BaseModel):
    """Query parameters for book listing."""
    author: Optional[str] = Field(None, description="Case-insensitive author substring")
    genre: Optional[str] = Field(None, description="Case-insensitive genre substring")
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(10, ge=1, description="Items per page")


class ReviewCreate(APIModel):
    """Request body for creating a review."""
    rating: int = Field(..., ge=1, le=5, description="Rating (1-5)")
    comment: str = Field(..., description="Review text")


class ReviewUpdate(APIModel):
    """Request body for updating a review. Absent fields are left untouched."""
    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating (1-5)")
    comment: Optional[str] = Field(None, description="Review text")

    def changes(self) -> Dict[str, Any]:
        """Fields the client actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ReviewResponse(APIModel):
    """Review response model for API."""
    id: str = Field(..., description="Unique review identifier")
    rating: int = Field(..., ge=1, le=5, description="Rating (1-5)")
    comment: str = Field(..., description="Review text")
    book_id: str = Field(..., description="Reviewed book identifier")
    user_id: str = Field(..., description="Author of the review")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ReviewResponse":
        """Build a response model from a raw MongoDB document."""
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        doc["book_id"] = str(doc["book_id"])
        return cls(**doc)


class MessageResponse(APIModel):
    """Plain confirmation message."""
    message: str = Field(..., description="Confirmation message")


class ErrorResponse(APIModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(APIModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
