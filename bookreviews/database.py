"""
Database service layer for the FastAPI application.

Wraps the ``books`` and ``reviews`` MongoDB collections behind the small set
of find/insert/update/delete operations the catalog and review services use.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from bookreviews.exceptions import DuplicateReviewError
from bookreviews.models import BookCreate, BookResponse, ReviewCreate, ReviewResponse
from utilities.config import config

logger = structlog.get_logger(__name__)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse an identifier, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def contains_ignore_case(text: str) -> Dict[str, str]:
    """Case-insensitive substring match; the text is matched literally."""
    return {"$regex": re.escape(text), "$options": "i"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.books_collection = database[config.books_collection]
        self.reviews_collection = database[config.reviews_collection]

    async def create_indexes(self) -> None:
        """Create indexes backing the review lookups."""
        try:
            # One review per (book, user)
            await self.reviews_collection.create_index(
                [("book_id", ASCENDING), ("user_id", ASCENDING)], unique=True
            )
            await self.books_collection.create_index("author")
            await self.books_collection.create_index("genre")
            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Books

    @staticmethod
    def _book_filter(author: Optional[str] = None, genre: Optional[str] = None) -> Dict[str, Any]:
        filter_query = {}
        if author:
            filter_query["author"] = contains_ignore_case(author)
        if genre:
            filter_query["genre"] = contains_ignore_case(genre)
        return filter_query

    async def find_books(
        self,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        skip: int = 0,
        limit: int = 10
    ) -> List[BookResponse]:
        """
        Get a slice of books matching the author/genre filters.

        Args:
            author: Optional author substring
            genre: Optional genre substring
            skip: Number of matching books to skip
            limit: Maximum number of books to return

        Returns:
            Books in insertion order
        """
        filter_query = self._book_filter(author, genre)
        cursor = self.books_collection.find(filter_query).sort("_id", ASCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [BookResponse.from_document(doc) for doc in docs]

    async def count_books(self, author: Optional[str] = None, genre: Optional[str] = None) -> int:
        """Count books matching the author/genre filters."""
        return await self.books_collection.count_documents(self._book_filter(author, genre))

    async def search_books(self, q: str) -> List[BookResponse]:
        """Get books whose title or author contains ``q``, ignoring case."""
        pattern = contains_ignore_case(q)
        cursor = self.books_collection.find(
            {"$or": [{"title": pattern}, {"author": pattern}]}
        ).sort("_id", ASCENDING)
        docs = await cursor.to_list(length=None)
        return [BookResponse.from_document(doc) for doc in docs]

    async def get_book_by_id(self, book_id: str) -> Optional[BookResponse]:
        """
        Get a single book by ID.

        Args:
            book_id: Book identifier

        Returns:
            BookResponse if found, None otherwise (including malformed ids)
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        doc = await self.books_collection.find_one({"_id": object_id})
        return BookResponse.from_document(doc) if doc else None

    async def insert_book(self, book: BookCreate) -> BookResponse:
        """Persist a new book with empty rating aggregates."""
        now = utcnow()
        doc = book.model_dump()
        doc.update({
            "average_rating": 0.0,
            "review_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        result = await self.books_collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Book created", book_id=str(result.inserted_id), title=book.title)
        return BookResponse.from_document(doc)

    async def update_book_rating(
        self,
        book_id: str,
        average_rating: float,
        review_count: Optional[int] = None
    ) -> bool:
        """
        Overwrite a book's derived rating fields.

        Args:
            book_id: Book identifier
            average_rating: New mean rating
            review_count: New review count; left untouched when None

        Returns:
            True if a book was matched
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            return False
        changes = {"average_rating": average_rating, "updated_at": utcnow()}
        if review_count is not None:
            changes["review_count"] = review_count
        result = await self.books_collection.update_one({"_id": object_id}, {"$set": changes})
        return result.matched_count > 0

    # Reviews

    async def find_review(self, book_id: str, user_id: str) -> Optional[ReviewResponse]:
        """Get the review ``user_id`` wrote for ``book_id``, if any."""
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        doc = await self.reviews_collection.find_one({"book_id": object_id, "user_id": user_id})
        return ReviewResponse.from_document(doc) if doc else None

    async def find_user_review(self, review_id: str, user_id: str) -> Optional[ReviewResponse]:
        """Get a review by id, only if it belongs to ``user_id``."""
        object_id = to_object_id(review_id)
        if object_id is None:
            return None
        doc = await self.reviews_collection.find_one({"_id": object_id, "user_id": user_id})
        return ReviewResponse.from_document(doc) if doc else None

    async def find_reviews_for_book(self, book_id: str) -> List[ReviewResponse]:
        """Get every review of a book."""
        object_id = to_object_id(book_id)
        if object_id is None:
            return []
        cursor = self.reviews_collection.find({"book_id": object_id})
        docs = await cursor.to_list(length=None)
        return [ReviewResponse.from_document(doc) for doc in docs]

    async def insert_review(self, book_id: str, user_id: str, review: ReviewCreate) -> ReviewResponse:
        """
        Persist a new review of ``book_id`` by ``user_id``.

        Raises:
            DuplicateReviewError: If the unique (book, user) index rejects it
        """
        doc = {
            "rating": review.rating,
            "comment": review.comment,
            "book_id": to_object_id(book_id),
            "user_id": user_id,
            "created_at": utcnow(),
        }
        try:
            result = await self.reviews_collection.insert_one(doc)
        except DuplicateKeyError:
            logger.warning("Concurrent duplicate review rejected", book_id=book_id, user_id=user_id)
            raise DuplicateReviewError()
        doc["_id"] = result.inserted_id
        return ReviewResponse.from_document(doc)

    async def update_review(self, review_id: str, changes: Dict[str, Any]) -> Optional[ReviewResponse]:
        """
        Apply field changes to a review.

        Args:
            review_id: Review identifier
            changes: Field values to set

        Returns:
            The review after the update, or None if it no longer exists
        """
        object_id = to_object_id(review_id)
        if object_id is None:
            return None
        doc = await self.reviews_collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return ReviewResponse.from_document(doc) if doc else None

    async def delete_user_review(self, review_id: str, user_id: str) -> Optional[ReviewResponse]:
        """Atomically remove a review owned by ``user_id`` and return it."""
        object_id = to_object_id(review_id)
        if object_id is None:
            return None
        doc = await self.reviews_collection.find_one_and_delete({"_id": object_id, "user_id": user_id})
        return ReviewResponse.from_document(doc) if doc else None

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")

            books_count = await self.books_collection.count_documents({})
            reviews_count = await self.reviews_collection.count_documents({})

            return {
                "status": "healthy",
                "books_count": books_count,
                "reviews_count": reviews_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
