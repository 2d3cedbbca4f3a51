"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from bookreviews.auth import create_access_token
from bookreviews.models import BookCreate, BookResponse, ReviewResponse


class InMemoryDatabaseService:
    """
    Dict-backed stand-in for APIDatabaseService.

    Every operation yields to the event loop once, so concurrent callers
    interleave the way they would against a real store.
    """

    def __init__(self):
        self.books = {}
        self.reviews = {}

    @staticmethod
    def _contains(value, text):
        return text.lower() in value.lower()

    def _matching_books(self, author=None, genre=None):
        return [
            book for book in self.books.values()
            if (not author or self._contains(book["author"], author))
            and (not genre or self._contains(book["genre"], genre))
        ]

    async def find_books(self, author=None, genre=None, skip=0, limit=10):
        await asyncio.sleep(0)
        matches = self._matching_books(author, genre)
        return [BookResponse(**book) for book in matches[skip:skip + limit]]

    async def count_books(self, author=None, genre=None):
        await asyncio.sleep(0)
        return len(self._matching_books(author, genre))

    async def search_books(self, q):
        await asyncio.sleep(0)
        return [
            BookResponse(**book) for book in self.books.values()
            if self._contains(book["title"], q) or self._contains(book["author"], q)
        ]

    async def get_book_by_id(self, book_id):
        await asyncio.sleep(0)
        book = self.books.get(book_id)
        return BookResponse(**book) if book else None

    async def insert_book(self, book: BookCreate):
        await asyncio.sleep(0)
        now = datetime.now(timezone.utc)
        doc = book.model_dump()
        doc.update({
            "id": str(ObjectId()),
            "average_rating": 0.0,
            "review_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        self.books[doc["id"]] = doc
        return BookResponse(**doc)

    async def update_book_rating(self, book_id, average_rating, review_count=None):
        await asyncio.sleep(0)
        book = self.books.get(book_id)
        if book is None:
            return False
        book["average_rating"] = average_rating
        if review_count is not None:
            book["review_count"] = review_count
        book["updated_at"] = datetime.now(timezone.utc)
        return True

    async def find_review(self, book_id, user_id):
        await asyncio.sleep(0)
        for review in self.reviews.values():
            if review["book_id"] == book_id and review["user_id"] == user_id:
                return ReviewResponse(**review)
        return None

    async def find_user_review(self, review_id, user_id):
        await asyncio.sleep(0)
        review = self.reviews.get(review_id)
        if review is None or review["user_id"] != user_id:
            return None
        return ReviewResponse(**review)

    async def find_reviews_for_book(self, book_id):
        await asyncio.sleep(0)
        return [
            ReviewResponse(**review) for review in self.reviews.values()
            if review["book_id"] == book_id
        ]

    async def insert_review(self, book_id, user_id, review):
        await asyncio.sleep(0)
        doc = {
            "id": str(ObjectId()),
            "rating": review.rating,
            "comment": review.comment,
            "book_id": book_id,
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc),
        }
        self.reviews[doc["id"]] = doc
        return ReviewResponse(**doc)

    async def update_review(self, review_id, changes):
        await asyncio.sleep(0)
        review = self.reviews.get(review_id)
        if review is None:
            return None
        review.update(changes)
        return ReviewResponse(**review)

    async def delete_user_review(self, review_id, user_id):
        await asyncio.sleep(0)
        review = self.reviews.get(review_id)
        if review is None or review["user_id"] != user_id:
            return None
        del self.reviews[review_id]
        return ReviewResponse(**review)

    async def health_check(self):
        return {"status": "healthy", "books_count": len(self.books), "reviews_count": len(self.reviews)}


@pytest.fixture
def memory_db():
    """Create an empty in-memory database service."""
    return InMemoryDatabaseService()


@pytest.fixture
def sample_book_data():
    """Create sample book data for testing."""
    return BookCreate(
        title="The Hobbit",
        author="J.R.R. Tolkien",
        genre="Fantasy",
        description="A hobbit goes on an unexpected journey."
    )


@pytest.fixture
def client():
    """Create test client."""
    from bookreviews.main import app
    return TestClient(app)


@pytest.fixture
def api_db(memory_db):
    """Install the in-memory database service into the API module."""
    with patch('bookreviews.main.db_service', memory_db):
        yield memory_db


@pytest.fixture
def auth_headers():
    """Authorization headers for user 'alice'."""
    return {"Authorization": f"Bearer {create_access_token('alice')}"}


@pytest.fixture
def other_auth_headers():
    """Authorization headers for user 'bob'."""
    return {"Authorization": f"Bearer {create_access_token('bob')}"}
