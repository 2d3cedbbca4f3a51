"""
Book catalog operations: listing, lookup, creation and search.
"""

import math
from typing import List

import structlog

from bookreviews.database import APIDatabaseService
from bookreviews.exceptions import NotFoundError, ValidationFailure
from bookreviews.models import BookCreate, BookListResponse, BookQueryParams, BookResponse

logger = structlog.get_logger(__name__)


class BookCatalog:
    """Read and create books."""

    def __init__(self, db_service: APIDatabaseService):
        self.db_service = db_service

    async def list_books(self, query_params: BookQueryParams) -> BookListResponse:
        """
        Get one page of books matching the author/genre filters.

        Args:
            query_params: Filters and pagination

        Returns:
            BookListResponse with the page and the page count
        """
        skip = (query_params.page - 1) * query_params.limit

        books = await self.db_service.find_books(
            author=query_params.author,
            genre=query_params.genre,
            skip=skip,
            limit=query_params.limit
        )
        total = await self.db_service.count_books(
            author=query_params.author,
            genre=query_params.genre
        )

        return BookListResponse(
            books=books,
            total_pages=math.ceil(total / query_params.limit),
            current_page=query_params.page
        )

    async def get_book(self, book_id: str) -> BookResponse:
        book = await self.db_service.get_book_by_id(book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    async def create_book(self, book: BookCreate, user_id: str) -> BookResponse:
        created = await self.db_service.insert_book(book)
        logger.info("Book added to catalog", book_id=created.id, user_id=user_id)
        return created

    async def search_books(self, q: str) -> List[BookResponse]:
        """Get books whose title or author contains ``q``, ignoring case."""
        if not q or not q.strip():
            raise ValidationFailure("Search query 'q' is required")
        return await self.db_service.search_books(q.strip())
