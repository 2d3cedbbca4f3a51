"""
Review service.

Every review mutation is followed by a recomputation of the owning book's
``average_rating`` from the full set of its reviews. The review write and the
book write are separate store operations: nothing is locked or rolled back,
so concurrent mutations of one book may overwrite each other's aggregate
(last write wins) and a failure in between leaves the aggregate stale until
the next mutation of that book.
"""

from typing import List, Optional

import structlog

from bookreviews.database import APIDatabaseService
from bookreviews.exceptions import DuplicateReviewError, NotFoundError
from bookreviews.models import MessageResponse, ReviewCreate, ReviewResponse, ReviewUpdate

logger = structlog.get_logger(__name__)

REVIEW_NOT_FOUND = "Review not found or unauthorized"


def average_rating(reviews: List[ReviewResponse]) -> float:
    """Arithmetic mean of the ratings, 0 when there are none."""
    if not reviews:
        return 0.0
    return sum(review.rating for review in reviews) / len(reviews)


class ReviewService:
    """Create, update and delete reviews while keeping book ratings in sync."""

    def __init__(self, db_service: APIDatabaseService):
        self.db_service = db_service

    async def recompute_book_rating(self, book_id: str, refresh_count: bool = True) -> float:
        """
        Re-read all reviews of a book and store their mean on the book.

        Args:
            book_id: Book identifier
            refresh_count: Also overwrite ``review_count`` with the number of
                reviews read

        Returns:
            The new average rating
        """
        reviews = await self.db_service.find_reviews_for_book(book_id)
        mean = average_rating(reviews)
        review_count: Optional[int] = len(reviews) if refresh_count else None

        matched = await self.db_service.update_book_rating(book_id, mean, review_count)
        if not matched:
            logger.warning("Rating recomputed for missing book", book_id=book_id)

        logger.debug(
            "Book rating recomputed",
            book_id=book_id,
            average_rating=mean,
            review_count=review_count
        )
        return mean

    async def create_review(self, book_id: str, review: ReviewCreate, user_id: str) -> ReviewResponse:
        """
        Add ``user_id``'s review of a book.

        Raises:
            NotFoundError: If the book does not exist
            DuplicateReviewError: If the user already reviewed the book
        """
        book = await self.db_service.get_book_by_id(book_id)
        if book is None:
            raise NotFoundError("Book not found")

        existing = await self.db_service.find_review(book.id, user_id)
        if existing is not None:
            raise DuplicateReviewError()

        created = await self.db_service.insert_review(book.id, user_id, review)
        logger.info("Review created", review_id=created.id, book_id=book.id, user_id=user_id)

        await self.recompute_book_rating(book.id)
        return created

    async def update_review(self, review_id: str, patch: ReviewUpdate, user_id: str) -> ReviewResponse:
        """
        Apply a partial update to one of ``user_id``'s reviews.

        The book's average is recomputed but its review count is left as is.

        Raises:
            NotFoundError: If no review with this id belongs to the user
        """
        review = await self.db_service.find_user_review(review_id, user_id)
        if review is None:
            raise NotFoundError(REVIEW_NOT_FOUND)

        changes = patch.changes()
        if changes:
            updated = await self.db_service.update_review(review.id, changes)
            if updated is None:
                raise NotFoundError(REVIEW_NOT_FOUND)
        else:
            updated = review
        logger.info("Review updated", review_id=review.id, fields=sorted(changes), user_id=user_id)

        await self.recompute_book_rating(updated.book_id, refresh_count=False)
        return updated

    async def delete_review(self, review_id: str, user_id: str) -> MessageResponse:
        """
        Remove one of ``user_id``'s reviews.

        Raises:
            NotFoundError: If no review with this id belongs to the user
        """
        deleted = await self.db_service.delete_user_review(review_id, user_id)
        if deleted is None:
            raise NotFoundError(REVIEW_NOT_FOUND)
        logger.info("Review deleted", review_id=deleted.id, book_id=deleted.book_id, user_id=user_id)

        await self.recompute_book_rating(deleted.book_id)
        return MessageResponse(message="Review deleted successfully")
