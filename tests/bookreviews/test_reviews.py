"""
Test cases for review creation, update and deletion and the rating
recomputation that follows each of them.
"""

import asyncio

import pytest
import pytest_asyncio

from bookreviews.exceptions import DuplicateReviewError, NotFoundError, ValidationFailure
from bookreviews.models import ReviewCreate, ReviewResponse, ReviewUpdate
from bookreviews.reviews import ReviewService, average_rating


def make_review(rating, user="alice"):
    return ReviewResponse(id="r", rating=rating, comment="", book_id="b", user_id=user)


class TestAverageRating:
    """Test cases for the mean helper."""

    def test_empty_is_zero(self):
        assert average_rating([]) == 0.0

    def test_mean_of_ratings(self):
        reviews = [make_review(5), make_review(4), make_review(2)]
        assert average_rating(reviews) == pytest.approx(11 / 3)


class TestReviewService:
    """Test cases for ReviewService."""

    @pytest.fixture
    def service(self, memory_db):
        return ReviewService(memory_db)

    @pytest_asyncio.fixture
    async def book(self, memory_db, sample_book_data):
        return await memory_db.insert_book(sample_book_data)

    @pytest.mark.asyncio
    async def test_new_book_has_no_rating(self, memory_db, book):
        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 0
        assert stored.review_count == 0

    @pytest.mark.asyncio
    async def test_create_review_updates_book(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=4, comment="Good"), "alice")

        assert review.rating == 4
        assert review.book_id == book.id
        assert review.user_id == "alice"

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 4
        assert stored.review_count == 1

    @pytest.mark.asyncio
    async def test_create_second_review_averages(self, service, memory_db, book):
        await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")
        await service.create_review(book.id, ReviewCreate(rating=2, comment="Meh"), "bob")

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == pytest.approx(3.5)
        assert stored.review_count == 2

    @pytest.mark.asyncio
    async def test_create_review_missing_book(self, service, memory_db):
        with pytest.raises(NotFoundError):
            await service.create_review("507f1f77bcf86cd799439011", ReviewCreate(rating=3, comment="?"), "alice")
        assert memory_db.reviews == {}

    @pytest.mark.asyncio
    async def test_duplicate_review_rejected(self, service, memory_db, book):
        await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")
        before = await memory_db.get_book_by_id(book.id)

        with pytest.raises(DuplicateReviewError) as exc_info:
            await service.create_review(book.id, ReviewCreate(rating=1, comment="Changed my mind"), "alice")

        assert isinstance(exc_info.value, ValidationFailure)
        after = await memory_db.get_book_by_id(book.id)
        assert after.average_rating == before.average_rating
        assert after.review_count == before.review_count
        assert len(memory_db.reviews) == 1

    @pytest.mark.asyncio
    async def test_update_review_recomputes_average(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")
        await service.create_review(book.id, ReviewCreate(rating=3, comment="Fine"), "bob")

        updated = await service.update_review(review.id, ReviewUpdate(rating=1), "alice")

        assert updated.rating == 1
        assert updated.comment == "Great"
        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 2
        assert stored.review_count == 2

    @pytest.mark.asyncio
    async def test_update_review_leaves_review_count_alone(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=4, comment="Good"), "alice")
        memory_db.books[book.id]["review_count"] = 7

        await service.update_review(review.id, ReviewUpdate(comment="Still good"), "alice")

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 4
        assert stored.review_count == 7

    @pytest.mark.asyncio
    async def test_update_comment_only(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=4, comment="Good"), "alice")

        updated = await service.update_review(review.id, ReviewUpdate(comment="Very good"), "alice")

        assert updated.comment == "Very good"
        assert updated.rating == 4

    @pytest.mark.asyncio
    async def test_update_someone_elses_review(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=4, comment="Good"), "alice")

        with pytest.raises(NotFoundError):
            await service.update_review(review.id, ReviewUpdate(rating=1), "bob")

        assert memory_db.reviews[review.id]["rating"] == 4

    @pytest.mark.asyncio
    async def test_update_missing_review(self, service):
        with pytest.raises(NotFoundError):
            await service.update_review("507f1f77bcf86cd799439011", ReviewUpdate(rating=1), "alice")

    @pytest.mark.asyncio
    async def test_delete_review_recomputes(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")
        await service.create_review(book.id, ReviewCreate(rating=3, comment="Fine"), "bob")

        result = await service.delete_review(review.id, "alice")

        assert result.message == "Review deleted successfully"
        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 3
        assert stored.review_count == 1

    @pytest.mark.asyncio
    async def test_delete_last_review_resets_rating(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")

        await service.delete_review(review.id, "alice")

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 0
        assert stored.review_count == 0

    @pytest.mark.asyncio
    async def test_delete_someone_elses_review(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")

        with pytest.raises(NotFoundError):
            await service.delete_review(review.id, "bob")

        assert review.id in memory_db.reviews
        stored = await memory_db.get_book_by_id(book.id)
        assert stored.review_count == 1

    @pytest.mark.asyncio
    async def test_user_can_review_again_after_delete(self, service, memory_db, book):
        review = await service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice")
        await service.delete_review(review.id, "alice")

        await service.create_review(book.id, ReviewCreate(rating=2, comment="Reread it"), "alice")

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 2
        assert stored.review_count == 1

    @pytest.mark.asyncio
    async def test_recompute_for_missing_book(self, service):
        assert await service.recompute_book_rating("507f1f77bcf86cd799439011") == 0.0

    @pytest.mark.asyncio
    async def test_concurrent_creates_converge_after_next_mutation(self, service, memory_db, book):
        await asyncio.gather(
            service.create_review(book.id, ReviewCreate(rating=5, comment="Great"), "alice"),
            service.create_review(book.id, ReviewCreate(rating=1, comment="Awful"), "bob"),
        )
        assert len(memory_db.reviews) == 2

        await service.create_review(book.id, ReviewCreate(rating=3, comment="Fine"), "carol")

        stored = await memory_db.get_book_by_id(book.id)
        assert stored.average_rating == 3
        assert stored.review_count == 3
