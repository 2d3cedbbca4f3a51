"""
Domain errors raised by the catalog and review services.

Route handlers translate these into HTTP responses; store failures are left
to propagate as whatever pymongo raises.
"""


class BookReviewError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookReviewError):
    """Entity is absent, or exists but belongs to somebody else."""

    status_code = 404


class ValidationFailure(BookReviewError):
    """Request content violates a domain rule."""

    status_code = 400


class DuplicateReviewError(ValidationFailure):
    """The user already reviewed this book."""

    def __init__(self, message: str = "You have already reviewed this book"):
        super().__init__(message)
