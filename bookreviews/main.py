"""
FastAPI main application for the Book Review API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookreviews.auth import get_current_user
from bookreviews.catalog import BookCatalog
from bookreviews.config import config as api_config
from bookreviews.database import APIDatabaseService
from bookreviews.exceptions import BookReviewError
from bookreviews.models import (
    BookCreate, BookListResponse, BookQueryParams, BookResponse,
    ErrorResponse, HealthResponse, MessageResponse,
    ReviewCreate, ReviewResponse, ReviewUpdate
)
from bookreviews.reviews import ReviewService
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

# Global database service
db_service: APIDatabaseService = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global db_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Book Review API")

    client = AsyncIOMotorClient(config.mongodb_url)
    try:
        database = client[config.mongodb_database]

        # Test connection
        await database.command("ping")
        logger.info("Database connection established", database=config.mongodb_database)

        db_service = APIDatabaseService(database)
        await db_service.create_indexes()

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        client.close()
        raise

    yield

    logger.info("Shutting down Book Review API")
    db_service = None
    client.close()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    A RESTful API for a book review system.

    ## Features

    * **Books**: Browse, filter, search and add books
    * **Reviews**: Rate a book once per user, edit or remove your own review
    * **Ratings**: Each book carries the average rating and number of its reviews

    ## Authentication

    Creating books and managing reviews requires a JWT bearer token:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def error_response(status_code: int, error: str, detail: str = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            status_code=status_code
        ).model_dump(by_alias=True),
        headers=headers
    )


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Report malformed requests as 400."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}")
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", "; ".join(messages))


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        str(exc) if api_config.debug else None
    )


def get_db_service() -> APIDatabaseService:
    if not db_service:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return db_service


def get_catalog(service: APIDatabaseService = Depends(get_db_service)) -> BookCatalog:
    return BookCatalog(service)


def get_review_service(service: APIDatabaseService = Depends(get_db_service)) -> ReviewService:
    return ReviewService(service)


def to_http_error(exc: BookReviewError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def server_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_service:
        health_info = await db_service.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


# Books endpoints
@app.get("/books", response_model=BookListResponse, tags=["Books"])
async def get_books(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    author: str = None,
    genre: str = None,
    catalog: BookCatalog = Depends(get_catalog)
):
    """
    Get books with filtering and pagination.

    - **page**: Page number (starts from 1)
    - **limit**: Books per page
    - **author**: Case-insensitive author substring
    - **genre**: Case-insensitive genre substring
    """
    query_params = BookQueryParams(author=author, genre=genre, page=page, limit=limit)
    try:
        return await catalog.list_books(query_params)
    except Exception as e:
        logger.error("Failed to get books", error=str(e))
        raise server_error("Failed to retrieve books")


@app.get("/books/search", response_model=List[BookResponse], tags=["Books"])
async def search_books(
    q: str = Query(..., description="Text to look for in title or author"),
    catalog: BookCatalog = Depends(get_catalog)
):
    """Search books by title or author."""
    try:
        return await catalog.search_books(q)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to search books", q=q, error=str(e))
        raise server_error("Failed to search books")


@app.get("/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def get_book(book_id: str, catalog: BookCatalog = Depends(get_catalog)):
    """
    Get a single book by ID.

    - **book_id**: Book identifier
    """
    try:
        return await catalog.get_book(book_id)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to get book", book_id=book_id, error=str(e))
        raise server_error("Failed to retrieve book")


@app.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(
    book: BookCreate,
    user_id: str = Depends(get_current_user),
    catalog: BookCatalog = Depends(get_catalog)
):
    """Add a new book."""
    try:
        return await catalog.create_book(book, user_id)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to create book", error=str(e))
        raise server_error("Failed to create book")


# Reviews endpoints
@app.post(
    "/books/{book_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Reviews"]
)
async def create_review(
    book_id: str,
    review: ReviewCreate,
    user_id: str = Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service)
):
    """
    Add a review for a book. Each user may review a book once.

    - **rating**: Integer from 1 to 5
    - **comment**: Review text
    """
    try:
        return await reviews.create_review(book_id, review, user_id)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to create review", book_id=book_id, user_id=user_id, error=str(e))
        raise server_error("Failed to create review")


@app.put("/reviews/{review_id}", response_model=ReviewResponse, tags=["Reviews"])
async def update_review(
    review_id: str,
    patch: ReviewUpdate,
    user_id: str = Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service)
):
    """Update your own review."""
    try:
        return await reviews.update_review(review_id, patch, user_id)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to update review", review_id=review_id, user_id=user_id, error=str(e))
        raise server_error("Failed to update review")


@app.delete("/reviews/{review_id}", response_model=MessageResponse, tags=["Reviews"])
async def delete_review(
    review_id: str,
    user_id: str = Depends(get_current_user),
    reviews: ReviewService = Depends(get_review_service)
):
    """Delete your own review."""
    try:
        return await reviews.delete_review(review_id, user_id)
    except BookReviewError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error("Failed to delete review", review_id=review_id, user_id=user_id, error=str(e))
        raise server_error("Failed to delete review")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bookreviews.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=True,
        log_level="info"
    )
