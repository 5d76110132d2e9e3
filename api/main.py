"""
FastAPI main application for the Bookstore Inventory API.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import structlog
import structlog.contextvars
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.auth import Principal, require_admin, require_reader
from api.config import config as api_config
from api.models import BookEnvelope, BookListEnvelope, BookResponse, ErrorResponse, HealthResponse
from catalog.database import MongoDBManager
from catalog.exceptions import (
    BookstoreError, ConcurrencyConflict, DuplicateResource, IdMismatch,
    InsufficientInventory, InvalidAdjustment, InvalidArgument, NotFound
)
from catalog.models import BookCreate, BookUpdate
from catalog.service import BookCatalogService
from inventory.models import InventoryAdjustment
from inventory.service import InventoryService
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

# Global database manager, set during startup
db_manager: Optional[MongoDBManager] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Bookstore Inventory API")

    global db_manager
    manager = MongoDBManager(
        config.mongodb_url,
        config.mongodb_database,
        books_collection=config.books_collection,
        authors_collection=config.authors_collection,
        genres_collection=config.genres_collection,
    )
    try:
        await manager.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise
    db_manager = manager

    yield

    logger.info("Shutting down Bookstore Inventory API")
    await manager.disconnect()
    db_manager = None


app = FastAPI(
    title=api_config.api_title,
    description="""
    Book catalog with reservation-aware inventory.

    ## Features

    * **Books**: create, read, update, delete and search with pagination
    * **Inventory**: reserve and release stock, adjust quantities, manage reorder levels
    * **Restocking**: list books at or below their reorder level or a low-stock threshold
    * **Optimistic concurrency**: every write is checked against the record version;
      a stale write is answered with 409 and must be reloaded and resubmitted

    ## Authentication

    Send an API key as a bearer token. Admin keys may do everything; user keys may
    read books and reserve or release stock.

    ```
    Authorization: Bearer your_api_key_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)

TRACE_ID_HEADER = "X-Trace-Id"


@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    """Bind the caller's trace id (or a new one) to every log event of the request."""
    trace_id = request.headers.get(TRACE_ID_HEADER, "").strip() or str(uuid.uuid4())

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()

    response.headers[TRACE_ID_HEADER] = trace_id
    return response


# Dependencies
def get_db_manager() -> MongoDBManager:
    if db_manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return db_manager


def get_catalog_service(manager: MongoDBManager = Depends(get_db_manager)) -> BookCatalogService:
    return BookCatalogService(manager, default_reorder_level=config.default_reorder_level)


def get_inventory_service(manager: MongoDBManager = Depends(get_db_manager)) -> InventoryService:
    return InventoryService(manager, default_low_stock_threshold=config.default_low_stock_threshold)


# Exception handlers
ERROR_STATUS = [
    (NotFound, status.HTTP_404_NOT_FOUND, "resource-not-found"),
    (InsufficientInventory, status.HTTP_409_CONFLICT, "insufficient-inventory"),
    (ConcurrencyConflict, status.HTTP_409_CONFLICT, "concurrent-modification"),
    (DuplicateResource, status.HTTP_409_CONFLICT, "duplicate-resource"),
    (InvalidAdjustment, status.HTTP_400_BAD_REQUEST, "invalid-inventory-adjustment"),
    (IdMismatch, status.HTTP_400_BAD_REQUEST, "id-mismatch"),
    (InvalidArgument, status.HTTP_400_BAD_REQUEST, "invalid-argument"),
]


@app.exception_handler(BookstoreError)
async def bookstore_exception_handler(request: Request, exc: BookstoreError):
    """Translate domain failures into HTTP responses."""
    status_code, problem_type = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal-error"
    for error_class, code, name in ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code, problem_type = code, name
            break

    logger.info(
        "Request rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=status_code
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=str(exc),
            status_code=status_code,
            type=problem_type
        ).model_dump()
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_manager is not None:
        health_info = await db_manager.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


# Books endpoints
@app.post("/api/books", response_model=BookEnvelope, status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(
    book: BookCreate,
    response: Response,
    service: BookCatalogService = Depends(get_catalog_service),
    principal: Principal = Depends(require_admin)
):
    """Create a new book."""
    record = await service.create_book(book)
    response.headers["Location"] = f"/api/books/{record.id}"
    return BookEnvelope(data=BookResponse.from_record(record))


@app.get("/api/books/{book_id}", response_model=BookEnvelope, tags=["Books"])
async def get_book(
    book_id: str,
    service: BookCatalogService = Depends(get_catalog_service),
    principal: Principal = Depends(require_reader)
):
    """Get a book by ID."""
    record = await service.get_book(book_id)
    return BookEnvelope(data=BookResponse.from_record(record))


@app.put("/api/books/{book_id}", response_model=BookEnvelope, tags=["Books"])
async def update_book(
    book_id: str,
    update: BookUpdate,
    service: BookCatalogService = Depends(get_catalog_service),
    principal: Principal = Depends(require_admin)
):
    """
    Update a book's descriptive fields.

    The body must carry the `version` returned by the last read. If the book
    has changed since, the update is rejected with 409.
    """
    record = await service.update_book(book_id, update)
    return BookEnvelope(data=BookResponse.from_record(record))


@app.delete("/api/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_book(
    book_id: str,
    service: BookCatalogService = Depends(get_catalog_service),
    principal: Principal = Depends(require_admin)
):
    """Delete a book."""
    await service.delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/books", response_model=BookListEnvelope, tags=["Books"])
async def search_books(
    title: Optional[str] = Query(None, max_length=255),
    author: Optional[str] = Query(None, max_length=255),
    genre: Optional[str] = Query(None, max_length=255),
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=api_config.max_page_size),
    sort: str = Query("title,asc"),
    service: BookCatalogService = Depends(get_catalog_service),
    principal: Principal = Depends(require_reader)
):
    """
    Search and list books.

    - **title**, **author**, **genre**: case-insensitive fragments
    - **page**: zero-based page number
    - **size**: items per page (1-100)
    - **sort**: `field,direction` with field in title, price, publishedYear
    """
    records, meta = await service.search_books(
        title=title, author=author, genre=genre, page=page, size=size, sort=sort
    )
    return BookListEnvelope.from_records(records, meta)


# Inventory endpoints
@app.post("/api/inventory/{book_id}/reserve", status_code=status.HTTP_204_NO_CONTENT, tags=["Inventory"])
async def reserve_inventory(
    book_id: str,
    quantity: int = Query(..., ge=1),
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_reader)
):
    """Reserve stock for a book. 409 if not enough is available."""
    await service.reserve_inventory(book_id, quantity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/api/inventory/{book_id}/reservation", status_code=status.HTTP_204_NO_CONTENT, tags=["Inventory"])
async def release_reservation(
    book_id: str,
    quantity: int = Query(..., ge=1),
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_reader)
):
    """Release previously reserved stock."""
    await service.release_reservation(book_id, quantity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/api/inventory/{book_id}/adjust", status_code=status.HTTP_204_NO_CONTENT, tags=["Inventory"])
async def adjust_inventory(
    book_id: str,
    adjustment: InventoryAdjustment,
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_admin)
):
    """
    Adjust stock for received, damaged, lost, returned or sold units.

    The book in the path is the one adjusted; a `book_id` in the body is ignored.
    """
    adjustment = adjustment.model_copy(update={"book_id": book_id})
    await service.adjust_inventory(book_id, adjustment)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/inventory/restock-needed", response_model=BookListEnvelope, tags=["Inventory"])
async def get_books_needing_restock(
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_admin)
):
    """Books at or below their reorder level."""
    return BookListEnvelope.from_records(await service.get_books_needing_restock())


@app.get("/api/inventory/low-stock", response_model=BookListEnvelope, tags=["Inventory"])
async def get_low_stock_books(
    threshold: int = Query(config.default_low_stock_threshold, ge=0),
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_admin)
):
    """Books whose available quantity is at or below the threshold."""
    return BookListEnvelope.from_records(await service.get_low_stock_books(threshold))


@app.get("/api/inventory/popular", response_model=BookListEnvelope, tags=["Inventory"])
async def get_popular_available_books(
    limit: int = Query(10, ge=1, le=100),
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_reader)
):
    """In-stock books, most viewed first."""
    return BookListEnvelope.from_records(await service.get_popular_available_books(limit))


@app.put("/api/inventory/{book_id}/reorder-level", status_code=status.HTTP_204_NO_CONTENT, tags=["Inventory"])
async def update_reorder_level(
    book_id: str,
    level: int = Query(..., ge=0),
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_admin)
):
    """Set the reorder level used for restock alerts."""
    await service.update_reorder_level(book_id, level)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/api/inventory/bulk-adjust", status_code=status.HTTP_204_NO_CONTENT, tags=["Inventory"])
async def bulk_inventory_update(
    adjustments: List[InventoryAdjustment],
    service: InventoryService = Depends(get_inventory_service),
    principal: Principal = Depends(require_admin)
):
    """
    Apply several adjustments in order.

    Each adjustment commits on its own. Processing stops at the first failure,
    which is returned as the error; adjustments before it remain applied.
    """
    await service.bulk_inventory_update(adjustments)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
