"""
Catalog service: create, read, update, delete and search books.

Descriptive updates are versioned the same way stock changes are: the client
sends the version it read, and the write only lands if that version is still
current.
"""

from typing import List, Optional, Tuple

import structlog
from pymongo import ASCENDING, DESCENDING

from inventory.concurrency import VersionedBookGateway

from .database import MongoDBManager, SORT_FIELDS
from .exceptions import (
    ConcurrencyConflict, DuplicateResource, IdMismatch, InvalidArgument, InvalidSortParameter, NotFound
)
from .models import (
    DEFAULT_REORDER_LEVEL, BookCreate, BookRecord, BookUpdate, NamedRef, NamedRefInput, PageMeta
)

logger = structlog.get_logger(__name__)

DEFAULT_SORT = "title,asc"
MAX_PAGE_SIZE = 100


def parse_sort(sort: Optional[str]) -> Tuple[str, int]:
    """
    Parse a `field,direction` sort expression.

    Args:
        sort: e.g. "price,desc"; blank means title ascending

    Returns:
        (stored field name, pymongo direction)

    Raises:
        InvalidSortParameter: malformed expression, unknown field or direction
    """
    if sort is None or not sort.strip():
        return "title", ASCENDING

    parts = sort.split(",")
    if len(parts) != 2:
        raise InvalidSortParameter("Sort parameter must be in format: field,direction")

    field = parts[0].strip().lower()
    direction = parts[1].strip().lower()

    if field not in SORT_FIELDS:
        raise InvalidSortParameter(
            f"Invalid sort field: {field}. Allowed fields: title, price, publishedYear"
        )
    if direction not in ("asc", "desc"):
        raise InvalidSortParameter(
            f"Invalid sort direction: {direction}. Allowed directions: asc, desc"
        )

    return SORT_FIELDS[field], DESCENDING if direction == "desc" else ASCENDING


class BookCatalogService:
    """Book CRUD and search."""

    def __init__(self, db_manager: MongoDBManager, default_reorder_level: int = DEFAULT_REORDER_LEVEL):
        self.db_manager = db_manager
        self.gateway = VersionedBookGateway(db_manager)
        self.default_reorder_level = default_reorder_level

    async def create_book(self, book: BookCreate) -> BookRecord:
        await self._validate_isbn(book.isbn, exclude_book_id=None)

        record = BookRecord(
            title=book.title,
            price=book.price,
            published_year=book.published_year,
            isbn=book.isbn,
            cost_price=book.cost_price,
            supplier_info=book.supplier_info,
            authors=await self._resolve_named("authors", "Author", book.authors),
            genres=await self._resolve_named("genres", "Genre", book.genres),
            quantity_in_stock=book.quantity_in_stock,
            reserved_quantity=book.reserved_quantity,
            reorder_level=(
                book.reorder_level if book.reorder_level is not None else self.default_reorder_level
            ),
        )
        await self.db_manager.insert_book(record)
        logger.info("Created book", book_id=record.id, title=record.title)
        return record

    async def get_book(self, book_id: str, count_view: bool = True) -> BookRecord:
        record = await self.db_manager.get_book(book_id)
        if record is None:
            raise NotFound("Book", book_id)
        if count_view:
            await self.db_manager.increment_view_count(book_id)
        return record

    async def update_book(self, book_id: str, update: BookUpdate) -> BookRecord:
        """
        Replace a book's descriptive fields, based on `update.version`.

        Raises:
            IdMismatch: body id differs from `book_id`
            NotFound: unknown book, author or genre
            DuplicateResource: ISBN belongs to another book
            ConcurrencyConflict: the book changed since the client read it
        """
        if update.id is not None and update.id != book_id:
            raise IdMismatch(book_id, update.id)

        current = await self.db_manager.get_book(book_id)
        if current is None:
            raise NotFound("Book", book_id)
        if current.version != update.version:
            raise ConcurrencyConflict(book_id, update.version, current.version)

        await self._validate_isbn(update.isbn, exclude_book_id=book_id)

        changes = {
            "title": update.title,
            "price": update.price,
            "published_year": update.published_year,
            "isbn": update.isbn,
            "cost_price": update.cost_price,
            "supplier_info": update.supplier_info,
        }
        if update.authors is not None:
            changes["authors"] = await self._resolve_named("authors", "Author", update.authors)
        if update.genres is not None:
            changes["genres"] = await self._resolve_named("genres", "Genre", update.genres)

        # Stock fields come from `current`, so the write is conditioned on its version
        committed = await self.gateway.commit(current.model_copy(update=changes), current.version)
        logger.info("Updated book", book_id=book_id, version=committed.version)
        return committed

    async def delete_book(self, book_id: str) -> None:
        if await self.db_manager.delete_book(book_id):
            logger.info("Deleted book", book_id=book_id)

    async def search_books(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        page: int = 0,
        size: int = 20,
        sort: Optional[str] = DEFAULT_SORT,
    ) -> Tuple[List[BookRecord], PageMeta]:
        """
        Search books by title, author and genre fragments.

        Args:
            page: Zero-based page number
            size: Page size, 1..100
            sort: `field,direction` over title, price or publishedYear

        Returns:
            Records on the requested page and pagination metadata
        """
        if page < 0:
            raise InvalidArgument(f"page must be zero or positive, got {page}")
        if size < 1 or size > MAX_PAGE_SIZE:
            raise InvalidArgument(f"size must be between 1 and {MAX_PAGE_SIZE}, got {size}")

        sort_spec = parse_sort(sort)
        books, total = await self.db_manager.search_books(
            title=title,
            author=author,
            genre=genre,
            skip=page * size,
            limit=size,
            sort=sort_spec,
        )
        return books, PageMeta.of(page, size, total)

    async def _validate_isbn(self, isbn: Optional[str], exclude_book_id: Optional[str]) -> None:
        if isbn is None or not isbn.strip():
            return
        existing = await self.db_manager.find_book_by_isbn(isbn)
        if existing is not None and existing.id != exclude_book_id:
            raise DuplicateResource(f"Book with ISBN {isbn} already exists")

    async def _resolve_named(
        self,
        kind: str,
        resource_type: str,
        refs: List[NamedRefInput]
    ) -> List[NamedRef]:
        resolved: List[NamedRef] = []
        seen = set()
        for ref in refs:
            if ref.id is not None:
                entity = await self.db_manager.get_named(kind, ref.id)
                if entity is None:
                    raise NotFound(resource_type, ref.id)
            elif ref.name:
                entity = await self.db_manager.find_or_create_named(kind, ref.name)
            else:
                raise InvalidArgument(f"{resource_type} requires an id or a name")

            if entity.id not in seen:
                seen.add(entity.id)
                resolved.append(entity)
        return resolved
