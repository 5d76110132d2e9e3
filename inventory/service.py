"""
Inventory service: reservations, releases, adjustments and reorder levels.

Each mutating call is one versioned read-modify-write through
`VersionedBookGateway`. Outcome notifications go to the inventory logger
after the write has committed and can never fail the operation.
"""

from typing import Callable, List, Optional

import structlog

from catalog.database import MongoDBManager
from catalog.exceptions import BookstoreError
from catalog.models import BookRecord
from utilities.logger import InventoryLogger

from . import operations
from .concurrency import VersionedBookGateway
from .models import InventoryAdjustment
from .queries import RestockQueries

logger = structlog.get_logger(__name__)


class InventoryService:
    """Stock operations for book records."""

    def __init__(
        self,
        db_manager: MongoDBManager,
        observer: Optional[InventoryLogger] = None,
        default_low_stock_threshold: int = 10,
    ):
        self.gateway = VersionedBookGateway(db_manager)
        self.queries = RestockQueries(db_manager)
        self.observer = observer or InventoryLogger()
        self.default_low_stock_threshold = default_low_stock_threshold

    async def reserve_inventory(self, book_id: str, quantity: int) -> BookRecord:
        """
        Reserve `quantity` units of a book.

        Raises:
            InvalidArgument: quantity below 1 (checked before reading)
            NotFound: unknown book
            InsufficientInventory: not enough available stock
            ConcurrencyConflict: another writer committed first
        """
        operations.require_positive("quantity", quantity)
        record = await self._mutate(
            "reserve", book_id, lambda book: operations.reserve(book, quantity)
        )
        self._notify(self.observer.log_reserved, book_id, quantity, record.available_quantity())
        return record

    async def release_reservation(self, book_id: str, quantity: int) -> BookRecord:
        """Release up to `quantity` reserved units; over-release clamps to zero."""
        operations.require_positive("quantity", quantity)
        record = await self._mutate(
            "release", book_id, lambda book: operations.release(book, quantity)
        )
        self._notify(self.observer.log_released, book_id, quantity, record.reserved_quantity)
        return record

    async def adjust_inventory(self, book_id: str, adjustment: InventoryAdjustment) -> BookRecord:
        """
        Apply a signed stock change.

        Raises:
            NotFound: unknown book
            InvalidAdjustment: stock would go below zero
            ConcurrencyConflict: another writer committed first
        """
        record = await self._mutate(
            "adjust", book_id, lambda book: operations.adjust(book, adjustment.quantity_change)
        )
        self._notify(
            self.observer.log_adjusted,
            book_id,
            adjustment.quantity_change,
            adjustment.type.value,
            adjustment.reason,
            record.quantity_in_stock,
        )
        return record

    async def update_reorder_level(self, book_id: str, new_level: int) -> BookRecord:
        operations.require_non_negative("reorder level", new_level)
        record = await self._mutate(
            "reorder_level", book_id, lambda book: operations.set_reorder_level(book, new_level)
        )
        self._notify(self.observer.log_reorder_level, book_id, new_level)
        return record

    async def bulk_inventory_update(self, adjustments: List[InventoryAdjustment]) -> List[BookRecord]:
        """
        Apply adjustments one after another, each committed on its own.

        There is no rollback across the batch. The first failure propagates;
        adjustments before it stay committed and the ones after it are not
        attempted.
        """
        committed: List[BookRecord] = []
        try:
            for adjustment in adjustments:
                committed.append(await self.adjust_inventory(adjustment.book_id, adjustment))
        finally:
            self._notify(self.observer.log_bulk_complete, len(committed), len(adjustments))
        return committed

    async def get_books_needing_restock(self) -> List[BookRecord]:
        return await self.queries.books_needing_restock()

    async def get_low_stock_books(self, threshold: Optional[int] = None) -> List[BookRecord]:
        if threshold is None:
            threshold = self.default_low_stock_threshold
        return await self.queries.low_stock_books(threshold)

    async def get_popular_available_books(self, limit: int = 10) -> List[BookRecord]:
        operations.require_positive("limit", limit)
        return await self.queries.available_books_by_popularity(limit)

    async def _mutate(
        self,
        operation: str,
        book_id: str,
        transform: Callable[[BookRecord], BookRecord]
    ) -> BookRecord:
        try:
            return await self.gateway.mutate(book_id, transform)
        except BookstoreError as e:
            self._notify(self.observer.log_rejected, operation, book_id, str(e))
            raise

    def _notify(self, hook: Callable, *args) -> None:
        try:
            hook(*args)
        except Exception as e:
            logger.warning("Inventory observer failed", hook=getattr(hook, "__name__", repr(hook)), error=str(e))
