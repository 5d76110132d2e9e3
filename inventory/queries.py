"""
Read-only stock projections.
"""

from typing import List

from catalog.database import MongoDBManager
from catalog.models import BookRecord

from .operations import require_non_negative


class RestockQueries:
    """Restock and low-stock lookups over committed state. No locking, no cache."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    async def books_needing_restock(self) -> List[BookRecord]:
        """Books whose available quantity is at or below their reorder level."""
        return await self.db_manager.find_books_needing_restock()

    async def low_stock_books(self, threshold: int) -> List[BookRecord]:
        """Books whose available quantity is at or below `threshold`."""
        require_non_negative("threshold", threshold)
        return await self.db_manager.find_low_stock_books(threshold)

    async def available_books_by_popularity(self, limit: int = 10) -> List[BookRecord]:
        """In-stock books, most viewed first."""
        return await self.db_manager.find_available_books_by_popularity(limit)
