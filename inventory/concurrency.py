"""
Versioned read-modify-write over stored book records.

`VersionedBookGateway` is the only path through which a book record is
written. Each mutation reads the record with its version, applies a pure
transform, and commits conditioned on that version still being current.
A writer that lost the race gets `ConcurrencyConflict`; nothing is retried
here.
"""

from typing import Callable

import structlog

from catalog.database import MongoDBManager
from catalog.exceptions import ConcurrencyConflict, NotFound
from catalog.models import BookRecord

logger = structlog.get_logger(__name__)

Transform = Callable[[BookRecord], BookRecord]


class VersionedBookGateway:
    """Optimistic-concurrency gateway for book record writes."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    async def load(self, book_id: str) -> BookRecord:
        record = await self.db_manager.get_book(book_id)
        if record is None:
            raise NotFound("Book", book_id)
        return record

    async def mutate(self, book_id: str, transform: Transform) -> BookRecord:
        """
        Read, transform and conditionally write one book record.

        Args:
            book_id: Book to mutate
            transform: Pure function from the current snapshot to the new one;
                any exception it raises aborts the operation with no write

        Returns:
            The committed record, with its version bumped by one

        Raises:
            NotFound: the book does not exist (or was deleted mid-operation)
            ConcurrencyConflict: another writer committed after our read
        """
        current = await self.load(book_id)
        updated = transform(current)
        return await self.commit(updated, current.version)

    async def commit(self, record: BookRecord, expected_version: int) -> BookRecord:
        """
        Persist `record` if the stored version equals `expected_version`.

        Raises:
            NotFound: the book does not exist
            ConcurrencyConflict: the stored version differs
        """
        committed = await self.db_manager.replace_book_if_version(record, expected_version)
        if committed is not None:
            logger.debug(
                "Committed book record",
                book_id=record.id,
                version=committed.version
            )
            return committed

        current_version = await self.db_manager.get_book_version(record.id)
        if current_version is None:
            raise NotFound("Book", record.id)

        logger.warning(
            "Optimistic concurrency conflict",
            book_id=record.id,
            expected_version=expected_version,
            current_version=current_version
        )
        raise ConcurrencyConflict(record.id, expected_version, current_version)
