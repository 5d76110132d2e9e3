"""
MongoDB persistence for the book catalog.
Handles connection, indexing, versioned writes and the stock projections.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from .models import BookRecord, MUTABLE_FIELDS, NamedRef, new_id

logger = structlog.get_logger(__name__)

# Raw difference; equivalent to comparing the floored available quantity
# whenever the right-hand side is >= 0.
_AVAILABLE_EXPR = {"$subtract": ["$quantity_in_stock", "$reserved_quantity"]}

SORT_FIELDS = {
    "title": "title",
    "price": "price",
    "publishedyear": "published_year",
    "published_year": "published_year",
}


class MongoDBManager:
    """
    Async MongoDB manager for book records, authors and genres.

    All stock and catalog writes go through `replace_book_if_version`, which
    only succeeds against the version the caller read.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        authors_collection: str = "authors",
        genres_collection: str = "genres",
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Collection holding book records
            authors_collection: Collection holding authors
            genres_collection: Collection holding genres
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_names = {
            "books": books_collection,
            "authors": authors_collection,
            "genres": genres_collection,
        }
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.books: Optional[AsyncIOMotorCollection] = None
        self.authors: Optional[AsyncIOMotorCollection] = None
        self.genres: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish and verify the connection to MongoDB."""
        try:
            client = AsyncIOMotorClient(self.connection_url)
            await client.admin.command('ping')
        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

        await self.bind(client)
        logger.info("Successfully connected to MongoDB", database=self.database_name)

    async def bind(self, client: Any) -> None:
        """Use an already constructed client and prepare collections and indexes."""
        self.client = client
        self.database = client[self.database_name]
        self.books = self.database[self.collection_names["books"]]
        self.authors = self.database[self.collection_names["authors"]]
        self.genres = self.database[self.collection_names["genres"]]
        await self._create_indexes()

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        try:
            await self.books.create_index("title")
            await self.books.create_index("isbn")
            await self.books.create_index("price")
            await self.books.create_index("published_year")
            await self.books.create_index("authors.name")
            await self.books.create_index("genres.name")
            await self.books.create_index([("view_count", DESCENDING)])

            # Case-insensitive uniqueness for named entities
            await self.authors.create_index("name_lower", unique=True)
            await self.genres.create_index("name_lower", unique=True)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # ------------------------------------------------------------------
    # Book records
    # ------------------------------------------------------------------

    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        """
        Load a book record, including its current version.

        Args:
            book_id: Book identifier

        Returns:
            BookRecord or None if not found
        """
        try:
            doc = await self.books.find_one({"_id": book_id})
            return BookRecord.from_document(doc) if doc else None
        except Exception as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise

    async def get_book_version(self, book_id: str) -> Optional[int]:
        """Return the stored version, or None if the book does not exist."""
        doc = await self.books.find_one({"_id": book_id}, {"version": 1})
        return doc["version"] if doc else None

    async def insert_book(self, record: BookRecord) -> BookRecord:
        try:
            await self.books.insert_one(record.to_document())
            logger.debug("Inserted book", book_id=record.id, title=record.title)
            return record
        except Exception as e:
            logger.error("Failed to insert book", title=record.title, error=str(e))
            raise

    async def replace_book_if_version(
        self,
        record: BookRecord,
        expected_version: int
    ) -> Optional[BookRecord]:
        """
        Write the mutable fields of `record` only if the stored version still
        equals `expected_version`, bumping the version in the same update.

        Args:
            record: New state to persist
            expected_version: Version the new state was derived from

        Returns:
            The committed record, or None if nothing matched (missing book or
            a version that has moved on)
        """
        document = record.to_document()
        updates = {field: document[field] for field in MUTABLE_FIELDS}
        updates["updated_at"] = datetime.utcnow()

        try:
            committed = await self.books.find_one_and_update(
                {"_id": record.id, "version": expected_version},
                {"$set": updates, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
        except Exception as e:
            logger.error("Failed to commit book", book_id=record.id, error=str(e))
            raise

        if committed is None:
            return None
        return BookRecord.from_document(committed)

    async def delete_book(self, book_id: str) -> bool:
        """
        Delete a book.

        Returns:
            bool: True if deleted, False if not found
        """
        try:
            result = await self.books.delete_one({"_id": book_id})
            return result.deleted_count > 0
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

    async def increment_view_count(self, book_id: str) -> None:
        """Count a view without touching the version token."""
        await self.books.update_one({"_id": book_id}, {"$inc": {"view_count": 1}})

    async def find_book_by_isbn(self, isbn: str) -> Optional[BookRecord]:
        doc = await self.books.find_one({"isbn": isbn})
        return BookRecord.from_document(doc) if doc else None

    async def search_books(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
        sort: Tuple[str, int] = ("title", ASCENDING),
    ) -> Tuple[List[BookRecord], int]:
        """
        Search books with case-insensitive substring filters.

        Args:
            title: Title fragment
            author: Author name fragment
            genre: Genre name fragment
            skip: Number of records to skip
            limit: Maximum number of records to return
            sort: (field, direction) pair

        Returns:
            Page of records and the total number of matches
        """
        filter_query: Dict[str, Any] = {}
        if title and title.strip():
            filter_query["title"] = {"$regex": re.escape(title.strip()), "$options": "i"}
        if author and author.strip():
            filter_query["authors.name"] = {"$regex": re.escape(author.strip()), "$options": "i"}
        if genre and genre.strip():
            filter_query["genres.name"] = {"$regex": re.escape(genre.strip()), "$options": "i"}

        try:
            total = await self.books.count_documents(filter_query)
            cursor = (
                self.books.find(filter_query)
                .sort([sort, ("_id", ASCENDING)])
                .skip(skip)
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
            return [BookRecord.from_document(doc) for doc in docs], total

        except Exception as e:
            logger.error("Failed to search books", error=str(e))
            raise

    async def _find_books(
        self,
        filter_query: Dict[str, Any],
        sort: List[Tuple[str, int]],
        limit: Optional[int] = None
    ) -> List[BookRecord]:
        cursor = self.books.find(filter_query).sort(sort)
        if limit is not None:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=limit)
        return [BookRecord.from_document(doc) for doc in docs]

    async def find_books_needing_restock(self) -> List[BookRecord]:
        return await self._find_books(
            {"$expr": {"$lte": [_AVAILABLE_EXPR, "$reorder_level"]}},
            [("title", ASCENDING), ("_id", ASCENDING)],
        )

    async def find_low_stock_books(self, threshold: int) -> List[BookRecord]:
        return await self._find_books(
            {"$expr": {"$lte": [_AVAILABLE_EXPR, threshold]}},
            [("title", ASCENDING), ("_id", ASCENDING)],
        )

    async def find_available_books_by_popularity(self, limit: int) -> List[BookRecord]:
        return await self._find_books(
            {"$expr": {"$gt": [_AVAILABLE_EXPR, 0]}},
            [("view_count", DESCENDING), ("_id", ASCENDING)],
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Authors and genres
    # ------------------------------------------------------------------

    def _named_collection(self, kind: str) -> AsyncIOMotorCollection:
        if kind == "authors":
            return self.authors
        if kind == "genres":
            return self.genres
        raise ValueError(f"Unknown named entity collection: {kind}")

    async def get_named(self, kind: str, entity_id: str) -> Optional[NamedRef]:
        doc = await self._named_collection(kind).find_one({"_id": entity_id})
        return NamedRef(id=doc["_id"], name=doc["name"]) if doc else None

    async def find_or_create_named(self, kind: str, name: str) -> NamedRef:
        """
        Look an author or genre up by name, ignoring case, creating it if absent.

        Two callers creating the same name race on the unique index; the loser
        reads back the winner's document.
        """
        collection = self._named_collection(kind)
        name_lower = name.lower()

        doc = await collection.find_one({"name_lower": name_lower})
        if doc:
            return NamedRef(id=doc["_id"], name=doc["name"])

        entity_id = new_id()
        try:
            await collection.insert_one({"_id": entity_id, "name": name, "name_lower": name_lower})
            logger.debug("Created named entity", kind=kind, name=name, entity_id=entity_id)
            return NamedRef(id=entity_id, name=name)
        except DuplicateKeyError:
            doc = await collection.find_one({"name_lower": name_lower})
            return NamedRef(id=doc["_id"], name=doc["name"])

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.books.count_documents({})
            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
