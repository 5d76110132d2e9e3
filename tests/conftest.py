"""
Pytest configuration and shared fixtures.
"""

import uuid
from decimal import Decimal

import pytest
from mongomock_motor import AsyncMongoMockClient

from catalog.database import MongoDBManager
from catalog.models import BookRecord, NamedRef


@pytest.fixture
async def db_manager():
    """MongoDB manager bound to an in-process mock database."""
    manager = MongoDBManager("mongodb://localhost:27017", f"bookstore_test_{uuid.uuid4().hex[:8]}")
    await manager.bind(AsyncMongoMockClient())
    return manager


@pytest.fixture
def sample_book():
    """Book with 10 in stock, 2 reserved and a reorder level of 5."""
    return BookRecord(
        title="The Pragmatic Programmer",
        price=Decimal("39.99"),
        published_year=1999,
        isbn="978-0201616224",
        cost_price=Decimal("25.00"),
        supplier_info="Addison-Wesley",
        authors=[NamedRef(id="author-1", name="Andrew Hunt")],
        genres=[NamedRef(id="genre-1", name="Software")],
        quantity_in_stock=10,
        reserved_quantity=2,
        reorder_level=5,
    )


@pytest.fixture
async def stored_book(db_manager, sample_book):
    """The sample book persisted at version 0."""
    return await db_manager.insert_book(sample_book)


@pytest.fixture
def make_book(db_manager):
    """Factory inserting books with the given stock position."""
    async def _make(title="Book", quantity_in_stock=0, reserved_quantity=0, reorder_level=5, **fields):
        record = BookRecord(
            title=title,
            price=fields.pop("price", Decimal("10.00")),
            quantity_in_stock=quantity_in_stock,
            reserved_quantity=reserved_quantity,
            reorder_level=reorder_level,
            **fields
        )
        return await db_manager.insert_book(record)
    return _make
