"""
Tests for the book catalog service.
"""

import asyncio
from decimal import Decimal

import pytest
from pymongo import ASCENDING, DESCENDING

from catalog.exceptions import (
    ConcurrencyConflict,
    DuplicateResource,
    IdMismatch,
    InvalidArgument,
    InvalidSortParameter,
    NotFound,
)
from catalog.models import BookCreate, BookUpdate, NamedRefInput
from catalog.service import BookCatalogService, parse_sort
from inventory.service import InventoryService


@pytest.fixture
def catalog_service(db_manager):
    return BookCatalogService(db_manager, default_reorder_level=5)


def new_book(title="Dune", price="19.99", **fields):
    return BookCreate(title=title, price=Decimal(price), **fields)


def update_for(record, **fields):
    data = {
        "title": record.title,
        "price": record.price,
        "published_year": record.published_year,
        "isbn": record.isbn,
        "cost_price": record.cost_price,
        "supplier_info": record.supplier_info,
        "version": record.version,
    }
    data.update(fields)
    return BookUpdate(**data)


class TestParseSort:
    """Test cases for sort expression parsing."""

    @pytest.mark.parametrize("sort,expected", [
        ("title,asc", ("title", ASCENDING)),
        ("price,desc", ("price", DESCENDING)),
        ("publishedYear,asc", ("published_year", ASCENDING)),
        ("PRICE,DESC", ("price", DESCENDING)),
        (None, ("title", ASCENDING)),
        ("  ", ("title", ASCENDING)),
    ])
    def test_valid(self, sort, expected):
        assert parse_sort(sort) == expected

    @pytest.mark.parametrize("sort", ["title", "title,asc,extra", "isbn,asc", "price,up"])
    def test_invalid(self, sort):
        with pytest.raises(InvalidSortParameter):
            parse_sort(sort)

    def test_invalid_sort_is_an_invalid_argument(self):
        with pytest.raises(InvalidArgument):
            parse_sort("nope")


class TestCreateAndGet:
    """Test cases for creating and reading books."""

    @pytest.mark.asyncio
    async def test_create_book_defaults(self, catalog_service):
        record = await catalog_service.create_book(new_book())

        assert record.version == 0
        assert record.quantity_in_stock == 0
        assert record.reserved_quantity == 0
        assert record.reorder_level == 5

        stored = await catalog_service.get_book(record.id)
        assert stored.title == "Dune"
        assert stored.price == Decimal("19.99")

    @pytest.mark.asyncio
    async def test_create_with_initial_stock(self, catalog_service):
        record = await catalog_service.create_book(new_book(quantity_in_stock=12, reorder_level=3))

        assert record.quantity_in_stock == 12
        assert record.reorder_level == 3
        assert record.needs_restock() is False

    @pytest.mark.asyncio
    async def test_create_resolves_authors_by_name(self, catalog_service, db_manager):
        first = await catalog_service.create_book(new_book(
            "Dune", authors=[NamedRefInput(name="Frank Herbert")], genres=[NamedRefInput(name="Science Fiction")]
        ))
        second = await catalog_service.create_book(new_book(
            "Dune Messiah", authors=[NamedRefInput(name="frank herbert")]
        ))

        assert first.authors[0].name == "Frank Herbert"
        assert second.authors[0].id == first.authors[0].id
        assert first.genres[0].name == "Science Fiction"

    @pytest.mark.asyncio
    async def test_create_deduplicates_authors(self, catalog_service):
        record = await catalog_service.create_book(new_book(
            authors=[NamedRefInput(name="Ursula K. Le Guin"), NamedRefInput(name="ursula k. le guin")]
        ))
        assert len(record.authors) == 1

    @pytest.mark.asyncio
    async def test_create_with_unknown_author_id(self, catalog_service):
        with pytest.raises(NotFound):
            await catalog_service.create_book(new_book(authors=[NamedRefInput(id="no-such-author")]))

    @pytest.mark.asyncio
    async def test_create_with_empty_author_ref(self, catalog_service):
        with pytest.raises(InvalidArgument):
            await catalog_service.create_book(new_book(authors=[NamedRefInput()]))

    @pytest.mark.asyncio
    async def test_duplicate_isbn_rejected(self, catalog_service):
        await catalog_service.create_book(new_book(isbn="978-0441013593"))

        with pytest.raises(DuplicateResource):
            await catalog_service.create_book(new_book("Other", isbn="978-0441013593"))

    @pytest.mark.asyncio
    async def test_get_unknown_book(self, catalog_service):
        with pytest.raises(NotFound):
            await catalog_service.get_book("missing")

    @pytest.mark.asyncio
    async def test_get_counts_views_without_bumping_version(self, catalog_service, db_manager):
        record = await catalog_service.create_book(new_book())

        await catalog_service.get_book(record.id)
        await catalog_service.get_book(record.id)
        await catalog_service.get_book(record.id, count_view=False)

        stored = await db_manager.get_book(record.id)
        assert stored.view_count == 2
        assert stored.version == 0


class TestUpdate:
    """Test cases for versioned catalog updates."""

    @pytest.mark.asyncio
    async def test_update_descriptive_fields(self, catalog_service):
        record = await catalog_service.create_book(new_book(quantity_in_stock=7))

        updated = await catalog_service.update_book(
            record.id, update_for(record, title="Dune (Deluxe)", price=Decimal("29.99"))
        )

        assert updated.title == "Dune (Deluxe)"
        assert updated.price == Decimal("29.99")
        assert updated.version == 1
        assert updated.quantity_in_stock == 7

    @pytest.mark.asyncio
    async def test_update_keeps_authors_when_omitted(self, catalog_service):
        record = await catalog_service.create_book(new_book(authors=[NamedRefInput(name="Frank Herbert")]))

        updated = await catalog_service.update_book(record.id, update_for(record, title="Renamed"))

        assert [author.name for author in updated.authors] == ["Frank Herbert"]

    @pytest.mark.asyncio
    async def test_update_with_stale_version(self, catalog_service):
        record = await catalog_service.create_book(new_book())
        await catalog_service.update_book(record.id, update_for(record, title="First"))

        with pytest.raises(ConcurrencyConflict):
            await catalog_service.update_book(record.id, update_for(record, title="Second"))

        stored = await catalog_service.get_book(record.id, count_view=False)
        assert stored.title == "First"

    @pytest.mark.asyncio
    async def test_update_id_mismatch(self, catalog_service):
        record = await catalog_service.create_book(new_book())

        with pytest.raises(IdMismatch):
            await catalog_service.update_book(record.id, update_for(record, id="other-id"))

    @pytest.mark.asyncio
    async def test_update_unknown_book(self, catalog_service):
        with pytest.raises(NotFound):
            await catalog_service.update_book(
                "missing", BookUpdate(title="Ghost", price=Decimal("1.00"), version=0)
            )

    @pytest.mark.asyncio
    async def test_update_to_taken_isbn(self, catalog_service):
        await catalog_service.create_book(new_book("Taken", isbn="111"))
        record = await catalog_service.create_book(new_book("Mine", isbn="222"))

        with pytest.raises(DuplicateResource):
            await catalog_service.update_book(record.id, update_for(record, isbn="111"))

    @pytest.mark.asyncio
    async def test_update_keeping_own_isbn(self, catalog_service):
        record = await catalog_service.create_book(new_book(isbn="333"))

        updated = await catalog_service.update_book(record.id, update_for(record, title="Still Mine"))
        assert updated.isbn == "333"

    @pytest.mark.asyncio
    async def test_concurrent_updates_one_wins_whole(self, catalog_service):
        """Two updates from version 0: exactly one commits, in full."""
        record = await catalog_service.create_book(new_book())
        first = update_for(record, title="Edition A", price=Decimal("20.00"))
        second = update_for(record, title="Edition B", price=Decimal("30.00"))

        results = await asyncio.gather(
            catalog_service.update_book(record.id, first),
            catalog_service.update_book(record.id, second),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConcurrencyConflict)]
        assert len(conflicts) == 1

        stored = await catalog_service.get_book(record.id, count_view=False)
        assert (stored.title, stored.price) in [
            ("Edition A", Decimal("20.00")),
            ("Edition B", Decimal("30.00")),
        ]
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_update_does_not_lose_stock_changes(self, catalog_service, db_manager):
        """An update based on a version older than a stock change is refused."""
        record = await catalog_service.create_book(new_book(quantity_in_stock=10))
        await InventoryService(db_manager).reserve_inventory(record.id, 4)

        with pytest.raises(ConcurrencyConflict):
            await catalog_service.update_book(record.id, update_for(record, title="Stale"))

        stored = await db_manager.get_book(record.id)
        assert stored.reserved_quantity == 4
        assert stored.title == "Dune"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_version", [0, 1])
    async def test_reservation_between_read_and_commit_survives(
        self, catalog_service, db_manager, monkeypatch, client_version
    ):
        """A reservation committed after the update's read is never overwritten."""
        record = await catalog_service.create_book(new_book(quantity_in_stock=10))
        inventory = InventoryService(db_manager)
        original_get_book = db_manager.get_book
        interfered = []

        async def get_book_then_reserve(book_id):
            snapshot = await original_get_book(book_id)
            if not interfered:
                interfered.append(True)
                await inventory.reserve_inventory(book_id, 4)
            return snapshot

        monkeypatch.setattr(db_manager, "get_book", get_book_then_reserve)

        with pytest.raises(ConcurrencyConflict):
            await catalog_service.update_book(
                record.id, update_for(record, title="Renamed", version=client_version)
            )

        stored = await original_get_book(record.id)
        assert stored.reserved_quantity == 4
        assert stored.title == "Dune"
        assert stored.version == 1


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_book(self, catalog_service):
        record = await catalog_service.create_book(new_book())

        await catalog_service.delete_book(record.id)

        with pytest.raises(NotFound):
            await catalog_service.get_book(record.id)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, catalog_service):
        await catalog_service.delete_book("missing")


class TestSearch:
    """Test cases for search and pagination."""

    @pytest.fixture
    async def library(self, catalog_service):
        books = [
            new_book("Dune", "19.99", published_year=1965,
                     authors=[NamedRefInput(name="Frank Herbert")], genres=[NamedRefInput(name="Science Fiction")]),
            new_book("Children of Dune", "14.50", published_year=1976,
                     authors=[NamedRefInput(name="Frank Herbert")], genres=[NamedRefInput(name="Science Fiction")]),
            new_book("Emma", "9.99", published_year=1815,
                     authors=[NamedRefInput(name="Jane Austen")], genres=[NamedRefInput(name="Romance")]),
            new_book("Persuasion", "11.00", published_year=1817,
                     authors=[NamedRefInput(name="Jane Austen")], genres=[NamedRefInput(name="Romance")]),
        ]
        return [await catalog_service.create_book(book) for book in books]

    @pytest.mark.asyncio
    async def test_search_by_title_fragment(self, catalog_service, library):
        books, meta = await catalog_service.search_books(title="dune")

        assert [book.title for book in books] == ["Children of Dune", "Dune"]
        assert meta.total == 2

    @pytest.mark.asyncio
    async def test_search_by_author_and_genre(self, catalog_service, library):
        books, _ = await catalog_service.search_books(author="austen", genre="rom")
        assert [book.title for book in books] == ["Emma", "Persuasion"]

    @pytest.mark.asyncio
    async def test_search_escapes_regex(self, catalog_service, library):
        books, meta = await catalog_service.search_books(title=".*")
        assert books == []
        assert meta.total == 0

    @pytest.mark.asyncio
    async def test_sort_by_price_desc(self, catalog_service, library):
        books, _ = await catalog_service.search_books(sort="price,desc")
        assert [book.title for book in books] == ["Dune", "Children of Dune", "Persuasion", "Emma"]

    @pytest.mark.asyncio
    async def test_sort_by_published_year(self, catalog_service, library):
        books, _ = await catalog_service.search_books(sort="publishedYear,asc")
        assert [book.published_year for book in books] == [1815, 1817, 1965, 1976]

    @pytest.mark.asyncio
    async def test_pagination(self, catalog_service, library):
        books, meta = await catalog_service.search_books(page=1, size=3)

        assert [book.title for book in books] == ["Persuasion"]
        assert meta.page == 1
        assert meta.size == 3
        assert meta.total == 4
        assert meta.total_pages == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,size", [(-1, 20), (0, 0), (0, 101)])
    async def test_invalid_paging(self, catalog_service, page, size):
        with pytest.raises(InvalidArgument):
            await catalog_service.search_books(page=page, size=size)

    @pytest.mark.asyncio
    async def test_invalid_sort(self, catalog_service):
        with pytest.raises(InvalidSortParameter):
            await catalog_service.search_books(sort="isbn,asc")
