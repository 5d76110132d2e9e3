#!/usr/bin/env python3
"""
Inventory Management Utility

Command-line reports over the stock position:
- Books at or below their reorder level
- Books at or below a low-stock threshold
- Most viewed books that are in stock
"""

import asyncio
import sys
from typing import List

import structlog

from catalog.database import MongoDBManager
from catalog.exceptions import BookstoreError
from catalog.models import BookRecord
from inventory.service import InventoryService
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

USAGE = """Usage: python manage_inventory.py [restock|low-stock|popular] [number]

Commands:
  restock              - Books at or below their reorder level
  low-stock [N]        - Books with N or fewer available (default from DEFAULT_LOW_STOCK_THRESHOLD)
  popular [N]          - The N most viewed books in stock (default 10)
"""


def print_books(heading: str, books: List[BookRecord]) -> None:
    print("\n" + "=" * 80)
    print(heading)
    print("=" * 80)

    if not books:
        print("No books found")
        return

    for i, book in enumerate(books, 1):
        print(f"{i:3d}. {book.title} ({book.id})")
        print(
            f"     Stock: {book.quantity_in_stock}  Reserved: {book.reserved_quantity}  "
            f"Available: {book.available_quantity()}  Reorder level: {book.reorder_level}"
        )


async def run_command(service: InventoryService, command: str, args: List[str]) -> int:
    """
    Run one report command.

    Returns:
        Process exit code
    """
    try:
        number = int(args[0]) if args else None
    except ValueError:
        print(f"Error: expected a number, got {args[0]!r}")
        return 1

    try:
        if command == "restock":
            print_books("BOOKS NEEDING RESTOCK", await service.get_books_needing_restock())
        elif command == "low-stock":
            print_books("LOW STOCK BOOKS", await service.get_low_stock_books(number))
        elif command == "popular":
            limit = number if number is not None else 10
            print_books("POPULAR BOOKS IN STOCK", await service.get_popular_available_books(limit))
        else:
            print(f"Unknown command: {command}")
            print("Available commands: restock, low-stock, popular")
            return 1
    except BookstoreError as e:
        print(f"Error: {e}")
        return 1

    return 0


async def main() -> int:
    """Main function."""
    if len(sys.argv) < 2:
        print(USAGE)
        return 1

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    db_manager = MongoDBManager(
        config.mongodb_url,
        config.mongodb_database,
        books_collection=config.books_collection,
        authors_collection=config.authors_collection,
        genres_collection=config.genres_collection,
    )
    await db_manager.connect()
    try:
        service = InventoryService(
            db_manager, default_low_stock_threshold=config.default_low_stock_threshold
        )
        return await run_command(service, sys.argv[1].lower(), sys.argv[2:])
    finally:
        await db_manager.disconnect()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
