"""
Inventory package: stock rules, versioned writes and restock projections.

This package contains:
- Pure reserve / release / adjust / reorder-level rules
- The optimistic-concurrency gateway every book write goes through
- Restock and low-stock queries
- The inventory service combining them
"""

__version__ = "1.0.0"
