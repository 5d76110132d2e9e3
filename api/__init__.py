"""
FastAPI RESTful API for the Bookstore Inventory system.

This module provides a REST API for:
- Book catalog CRUD and search
- Inventory reservations, releases and adjustments
- Restock and low-stock reporting
- API key-based, role-checked access
"""
