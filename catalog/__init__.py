"""
Book catalog package: book records, MongoDB persistence and catalog CRUD.
"""
