"""
FastAPI RESTful API for the Book Review system.

This package provides:
- Book catalog browsing, filtering and search
- Per-user book reviews
- Average rating and review count maintained on every book
- JWT bearer authentication
"""
