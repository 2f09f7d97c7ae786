"""
FastAPI RESTful API for the Library Management System.

This package provides a REST API for:
- Author, book and book copy catalogue management
- Borrowing and returning book copies
- API key-based authentication with admin and user roles
"""
