"""
API routers, one per resource.
"""

from library_api.routes.authors import router as authors_router
from library_api.routes.book_copies import router as book_copies_router
from library_api.routes.books import router as books_router

routers = [authors_router, books_router, book_copies_router]
