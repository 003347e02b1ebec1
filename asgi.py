"""
asgi.py -- ASGI entry point for CampReview.

Run with:  uvicorn asgi:app --reload

HTML views are rendered by a separate front end; this process only serves
the JSON API from api/main.py.
"""

from api.main import app

__all__ = ["app"]
