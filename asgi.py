"""
asgi.py -- ASGI entry point for Readivine.

Kept separate from api/main.py so process managers point at one stable
import path regardless of how the api/ package is organised.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8080   (production)
"""

from api.main import app

__all__ = ["app"]
