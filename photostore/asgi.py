"""
ASGI entrypoint: `uvicorn photostore.asgi:app` (ou gunicorn avec workers uvicorn).
Toute la configuration FastAPI est centralisée dans photostore.app_setup.factory.
"""

from photostore.app import app

__all__ = ["app"]
