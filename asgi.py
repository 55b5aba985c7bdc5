"""
ASGI entry point for the verification backend.

Run with:
    uvicorn asgi:app --reload
"""

from app import create_app

app = create_app()
