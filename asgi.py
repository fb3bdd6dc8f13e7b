"""
asgi.py -- ASGI entry point for LMS Auth.

Builds the app from environment configuration at import time, so a missing
or short SECRET_KEY stops the server before it accepts a single request.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
