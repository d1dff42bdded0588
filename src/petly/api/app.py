"""ASGI application for the configured APP_ROLE."""

from .factory import create_app

app = create_app()
