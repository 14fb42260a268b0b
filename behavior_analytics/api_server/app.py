"""
FastAPI/ASGI application entrypoint.

Builds the engine from env settings and exposes the app.
Run with any ASGI server, e.g.: uvicorn behavior_analytics.api_server.app:app --port 8000
"""

from behavior_analytics.api_server.server import create_app

app = create_app()

__all__ = ["app"]
