"""HTTP and WebSocket surface for the lecturer claims workflow."""

from .app import create_app

__all__ = ["create_app"]
