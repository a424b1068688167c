"""API package for the relay."""

from relay.api.app import app, create_app
from relay.api.streaming_routes import router

__all__ = ["app", "create_app", "router"]
