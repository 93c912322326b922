"""HTTP surface: service CRUD, deploy triggers and the live status stream."""

from .main import create_app

__all__ = ["create_app"]
