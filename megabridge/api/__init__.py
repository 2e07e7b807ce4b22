"""HTTP interface of the bridge backend."""

from .app import create_app

__all__ = ["create_app"]
