"""HTTP trigger surface for the newsletter schedule engine."""

from .app import create_app

__all__ = ["create_app"]
