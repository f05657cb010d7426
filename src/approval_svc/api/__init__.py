"""HTTP surface for the approval workflow."""

from .routes import configure, router

__all__ = ["configure", "router"]
