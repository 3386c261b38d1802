"""Starter web application with credential registration and sign-in."""

from __future__ import annotations

__version__ = "0.1.0"


def create_app(**kwargs):
    """Build the combined pages + JSON API application without importing FastAPI eagerly."""

    from .service import create_app as _create_app

    return _create_app(**kwargs)


__all__ = ["__version__", "create_app"]
