"""User registration form service backed by a flat JSON store."""

from __future__ import annotations

from typing import Any

from .store import UserStore, resolve_store_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the registration web application."""

    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "UserStore",
    "resolve_store_path",
    "create_app",
]
