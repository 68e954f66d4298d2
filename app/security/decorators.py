from __future__ import annotations

from collections.abc import Callable


def require_authentication() -> Callable:
    """
    Decorator-style API (alternative to a config entry).

    Implementation detail:
    - This decorator does NOT perform auth itself.
    - It attaches metadata that the global security dependency reads
      *after* routing (during dependency resolution).
    """

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_auth_required__", True)
        return fn

    return decorator

