"""FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache

from services.runtime import ContinuityServices, build_services


@lru_cache(maxsize=1)
def get_services() -> ContinuityServices:
    """Services bound to the configured state database, built once per process."""
    return build_services()
