"""Offset pagination shared by the listing endpoints."""

from __future__ import annotations

from whbjj.config import get_settings


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Apply the default page size, cap ``limit`` and floor ``offset`` at zero."""
    settings = get_settings()
    if limit is None or limit <= 0:
        limit = settings.default_page_size
    return min(limit, settings.max_page_size), max(offset or 0, 0)
