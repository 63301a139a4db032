# Overview: Page/limit handling shared by the listing read models.

from __future__ import annotations

import math

from flask import current_app


def page_window(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp page/limit to sane values (limit capped at MAX_PAGE_SIZE)."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, min(limit, max_limit)


def paginate(query, page: int | None, limit: int | None) -> tuple[list, dict]:
    """
    Apply offset/limit to an already-ordered query.

    Returns (rows, meta) where meta = {total, page, limit, total_pages}.
    """
    page, limit = page_window(page, limit)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    meta = {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
    return rows, meta
