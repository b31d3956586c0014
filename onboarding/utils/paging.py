from __future__ import annotations

from flask import current_app


def _as_int(value, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def get_paging(args) -> tuple[int, int]:
    """Return ``(skip, limit)`` from query args.

    ``limit`` defaults to PAGE_DEFAULT_LIMIT and is clamped to [1, PAGE_MAX_LIMIT];
    ``skip`` defaults to 0 and is never negative.
    """
    cfg = current_app.config["CFG"]
    limit = max(1, min(_as_int(args.get("limit"), cfg.PAGE_DEFAULT_LIMIT), cfg.PAGE_MAX_LIMIT))
    skip = max(0, _as_int(args.get("skip"), 0))
    return skip, limit


def page_payload(items: list, *, total: int, skip: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "skip": skip,
        "limit": limit,
        "hasMore": skip + limit < total,
    }
