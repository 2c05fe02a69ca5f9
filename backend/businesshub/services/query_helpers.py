# Overview: Shared list helpers (filters, search, pagination) used by the list services.

from __future__ import annotations

from sqlalchemy import or_

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def is_filter_value(value) -> bool:
    """
    True when a query-string value should narrow a list.

    Empty values and dashboard placeholders such as "All Categories" or
    "all" are ignored.
    """
    if value is None:
        return False
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() == "all" or stripped.lower().startswith("all "):
            return False
    return True


def apply_equals_filter(query, column, value):
    if is_filter_value(value):
        query = query.filter(column == value)
    return query


def apply_search(query, columns, term: str | None):
    """Case-insensitive substring match over any of the given columns."""
    if term is None or not term.strip():
        return query
    pattern = f"%{term.strip()}%"
    return query.filter(or_(*[col.ilike(pattern) for col in columns]))


def parse_id_list(raw: str | None) -> list[int]:
    """"1, 2,3" -> [1, 2, 3]; non-numeric parts are skipped."""
    if not raw:
        return []
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


def paginate(query, *, page: int | None, per_page: int | None, serialize) -> dict:
    """
    Run a list query with optional pagination.

    page=None returns all rows. Otherwise per_page defaults to 20 (max 100).
    """
    if page is None:
        rows = query.all()
        return {
            "items": [serialize(r) for r in rows],
            "count": len(rows),
        }

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
