"""Listing helpers for the design store routes.

Route handlers list records newest-first, attach each record's public
``image_url`` and return one page at a time.  Unlike a self-healing gallery,
records whose image file has gone missing are *kept*: they are listed with
``image_url`` set to ``None`` so the client simply skips the thumbnail.
"""

from __future__ import annotations

from merchstudio.core.asset_store import AssetStore
from merchstudio.core.library import with_image_url
from merchstudio.core.record_store import newest_first

MAX_PER_PAGE = 200


def present_records(records: list[dict], assets: AssetStore) -> list[dict]:
    """Return *records* newest-first, each with ``image_url`` attached.

    Args:
        records: Records in file (chronological) order.
        assets: Asset store used to resolve image URLs.
    """
    return [with_image_url(record, assets) for record in newest_first(records)]


def filter_published(entries: list[dict], published: bool | None) -> list[dict]:
    """Keep only entries whose ``published`` flag equals *published*.

    ``None`` disables the filter.
    """
    if published is None:
        return entries
    return [entry for entry in entries if bool(entry.get("published")) is published]


def paginate(entries: list[dict], page: int, per_page: int, key: str = "designs") -> dict:
    """Paginate entries and clamp the requested page to valid bounds.

    Args:
        entries: Entries in display order.
        page: Requested one-based page number.
        per_page: Requested items per page (clamped to 1..``MAX_PER_PAGE``).
        key: Name of the list in the returned dictionary.

    Returns:
        Dictionary containing ``total``, ``page``, ``per_page``, ``pages`` and
        the entries of the resolved page under *key*.
    """
    per_page = min(max(per_page, 1), MAX_PER_PAGE)
    total = len(entries)
    pages = (total + per_page - 1) // per_page if total > 0 else 1
    resolved_page = min(max(page, 1), pages)

    start = (resolved_page - 1) * per_page
    end = start + per_page

    return {
        "total": total,
        "page": resolved_page,
        "per_page": per_page,
        "pages": pages,
        key: entries[start:end],
    }
