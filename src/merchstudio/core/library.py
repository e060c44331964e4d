"""Cross-store views over design records.

The media library aggregates every tool's store into one newest-first list
that can be filtered by tool and provider, and the reference picker offers
existing designs as reference images for new generations.

Records whose image file no longer exists on disk are not an error: they are
still listed, with ``image_url`` set to ``None`` so the client skips the
thumbnail.  Nothing here deletes or rewrites records.
"""

from __future__ import annotations

from datetime import datetime

from merchstudio.core.asset_store import AssetStore
from merchstudio.core.exceptions import NotFoundError
from merchstudio.core.record_store import DesignRecordStore

ALL = "all"

TITLE_KEYS = ("display_text", "name", "title", "product_name", "product", "subject")


def with_image_url(record: dict, assets: AssetStore) -> dict:
    """Return a copy of *record* with ``image_url`` (``None`` if the file is gone)."""
    item = dict(record)
    filename = item.get("file") or ""
    item["image_url"] = assets.image_url(filename) if assets.exists(filename) else None
    return item


def created_sort_key(record: dict) -> float:
    value = record.get("created_at") or ""
    try:
        return datetime.fromisoformat(str(value)).timestamp()
    except (TypeError, ValueError):
        return 0.0


def record_title(record: dict) -> str:
    """Pick a human-readable title for *record*."""
    for key in TITLE_KEYS:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return str(record.get("id", ""))


class MediaLibrary:
    """Read-only aggregation of every design store."""

    def __init__(self, records: DesignRecordStore, assets: AssetStore) -> None:
        self.records = records
        self.assets = assets

    def all_records(self) -> list[dict]:
        """Every record with a non-empty ``file``, newest first.

        Missing ``tool`` is filled with the store id; missing ``source`` with
        ``openai`` for T-shirt records and ``unknown`` otherwise.
        """
        collected: list[dict] = []
        for store_id in self.records.store_ids:
            for record in self.records.list(store_id):
                if not record.get("file"):
                    continue
                item = dict(record)
                item["tool"] = item.get("tool") or store_id
                item["source"] = item.get("source") or (
                    "openai" if item["tool"] == "tshirt" else "unknown"
                )
                collected.append(item)
        collected.sort(key=created_sort_key, reverse=True)
        return collected

    def list(self, tool: str = ALL, source: str = ALL) -> list[dict]:
        """Return filtered library items with ``image_url`` attached.

        With ``tool == "all"`` uploaded designs are hidden; select the
        ``upload`` tool explicitly to see them.
        """
        items = []
        for record in self.all_records():
            if tool == ALL and record["tool"] == "upload":
                continue
            if tool != ALL and record["tool"] != tool:
                continue
            if source != ALL and record["source"] != source:
                continue
            items.append(with_image_url(record, self.assets))
        return items

    def filter_options(self) -> dict[str, list[str]]:
        sources = sorted({r["source"] for r in self.all_records()})
        return {"tools": list(self.records.store_ids), "sources": sources}

    def reference_options(self) -> list[dict]:
        """Existing designs that can serve as a reference image."""
        options = []
        for record in self.all_records():
            options.append(
                {
                    "id": record.get("id", ""),
                    "title": record_title(record),
                    "file": record["file"],
                    "tool": record["tool"],
                    "image_url": with_image_url(record, self.assets)["image_url"],
                }
            )
        return options

    def get(self, design_id: str) -> dict:
        """Return one design from any store, with ``image_url`` and ``store``.

        Raises:
            NotFoundError: If no store holds *design_id*.
        """
        found = self.records.find(design_id)
        if found is None:
            raise NotFoundError(f"Design not found: {design_id}")
        store_id, record = found
        item = with_image_url(record, self.assets)
        item["store"] = store_id
        return item
