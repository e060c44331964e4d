"""Per-tool design record persistence.

Each design tool keeps its records in one JSON array file in the data
directory, named ``<store_id>_designs.json`` (``tshirt_designs.json``,
``logo_designs.json``, ...).  The array is the whole store: records are
appended in creation order and never reordered or deleted here.  Listing
returns file order; callers that display newest-first reverse it with
:func:`newest_first`.

Appends go through :class:`~merchstudio.core.json_store.JsonFile`, so
concurrent appends to the same store are serialised and none is lost.

Record Shape
------------
Every record carries ``id``, ``file``, ``bg_color``, ``created_at``,
``published``, ``source`` and ``tool``, plus the tool's own text fields
(``display_text``, ``graphic``, ``title``, ...).  Unknown keys found in
existing files are kept untouched.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from merchstudio.core.exceptions import NotFoundError
from merchstudio.core.json_store import JsonFile
from merchstudio.core.tools import STORE_IDS

logger = logging.getLogger(__name__)


class DesignRecord(BaseModel):
    """One generated or uploaded design."""

    model_config = ConfigDict(extra="allow")

    id: str
    file: str = ""
    bg_color: str = ""
    created_at: str = ""
    published: bool = False
    source: str = ""
    tool: str = ""


def new_design_id(prefix: str) -> str:
    """Return a new record id: ``{prefix}_{hex timestamp}.{8 random digits}``.

    The timestamp has microsecond resolution and the random suffix separates
    ids created within the same microsecond.
    """
    now = time.time()
    seconds = int(now)
    micros = int((now - seconds) * 1_000_000)
    return f"{prefix}_{seconds:08x}{micros:05x}.{secrets.randbelow(10**8):08d}"


def timestamp() -> str:
    """Return the current local time as ISO-8601 with offset, to the second."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def newest_first(records: Sequence[dict]) -> list[dict]:
    """Reverse chronological records for display."""
    return list(reversed(records))


class DesignRecordStore:
    """Access to every ``<store_id>_designs.json`` file.

    Args:
        data_dir: Directory holding the store files.
        store_ids: Known store ids.  Any other id is rejected.
    """

    def __init__(self, data_dir: Path, store_ids: Iterable[str] = STORE_IDS) -> None:
        self.data_dir = Path(data_dir)
        self.store_ids = tuple(store_ids)
        self._files: dict[str, JsonFile] = {}

    def path_for(self, store_id: str) -> Path:
        return self.data_dir / f"{store_id}_designs.json"

    def _file(self, store_id: str) -> JsonFile:
        if store_id not in self.store_ids:
            raise NotFoundError(f"Unknown design store: {store_id}")
        json_file = self._files.get(store_id)
        if json_file is None:
            json_file = JsonFile(self.path_for(store_id), default=list)
            self._files[store_id] = json_file
        return json_file

    def append(self, store_id: str, record: DesignRecord | dict) -> dict:
        """Append *record* to the store and return it as written.

        Raises:
            NotFoundError: If *store_id* is unknown.
            StorageError: If the store file cannot be written.
        """
        if isinstance(record, DesignRecord):
            data = record.model_dump()
        else:
            data = DesignRecord.model_validate(record).model_dump()

        def push(records: list) -> None:
            records.append(data)

        self._file(store_id).update(push)
        logger.debug(f"Appended {data['id']} to {store_id} store")
        return data

    def list(self, store_id: str) -> list[dict]:
        """Return every record of *store_id* in file (chronological) order."""
        return [r for r in self._file(store_id).read() if isinstance(r, dict)]

    def get(self, store_id: str, design_id: str) -> dict:
        """Return one record.

        Raises:
            NotFoundError: If the store or the record does not exist.
        """
        for record in self.list(store_id):
            if record.get("id") == design_id:
                return record
        raise NotFoundError(f"Design not found: {design_id}")

    def find(self, design_id: str) -> tuple[str, dict] | None:
        """Locate *design_id* in any store; returns ``(store_id, record)``."""
        if not design_id:
            return None
        for store_id in self.store_ids:
            for record in self.list(store_id):
                if record.get("id") == design_id:
                    return store_id, record
        return None

    def set_published(self, store_id: str, published_ids: Iterable[str]) -> int:
        """Set ``published`` on every record of *store_id*.

        A record is published exactly when its id is in *published_ids*.

        Returns:
            The number of records whose flag changed.
        """
        wanted = set(published_ids)
        changed = 0

        def apply(records: list) -> None:
            nonlocal changed
            for record in records:
                if not isinstance(record, dict):
                    continue
                flag = record.get("id") in wanted
                if bool(record.get("published")) != flag:
                    changed += 1
                record["published"] = flag

        self._file(store_id).update(apply)
        logger.info(f"Publish update on {store_id}: {changed} record(s) changed")
        return changed
