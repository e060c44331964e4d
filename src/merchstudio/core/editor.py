"""Prompt-driven editing of an existing design.

The admin picks a stored design and describes a change ("make the cat
blue").  The Gemini model receives the prompt together with the current
base image and returns a new image, which becomes the next base.  Every
design keeps its own version history in
``<data_dir>/edit_designs/<design_id>/db.json``::

    {
        "versions": [...],          # newest first
        "current_base": "edit_20250101_120000_a1b2c3.png",
        "original": "orig_20250101_115900_d4e5f6.png"
    }

Each version is ``{id, timestamp, type, file, prompt, base}`` where ``type``
is ``original`` or ``edit`` and ``base`` is the file the edit started from.
On first access the design's image is copied into the history as the
``original`` version, so edits never touch the stored design itself.

Undo follows ``base`` one step back from the current version; rollback
makes any recorded version the current base.  Image files live in the
shared asset directory and are served like every other design.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from merchstudio.core.asset_store import AssetStore, sniff_mime
from merchstudio.core.aspect_ratios import resolve_aspect_ratio
from merchstudio.core.config import StudioConfig
from merchstudio.core.exceptions import DesignValidationError, NotFoundError
from merchstudio.core.json_store import JsonFile
from merchstudio.core.providers import ReferenceImage, create_provider
from merchstudio.core.record_store import DesignRecordStore, new_design_id, timestamp
from merchstudio.core.settings_store import SettingsStore

logger = logging.getLogger(__name__)

EDIT_PROVIDER = "gemini"
ORIGINAL = "original"
EDIT = "edit"


def _empty_history() -> dict:
    return {"versions": [], "current_base": None, "original": None}


class DesignEditor:
    """Edit stored designs and keep their version history.

    Args:
        studio_config: Process settings.
        records: Design record store used to find the design.
        assets: Image file store for originals and edits.
        settings: ``config.json`` access; re-read on every edit.
        client: Optional HTTP client passed to the provider.
    """

    def __init__(
        self,
        studio_config: StudioConfig,
        records: DesignRecordStore,
        assets: AssetStore,
        settings: SettingsStore,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = studio_config
        self.records = records
        self.assets = assets
        self.settings = settings
        self.client = client

    def _history_file(self, design_id: str) -> JsonFile:
        if not design_id or design_id in (".", "..") or Path(design_id).name != design_id:
            raise NotFoundError(f"Design not found: {design_id}")
        return JsonFile(self.config.edits_dir / design_id / "db.json", default=dict)

    def _design(self, design_id: str) -> dict:
        found = self.records.find(design_id)
        if found is None:
            raise NotFoundError(f"Design not found: {design_id}")
        return found[1]

    def _open(self, design_id: str) -> tuple[JsonFile, dict]:
        """Return the history file and its document, creating the original version."""
        history_file = self._history_file(design_id)
        design = self._design(design_id)

        def bootstrap(history: dict) -> dict:
            for key, value in _empty_history().items():
                history.setdefault(key, value)
            if history["versions"]:
                return history
            source = design.get("file") or ""
            if not self.assets.exists(source):
                raise NotFoundError("Design image file is missing.")
            data = self.assets.read(source)
            copy = self.assets.save(data, sniff_mime(data) or "image/png", "orig")
            history["versions"] = [
                {
                    "id": new_design_id("ver"),
                    "timestamp": timestamp(),
                    "type": ORIGINAL,
                    "file": copy,
                    "prompt": None,
                    "base": None,
                }
            ]
            history["original"] = copy
            history["current_base"] = copy
            logger.info(f"Started edit history for {design_id} from {source}")
            return history

        return history_file, history_file.update(bootstrap)

    def _present(self, history: dict) -> dict:
        versions = []
        for version in history.get("versions", []):
            item = dict(version)
            filename = item.get("file") or ""
            exists = self.assets.exists(filename)
            item["image_url"] = self.assets.image_url(filename) if exists else None
            versions.append(item)
        current = history.get("current_base")
        return {
            "versions": versions,
            "current_base": current,
            "current_url": self.assets.image_url(current) if current else None,
            "original": history.get("original"),
        }

    def history(self, design_id: str) -> dict:
        """Return the version history of *design_id*, newest first.

        Raises:
            NotFoundError: If the design or its image file does not exist.
        """
        _, history = self._open(design_id)
        return self._present(history)

    def edit(self, design_id: str, prompt: str) -> dict:
        """Apply *prompt* to the current base image and record the result.

        Returns:
            ``{"version": <new version>, **history}``.

        Raises:
            DesignValidationError: Blank prompt or missing base image.
            NotFoundError: Unknown design.
            ConfigurationError: No Gemini API key.
            ProviderError: The provider call failed.
            StorageError: The image or history could not be written.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise DesignValidationError("Enter a prompt.")
        history_file, history = self._open(design_id)
        base = history.get("current_base")
        if not base or not self.assets.exists(base):
            raise DesignValidationError("Missing base image.")

        provider = create_provider(
            EDIT_PROVIDER, self.settings.load(), self.config, client=self.client
        )
        provider.check_configured()
        data = self.assets.read(base)
        aspect = resolve_aspect_ratio(str(self._design(design_id).get("aspect") or ""))
        logger.info(f"Editing {design_id} from {base} via {provider.name}")
        result = provider.generate(
            prompt,
            size=aspect.size,
            reference=ReferenceImage(data=data, mime_type=sniff_mime(data) or "image/png"),
        )

        filename = self.assets.save(result.data, result.mime_type, EDIT)
        version = {
            "id": new_design_id("ver"),
            "timestamp": timestamp(),
            "type": EDIT,
            "file": filename,
            "prompt": prompt,
            "base": base,
        }

        def push(current: dict) -> None:
            current.setdefault("versions", []).insert(0, version)
            current["current_base"] = filename

        updated = history_file.update(push)
        logger.info(f"Stored edit {version['id']} of {design_id} as {filename}")
        presented = self._present(updated)
        presented["version"] = presented["versions"][0]
        return presented

    def undo(self, design_id: str) -> dict:
        """Make the base of the current version the current base again.

        Raises:
            DesignValidationError: Nothing to undo, or already at the original.
        """
        history_file, _ = self._open(design_id)

        def step_back(history: dict) -> None:
            current = history.get("current_base")
            if not current:
                raise DesignValidationError("Nothing to undo.")
            previous = next(
                (v.get("base") for v in history["versions"] if v.get("file") == current), None
            )
            if not previous or not self.assets.exists(previous):
                raise DesignValidationError("Already at original.")
            history["current_base"] = previous

        updated = history_file.update(step_back)
        logger.info(f"Undo on {design_id}, base is now {updated['current_base']}")
        return self._present(updated)

    def rollback(self, design_id: str, version_id: str) -> dict:
        """Make the file of *version_id* the current base.

        Raises:
            DesignValidationError: Unknown version or missing file.
        """
        history_file, _ = self._open(design_id)

        def select(history: dict) -> None:
            chosen = next((v for v in history["versions"] if v.get("id") == version_id), None)
            if chosen is None or not self.assets.exists(chosen.get("file")):
                raise DesignValidationError("Invalid version.")
            history["current_base"] = chosen["file"]

        updated = history_file.update(select)
        logger.info(f"Rolled {design_id} back to {version_id}")
        return self._present(updated)
