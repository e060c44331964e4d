"""Runtime API settings stored in ``config.json``.

API keys and model names are edited by the admin from the Config page while
the server is running, so they cannot live in :class:`StudioConfig` (which is
read once from the environment).  Instead they are kept in ``config.json``
inside the data directory and re-read on every request, which makes a saved
key effective for the very next generation.

Keys the admin form does not know about are preserved on write.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, ValidationError

from merchstudio.core.config import StudioConfig
from merchstudio.core.json_store import JsonFile

logger = logging.getLogger(__name__)

MASK = "****"
SECRET_FIELDS = ("openai_api_key", "gemini_api_key", "vector_api_key")


class ApiSettings(BaseModel):
    """Credentials and model names for the external providers."""

    model_config = ConfigDict(extra="allow")

    openai_api_key: str = ""
    openai_model: str = "gpt-image-1"
    openai_chat_model: str = "gpt-4o"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash-image"
    vector_api_key: str = ""

    def masked(self) -> dict:
        """Return the settings with secrets reduced to their last four characters."""
        data = self.model_dump()
        for name in SECRET_FIELDS:
            value = data.get(name) or ""
            data[name] = f"{MASK}{value[-4:]}" if value else ""
            data[f"{name}_set"] = bool(value)
        return data


class SettingsStore:
    """Read and update ``config.json``."""

    def __init__(self, studio_config: StudioConfig) -> None:
        self._file = JsonFile(studio_config.settings_file, default=dict)

    def load(self) -> ApiSettings:
        """Return the current settings, falling back to defaults per key."""
        raw = self._file.read()
        # Blank model names fall back to the defaults.
        cleaned = {k: v for k, v in raw.items() if not (k.endswith("_model") and not v)}
        try:
            return ApiSettings(**cleaned)
        except ValidationError as exc:
            logger.warning(f"Ignoring invalid config.json: {exc}")
            return ApiSettings()

    def update(self, values: Mapping[str, object]) -> ApiSettings:
        """Merge *values* into ``config.json`` and return the new settings.

        Only the known setting fields present in *values* are taken; each is
        trimmed before it is stored.  A secret submitted in its masked form
        (as returned by :meth:`ApiSettings.masked`) leaves the stored key as
        it is.
        """
        changes = {}
        for name in ApiSettings.model_fields:
            if name not in values or values[name] is None:
                continue
            value = str(values[name]).strip()
            if name in SECRET_FIELDS and value.startswith(MASK):
                continue
            changes[name] = value

        def merge(current: dict) -> None:
            current.update(changes)

        self._file.update(merge)
        logger.info(f"Updated settings: {', '.join(sorted(changes)) or 'nothing'}")
        return self.load()
