"""T-shirt idea generator backed by the OpenAI chat model.

The admin enters an optional theme; the chat model answers with a JSON
object holding a slogan, an illustration idea, a background colour and two
or three design colours.  Valid ideas are appended to ``tshirt_ideas.json``
and can be fed into the T-shirt designer.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx

from merchstudio.core.config import StudioConfig
from merchstudio.core.exceptions import ProviderError
from merchstudio.core.json_store import JsonFile
from merchstudio.core.providers import OpenAIChatClient
from merchstudio.core.record_store import new_design_id, newest_first, timestamp
from merchstudio.core.settings_store import SettingsStore

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are an assistant that returns creative shirt ideas in JSON format as instructed."
)

IDEA_INSTRUCTION = (
    "You are a creative T-shirt idea generator. Answer with a single JSON object having "
    'exactly four keys: "text", "graphic", "bg_color" and "design_colors". '
    'The "text" field should be a short, catchy phrase that could appear on a shirt. '
    'The "graphic" field should briefly describe an illustration that complements the text. '
    'The "bg_color" field should be a hex colour code (e.g., #1A202C) representing the shirt '
    "background. "
    'The "design_colors" field should be an array of two or three hex colour codes '
    "representing the colours used in the graphic and text. "
    "Do not wrap the JSON in markdown fences or add any commentary. Just return the JSON."
)

IDEA_KEYS = ("text", "graphic", "bg_color", "design_colors")


def build_instruction(theme: str) -> str:
    if theme:
        return f"{IDEA_INSTRUCTION} Create a concept inspired by the theme: {theme}."
    return IDEA_INSTRUCTION


def parse_idea(content: str) -> dict:
    """Parse and validate the model's answer.

    Raises:
        ProviderError: If the answer is not a JSON object with every key.
    """
    try:
        idea = json.loads(content)
    except (TypeError, ValueError):
        idea = None
    if not isinstance(idea, dict) or any(key not in idea for key in IDEA_KEYS):
        logger.warning(f"Chat model returned an invalid idea: {content!r}")
        raise ProviderError(
            "The AI did not return a valid JSON idea. Ensure the model instruction is followed."
        )
    colors = idea["design_colors"]
    if not isinstance(colors, list):
        colors = [colors]
    return {
        "text": str(idea["text"]).strip(),
        "graphic": str(idea["graphic"]).strip(),
        "bg_color": str(idea["bg_color"]).strip(),
        "design_colors": [str(c).strip() for c in colors],
    }


class IdeaGenerator:
    """Generate and list T-shirt ideas."""

    def __init__(
        self,
        studio_config: StudioConfig,
        settings: SettingsStore,
        path: Path | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = studio_config
        self.settings = settings
        self.client = client
        self._file = JsonFile(path or studio_config.ideas_file, default=list)

    def list(self) -> list[dict]:
        return newest_first([i for i in self._file.read() if isinstance(i, dict)])

    def generate(self, theme: str = "") -> dict:
        """Ask the chat model for an idea and store it.

        Raises:
            ConfigurationError: If the OpenAI key is missing.
            ProviderError: On request failure or an invalid answer.
        """
        theme = theme.strip()
        chat = OpenAIChatClient(self.settings.load(), self.config, client=self.client)
        content = chat.complete(
            [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": build_instruction(theme)},
            ],
            max_tokens=200,
            temperature=0.8,
        )
        idea = parse_idea(content)
        record = {
            "id": new_design_id("idea"),
            **idea,
            "theme": theme,
            "created_at": timestamp(),
        }

        def push(ideas: list) -> None:
            ideas.append(record)

        self._file.update(push)
        logger.info(f"Stored idea {record['id']} (theme={theme or '-'})")
        return record
