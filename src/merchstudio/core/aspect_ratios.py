"""Aspect ratio presets shared by every design tool.

Each creator form offers the same three-way choice.  The choice drives two
things: the human-readable ratio text interpolated into the prompt, and the
pixel size string sent to the OpenAI image endpoint.  Keeping both in one
table guarantees every tool maps a choice to the same pair.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AspectRatio:
    """One aspect ratio preset.

    Attributes:
        key: Form value (``portrait``, ``landscape`` or ``square``).
        ratio: Short ratio label, e.g. ``"2:3"``.
        size: Provider pixel size string, e.g. ``"1024x1536"``.
        description: Prompt text, e.g. ``"portrait 2:3"``.
    """

    key: str
    ratio: str
    size: str

    @property
    def description(self) -> str:
        return f"{self.key} {self.ratio}"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "ratio": self.ratio,
            "size": self.size,
            "description": self.description,
        }


ASPECT_RATIOS: dict[str, AspectRatio] = {
    "portrait": AspectRatio("portrait", "2:3", "1024x1536"),
    "landscape": AspectRatio("landscape", "3:2", "1536x1024"),
    "square": AspectRatio("square", "1:1", "1024x1024"),
}

FALLBACK_ASPECT = "portrait"


def resolve_aspect_ratio(value: str | None, default: str = FALLBACK_ASPECT) -> AspectRatio:
    """Map a submitted aspect ratio value to its preset.

    Args:
        value: The submitted form value.  ``None`` or blank means the field
            was not submitted and *default* applies.
        default: The tool's default ratio key.

    Returns:
        The matching :class:`AspectRatio`.  Unrecognised values resolve to
        the portrait preset.
    """
    key = (value or "").strip().lower() or default
    return ASPECT_RATIOS.get(key, ASPECT_RATIOS[FALLBACK_ASPECT])
