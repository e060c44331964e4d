"""Template-driven prompt compilation for every design tool.

Each tool declares one prompt template in its :class:`ToolDescriptor`.  This
module fills the template from structured form fields: the aspect ratio
description from the shared table, the background colour, and the tool's own
text fields.  Values are inserted verbatim; no escaping is applied.

Optional fields with a fragment expand to an empty string when blank, so a
logo without a style never produces ``Style: .`` in the output.

Usage
-----
::

    prompt = build_prompt(
        "flyer",
        {
            "display_text": "Summer Fest",
            "details": "June 21, Riverside Park",
            "graphic": "sunflowers and guitars",
            "bg_color": "#ffcc00",
            "aspect_ratio": "portrait",
        },
    )
"""

from __future__ import annotations

from collections.abc import Mapping

from merchstudio.core.aspect_ratios import ASPECT_RATIOS, AspectRatio, resolve_aspect_ratio
from merchstudio.core.tools import ToolDescriptor, get_tool

__all__ = ["ASPECT_RATIOS", "AspectRatio", "build_prompt", "render_template", "resolve_aspect_ratio"]

TRANSPARENT_LINE = "Transparent background suitable for print or digital use."


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def background_line(bg_color: str, transparent: bool) -> str:
    """Return the sentence describing the background."""
    if transparent:
        return TRANSPARENT_LINE
    return f"Use a solid {bg_color} background."


def render_template(descriptor: ToolDescriptor, fields: Mapping[str, object]) -> str:
    """Fill *descriptor*'s template from *fields*.

    Args:
        descriptor: The tool whose template is used.
        fields: Values keyed by record key, plus the optional ``bg_color``,
            ``aspect_ratio`` and ``transparent`` entries.

    Returns:
        The compiled prompt.
    """
    aspect = resolve_aspect_ratio(_text(fields.get("aspect_ratio")), descriptor.default_aspect)
    bg_color = _text(fields.get("bg_color")) or descriptor.default_bg
    transparent = bool(fields.get("transparent"))

    context: dict[str, str] = {
        "ratio": aspect.description,
        "bg_color": bg_color,
        "background_line": background_line(bg_color, transparent),
    }

    for tool_field in descriptor.fields:
        value = tool_field.normalize(_text(fields.get(tool_field.key)) or tool_field.default)
        context[tool_field.key] = value
        if tool_field.fragment is not None:
            context[f"{tool_field.key}_part"] = (
                tool_field.fragment.format(value=value) if value else ""
            )
        if tool_field.choices is not None:
            context[f"{tool_field.key}_label"] = tool_field.choices.get(
                value, tool_field.fallback_label
            )

    return descriptor.template.format_map(context)


def build_prompt(design_type: str, fields: Mapping[str, object]) -> str:
    """Compile the prompt for *design_type* from *fields*.

    Args:
        design_type: A registered tool id such as ``"flyer"``.
        fields: Values keyed by record key (see :func:`render_template`).

    Returns:
        The compiled prompt string.

    Raises:
        NotFoundError: If *design_type* is not a registered tool.
    """
    return render_template(get_tool(design_type), fields)
