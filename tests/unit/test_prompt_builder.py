"""Tests for merchstudio.core.prompt_builder and the aspect ratio table.

Tests cover:
- The shared aspect ratio table and its portrait fallback.
- Exact prompt output for representative tools.
- Optional fragments collapsing when blank.
- Choice labels and the transparent background line.
- Verbatim insertion of field values.
"""

from __future__ import annotations

import pytest

from merchstudio.core.aspect_ratios import ASPECT_RATIOS, resolve_aspect_ratio
from merchstudio.core.exceptions import NotFoundError
from merchstudio.core.prompt_builder import build_prompt
from merchstudio.core.tools import TOOLS

# ---------------------------------------------------------------------------
# Aspect ratios.
# ---------------------------------------------------------------------------


class TestAspectRatios:
    """Test the table-driven aspect ratio mapping."""

    @pytest.mark.parametrize(
        ("key", "ratio", "size"),
        [
            ("portrait", "2:3", "1024x1536"),
            ("landscape", "3:2", "1536x1024"),
            ("square", "1:1", "1024x1024"),
        ],
    )
    def test_known_values(self, key, ratio, size):
        aspect = resolve_aspect_ratio(key)
        assert (aspect.ratio, aspect.size) == (ratio, size)
        assert aspect.description == f"{key} {ratio}"

    def test_unrecognised_value_falls_back_to_portrait(self):
        aspect = resolve_aspect_ratio("panorama", default="square")
        assert aspect == ASPECT_RATIOS["portrait"]

    def test_blank_value_uses_tool_default(self):
        assert resolve_aspect_ratio("", default="landscape").key == "landscape"
        assert resolve_aspect_ratio(None, default="square").key == "square"

    def test_value_is_case_insensitive(self):
        assert resolve_aspect_ratio(" Landscape ").key == "landscape"


# ---------------------------------------------------------------------------
# Prompt compilation.
# ---------------------------------------------------------------------------


class TestBuildPrompt:
    """Test build_prompt output per design type."""

    def test_flyer_prompt(self):
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
        assert prompt == (
            "Flyer design, portrait 2:3 aspect ratio. Use a solid #ffcc00 background. "
            'Event name: "Summer Fest". Details: "June 21, Riverside Park". '
            "Incorporate imagery: sunflowers and guitars. Bold, legible typography, "
            "modern layout, balanced composition."
        )

    def test_logo_without_optional_style(self):
        prompt = build_prompt(
            "logo",
            {"display_text": "Fox & Co", "graphic": "a fox", "bg_color": "#ffffff"},
        )
        assert "The logo should incorporate: a fox. Minimalistic" in prompt
        assert "Style:" not in prompt

    def test_logo_with_style_fragment(self):
        prompt = build_prompt(
            "logo",
            {"display_text": "Fox & Co", "graphic": "a fox", "logo_type": "emblem"},
        )
        assert "The logo should incorporate: a fox. Style: emblem. Minimalistic" in prompt

    def test_certificate_defaults_to_landscape(self):
        prompt = build_prompt(
            "certificate",
            {"title": "Employee of the Month", "name": "Dana", "graphic": "a laurel"},
        )
        assert prompt.startswith("Certificate or award design, landscape 3:2 aspect ratio.")
        assert 'Title: "Employee of the Month". Recipient: Dana. Incorporate' in prompt

    def test_invitation_occasion_label_and_transparency(self):
        prompt = build_prompt(
            "invitation",
            {
                "title": "Ana & Ben",
                "occasion": "wedding",
                "graphic": "roses",
                "transparent": True,
            },
        )
        assert (
            "Transparent background suitable for print or digital use. "
            'Event name: "Ana & Ben". Occasion: an elegant wedding. Imagery to feature: roses.'
        ) in prompt

    def test_invitation_unknown_occasion_uses_fallback_label(self):
        prompt = build_prompt("invitation", {"title": "Gala", "occasion": "gala", "graphic": "x"})
        assert "Occasion: a modern celebration." in prompt
        assert "Use a solid #ffffff background." in prompt

    def test_brochure_prompt(self):
        prompt = build_prompt(
            "brochure",
            {"title": "Spring", "subtitle": "New stock", "page": "14", "imagery": "tulips"},
        )
        assert prompt == (
            'Brochure page 12 design, portrait 2:3 aspect ratio. Title: "Spring". '
            'Subtitle: "New stock". Use imagery: tulips. Solid #ffffff background. '
            "Professional, balanced layout."
        )

    def test_cover_prompt_defaults_to_book(self):
        prompt = build_prompt(
            "cover", {"title": "Night Owls", "imagery": "an owl", "aspect_ratio": "square"}
        )
        assert prompt == (
            'Cover art design for a book, square 1:1 aspect ratio. Title: "Night Owls". '
            "Use imagery: an owl. Solid #ffffff background. Balanced composition, "
            "professional and appealing."
        )

    def test_tshirt_prompt_is_multiline(self):
        prompt = build_prompt(
            "tshirt",
            {"display_text": "Stay Weird", "graphic": "a cosmic cat", "aspect_ratio": "square"},
        )
        lines = prompt.split("\n")
        assert lines[0] == "T-shirt graphic design, square 1:1 aspect ratio."
        assert lines[1] == "Crisp, print-ready vector artwork on a solid #000000 background."
        assert '"Stay Weird"' in prompt
        assert "a cosmic cat" in prompt

    def test_values_are_inserted_verbatim(self):
        prompt = build_prompt(
            "mockup",
            {"product": 'Mug "Deluxe" {limited}', "style": "<b>bold</b>"},
        )
        assert 'Product: "Mug "Deluxe" {limited}". Style: <b>bold</b>.' in prompt

    def test_unknown_design_type(self):
        with pytest.raises(NotFoundError):
            build_prompt("video", {})

    @pytest.mark.parametrize("tool", sorted(TOOLS))
    def test_every_template_renders(self, tool):
        """Every registered template fills without missing placeholders."""
        descriptor = TOOLS[tool]
        fields = {f.key: f"value-{f.key}" for f in descriptor.fields}
        prompt = build_prompt(tool, fields)
        assert "{" not in prompt
        for tool_field in descriptor.required_fields:
            assert f"value-{tool_field.key}" in prompt
