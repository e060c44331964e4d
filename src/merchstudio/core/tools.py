"""Declarative descriptors for every design tool.

A design tool (T-shirt, logo, flyer, ...) is configuration, not code.  Each
:class:`ToolDescriptor` declares:

- the form fields the tool accepts, which of them are required, and the
  record key each one is stored under;
- the prompt template, written with ``str.format`` placeholders named after
  the record keys;
- the store the tool's records are appended to, the filename/id prefix, and
  the default aspect ratio, provider and background colour.

Template Placeholders
---------------------
Besides one placeholder per field key, templates can use:

``{ratio}``
    Aspect ratio description, e.g. ``portrait 2:3``.
``{bg_color}``
    The submitted background colour.
``{background_line}``
    ``Use a solid <bg> background.`` or, with the transparency flag set,
    ``Transparent background suitable for print or digital use.``
``{<key>_part}``
    For fields with a ``fragment``: the fragment filled with the value, or an
    empty string when the value is blank.
``{<key>_label}``
    For fields with ``choices``: the prompt label for the submitted choice.

Fields with an ``int_range`` hold a whole number clamped into that range;
anything that does not start with digits becomes the lower bound.

Field values are inserted verbatim.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from merchstudio.core.aspect_ratios import AspectRatio, resolve_aspect_ratio
from merchstudio.core.exceptions import DesignValidationError, NotFoundError

PROVIDER_CHOICES = ("openai", "gemini")

_LEADING_INT = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class ToolField:
    """One form field of a design tool.

    Attributes:
        form_name: Name of the submitted form field.
        key: Record key and template placeholder for the value.
        label: Label shown next to the input.
        required: Whether a blank value rejects the submission.
        default: Value used when the field is absent.
        fragment: Optional template for ``{<key>_part}``; ``{value}`` is
            replaced by the submitted text.
        choices: Optional mapping of allowed values to prompt labels.
        fallback_label: Label used for values outside ``choices``.
        int_range: Optional inclusive ``(low, high)`` bounds for a numeric
            field.
    """

    form_name: str
    key: str
    label: str
    required: bool = False
    default: str = ""
    fragment: str | None = None
    choices: Mapping[str, str] | None = None
    fallback_label: str = ""
    int_range: tuple[int, int] | None = None

    def normalize(self, value: str) -> str:
        """Return *value* clamped into ``int_range``, or unchanged."""
        if self.int_range is None:
            return value
        low, high = self.int_range
        match = _LEADING_INT.match(value)
        number = int(match.group()) if match else low
        return str(min(max(number, low), high))

    def to_dict(self) -> dict:
        return {
            "form_name": self.form_name,
            "key": self.key,
            "label": self.label,
            "required": self.required,
            "default": self.default,
            "choices": list(self.choices) if self.choices else None,
            "int_range": list(self.int_range) if self.int_range else None,
        }


@dataclass(frozen=True)
class ToolDescriptor:
    """Everything the pipeline needs to run one design tool."""

    tool: str
    label: str
    prefix: str
    template: str
    fields: tuple[ToolField, ...]
    required_message: str
    default_aspect: str = "portrait"
    default_provider: str = "gemini"
    default_bg: str = "#ffffff"
    store_id: str = ""

    def __post_init__(self) -> None:
        if not self.store_id:
            object.__setattr__(self, "store_id", self.tool)

    @property
    def required_fields(self) -> tuple[ToolField, ...]:
        return tuple(f for f in self.fields if f.required)

    def to_dict(self) -> dict:
        return {
            "tool": self.tool,
            "label": self.label,
            "store_id": self.store_id,
            "fields": [f.to_dict() for f in self.fields],
            "default_aspect": self.default_aspect,
            "default_provider": self.default_provider,
            "default_bg": self.default_bg,
        }


@dataclass
class DesignRequest:
    """Validated, typed input for one generation.

    Attributes:
        tool: The descriptor the request was validated against.
        values: Trimmed field values keyed by record key.
        bg_color: Background colour.
        aspect: Resolved aspect ratio preset.
        transparent: Whether a transparent background was requested.
        provider: Provider name (``openai`` or ``gemini``).
        existing_ref: Optional id of an existing design to use as reference.
    """

    tool: ToolDescriptor
    values: dict[str, str]
    bg_color: str
    aspect: AspectRatio
    transparent: bool = False
    provider: str = "gemini"
    existing_ref: str = ""

    @property
    def background_mode(self) -> str | None:
        """The provider background parameter: ``"transparent"`` or ``None``."""
        return "transparent" if self.transparent else None

    def prompt_fields(self) -> dict[str, object]:
        """Return the mapping consumed by :func:`build_prompt`."""
        fields: dict[str, object] = dict(self.values)
        fields["bg_color"] = self.bg_color
        fields["aspect_ratio"] = self.aspect.key
        fields["transparent"] = self.transparent
        return fields


_GRAPHIC = ToolField("graphic_prompt", "graphic", "Imagery Description", required=True)


TOOLS: dict[str, ToolDescriptor] = {}


def register_tool(descriptor: ToolDescriptor) -> ToolDescriptor:
    """Add *descriptor* to the registry and return it."""
    TOOLS[descriptor.tool] = descriptor
    return descriptor


register_tool(
    ToolDescriptor(
        tool="tshirt",
        label="T-Shirt Designer",
        prefix="ts",
        template=(
            "T-shirt graphic design, {ratio} aspect ratio.\n"
            "Crisp, print-ready vector artwork on a solid {bg_color} background.\n"
            "Include a unified encapsulating shape or border (badge, crest, emblem, patch, "
            "shield, or geometric frame) that visually relates to the theme.\n"
            "Typography must be bold, centered, and clearly readable, featuring the exact "
            'phrase: "{display_text}".\n'
            "Integrate the text with a strong illustration of: {graphic}, both elements "
            "should feel fused into one cohesive emblem.\n"
            "No mockups, no humans, no photos, no scenes, no shadows, no wrinkles.\n"
            "Use high-contrast colors, clean edges, and a tight contained layout optimized "
            "for T-shirt printing."
        ),
        fields=(
            ToolField("display_text", "display_text", "T-Shirt Text", required=True),
            ToolField("graphic_prompt", "graphic", "Graphic Description", required=True),
        ),
        required_message="Please enter both the T-shirt text and the graphic description.",
        default_provider="openai",
        default_bg="#000000",
    )
)

register_tool(
    ToolDescriptor(
        tool="logo",
        label="Logo Creator",
        prefix="logo",
        template=(
            "Logo design, {ratio} aspect ratio. Vector flat art with a solid {bg_color} "
            'background. Design a logo for "{display_text}". The logo should incorporate: '
            "{graphic}.{logo_type_part} Minimalistic, modern, balanced composition, suitable "
            "for branding."
        ),
        fields=(
            ToolField("display_text", "display_text", "Brand Text", required=True),
            ToolField("graphic_prompt", "graphic", "Graphic Description", required=True),
            ToolField("logo_type", "logo_type", "Logo Type", fragment=" Style: {value}."),
        ),
        required_message="Please enter both the brand text and the graphic description.",
    )
)

register_tool(
    ToolDescriptor(
        tool="poster",
        label="Poster Creator",
        prefix="poster",
        template=(
            "Poster design, {ratio} aspect ratio. Use a solid {bg_color} background. "
            'Title: "{title}".{subtitle_part} Incorporate imagery: {graphic}. '
            "Striking, bold typography, strong visual hierarchy, print-ready composition."
        ),
        fields=(
            ToolField("title_text", "title", "Poster Title", required=True),
            ToolField("subtitle_text", "subtitle", "Subtitle", fragment=' Subtitle: "{value}".'),
            _GRAPHIC,
        ),
        required_message="Please enter both the poster title and the imagery description.",
    )
)

register_tool(
    ToolDescriptor(
        tool="flyer",
        label="Flyer Creator",
        prefix="flyer",
        template=(
            "Flyer design, {ratio} aspect ratio. Use a solid {bg_color} background. "
            'Event name: "{display_text}". Details: "{details}". Incorporate imagery: '
            "{graphic}. Bold, legible typography, modern layout, balanced composition."
        ),
        fields=(
            ToolField("title_text", "display_text", "Event Name", required=True),
            ToolField("details_text", "details", "Details (date & location)"),
            _GRAPHIC,
        ),
        required_message="Please enter both the flyer title and the imagery description.",
    )
)

register_tool(
    ToolDescriptor(
        tool="social",
        label="Social Post Creator",
        prefix="social",
        template=(
            "Social media graphic, {ratio} aspect ratio. Use a solid {bg_color} background. "
            'Headline: "{display_text}". Subheadline: "{subtitle}". Incorporate imagery: '
            "{graphic}. Eye-catching, modern design optimized for social feeds."
        ),
        fields=(
            ToolField("title_text", "display_text", "Headline", required=True),
            ToolField("subtitle_text", "subtitle", "Subheadline"),
            _GRAPHIC,
        ),
        required_message="Please enter both the headline and the imagery description.",
        default_aspect="square",
        default_provider="openai",
    )
)

register_tool(
    ToolDescriptor(
        tool="business_card",
        label="Business Card Creator",
        prefix="bcard",
        template=(
            "Business card design, {ratio} aspect ratio. Use a solid {bg_color} background. "
            'Name: "{name}".{title_part}{contact_part} Incorporate imagery: {graphic}. '
            "Professional, modern typography, balanced layout, clean aesthetic."
        ),
        fields=(
            ToolField("name_text", "name", "Name", required=True),
            ToolField("title_text", "title", "Title / Position", fragment=" Title: {value}."),
            ToolField("contact_text", "contact", "Contact Info", fragment=" Contact: {value}."),
            _GRAPHIC,
        ),
        required_message="Please enter both the name and imagery description.",
        default_aspect="landscape",
    )
)

register_tool(
    ToolDescriptor(
        tool="certificate",
        label="Certificate Creator",
        prefix="certificate",
        template=(
            "Certificate or award design, {ratio} aspect ratio. Use a solid {bg_color} "
            'background. Title: "{title}".{name_part}{description_part}{date_part} '
            "Incorporate imagery: {graphic}. Elegant, formal typography, balanced layout, "
            "authoritative look."
        ),
        fields=(
            ToolField("title_text", "title", "Certificate Title", required=True),
            ToolField(
                "name_text", "name", "Recipient Name", required=True, fragment=" Recipient: {value}."
            ),
            ToolField("description_text", "description", "Description", fragment=" Description: {value}."),
            ToolField("date_text", "date", "Date", fragment=" Date: {value}."),
            _GRAPHIC,
        ),
        required_message="Please enter the title, recipient name and imagery description.",
        default_aspect="landscape",
    )
)

register_tool(
    ToolDescriptor(
        tool="packaging",
        label="Packaging Creator",
        prefix="packaging",
        template=(
            "Packaging or label design, {ratio} aspect ratio. Use a solid {bg_color} "
            'background. Product: "{product}".{tagline_part}{description_part} Incorporate '
            "imagery: {graphic}. Eye-catching, modern design, balanced layout, professional "
            "appearance."
        ),
        fields=(
            ToolField("product_name", "product", "Product Name", required=True),
            ToolField("tagline_text", "tagline", "Tagline", fragment=" Tagline: {value}."),
            ToolField("description_text", "description", "Description", fragment=" Description: {value}."),
            _GRAPHIC,
        ),
        required_message="Please enter the product name and imagery description.",
    )
)

register_tool(
    ToolDescriptor(
        tool="illustration",
        label="Illustration Creator",
        prefix="illustration",
        template=(
            "Illustration or character design, {ratio} aspect ratio. Use a solid {bg_color} "
            'background. Subject: "{subject}".{style_part} Balanced composition, high quality, '
            "professional illustration."
        ),
        fields=(
            ToolField("subject_text", "subject", "Subject", required=True),
            ToolField("style_text", "style", "Style / Theme", fragment=" Style: {value}."),
        ),
        required_message="Please describe the subject for the illustration.",
        default_aspect="square",
    )
)

register_tool(
    ToolDescriptor(
        tool="mockup",
        label="Mockup Creator",
        prefix="mockup",
        template=(
            "Product mockup, {ratio} aspect ratio. Use a solid {bg_color} background. "
            'Product: "{product}".{style_part} Realistic rendering, professional lighting, '
            "high quality."
        ),
        fields=(
            ToolField("product_name", "product", "Product Name", required=True),
            ToolField("style_text", "style", "Style / Mood", fragment=" Style: {value}."),
        ),
        required_message="Please enter the product name.",
        default_aspect="square",
    )
)

register_tool(
    ToolDescriptor(
        tool="invitation",
        label="Invitation Creator",
        prefix="invitation",
        template=(
            'Invitation design, {ratio} aspect ratio. {background_line} Event name: "{title}". '
            "Occasion: {occasion_label}.{details_part} Imagery to feature: {graphic}. "
            "Clear typography, generous margins, modern invitation layout."
        ),
        fields=(
            ToolField("title_text", "title", "Event Name", required=True),
            ToolField(
                "occasion",
                "occasion",
                "Occasion",
                default="celebration",
                choices={
                    "wedding": "an elegant wedding",
                    "birthday": "a lively birthday",
                    "shower": "a baby or bridal shower",
                    "corporate": "a formal corporate event",
                    "holiday": "a festive holiday gathering",
                    "celebration": "a modern celebration",
                },
                fallback_label="a modern celebration",
            ),
            ToolField("details_text", "details", "Details", fragment=' Details: "{value}".'),
            _GRAPHIC,
        ),
        required_message="Please enter an event name and describe the imagery.",
    )
)

_TITLE = ToolField("title_text", "title", "Title", required=True)
_SUBTITLE = ToolField("subtitle_text", "subtitle", "Subtitle", fragment=' Subtitle: "{value}".')
_IMAGERY = ToolField("graphic_prompt", "imagery", "Imagery / Description", required=True)

register_tool(
    ToolDescriptor(
        tool="brochure",
        label="Brochure Creator",
        prefix="brochure",
        template=(
            'Brochure page {page} design, {ratio} aspect ratio. Title: "{title}".{subtitle_part} '
            "Use imagery: {imagery}. Solid {bg_color} background. Professional, balanced layout."
        ),
        fields=(
            _TITLE,
            _SUBTITLE,
            ToolField("page_num", "page", "Page", default="1", int_range=(1, 12)),
            _IMAGERY,
        ),
        required_message="Please enter a title and describe the imagery.",
    )
)

register_tool(
    ToolDescriptor(
        tool="cover",
        label="Cover Art Creator",
        prefix="cover",
        template=(
            'Cover art design for a {category}, {ratio} aspect ratio. Title: "{title}".'
            "{subtitle_part} Use imagery: {imagery}. Solid {bg_color} background. Balanced "
            "composition, professional and appealing."
        ),
        fields=(
            _TITLE,
            _SUBTITLE,
            ToolField(
                "category_select",
                "category",
                "Category",
                default="book",
                choices={c: c for c in ("book", "magazine", "presentation", "music", "brochure")},
            ),
            _IMAGERY,
        ),
        required_message="Please enter a title and describe the imagery.",
    )
)


# Stores that hold records but have no generation form.
STORE_ONLY_TOOLS: tuple[str, ...] = ("photo", "upload", "vector", "video")

STORE_IDS: tuple[str, ...] = tuple(TOOLS) + STORE_ONLY_TOOLS


def get_tool(tool: str) -> ToolDescriptor:
    """Return the descriptor registered for *tool*.

    Raises:
        NotFoundError: If no generation tool has that id.
    """
    try:
        return TOOLS[tool]
    except KeyError:
        raise NotFoundError(f"Unknown design tool: {tool}") from None


def _form_value(form: Mapping[str, object], name: str, default: str = "") -> str:
    value = form.get(name)
    if value is None:
        return default
    return str(value).strip()


def validate_fields(descriptor: ToolDescriptor, form: Mapping[str, object]) -> DesignRequest:
    """Turn a raw form submission into a :class:`DesignRequest`.

    Every value is trimmed and numeric fields are clamped.  Absent optional
    fields take their declared default; a blank required field rejects the whole submission before any
    provider is contacted.

    Args:
        descriptor: The tool being submitted.
        form: Raw form values keyed by form field name.

    Returns:
        The validated request.

    Raises:
        DesignValidationError: If a required field is blank or the provider
            name is unknown.
    """
    values: dict[str, str] = {}
    for tool_field in descriptor.fields:
        values[tool_field.key] = tool_field.normalize(
            _form_value(form, tool_field.form_name, tool_field.default)
        )

    if any(not values[f.key] for f in descriptor.required_fields):
        raise DesignValidationError(descriptor.required_message)

    provider = _form_value(form, "image_model") or descriptor.default_provider
    if provider not in PROVIDER_CHOICES:
        raise DesignValidationError(f"Unknown image model: {provider}")

    return DesignRequest(
        tool=descriptor,
        values=values,
        bg_color=_form_value(form, "bg_color") or descriptor.default_bg,
        aspect=resolve_aspect_ratio(_form_value(form, "aspect_ratio"), descriptor.default_aspect),
        transparent="transparent_bg" in form,
        provider=provider,
        existing_ref=_form_value(form, "existing_ref"),
    )
