"""Pydantic response models for the Merch Studio API.

Generation, upload and admin routes take HTML form submissions (the creator
pages post ``multipart/form-data``), so these models describe what the API
returns rather than what it accepts.  FastAPI uses them for serialisation
and the OpenAPI documentation.

Models
------
DesignResponse
    Successful ``POST /api/tools/{tool}/generate``.
ErrorResponse
    Any failed request (``success`` is ``False``).
PublishResponse
    ``POST /api/admin/designs``.
ProductUpdateResponse
    ``POST /api/admin/products``.
IdeaResponse
    ``POST /api/ideas``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DesignResponse(BaseModel):
    """A newly generated design.

    Attributes:
        success: Always ``True``.
        design: The stored record with its ``image_url``.
    """

    success: bool = True
    design: dict[str, Any] = Field(
        ...,
        description="Stored design record plus its public image_url.",
    )


class ErrorResponse(BaseModel):
    """Body of every error response.

    Attributes:
        success: Always ``False``.
        error: Human-readable message; provider messages are passed through.
        kind: One of ``validation``, ``configuration``, ``provider``,
            ``storage`` or ``not_found``.
    """

    success: bool = False
    error: str = Field(..., description="Error message shown to the admin.")
    kind: str = Field(default="error", description="Error category.")


class PublishResponse(BaseModel):
    success: bool = True
    changed: int = Field(..., description="Number of records whose flag changed.")
    message: str = "Design publish status updated."


class ProductUpdateResponse(BaseModel):
    """Outcome of a product form submission.

    ``success`` is ``False`` only when a new product was rejected; price
    updates in the same submission are still applied.
    """

    success: bool
    message: str
    updated: list[str] = Field(default_factory=list)
    added: str | None = None
    products: list[dict[str, Any]] = Field(default_factory=list)


class IdeaResponse(BaseModel):
    success: bool = True
    idea: dict[str, Any]
