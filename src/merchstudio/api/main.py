"""Merch Studio - FastAPI Application.

This module defines the FastAPI application factory, every REST route and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration**: process settings come from :mod:`merchstudio.core.config`;
  API keys and model names are re-read from ``config.json`` on every
  generation so edits on the Config page apply immediately.
- **Generation** runs through one :class:`DesignPipeline` for every tool.
- **Persistence** is a set of locked, atomic JSON files plus one flat image
  directory, which is served by ``StaticFiles`` at
  ``config.assets_url_prefix``.
- **Errors** are raised as :class:`StudioError` subclasses anywhere in the
  core and rendered here as ``{"success": false, "error", "kind"}``.

Blocking work (provider calls, file I/O) runs in the thread pool: plain
``def`` routes are dispatched there by FastAPI, and ``async`` routes that
must await a form body hand the work to ``run_in_threadpool``.

Endpoints
---------
========  ================================  ====================================
Method    Path                              Purpose
========  ================================  ====================================
GET       ``/api/tools``                    Tool descriptors, aspect ratios
POST      ``/api/tools/{tool}/generate``    Generate one design (form)
GET       ``/api/tools/{tool}/designs``     Paginated store listing
POST      ``/api/tools/{tool}/upload``      Upload an image (303 redirect)
GET       ``/api/designs/{id}``             Single design from any store
GET       ``/api/designs/{id}/edits``       Edit history (newest first)
POST      ``/api/designs/{id}/edits``       Apply a prompt edit (form)
POST      ``.../edits/undo``                Step back one edit
POST      ``.../edits/rollback``            Return to a chosen version
GET       ``/api/library``                  Media library with filters
GET       ``/api/references``               Reference image options
GET/POST  ``/api/admin/designs``            Publish toggles
GET/POST  ``/api/admin/products``           Product prices
GET       ``/api/admin/orders``             Orders (read-only)
GET/POST  ``/api/admin/config``             API keys and model names
GET/POST  ``/api/ideas``                    T-shirt ideas
========  ================================  ====================================

Usage
-----
CLI (installed entry point)::

    merchstudio

Direct invocation::

    python -m merchstudio.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from merchstudio import __version__
from merchstudio.api.models import (
    DesignResponse,
    ErrorResponse,
    IdeaResponse,
    ProductUpdateResponse,
    PublishResponse,
)
from merchstudio.api.pagination import filter_published, paginate, present_records
from merchstudio.core.admin import (
    OrderBook,
    ProductCatalog,
    apply_publish_form,
    price_field_name,
    publish_field_name,
)
from merchstudio.core.aspect_ratios import ASPECT_RATIOS
from merchstudio.core.asset_store import AssetStore
from merchstudio.core.config import StudioConfig, config
from merchstudio.core.editor import DesignEditor
from merchstudio.core.exceptions import (
    DesignValidationError,
    NotFoundError,
    StorageError,
    StudioError,
)
from merchstudio.core.ideas import IdeaGenerator
from merchstudio.core.library import ALL, MediaLibrary
from merchstudio.core.pipeline import DesignPipeline, reference_from_upload
from merchstudio.core.providers import provider_registry
from merchstudio.core.record_store import DesignRecordStore
from merchstudio.core.settings_store import SettingsStore
from merchstudio.core.tools import STORE_IDS, TOOLS, get_tool

logger = logging.getLogger(__name__)

GENERATE_ACTION = "generate_design"
UPLOAD_FIELD = "design_file"
REFERENCE_FIELD = "ref_image"


# ---------------------------------------------------------------------------
# Service wiring.
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Everything the route handlers need, built once per application."""

    config: StudioConfig
    records: DesignRecordStore
    assets: AssetStore
    settings: SettingsStore
    pipeline: DesignPipeline
    library: MediaLibrary
    products: ProductCatalog
    orders: OrderBook
    ideas: IdeaGenerator
    editor: DesignEditor


def build_services(studio_config: StudioConfig, client: httpx.Client | None = None) -> Services:
    """Create the stores and pipeline for *studio_config*.

    Args:
        studio_config: Process settings.
        client: Optional HTTP client shared by every outbound call.
    """
    records = DesignRecordStore(studio_config.data_dir)
    assets = AssetStore(studio_config.assets_dir, studio_config.assets_url_prefix)
    settings = SettingsStore(studio_config)
    return Services(
        config=studio_config,
        records=records,
        assets=assets,
        settings=settings,
        pipeline=DesignPipeline(studio_config, records, assets, settings, client=client),
        library=MediaLibrary(records, assets),
        products=ProductCatalog(studio_config.products_file),
        orders=OrderBook(studio_config.orders_file),
        ideas=IdeaGenerator(studio_config, settings, client=client),
        editor=DesignEditor(studio_config, records, assets, settings, client=client),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Form helpers.
# ---------------------------------------------------------------------------


def _text_fields(form: FormData) -> dict[str, str]:
    return {key: value for key, value in form.items() if isinstance(value, str)}


async def _read_upload(form: FormData, name: str, max_bytes: int) -> tuple[bytes, str, str | None]:
    """Return ``(data, filename, content_type)`` of an uploaded file field.

    A missing field yields empty bytes.

    Raises:
        DesignValidationError: If the file exceeds *max_bytes*.
    """
    upload = form.get(name)
    if not isinstance(upload, UploadFile):
        return b"", "", None
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise DesignValidationError("The uploaded file is too large.")
    return data, upload.filename or "", upload.content_type


def _redirect_target(request: Request, fallback: str, error: str | None = None) -> str:
    """Build the 303 target: the referring page without its query, or *fallback*."""
    referer = request.headers.get("referer")
    target = fallback
    if referer:
        parts = urlsplit(referer)
        target = parts._replace(query="", fragment="").geturl()
    if error:
        target = f"{target}?{urlencode({'upload_error': error})}"
    return target


# ---------------------------------------------------------------------------
# Tool routes.
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.get("/tools")
def list_tools(services: Services = Depends(get_services)) -> dict:
    """Return every tool descriptor, the aspect ratio table and providers."""
    return {
        "version": __version__,
        "tools": [descriptor.to_dict() for descriptor in TOOLS.values()],
        "store_ids": list(services.records.store_ids),
        "aspect_ratios": [aspect.to_dict() for aspect in ASPECT_RATIOS.values()],
        "providers": provider_registry.list_available(),
    }


@router.post(
    "/tools/{tool}/generate",
    response_model=DesignResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def generate_design(
    tool: str, request: Request, services: Services = Depends(get_services)
) -> dict:
    """Generate one design from a creator form submission.

    The form carries the tool's fields, ``bg_color``, ``aspect_ratio``,
    ``image_model``, the optional ``transparent_bg`` flag, and either an
    uploaded ``ref_image`` or an ``existing_ref`` design id.
    """
    get_tool(tool)
    form = await request.form()
    action = form.get("action")
    if isinstance(action, str) and action and action != GENERATE_ACTION:
        raise DesignValidationError(f"Unsupported action: {action}")

    data, _, content_type = await _read_upload(
        form, REFERENCE_FIELD, services.config.max_upload_bytes
    )
    reference = reference_from_upload(data, content_type, services.config.max_upload_bytes)
    design = await run_in_threadpool(
        services.pipeline.generate, tool, _text_fields(form), reference
    )
    return {"success": True, "design": design}


@router.get("/tools/{tool}/designs")
def list_designs(
    tool: str,
    page: int = 1,
    per_page: int = 24,
    published: bool | None = None,
    services: Services = Depends(get_services),
) -> dict:
    """Return one page of a store's records, newest first."""
    entries = present_records(services.records.list(tool), services.assets)
    return paginate(filter_published(entries, published), page, per_page)


@router.post("/tools/{tool}/upload", status_code=303)
async def upload_design(
    tool: str, request: Request, services: Services = Depends(get_services)
) -> RedirectResponse:
    """Store an uploaded image and redirect back to the submitting page.

    Form problems (no file, file too large) and storage failures are
    reported through an ``upload_error`` query parameter on the redirect.
    """
    if tool not in STORE_IDS:
        raise NotFoundError(f"Unknown design store: {tool}")
    fallback = f"/api/tools/{tool}/designs"
    form = await request.form()
    try:
        data, filename, _ = await _read_upload(form, UPLOAD_FIELD, services.config.max_upload_bytes)
        display_text = form.get("display_text")
        await run_in_threadpool(
            services.pipeline.upload,
            tool,
            data,
            filename,
            display_text if isinstance(display_text, str) else "",
        )
    except (DesignValidationError, StorageError) as exc:
        if exc.status_code >= 500:
            logger.error(f"Upload to {tool} failed: {exc.message}")
        else:
            logger.info(f"Upload to {tool} rejected: {exc.message}")
        return RedirectResponse(_redirect_target(request, fallback, exc.message), status_code=303)
    return RedirectResponse(_redirect_target(request, fallback), status_code=303)


# ---------------------------------------------------------------------------
# Library routes.
# ---------------------------------------------------------------------------


@router.get("/designs/{design_id}")
def get_design(design_id: str, services: Services = Depends(get_services)) -> dict:
    """Return a single design from whichever store holds it."""
    return {"success": True, "design": services.library.get(design_id)}


@router.get("/designs/{design_id}/edits")
def edit_history(design_id: str, services: Services = Depends(get_services)) -> dict:
    """Return a design's edit versions, starting the history on first use."""
    return {"success": True, **services.editor.history(design_id)}


@router.post("/designs/{design_id}/edits")
async def edit_design(
    design_id: str, request: Request, services: Services = Depends(get_services)
) -> dict:
    """Apply the submitted ``prompt`` to the current version of a design."""
    prompt = _text_fields(await request.form()).get("prompt", "")
    history = await run_in_threadpool(services.editor.edit, design_id, prompt)
    return {"success": True, **history}


@router.post("/designs/{design_id}/edits/undo")
def undo_edit(design_id: str, services: Services = Depends(get_services)) -> dict:
    return {"success": True, **services.editor.undo(design_id)}


@router.post("/designs/{design_id}/edits/rollback")
async def rollback_edit(
    design_id: str, request: Request, services: Services = Depends(get_services)
) -> dict:
    """Make the submitted ``version_id`` the current version."""
    version_id = _text_fields(await request.form()).get("version_id", "")
    history = await run_in_threadpool(services.editor.rollback, design_id, version_id)
    return {"success": True, **history}


@router.get("/library")
def media_library(
    tool: str = ALL,
    source: str = ALL,
    page: int = 1,
    per_page: int = 48,
    services: Services = Depends(get_services),
) -> dict:
    """Return the filtered media library, newest first."""
    listing = paginate(services.library.list(tool, source), page, per_page, key="items")
    listing["filters"] = services.library.filter_options()
    listing["selected"] = {"tool": tool, "source": source}
    return listing


@router.get("/references")
def reference_options(services: Services = Depends(get_services)) -> dict:
    """Return existing designs selectable as reference images."""
    return {"references": services.library.reference_options()}


# ---------------------------------------------------------------------------
# Admin routes.
# ---------------------------------------------------------------------------


@router.get("/admin/designs")
def admin_designs(services: Services = Depends(get_services)) -> dict:
    """Return T-shirt designs with the checkbox name used to publish each."""
    designs = present_records(services.records.list("tshirt"), services.assets)
    for design in designs:
        design["publish_field"] = publish_field_name(str(design.get("id", "")))
    return {"designs": designs}


@router.post("/admin/designs", response_model=PublishResponse)
async def update_published(request: Request, services: Services = Depends(get_services)) -> dict:
    """Publish exactly the designs whose checkbox was submitted."""
    form = await request.form()
    changed = await run_in_threadpool(apply_publish_form, services.records, list(form.keys()))
    return {"success": True, "changed": changed}


@router.get("/admin/products")
def admin_products(services: Services = Depends(get_services)) -> dict:
    """Return products with the input name used to edit each price."""
    products = services.products.list()
    for product in products:
        product["price_field"] = price_field_name(str(product.get("id", "")))
    return {"products": products}


@router.post("/admin/products", response_model=ProductUpdateResponse)
async def update_products(
    request: Request, services: Services = Depends(get_services)
) -> JSONResponse:
    """Apply price edits and an optional new product."""
    fields = _text_fields(await request.form())
    new_product = {
        "id": fields.get("new_product_id", ""),
        "name": fields.get("new_product_name", ""),
        "price": fields.get("new_product_price", ""),
    }
    result = await run_in_threadpool(services.products.update, fields, new_product)
    body = ProductUpdateResponse(
        success=result.rejected_reason is None,
        message=result.message,
        updated=result.updated,
        added=result.added,
        products=services.products.list(),
    )
    status_code = 200 if body.success else 400
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.get("/admin/orders")
def admin_orders(services: Services = Depends(get_services)) -> dict:
    return {"orders": services.orders.list()}


@router.get("/admin/config")
def admin_config(services: Services = Depends(get_services)) -> dict:
    """Return API settings with secrets masked."""
    return {"settings": services.settings.load().masked()}


@router.post("/admin/config")
async def update_config(request: Request, services: Services = Depends(get_services)) -> dict:
    """Save API keys and model names from the Config form."""
    fields = _text_fields(await request.form())
    settings = await run_in_threadpool(services.settings.update, fields)
    return {
        "success": True,
        "message": "Configuration updated successfully.",
        "settings": settings.masked(),
    }


# ---------------------------------------------------------------------------
# Idea routes.
# ---------------------------------------------------------------------------


@router.get("/ideas")
def list_ideas(services: Services = Depends(get_services)) -> dict:
    return {"ideas": services.ideas.list()}


@router.post("/ideas", response_model=IdeaResponse)
async def generate_idea(request: Request, services: Services = Depends(get_services)) -> dict:
    """Generate a T-shirt idea, optionally steered by a ``theme``."""
    theme = _text_fields(await request.form()).get("theme", "")
    idea = await run_in_threadpool(services.ideas.generate, theme)
    return {"success": True, "idea": idea}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Render a :class:`StudioError` as the JSON error payload."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed ({exc.kind}): {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the storage layout on startup and shutdown."""
    services: Services = app.state.services
    logger.info(
        f"Merch Studio {__version__} starting (data={services.config.data_dir}, "
        f"assets={services.config.assets_dir})"
    )
    yield
    logger.info("Merch Studio stopped.")


def create_app(
    studio_config: StudioConfig | None = None, client: httpx.Client | None = None
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        studio_config: Settings to use; defaults to the global ``config``.
        client: Optional HTTP client for provider calls.

    Returns:
        The configured application.
    """
    studio_config = studio_config or config
    application = FastAPI(
        title="Merch Studio",
        description="AI design generation back end for a merchandise shop.",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.services = build_services(studio_config, client=client)

    # Allow cross-origin requests so the admin pages can be served from a
    # different origin during development.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(StudioError, studio_error_handler)
    application.include_router(router)

    studio_config.assets_dir.mkdir(parents=True, exist_ok=True)
    application.mount(
        studio_config.assets_url_prefix,
        StaticFiles(directory=str(studio_config.assets_dir)),
        name="assets",
    )
    return application


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~merchstudio.core.config.config`
    (``MERCHSTUDIO_SERVER_HOST``, ``MERCHSTUDIO_SERVER_PORT``,
    ``MERCHSTUDIO_LOG_LEVEL``).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``merchstudio`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "merchstudio.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
