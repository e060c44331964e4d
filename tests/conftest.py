"""Shared pytest fixtures for Merch Studio tests."""

from __future__ import annotations

import base64
import io
import json
import os
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

# Keep the import-time global config away from the working directory.
_IMPORT_ROOT = Path(tempfile.mkdtemp(prefix="merchstudio-import-"))
os.environ.setdefault("MERCHSTUDIO_DATA_DIR", str(_IMPORT_ROOT / "data"))
os.environ.setdefault("MERCHSTUDIO_ASSETS_DIR", str(_IMPORT_ROOT / "assets"))

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from merchstudio.api.main import create_app  # noqa: E402
from merchstudio.core.asset_store import AssetStore  # noqa: E402
from merchstudio.core.config import StudioConfig  # noqa: E402
from merchstudio.core.pipeline import DesignPipeline  # noqa: E402
from merchstudio.core.record_store import DesignRecordStore  # noqa: E402
from merchstudio.core.settings_store import SettingsStore  # noqa: E402

FAKE_IMAGE = b"\x89PNG\r\n\x1a\nfake-image-bytes"


def png_bytes(size: tuple[int, int] = (8, 8), fmt: str = "PNG") -> bytes:
    """Return a small, real image encoded as *fmt*."""
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


def openai_image_response(data: bytes = FAKE_IMAGE) -> httpx.Response:
    return httpx.Response(200, json={"data": [{"b64_json": base64.b64encode(data).decode()}]})


def gemini_image_response(
    data: bytes = FAKE_IMAGE, mime_type: str = "image/png", camel_case: bool = True
) -> httpx.Response:
    encoded = base64.b64encode(data).decode()
    if camel_case:
        part = {"inlineData": {"mimeType": mime_type, "data": encoded}}
    else:
        part = {"inline_data": {"mime_type": mime_type, "data": encoded}}
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"text": "Here you go"}, part]}}]},
    )


def chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class FakeUpstream:
    """Stand-in for the OpenAI and Gemini HTTP APIs.

    Every request is recorded in :attr:`calls`.  Responses are chosen by URL
    suffix; tests override them with :meth:`respond`.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {
            "/images/generations": lambda request: openai_image_response(),
            ":generateContent": lambda request: gemini_image_response(),
            "/chat/completions": lambda request: chat_response(
                json.dumps(
                    {
                        "text": "Stay Weird",
                        "graphic": "a cosmic cat",
                        "bg_color": "#1A202C",
                        "design_colors": ["#FFD700", "#FF69B4"],
                    }
                )
            ),
        }

    def respond(self, suffix: str, response: httpx.Response | Exception) -> None:
        """Answer requests whose path ends with *suffix* with *response*."""

        def handler(request: httpx.Request) -> httpx.Response:
            if isinstance(response, Exception):
                raise response
            return response

        self._routes[suffix] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        for suffix, route in self._routes.items():
            if request.url.path.endswith(suffix):
                return route(request)
        return httpx.Response(404, json={"error": {"message": "no such route"}})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def last_json(self) -> dict:
        return json.loads(self.calls[-1].content)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> StudioConfig:
    """Create a test configuration with temporary directories."""
    return StudioConfig(
        data_dir=temp_dir / "data",
        assets_dir=temp_dir / "generated_tshirts",
        request_timeout=5,
        _env_file=None,
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> Generator[httpx.Client, None, None]:
    client = upstream.client()
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def settings_store(test_config: StudioConfig) -> SettingsStore:
    """Settings store with both image provider keys configured."""
    store = SettingsStore(test_config)
    store.update({"openai_api_key": "sk-test-openai", "gemini_api_key": "gm-test-gemini"})
    return store


@pytest.fixture
def records(test_config: StudioConfig) -> DesignRecordStore:
    return DesignRecordStore(test_config.data_dir)


@pytest.fixture
def assets(test_config: StudioConfig) -> AssetStore:
    return AssetStore(test_config.assets_dir, test_config.assets_url_prefix)


@pytest.fixture
def pipeline(
    test_config: StudioConfig,
    records: DesignRecordStore,
    assets: AssetStore,
    settings_store: SettingsStore,
    http_client: httpx.Client,
) -> DesignPipeline:
    return DesignPipeline(test_config, records, assets, settings_store, client=http_client)


@pytest.fixture
def test_client(
    test_config: StudioConfig, settings_store: SettingsStore, http_client: httpx.Client
) -> Generator[TestClient, None, None]:
    """TestClient for an app wired to temporary storage and the fake upstream."""
    app = create_app(test_config, client=http_client)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sample_png() -> bytes:
    return png_bytes()
