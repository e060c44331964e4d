"""Image provider adapters and registry.

Every design tool can render through either OpenAI's image endpoint or
Google Gemini's ``generateContent`` endpoint.  The two APIs differ in auth,
request body and response shape; the adapters here hide those differences
behind a single call::

    provider.generate(prompt, size="1024x1536", background=None, reference=None)
        -> ImageResult(data, mime_type)

Provider Behaviour
------------------
**OpenAI**
    ``POST {openai_base_url}/images/generations`` with a bearer token and a
    JSON body ``{model, prompt, size, n, quality, output_format}`` plus
    ``background`` when a transparent background was requested.  The image
    comes back base64-encoded in ``data[0].b64_json``.  Reference images are
    not supported by this endpoint and are ignored.

**Gemini**
    ``POST {gemini_base_url}/models/{model}:generateContent?key=...`` with a
    ``contents[0].parts`` list holding the prompt text and, optionally, an
    ``inline_data`` reference image.  The response is scanned for the first
    part carrying inline image data.  The REST API has answered with both
    ``inlineData``/``mimeType`` and ``inline_data``/``mime_type`` spellings,
    so both are accepted.

Failure Modes
-------------
- Missing API key: :class:`ConfigurationError`, raised before any request.
- Transport failure or timeout: :class:`ProviderError`.
- Non-success HTTP status: :class:`ProviderError` carrying the provider's
  message verbatim.
- No image in the response: :class:`ProviderError`.

There are no retries.  Each ``generate`` call makes exactly one request,
bounded by ``StudioConfig.request_timeout``.

Registry
--------
Adapters are selected by name through :data:`provider_registry`::

    >>> provider = provider_registry.instantiate("gemini", api_settings, config)
    >>> result = provider.generate("A fox logo", size="1024x1024")
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import httpx

from merchstudio.core.config import StudioConfig
from merchstudio.core.exceptions import ConfigurationError, DesignValidationError, ProviderError
from merchstudio.core.settings_store import ApiSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageResult:
    """Decoded image bytes returned by a provider."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ReferenceImage:
    """An image sent alongside the prompt to steer generation."""

    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def _decode_b64(payload: str, provider: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ProviderError(f"{provider} returned undecodable image data.") from exc


class ImageProvider(ABC):
    """Base class for image provider adapters.

    Attributes
    ----------
    name : str
        Registry name and the ``source`` value stored on records.
    label : str
        Human-readable provider name used in messages.
    api_key_field : str
        Name of the :class:`ApiSettings` field holding the key.
    supports_reference : bool
        Whether reference images are sent to the provider.

    Parameters
    ----------
    api_settings : ApiSettings
        Credentials and model names loaded from ``config.json``.
    studio_config : StudioConfig
        Process settings (base URLs, timeout, output options).
    client : httpx.Client, optional
        HTTP client to use.  When omitted, a client with the configured
        timeout is created for each call and closed afterwards.
    """

    name: str = "base"
    label: str = "Base provider"
    api_key_field: str = ""
    supports_reference: bool = False

    def __init__(
        self,
        api_settings: ApiSettings,
        studio_config: StudioConfig,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_settings = api_settings
        self.config = studio_config
        self._client = client

    @property
    def api_key(self) -> str:
        return (getattr(self.api_settings, self.api_key_field, "") or "").strip()

    def check_configured(self) -> None:
        """Raise :class:`ConfigurationError` if the API key is missing."""
        if not self.api_key:
            raise ConfigurationError(
                f"{self.label} API key is not configured. Please set it via the Config page."
            )

    @contextmanager
    def _http(self) -> Iterator[httpx.Client]:
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(timeout=self.config.request_timeout) as client:
            yield client

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send one POST request, mapping transport failures to ProviderError."""
        try:
            with self._http() as client:
                return client.post(url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning(f"{self.label} request timed out: {exc}")
            raise ProviderError(
                f"Request to {self.label} timed out after {self.config.request_timeout:g} seconds."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(f"{self.label} request failed: {exc}")
            raise ProviderError(f"Request to {self.label} failed: {exc}") from exc

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        size: str,
        background: str | None = None,
        reference: ReferenceImage | None = None,
    ) -> ImageResult:
        """Render *prompt* and return the decoded image.

        Args:
            prompt: The compiled prompt.
            size: Pixel size string such as ``"1024x1536"``.
            background: ``"transparent"`` or ``None``.
            reference: Optional reference image.

        Raises:
            ConfigurationError: If the API key is missing.
            ProviderError: On transport, HTTP or payload failure.
        """


class OpenAIImageProvider(ImageProvider):
    """OpenAI ``images/generations`` adapter."""

    name = "openai"
    label = "OpenAI"
    api_key_field = "openai_api_key"

    def generate(
        self,
        prompt: str,
        *,
        size: str,
        background: str | None = None,
        reference: ReferenceImage | None = None,
    ) -> ImageResult:
        self.check_configured()
        if reference is not None:
            logger.info("OpenAI image generation ignores the reference image")

        payload: dict[str, Any] = {
            "model": self.api_settings.openai_model,
            "prompt": prompt,
            "size": size,
            "n": 1,
            "quality": self.config.openai_image_quality,
            "output_format": self.config.openai_output_format,
        }
        if background:
            payload["background"] = background

        logger.info(f"Requesting OpenAI image (model={payload['model']}, size={size})")
        response = self._post(
            f"{self.config.openai_base_url.rstrip('/')}/images/generations",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
        )

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code < 200 or response.status_code >= 300:
            message = "Unknown error"
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                message = data["error"].get("message") or message
            logger.warning(f"OpenAI returned HTTP {response.status_code}: {message}")
            raise ProviderError(f"API error ({response.status_code}): {message}")

        b64 = None
        if isinstance(data, dict) and data.get("data"):
            first = data["data"][0]
            if isinstance(first, dict):
                b64 = first.get("b64_json")
        if not b64:
            raise ProviderError("No image data returned from OpenAI.")

        return ImageResult(
            data=_decode_b64(b64, self.label),
            mime_type=f"image/{self.config.openai_output_format}",
        )


class GeminiImageProvider(ImageProvider):
    """Gemini ``generateContent`` adapter."""

    name = "gemini"
    label = "Gemini"
    api_key_field = "gemini_api_key"
    supports_reference = True

    def build_payload(self, prompt: str, reference: ReferenceImage | None) -> dict:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if reference is not None:
            parts.append(
                {"inline_data": {"mime_type": reference.mime_type, "data": reference.to_base64()}}
            )
        return {"contents": [{"parts": parts}]}

    @staticmethod
    def extract_image(data: Any) -> tuple[str, str] | None:
        """Return ``(base64, mime_type)`` of the first inline image part."""
        if not isinstance(data, dict):
            return None
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return None
        for part in parts or []:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return inline["data"], mime
        return None

    def generate(
        self,
        prompt: str,
        *,
        size: str,
        background: str | None = None,
        reference: ReferenceImage | None = None,
    ) -> ImageResult:
        self.check_configured()
        model = self.api_settings.gemini_model
        logger.info(
            f"Requesting Gemini image (model={model}, size={size}, "
            f"reference={'yes' if reference else 'no'})"
        )
        response = self._post(
            f"{self.config.gemini_base_url.rstrip('/')}/models/{model}:generateContent",
            params={"key": self.api_key},
            json=self.build_payload(prompt, reference),
        )

        if response.status_code != 200:
            logger.warning(f"Gemini returned HTTP {response.status_code}")
            raise ProviderError(f"HTTP {response.status_code}\n{response.text}")

        try:
            data = response.json()
        except ValueError:
            data = None

        found = self.extract_image(data)
        if found is None:
            raise ProviderError("No image data returned from Gemini.")
        b64, mime_type = found
        return ImageResult(data=_decode_b64(b64, self.label), mime_type=mime_type)


class ProviderRegistry:
    """Registry mapping provider names to adapter classes."""

    def __init__(self) -> None:
        self._providers: dict[str, type[ImageProvider]] = {}

    def register(self, provider_class: type[ImageProvider]) -> None:
        """Register an adapter class under its ``name``."""
        if provider_class.name in self._providers:
            logger.warning(f"Provider '{provider_class.name}' already registered, overwriting")
        self._providers[provider_class.name] = provider_class

    def instantiate(
        self,
        name: str,
        api_settings: ApiSettings,
        studio_config: StudioConfig,
        client: httpx.Client | None = None,
    ) -> ImageProvider:
        """Create the adapter registered as *name*.

        Raises:
            DesignValidationError: If no adapter has that name.
        """
        provider_class = self._providers.get(name)
        if provider_class is None:
            raise DesignValidationError(
                f"Unknown image model: {name}. Available: {', '.join(self.list_available())}"
            )
        return provider_class(api_settings, studio_config, client=client)

    def list_available(self) -> list[str]:
        return list(self._providers)


provider_registry = ProviderRegistry()
provider_registry.register(OpenAIImageProvider)
provider_registry.register(GeminiImageProvider)


def create_provider(
    name: str,
    api_settings: ApiSettings,
    studio_config: StudioConfig,
    client: httpx.Client | None = None,
) -> ImageProvider:
    """Shortcut for ``provider_registry.instantiate``."""
    return provider_registry.instantiate(name, api_settings, studio_config, client=client)


class OpenAIChatClient:
    """Minimal client for OpenAI ``chat/completions``, used by the idea generator."""

    def __init__(
        self,
        api_settings: ApiSettings,
        studio_config: StudioConfig,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_settings = api_settings
        self.config = studio_config
        self._client = client

    def complete(
        self,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = 200,
        temperature: float = 0.8,
    ) -> str:
        """Return the content of the first choice.

        Raises:
            ConfigurationError: If the OpenAI key is missing.
            ProviderError: On transport or HTTP failure.
        """
        api_key = self.api_settings.openai_api_key.strip()
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key is not configured. Please set it via the Config page."
            )
        payload = {
            "model": self.api_settings.openai_chat_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        url = f"{self.config.openai_base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            if self._client is not None:
                response = self._client.post(url, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=self.config.request_timeout) as client:
                    response = client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(f"OpenAI chat request failed: {exc}")
            raise ProviderError(f"Request to OpenAI failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = "Unknown API error"
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                message = data["error"].get("message") or message
            raise ProviderError(f"OpenAI API error ({response.status_code}): {message}")

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""
