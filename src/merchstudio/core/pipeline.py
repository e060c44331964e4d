"""The design generation and upload pipeline.

One pipeline serves every design tool.  A generation runs these steps, each
of which can end the request with a :class:`StudioError`:

1. Validate the submitted form against the tool descriptor.
2. Compile the prompt from the tool's template.
3. Select the provider and check its API key.
4. Resolve the reference image: an uploaded ``ref_image`` first, otherwise
   the file of the design named by ``existing_ref``.
5. Call the provider (one request, bounded by the configured timeout).
6. Save the image bytes to the asset directory.
7. Append the design record to the tool's store.

Nothing is retried and nothing is rolled back: a storage failure after a
successful provider call leaves the image file in place.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from merchstudio.core.asset_store import AssetStore, sniff_mime
from merchstudio.core.config import StudioConfig
from merchstudio.core.exceptions import DesignValidationError, StorageError
from merchstudio.core.library import with_image_url
from merchstudio.core.prompt_builder import render_template
from merchstudio.core.providers import ImageProvider, ReferenceImage, create_provider
from merchstudio.core.record_store import DesignRecordStore, new_design_id, timestamp
from merchstudio.core.settings_store import SettingsStore
from merchstudio.core.tools import DesignRequest, get_tool, validate_fields

logger = logging.getLogger(__name__)

# Stores that accept direct image uploads, with their id/filename prefixes.
UPLOAD_TARGETS = {"upload": "upload", "logo": "logo", "tshirt": "ts"}


def reference_from_upload(
    data: bytes, content_type: str | None, max_bytes: int
) -> ReferenceImage | None:
    """Build a reference image from an uploaded file.

    Empty uploads mean no reference.  The MIME type is detected from the
    bytes; the client's ``content_type`` is only a fallback.

    Raises:
        DesignValidationError: If the file exceeds *max_bytes*.
    """
    if not data:
        return None
    if len(data) > max_bytes:
        raise DesignValidationError("The reference image is too large.")
    mime_type = sniff_mime(data) or (content_type or "image/png")
    return ReferenceImage(data=data, mime_type=mime_type)


class DesignPipeline:
    """Runs generations and uploads for every tool.

    Args:
        studio_config: Process settings.
        records: Design record store.
        assets: Image file store.
        settings: ``config.json`` access; re-read on every generation.
        client: Optional HTTP client passed to providers (tests inject one
            backed by ``httpx.MockTransport``).
    """

    def __init__(
        self,
        studio_config: StudioConfig,
        records: DesignRecordStore,
        assets: AssetStore,
        settings: SettingsStore,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = studio_config
        self.records = records
        self.assets = assets
        self.settings = settings
        self.client = client

    def _provider_for(self, request: DesignRequest) -> ImageProvider:
        provider = create_provider(
            request.provider, self.settings.load(), self.config, client=self.client
        )
        provider.check_configured()
        return provider

    def _existing_reference(self, design_id: str) -> ReferenceImage | None:
        found = self.records.find(design_id)
        if found is None:
            logger.warning(f"Reference design {design_id} not found, generating without it")
            return None
        filename = found[1].get("file") or ""
        if not self.assets.exists(filename):
            logger.warning(f"Reference file for {design_id} is missing, generating without it")
            return None
        data = self.assets.read(filename)
        return ReferenceImage(data=data, mime_type=sniff_mime(data) or "image/png")

    def generate(
        self,
        tool: str,
        form: Mapping[str, object],
        reference: ReferenceImage | None = None,
    ) -> dict:
        """Generate one design and persist it.

        Args:
            tool: Tool id, e.g. ``"flyer"``.
            form: Submitted form fields.
            reference: Uploaded reference image, if any.

        Returns:
            The stored record plus ``image_url``.

        Raises:
            NotFoundError: Unknown tool.
            DesignValidationError: A required field is blank.
            ConfigurationError: The selected provider has no API key.
            ProviderError: The provider call failed.
            StorageError: The image or record could not be written.
        """
        descriptor = get_tool(tool)
        request = validate_fields(descriptor, form)
        prompt = render_template(descriptor, request.prompt_fields())
        provider = self._provider_for(request)

        if provider.supports_reference:
            if reference is None and request.existing_ref:
                reference = self._existing_reference(request.existing_ref)
        else:
            reference = None

        logger.info(
            f"Generating {tool} design via {provider.name} ({request.aspect.key}, "
            f"{request.aspect.size})"
        )
        result = provider.generate(
            prompt,
            size=request.aspect.size,
            background=request.background_mode,
            reference=reference,
        )

        filename = self.assets.save(result.data, result.mime_type, descriptor.prefix)
        record = {
            "id": new_design_id(descriptor.prefix),
            **request.values,
            "bg_color": request.bg_color,
            "file": filename,
            "created_at": timestamp(),
            "published": False,
            "source": provider.name,
            "tool": descriptor.tool,
            "aspect": request.aspect.key,
        }
        stored = self.records.append(descriptor.store_id, record)
        logger.info(f"Stored {tool} design {stored['id']} as {filename}")
        return with_image_url(stored, self.assets)

    def upload(
        self,
        target: str,
        data: bytes,
        original_name: str,
        display_text: str = "",
    ) -> dict:
        """Store an uploaded image as a design record of *target*.

        Raises:
            DesignValidationError: Empty file, oversized file, or a store
                that does not take uploads.
            StorageError: The image or record could not be written.
        """
        prefix = UPLOAD_TARGETS.get(target)
        if prefix is None:
            raise DesignValidationError(f"Uploads are not accepted for {target}.")
        if not data:
            raise DesignValidationError("Please choose an image to upload.")
        if len(data) > self.config.max_upload_bytes:
            raise DesignValidationError("The uploaded file is too large.")

        filename = self.assets.store_upload(data, original_name, prefix=prefix)
        stem = original_name.rsplit("/", 1)[-1].rsplit(".", 1)[0] if original_name else ""
        record = {
            "id": new_design_id(prefix),
            "display_text": display_text.strip() or stem,
            "graphic": stem,
            "bg_color": "",
            "file": filename,
            "created_at": timestamp(),
            "published": False,
            "source": "upload",
            "tool": target,
        }
        try:
            stored = self.records.append(target, record)
        except StorageError:
            logger.error(f"Upload {filename} saved but its record could not be written")
            raise
        return with_image_url(stored, self.assets)
