"""Image file storage for generated and uploaded designs.

All images live in one flat directory (``StudioConfig.assets_dir``) that is
served at ``StudioConfig.assets_url_prefix``.  Filenames are generated, never
taken from the client::

    {prefix}_{YYYYmmdd_HHMMSS}_{random hex}.{ext}

The random suffix makes collisions unlikely; the file is additionally
created with an exclusive open (``"xb"``) and a fresh name is drawn if one
exists already, so two saves never overwrite each other, even across
processes sharing the directory.
"""

from __future__ import annotations

import io
import logging
import secrets
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from merchstudio.core.exceptions import StorageError

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

UPLOAD_EXTENSIONS = {"png": "png", "jpeg": "jpg", "jpg": "jpg", "webp": "webp"}

_PIL_MIME = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp", "GIF": "image/gif"}

MAX_NAME_ATTEMPTS = 10


def extension_for_mime(mime_type: str | None) -> str:
    """Map a MIME type to a file extension, defaulting to ``png``."""
    return MIME_EXTENSIONS.get((mime_type or "").split(";")[0].strip().lower(), "png")


def sniff_mime(data: bytes) -> str | None:
    """Return the MIME type Pillow detects for *data*, or ``None``."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _PIL_MIME.get(image.format or "")
    except (UnidentifiedImageError, OSError):
        return None


class AssetStore:
    """Write and locate image files in the asset directory.

    Args:
        assets_dir: Directory holding every image.
        url_prefix: URL path the directory is served under.
    """

    def __init__(self, assets_dir: Path, url_prefix: str = "/generated_tshirts") -> None:
        self.assets_dir = Path(assets_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def _write_new(self, data: bytes, prefix: str, ext: str, suffix_bytes: int) -> str:
        try:
            self.assets_dir.mkdir(parents=True, exist_ok=True)
            for _ in range(MAX_NAME_ATTEMPTS):
                stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                filename = f"{prefix}_{stamp}_{secrets.token_hex(suffix_bytes)}.{ext}"
                path = self.assets_dir / filename
                try:
                    handle = open(path, "xb")
                except FileExistsError:
                    logger.debug(f"Filename collision on {filename}, retrying")
                    continue
                try:
                    with handle:
                        handle.write(data)
                except OSError:
                    path.unlink(missing_ok=True)
                    raise
                return filename
        except OSError as exc:
            logger.error(f"Failed to save image in {self.assets_dir}: {exc}")
            raise StorageError("Could not save generated file.") from exc
        raise StorageError("Could not save generated file.")

    def save(self, data: bytes, mime_type: str, prefix: str) -> str:
        """Write generated image bytes under a fresh filename.

        Args:
            data: Raw image bytes.
            mime_type: MIME type reported by the provider.
            prefix: Tool filename prefix, e.g. ``"flyer"``.

        Returns:
            The new filename, relative to the asset directory.

        Raises:
            StorageError: If the file cannot be written.
        """
        filename = self._write_new(data, prefix, extension_for_mime(mime_type), 3)
        logger.info(f"Saved generated image {filename} ({len(data)} bytes)")
        return filename

    def store_upload(self, data: bytes, original_name: str, prefix: str = "upload") -> str:
        """Store an uploaded image, normalising it to PNG when possible.

        The extension comes from the upload's name (``png``, ``jpg``,
        ``jpeg`` or ``webp``; anything else is stored as ``png``).  Non-PNG
        uploads are then converted to PNG with Pillow.  If conversion fails
        the original file is kept.

        Returns:
            The stored filename.
        """
        suffix = Path(original_name or "").suffix.lstrip(".").lower()
        ext = UPLOAD_EXTENSIONS.get(suffix, "png")
        filename = self._write_new(data, prefix, ext, 4)
        logger.info(f"Stored upload {original_name!r} as {filename}")
        if ext != "png":
            filename = self._convert_to_png(filename)
        return filename

    def _convert_to_png(self, filename: str) -> str:
        source = self.path_for(filename)
        target_name = f"{Path(filename).stem}.png"
        target = self.path_for(target_name)
        try:
            with Image.open(source) as image:
                if image.mode not in ("RGB", "RGBA"):
                    image = image.convert("RGBA")
                image.save(target, format="PNG")
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning(f"Keeping {filename} as uploaded, PNG conversion failed: {exc}")
            target.unlink(missing_ok=True)
            return filename
        source.unlink(missing_ok=True)
        return target_name

    def path_for(self, filename: str) -> Path:
        """Return the absolute path of *filename* inside the asset directory.

        Raises:
            StorageError: If *filename* would escape the directory.
        """
        name = Path(filename).name
        if not name or name != filename:
            raise StorageError(f"Invalid asset filename: {filename}")
        return self.assets_dir / name

    def exists(self, filename: str | None) -> bool:
        if not filename:
            return False
        try:
            return self.path_for(filename).is_file()
        except StorageError:
            return False

    def read(self, filename: str) -> bytes:
        """Return the bytes of a stored image.

        Raises:
            StorageError: If the file is missing or unreadable.
        """
        try:
            return self.path_for(filename).read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read {filename}.") from exc

    def image_url(self, filename: str) -> str:
        """Return the public URL of *filename*."""
        return f"{self.url_prefix}/{quote(filename)}"
