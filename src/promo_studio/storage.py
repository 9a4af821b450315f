from __future__ import annotations

import hashlib
import logging
import os
import uuid
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from promo_studio.config import settings

logger = logging.getLogger(__name__)


def _sha256_bytes(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def _safe_filename(name: str) -> str:
    # Prevent path traversal.
    return os.path.basename(name).replace("..", "_") or "upload.bin"


@dataclass(frozen=True)
class StoredMedia:
    public_id: str
    secure_url: str
    png_url: str
    format: str
    bytes: int
    width: int | None
    height: int | None
    original_filename: str
    sha256: str


class MediaStore:
    """Stores uploaded media under `media_dir` and hands back public URLs."""

    def __init__(self, root_dir: Path | None = None, base_url: str | None = None) -> None:
        self.root_dir = Path(root_dir or settings.media_dir).resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    def _inside_root(self, folder: str) -> Path:
        target = (self.root_dir / folder).resolve()
        if self.root_dir not in target.parents:
            raise ValueError(f"Folder {folder!r} is outside media_dir")
        return target

    def url_for(self, rel_path: str) -> str:
        return f"{self.base_url}/media/{rel_path}"

    def save(self, filename: str, content: bytes, folder: str = "uploads") -> StoredMedia:
        filename = _safe_filename(filename)
        media_id = uuid.uuid4().hex[:12]
        out_dir = self._inside_root(folder)
        folder = out_dir.relative_to(self.root_dir).as_posix()
        out_dir.mkdir(parents=True, exist_ok=True)

        rel_path = f"{folder}/{media_id}_{filename}"
        (self.root_dir / rel_path).write_bytes(content)

        fmt = Path(filename).suffix.lstrip(".").lower() or "bin"
        width: int | None = None
        height: int | None = None
        png_rel = rel_path
        try:
            with Image.open(BytesIO(content)) as img:
                width, height = img.size
                fmt = (img.format or fmt).lower()
                if fmt != "png":
                    png_rel = f"{folder}/{media_id}_{Path(filename).stem}.png"
                    img.convert("RGBA").save(self.root_dir / png_rel, format="PNG")
        except UnidentifiedImageError:
            # Non-image uploads are stored as-is.
            pass

        return StoredMedia(
            public_id=f"{folder}/{media_id}",
            secure_url=self.url_for(rel_path),
            png_url=self.url_for(png_rel),
            format=fmt,
            bytes=len(content),
            width=width,
            height=height,
            original_filename=filename,
            sha256=_sha256_bytes(content),
        )

    def save_image(self, image: Image.Image, filename: str, folder: str = "studio") -> StoredMedia:
        buf = BytesIO()
        image.save(buf, format="PNG")
        return self.save(filename, buf.getvalue(), folder=folder)

    def delete(self, public_id: str) -> int:
        """Best-effort removal of every file stored under `public_id`."""
        folder, _, media_id = public_id.rpartition("/")
        target_dir = (self.root_dir / folder).resolve()
        inside = target_dir == self.root_dir or self.root_dir in target_dir.parents
        if not inside or not media_id:
            raise ValueError("Refusing to delete outside media_dir")
        removed = 0
        for path in target_dir.glob(f"{media_id}_*"):
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError:
                logger.warning("could not delete media file %s", path)
        return removed
