from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZipEntry:
    url: str | None = None
    file_name: str | None = None


def infer_extension(file_name: str | None = None, content_type: str | None = None) -> str:
    if file_name and "." in file_name:
        return file_name.rsplit(".", 1)[-1] or "png"
    if content_type and "/" in content_type:
        return content_type.split("/", 1)[1]
    return "png"


def entry_name(entry: ZipEntry, index: int, content_type: str | None) -> str:
    if entry.file_name and entry.file_name.strip():
        return entry.file_name
    ext = re.sub(r"[^a-zA-Z0-9]", "", infer_extension(entry.file_name, content_type)) or "png"
    return f"result-{index + 1}.{ext}"


async def build_results_zip(entries: list[ZipEntry], client: httpx.AsyncClient) -> tuple[bytes, int]:
    """
    Download every entry URL into a ZIP archive. Entries without a URL or whose
    download fails are skipped. Returns the archive bytes and the number of files added.
    """
    buf = io.BytesIO()
    added = 0
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for idx, entry in enumerate(entries):
            if not entry.url:
                continue
            try:
                resp = await client.get(entry.url)
            except httpx.HTTPError as exc:
                logger.error("zip fetch error %s: %s", entry.url, exc)
                continue
            if resp.is_error:
                logger.error("zip fetch failed %s %s", entry.url, resp.status_code)
                continue
            zf.writestr(entry_name(entry, idx, resp.headers.get("content-type")), resp.content)
            added += 1
    return buf.getvalue(), added
