from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

import httpx
from PIL import Image, UnidentifiedImageError

from promo_studio.config import settings
from promo_studio.errors import ProviderError
from promo_studio.providers.base import StudioResult, build_studio_prompt
from promo_studio.storage import MediaStore

logger = logging.getLogger(__name__)


class GeminiStudioProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        media_store: MediaStore,
        num_images: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self.client = genai.Client(api_key=api_key)
        self.media_store = media_store
        self.num_images = num_images or settings.studio_num_images
        self._http = http_client

    async def _load_sources(self, image_urls: list[str]) -> list[Image.Image]:
        client = self._http or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        out: list[Image.Image] = []
        try:
            for url in image_urls[:8]:
                try:
                    resp = await client.get(url)
                    resp.raise_for_status()
                    out.append(Image.open(BytesIO(resp.content)))
                except (httpx.HTTPError, UnidentifiedImageError) as exc:
                    logger.warning("skipping source image %s: %s", url, exc)
        finally:
            if self._http is None:
                await client.aclose()
        return out

    async def studio(
        self,
        image_urls: list[str],
        product_name: str | None,
        model_id: str | None = None,
    ) -> StudioResult:
        """
        Gemini image models usually return one image per call, so loop until we
        have `num_images` (or the model stops returning any).
        """
        from google.genai import types  # type: ignore

        model = model_id or settings.gemini_image_model
        sources = await self._load_sources(image_urls)
        if not sources:
            raise ProviderError("None of the source images could be downloaded", status_code=400)

        prompt = build_studio_prompt(product_name)
        urls: list[str] = []
        metas: list[dict[str, Any]] = []
        for _ in range(max(1, self.num_images)):
            contents: list[Any] = [prompt, *sources]
            try:
                resp = await self.client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=types.GenerateContentConfig(response_modalities=["image", "text"]),
                )
            except Exception as exc:
                logger.error("gemini request failed: %s", exc)
                raise ProviderError(str(exc) or "gemini request failed", status_code=500) from exc

            extracted = _extract_images_from_generate_content(resp)
            for img, meta in extracted:
                stored = self.media_store.save_image(img, f"studio_{len(urls) + 1}.png", folder="studio")
                urls.append(stored.secure_url)
                metas.append(meta | {"public_id": stored.public_id})
                if len(urls) >= self.num_images:
                    break
            if len(urls) >= self.num_images or not extracted:
                break

        if not urls:
            raise ProviderError("Model did not return images", status_code=500)
        return StudioResult(
            image_urls=urls,
            provider=self.name,
            model=model,
            raw={"images": [{"url": u, **m} for u, m in zip(urls, metas)]},
        )


def _extract_images_from_generate_content(resp: Any) -> list[tuple[Image.Image, dict[str, Any]]]:
    out: list[tuple[Image.Image, dict[str, Any]]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            try:
                img = Image.open(BytesIO(data))
            except UnidentifiedImageError:
                continue
            out.append((img, {"mime_type": mime}))
    return out
