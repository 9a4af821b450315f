from __future__ import annotations

import logging
from typing import Any

from promo_studio.config import settings
from promo_studio.errors import ProviderError
from promo_studio.providers.base import StudioResult, build_studio_prompt

logger = logging.getLogger(__name__)


def extract_output_images(response: Any) -> list[dict[str, Any]]:
    """Pull the image objects out of a model response, whatever its envelope."""
    if not isinstance(response, dict):
        return []
    data = response.get("data") if isinstance(response.get("data"), dict) else {}
    outputs = data.get("images") or response.get("images") or response.get("output") or []
    if not isinstance(outputs, list):
        outputs = [outputs]
    return [o for o in outputs if isinstance(o, dict)]


def extract_output_urls(response: Any) -> list[str]:
    return [str(o["url"]) for o in extract_output_images(response) if o.get("url")]


class FalStudioProvider:
    name = "fal"

    def __init__(self, api_key: str, default_model: str | None = None, num_images: int | None = None) -> None:
        # Imported lazily so the app can start without the dependency installed.
        import fal_client  # type: ignore

        self.client = fal_client.AsyncClient(key=api_key)
        self.default_model = default_model or settings.fal_model_id
        self.num_images = num_images or settings.studio_num_images

    async def subscribe(self, model_id: str, arguments: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.client.subscribe(model_id, arguments=arguments, with_logs=True)
        except Exception as exc:
            logger.error("fal request to %s failed: %s", model_id, exc)
            raise ProviderError(str(exc) or "fal request failed", status_code=500) from exc

    async def studio(
        self,
        image_urls: list[str],
        product_name: str | None,
        model_id: str | None = None,
    ) -> StudioResult:
        model = model_id or self.default_model
        response = await self.subscribe(
            model,
            {
                "prompt": build_studio_prompt(product_name),
                "image_urls": image_urls,
                "num_images": self.num_images,
                "output_format": "png",
            },
        )
        urls = extract_output_urls(response)
        if not urls:
            raise ProviderError("Model did not return images", status_code=500, raw=response)
        return StudioResult(image_urls=urls, provider=self.name, model=model, raw=response)
