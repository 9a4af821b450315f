"""Local stand-in for the studio function: one endpoint, first image only."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promo_studio.api.schemas import StudioIn
from promo_studio.config import configure_logging, settings
from promo_studio.errors import ProviderError
from promo_studio.providers.base import DEV_BASE_PROMPT, build_studio_prompt
from promo_studio.providers.fal_provider import FalStudioProvider, extract_output_images

logger = logging.getLogger(__name__)

app = FastAPI(title="promo_studio dev studio server")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def get_dev_provider() -> FalStudioProvider:
    if not settings.fal_api_key:
        raise RuntimeError("FAL_API_KEY is not set")
    return FalStudioProvider(api_key=settings.fal_api_key, default_model=settings.dev_model_id)


def build_dev_arguments(image_urls: list[str], product_name: str | None) -> dict[str, Any]:
    return {
        "prompt": build_studio_prompt(product_name, base_prompt=DEV_BASE_PROMPT),
        "images": [
            {"type": "input_image", "image_url": url, "name": f"source_{idx}"}
            for idx, url in enumerate(image_urls, start=1)
        ],
    }


@app.post("/api/ai/studio")
async def dev_studio(body: StudioIn, provider: FalStudioProvider = Depends(get_dev_provider)):
    image_urls = body.url_list()
    if not image_urls:
        return JSONResponse(status_code=400, content={"error": "At least one image is required"})
    try:
        response = await provider.subscribe(
            body.model_id or provider.default_model,
            build_dev_arguments(image_urls, body.product_name),
        )
    except ProviderError as exc:
        logger.error("FAL request failed: %s", exc.message)
        return JSONResponse(status_code=500, content={"error": exc.message or "The call to fal failed"})

    images = extract_output_images(response)
    first = images[0] if images else {}
    if not first.get("url"):
        return JSONResponse(
            status_code=500,
            content={"error": "The model response did not include an image", "raw": response},
        )
    return {"imageUrl": first["url"], "raw": response}


def main() -> None:
    import uvicorn

    configure_logging()
    if not settings.fal_api_key:
        logger.error("Missing FAL_API_KEY in environment or .env")
        raise SystemExit(1)
    logger.info("AI studio server listening on http://localhost:%s", settings.ai_server_port)
    uvicorn.run(app, host="0.0.0.0", port=settings.ai_server_port)


if __name__ == "__main__":
    main()
