from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from promo_studio.config import settings
from promo_studio.errors import ProviderError

logger = logging.getLogger(__name__)


class AbyssaleClient:
    """Thin async client for the banner-template provider."""

    name = "abyssale"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = (base_url or settings.abyssale_base_url).rstrip("/")
        self._transport = transport

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers(),
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def fetch_templates(self) -> list[dict[str, Any]]:
        """List designs, each enriched with its `details` when the detail call succeeds."""
        async with self._client() as client:
            resp = await client.get("/designs")
            if resp.is_error:
                logger.error("abyssale templates error %s %s", resp.status_code, resp.text)
                raise ProviderError(
                    f"Abyssale templates request failed ({resp.status_code}): {resp.text}",
                    status_code=400,
                )
            try:
                data = resp.json()
            except ValueError as exc:
                logger.error("abyssale templates returned non-JSON body: %s", resp.text[:200])
                raise ProviderError("Abyssale templates response is not valid JSON", status_code=400) from exc
            if isinstance(data, dict) and isinstance(data.get("designs"), list):
                designs = data["designs"]
            elif isinstance(data, list):
                designs = data
            else:
                designs = []

            return list(await asyncio.gather(*(self._with_details(client, d) for d in designs)))

    async def _with_details(self, client: httpx.AsyncClient, design: dict[str, Any]) -> dict[str, Any]:
        design_id = design.get("id")
        try:
            resp = await client.get(f"/designs/{design_id}")
        except httpx.HTTPError as exc:
            logger.error("abyssale design details fetch failed %s: %s", design_id, exc)
            return design
        if resp.is_error:
            logger.error("abyssale design details error %s %s", design_id, resp.text)
            return design
        try:
            details = resp.json()
        except ValueError:
            logger.error("abyssale design details for %s are not JSON", design_id)
            return design
        return {**design, "details": details}

    async def generate(
        self,
        template_id: str,
        elements: dict[str, Any],
        template_format_name: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"elements": elements}
        if template_format_name:
            body["template_format_name"] = template_format_name
        async with self._client() as client:
            resp = await client.post(f"/banner-builder/{template_id}/generate", json=body)
        try:
            data = resp.json()
        except ValueError:
            data = {"message": resp.text}
        if resp.is_error:
            logger.error("abyssale generate error %s %s", resp.status_code, data)
            message = None
            if isinstance(data, dict):
                message = data.get("message") or data.get("error")
            raise ProviderError(message or "Abyssale request failed", status_code=resp.status_code, raw=data)
        return data
