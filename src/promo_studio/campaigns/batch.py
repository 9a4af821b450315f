from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from promo_studio.campaigns.deals import extract_result_url
from promo_studio.errors import ProviderError

logger = logging.getLogger(__name__)


class BannerGenerator(Protocol):
    async def generate(
        self,
        template_id: str,
        elements: dict[str, Any],
        template_format_name: str | None = None,
    ) -> dict[str, Any]: ...


class BatchRequestError(ValueError):
    pass


@dataclass(frozen=True)
class DealResult:
    deal_id: str
    layout: str | None
    status: str  # success|error
    data: dict[str, Any] | None = None
    message: str | None = None

    @property
    def url(self) -> str:
        return extract_result_url(self.data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"dealId": self.deal_id, "layout": self.layout, "status": self.status}
        if self.status == "success":
            out["data"] = self.data
        else:
            out["message"] = self.message
        return out


async def generate_batch(
    generator: BannerGenerator,
    template_id: str | None,
    deals: list[dict[str, Any]],
    layouts: list[str] | None = None,
) -> list[DealResult]:
    """One generate call per deal and layout, in order; failures are recorded, never raised."""
    if not template_id:
        raise BatchRequestError("Missing template id (templateId)")
    if not isinstance(deals, list) or not deals:
        raise BatchRequestError("At least one deal is required")

    target_layouts: list[str | None] = list(layouts or []) or [None]
    results: list[DealResult] = []
    for deal in deals:
        deal_id = deal.get("id")
        for layout in target_layouts:
            try:
                data = await generator.generate(template_id, deal.get("overrides") or {}, layout)
            except ProviderError as exc:
                results.append(DealResult(deal_id, layout, "error", message=exc.message))
                continue
            except httpx.HTTPError as exc:
                logger.error("banner generate failed for deal %s layout %s: %s", deal_id, layout, exc)
                results.append(DealResult(deal_id, layout, "error", message=str(exc)))
                continue
            results.append(DealResult(deal_id, layout, "success", data=data))
    return results


def summarize(results: list[DealResult]) -> dict[str, Any]:
    success = sum(1 for r in results if r.status == "success")
    failed = sum(1 for r in results if r.status == "error")
    if failed:
        message = f"Some requests failed ({failed}). Check the settings and try again."
    else:
        message = f"Generation completed successfully ({success})"
    return {"success_count": success, "fail_count": failed, "message": message, "ok": failed == 0}
