from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class StudioResult:
    image_urls: list[str]
    provider: str
    model: str
    raw: dict[str, Any]


class StudioProvider(Protocol):
    name: str

    async def studio(
        self,
        image_urls: list[str],
        product_name: str | None,
        model_id: str | None = None,
    ) -> StudioResult: ...


STUDIO_BASE_PROMPT = """Please transform the uploaded product photo into a professional, clean studio-front product image using nano-level precision and full intelligent context understanding.

Preserve all original micro-details including the exact product shape, label design, printed text (Hebrew/English), barcodes, colors, logos, icons, proportions, and packaging identity.

Correct the shooting angle to a perfectly centered, straight, front-facing studio view, eliminating any top-down distortion or tilt. Straighten the product if it was leaning or rotated.
Remove all amateur reflections, glare, specular highlights, uneven lighting, shadow noise, fingerprint-like reflections, and environmental light artifacts.

Rebuild the product surface where reflections hide details, using molecular-level reconstruction while keeping the true original design.
Fix any dents, warping, crushed areas, or uneven packaging so it looks perfectly smooth, uniform, and professionally shaped.

Place the product on a pure white seamless studio background (#FFFFFF) with soft, clean, natural-looking shadowing that matches high-end ecommerce photography.
Remove all environmental objects, backgrounds, glass tables, room elements, and distractions.

If multiple images are provided, intelligently merge information to create the most accurate and complete studio-perfect final result.
Output must look like a high-end catalog image: sharp, clean, balanced, and photorealistic."""

DEV_BASE_PROMPT = """Please process all attached product images using nano-level precision and intelligent context understanding. Maintain the product's exact identity, shape, proportions, colors, printed graphics, logos, Hebrew/English texts, barcodes, and all micro-details exactly as in the original images. Remove all amateur lighting artifacts, reflections, glare, shadow noise, color casts, and distortions. Correct crushed, bent, or uneven packaging so it appears perfectly shaped, clean, and professionally presented. Reconstruct missing micro-details when needed with molecular-scale accuracy.

Place the product perfectly centered on a pure white (#FFFFFF) seamless studio background with soft, realistic, controlled studio shadows. Ensure the lighting is even and professional with no blown highlights. Align the product to face directly forward in a classic e-commerce studio angle unless the product shape requires slight curvature. Remove background objects, noise, and imperfections while preserving the true geometry and texture.

If multiple images are provided, intelligently merge visual information to produce the most accurate and complete studio-grade final result."""


def build_studio_prompt(product_name: str | None, base_prompt: str = STUDIO_BASE_PROMPT) -> str:
    return f"{base_prompt}\n\nProduct name: {product_name or 'N/A'}"
