from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any

from promo_studio.campaigns.templates import TemplateOption

PRODUCT_ATTRIBUTES: dict[str, str] = {
    "name": "Product name",
    "description": "Product description",
    "image_url": "Product image",
    "barcode": "Barcode",
}


def empty_mapping() -> dict[str, str | None]:
    return {key: None for key in PRODUCT_ATTRIBUTES}


def has_mapping(mapping: dict[str, str | None]) -> bool:
    return any(mapping.get(key) for key in PRODUCT_ATTRIBUTES)


@dataclass(frozen=True)
class ManualDeal:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    product_id: str | None = None
    product_label: str = ""
    barcode: str = ""
    product_search: str = ""
    custom_fields: dict[str, str] = field(default_factory=dict)

    def field_value(self, field_id: str) -> str:
        return self.custom_fields.get(field_id) or ""


@dataclass(frozen=True)
class CsvEntry:
    row_number: int
    data: dict[str, str]
    product_found: bool
    product_id: str | None = None
    missing_reason: str | None = None


@dataclass(frozen=True)
class DealPayload:
    id: str
    overrides: dict[str, dict[str, str]]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "overrides": self.overrides}


def product_attribute_value(key: str, product: dict[str, Any]) -> str:
    if key not in PRODUCT_ATTRIBUTES:
        return ""
    return product.get(key) or ""


def apply_mapping(deal: ManualDeal, product: dict[str, Any], mapping: dict[str, str | None]) -> ManualDeal:
    """Copy mapped product attributes into the deal's fields; empty values never overwrite."""
    updated = dict(deal.custom_fields)
    for product_key, field_id in mapping.items():
        if not field_id:
            continue
        value = product_attribute_value(product_key, product)
        if value:
            updated[field_id] = value
    return replace(deal, custom_fields=updated)


def select_product(
    deal: ManualDeal,
    product: dict[str, Any],
    mapping: dict[str, str | None],
) -> tuple[ManualDeal, bool]:
    """
    Bind a library product to a deal. Returns the updated deal and whether a
    field mapping still has to be chosen before product values can flow in.
    """
    selected = replace(
        deal,
        product_id=product.get("id"),
        product_label=product.get("name") or "",
        product_search=product.get("name") or "",
        barcode=product.get("barcode") or "",
    )
    if has_mapping(mapping):
        return apply_mapping(selected, product, mapping), False
    return selected, True


def build_override_value(field_id: str, value: str, template: TemplateOption | None) -> dict[str, str] | None:
    if not value:
        return None
    tpl_field = template.get_field(field_id) if template else None
    attribute_key = tpl_field.attribute_key if tpl_field else None
    if not attribute_key:
        attribute_key = "image_url" if tpl_field and tpl_field.type == "image" else "payload"
    return {attribute_key: value}


def _overrides(
    selected_fields: list[str],
    template: TemplateOption | None,
    lookup: Any,
) -> dict[str, dict[str, str]]:
    out: dict[str, dict[str, str]] = {}
    for field_id in selected_fields:
        override = build_override_value(field_id, lookup(field_id), template)
        if override:
            out[field_id] = override
    return out


def manual_deals_payload(
    deals: list[ManualDeal],
    selected_fields: list[str],
    template: TemplateOption | None,
) -> list[DealPayload]:
    return [
        DealPayload(id=deal.id, overrides=_overrides(selected_fields, template, deal.field_value))
        for deal in deals
    ]


def _csv_value(row: dict[str, str], field_id: str) -> str:
    for key in (field_id, field_id.upper(), field_id.lower()):
        if key in row and row[key] is not None:
            return row[key]
    return ""


def match_csv_rows(rows: list[dict[str, str]], products: list[dict[str, Any]]) -> tuple[list[CsvEntry], list[str]]:
    """Match already-parsed CSV rows to library products by barcode."""
    by_barcode: dict[str, dict[str, Any]] = {}
    for p in products:
        if p.get("barcode"):
            by_barcode.setdefault(p["barcode"], p)
    entries: list[CsvEntry] = []
    for idx, row in enumerate(rows):
        barcode = (row.get("barcode") or "").strip()
        product = by_barcode.get(barcode) if barcode else None
        entries.append(
            CsvEntry(
                # Row 1 of the file is the header.
                row_number=idx + 2,
                data=row,
                product_found=product is not None,
                product_id=product.get("id") if product else None,
                missing_reason=None if product else "Product does not exist in the library",
            )
        )
    missing = [e.data.get("barcode") or "" for e in entries if not e.product_found]
    return entries, missing


def csv_deals_payload(
    entries: list[CsvEntry],
    selected_fields: list[str],
    template: TemplateOption | None,
) -> list[DealPayload]:
    return [
        DealPayload(
            id=f"csv-{entry.row_number}",
            overrides=_overrides(selected_fields, template, lambda fid, row=entry.data: _csv_value(row, fid)),
        )
        for entry in entries
        if entry.product_found
    ]


def can_generate_manual(payload: list[DealPayload], template: TemplateOption | None) -> bool:
    if template is None:
        return False
    required = [f.id for f in template.fields if f.required]
    return any(all(deal.overrides.get(fid) for fid in required) for deal in payload)


def can_generate_csv(payload: list[DealPayload], missing_products: list[str]) -> bool:
    return bool(payload) and not missing_products


def extract_result_url(data: Any) -> str:
    if not isinstance(data, dict):
        return ""

    def dig(*path: str) -> Any:
        cur: Any = data
        for key in path:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(key)
        return cur

    for path in (
        ("file", "url"),
        ("file", "cdn_url"),
        ("image", "url"),
        ("banner", "file", "url"),
        ("banner", "url"),
        ("url",),
        ("media", "url"),
    ):
        value = dig(*path)
        if value:
            return str(value)
    return ""


def layout_preview_dimensions(size: str | None, base: float = 42) -> dict[str, float]:
    """Thumbnail box for a `WxH` layout size, keeping the short side at least 24."""
    try:
        w, h = (float(v) for v in (size or "").split("x", 1))
    except ValueError:
        return {"width": base, "height": base}
    if not w or not h:
        return {"width": base, "height": base}
    ratio = h / w
    if ratio == 1:
        return {"width": base, "height": base}
    if ratio > 1:
        return {"width": max(24, base / ratio), "height": base}
    return {"width": base, "height": max(24, base * ratio)}
