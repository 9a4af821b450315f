from __future__ import annotations

import logging
from typing import Any

from supabase import Client

logger = logging.getLogger(__name__)

PRODUCT_SUPPLIER_EMBED = "*, suppliers(id, name, logo_url, brand_color)"


def _blank_to_none(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, str):
            value = value.strip() or None
        out[key] = value
    return out


def _first(rows: list[dict[str, Any]] | None) -> dict[str, Any] | None:
    if not rows:
        return None
    return rows[0]


def _flatten_supplier(row: dict[str, Any]) -> dict[str, Any]:
    # PostgREST returns a many-to-one embed as an object, older clients as a list.
    out = dict(row)
    embedded = out.pop("suppliers", None)
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    out["supplier"] = embedded
    return out


def filter_products(products: list[dict[str, Any]], supplier_id: str = "", search: str = "") -> list[dict[str, Any]]:
    term = (search or "").strip().lower()
    out: list[dict[str, Any]] = []
    for product in products:
        if supplier_id and product.get("supplier_id") != supplier_id:
            continue
        if term:
            name = (product.get("name") or "").lower()
            barcode = product.get("barcode") or ""
            if term not in name and term not in barcode:
                continue
        out.append(product)
    return out


class BackOfficeRepository:
    """Table access for suppliers, products, assets, campaigns and settings."""

    def __init__(self, client: Client) -> None:
        self.client = client

    # Suppliers

    def list_suppliers(self) -> list[dict[str, Any]]:
        res = self.client.table("suppliers").select("*, products(count)").order("name").execute()
        out: list[dict[str, Any]] = []
        for row in res.data or []:
            counts = row.get("products") or [{}]
            out.append(
                {
                    "id": row["id"],
                    "name": row["name"],
                    "logo_url": row.get("logo_url"),
                    "brand_color": row.get("brand_color"),
                    "products_count": (counts[0] or {}).get("count", 0) if counts else 0,
                }
            )
        return out

    def create_supplier(self, name: str, logo_url: str | None = None, brand_color: str | None = None) -> dict[str, Any]:
        payload = _blank_to_none({"name": name, "logo_url": logo_url, "brand_color": brand_color})
        res = self.client.table("suppliers").insert(payload).execute()
        return res.data[0]

    def update_supplier(self, supplier_id: str, name: str, logo_url: str | None = None, brand_color: str | None = None) -> dict[str, Any] | None:
        payload = _blank_to_none({"name": name, "logo_url": logo_url, "brand_color": brand_color})
        res = self.client.table("suppliers").update(payload).eq("id", supplier_id).execute()
        return _first(res.data)

    # Products

    def list_products(self) -> list[dict[str, Any]]:
        res = (
            self.client.table("products")
            .select(PRODUCT_SUPPLIER_EMBED)
            .order("created_at", desc=True)
            .execute()
        )
        return [_flatten_supplier(row) for row in res.data or []]

    def list_product_summaries(self) -> list[dict[str, Any]]:
        res = (
            self.client.table("products")
            .select("id, name, barcode, description, image_url, suppliers(name)")
            .order("name")
            .execute()
        )
        out: list[dict[str, Any]] = []
        for row in res.data or []:
            supplier = _flatten_supplier(row).get("supplier") or {}
            out.append(
                {
                    "id": row["id"],
                    "name": row["name"],
                    "barcode": row.get("barcode"),
                    "description": row.get("description"),
                    "image_url": row.get("image_url"),
                    "supplier_name": supplier.get("name"),
                }
            )
        return out

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        res = self.client.table("products").select("*").eq("id", product_id).limit(1).execute()
        return _first(res.data)

    def create_product(self, **fields: Any) -> dict[str, Any]:
        res = self.client.table("products").insert(_blank_to_none(fields)).execute()
        return res.data[0]

    def update_product(self, product_id: str, **fields: Any) -> dict[str, Any] | None:
        res = self.client.table("products").update(_blank_to_none(fields)).eq("id", product_id).execute()
        return _first(res.data)

    def set_product_image(self, product_id: str, image_url: str) -> dict[str, Any] | None:
        res = self.client.table("products").update({"image_url": image_url}).eq("id", product_id).execute()
        return _first(res.data)

    def delete_product(self, product_id: str) -> list[dict[str, Any]]:
        """Delete a product and its asset rows; returns the removed asset rows."""
        self.client.table("products").delete().eq("id", product_id).execute()
        res = self.client.table("product_assets").delete().eq("product_id", product_id).execute()
        return res.data or []

    # Assets

    def list_assets(self, product_id: str | None = None) -> list[dict[str, Any]]:
        query = self.client.table("product_assets").select("*")
        if product_id:
            query = query.eq("product_id", product_id)
        res = query.order("created_at", desc=True).execute()
        return res.data or []

    def create_asset(self, payload: dict[str, Any]) -> dict[str, Any]:
        res = self.client.table("product_assets").insert(payload).execute()
        return res.data[0]

    def delete_asset(self, asset_id: str) -> dict[str, Any] | None:
        res = self.client.table("product_assets").delete().eq("id", asset_id).execute()
        return _first(res.data)

    # Campaigns

    def list_campaigns(self) -> list[dict[str, Any]]:
        res = self.client.table("campaigns").select("*").order("created_at", desc=True).execute()
        return res.data or []

    def get_campaign(self, campaign_id: str) -> dict[str, Any] | None:
        res = self.client.table("campaigns").select("*").eq("id", campaign_id).limit(1).execute()
        return _first(res.data)

    def create_campaign(self, payload: dict[str, Any]) -> dict[str, Any]:
        payload = dict(payload)
        payload.setdefault("status", "draft")
        res = self.client.table("campaigns").insert(payload).execute()
        return res.data[0]

    def update_campaign(self, campaign_id: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        res = self.client.table("campaigns").update(payload).eq("id", campaign_id).execute()
        return _first(res.data)

    # Platform settings

    def get_setting(self, key: str) -> str | None:
        res = self.client.table("platform_settings").select("value").eq("key", key).limit(1).execute()
        row = _first(res.data)
        return (row or {}).get("value")

    def upsert_setting(self, key: str, value: str) -> None:
        self.client.table("platform_settings").upsert({"key": key, "value": value}, on_conflict="key").execute()
        logger.info("platform setting %s saved", key)
