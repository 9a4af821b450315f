from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from promo_studio.campaigns.deals import ManualDeal


class SupplierIn(BaseModel):
    name: str
    logo_url: str | None = None
    brand_color: str | None = None


class ProductIn(BaseModel):
    name: str
    barcode: str | None = None
    description: str | None = None
    supplier_id: str | None = None
    image_url: str | None = None


class ApiKeyIn(BaseModel):
    value: str


class CampaignIn(BaseModel):
    title: str
    template_id: str | None = None
    selected_fields: list[str] = Field(default_factory=list)
    selected_layouts: list[str] = Field(default_factory=list)


class DealIn(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    product_id: str | None = None
    product_label: str = ""
    barcode: str = ""
    product_search: str = ""
    custom_fields: dict[str, str] = Field(default_factory=dict)

    def to_deal(self) -> ManualDeal:
        return ManualDeal(
            id=self.id,
            product_id=self.product_id,
            product_label=self.product_label,
            barcode=self.barcode,
            product_search=self.product_search,
            custom_fields=dict(self.custom_fields),
        )


class SelectProductIn(BaseModel):
    deal: DealIn
    product_id: str
    mapping: dict[str, str | None] = Field(default_factory=dict)


class CsvMatchIn(BaseModel):
    rows: list[dict[str, str]]


class GenerateCampaignIn(BaseModel):
    template_id: str
    selected_fields: list[str] = Field(default_factory=list)
    layouts: list[str] = Field(default_factory=list)
    mode: Literal["manual", "csv"] = "manual"
    manual_deals: list[DealIn] = Field(default_factory=list)
    csv_rows: list[dict[str, str]] = Field(default_factory=list)
    campaign_id: str | None = None


# Serverless-compatible bodies keep their camelCase keys.


class StudioIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Checked in the handlers, which answer 400 with an error body.
    image_urls: Any = Field(default=None, alias="imageUrls")
    product_name: str | None = Field(default=None, alias="productName")
    model_id: str | None = Field(default=None, alias="modelId")

    def url_list(self) -> list[str]:
        if not isinstance(self.image_urls, list):
            return []
        return [url for url in self.image_urls if isinstance(url, str) and url]


class StudioSaveNewIn(BaseModel):
    image_url: str | None = None
    name: str = ""
    barcode: str | None = None
    supplier_id: str | None = None


class StudioAttachIn(BaseModel):
    image_url: str | None = None
    product_id: str | None = None


class AbyssaleRunIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    action: str | None = None
    template_id: str | None = Field(default=None, alias="templateId")
    deals: Any = None
    layouts: Any = None


class ResultsZipIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entries: Any = None
    file_name: str | None = Field(default=None, alias="fileName")
