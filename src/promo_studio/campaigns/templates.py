from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class TemplateField:
    id: str
    label: str
    type: str  # text|number|image
    required: bool = False
    attribute_key: str | None = None


@dataclass(frozen=True)
class TemplateLayout:
    id: str
    name: str
    size: str


@dataclass(frozen=True)
class TemplateOption:
    id: str
    name: str
    fields: list[TemplateField]
    layouts: list[TemplateLayout]
    preview_url: str | None = None
    metadata: Any = None

    def get_field(self, field_id: str) -> TemplateField | None:
        return next((f for f in self.fields if f.id == field_id), None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


FALLBACK_TEMPLATES: list[TemplateOption] = [
    TemplateOption(
        id="template_hero",
        name="Hero Promo",
        fields=[
            TemplateField("product_name", "Product name", "text", required=True),
            TemplateField("product_description", "Description", "text"),
            TemplateField("promo_price", "Promo price", "number", required=True),
            TemplateField("promo_limit", "Purchase limit", "text"),
            TemplateField("product_image", "Product image", "image", required=True),
        ],
        layouts=[
            TemplateLayout("square", "Feed 1080x1080", "1080x1080"),
            TemplateLayout("story", "Story", "1080x1920"),
            TemplateLayout("banner", "Banner 1200x628", "1200x628"),
        ],
    ),
    TemplateOption(
        id="template_price_tag",
        name="Price Tag",
        fields=[
            TemplateField("product_name", "Product name", "text", required=True),
            TemplateField("promo_price", "Price", "number", required=True),
            TemplateField("currency", "Currency", "text"),
        ],
        layouts=[TemplateLayout("square", "1080x1080", "1080x1080")],
    ),
]


def _field_type(raw: Any) -> str:
    if raw == "image":
        return "image"
    if raw == "number":
        return "number"
    return "text"


def _map_field(raw: dict[str, Any]) -> TemplateField:
    ftype = _field_type(raw.get("type"))
    settings = raw.get("settings") if isinstance(raw.get("settings"), dict) else {}
    required = settings.get("is_mandatory")
    if required is None:
        required = raw.get("required", False)
    attributes = raw.get("attributes") if isinstance(raw.get("attributes"), list) else []
    first_attr = attributes[0] if attributes and isinstance(attributes[0], dict) else {}
    attribute_key = first_attr.get("id") or ("image_url" if ftype == "image" else "payload")
    field_id = raw.get("name") or raw.get("id")
    return TemplateField(
        id=field_id,
        label=raw.get("display_name") or raw.get("name") or raw.get("id"),
        type=ftype,
        required=bool(required),
        attribute_key=attribute_key,
    )


def _map_layout(raw: dict[str, Any]) -> TemplateLayout:
    size = raw.get("size") or raw.get("dimensions")
    if not size and raw.get("width") and raw.get("height"):
        size = f"{raw['width']}x{raw['height']}"
    return TemplateLayout(
        id=raw.get("id") or raw.get("uid") or raw.get("name") or raw.get("format_id"),
        name=raw.get("name") or raw.get("id") or "Layout",
        size=size or "",
    )


def map_abyssale_templates(payload: Any) -> list[TemplateOption]:
    """Reshape provider designs (optionally carrying `details`) into template options."""
    if not isinstance(payload, list):
        return []
    out: list[TemplateOption] = []
    for tpl in payload:
        if not isinstance(tpl, dict):
            continue
        details = tpl.get("details") if isinstance(tpl.get("details"), dict) else {}
        raw_fields = details.get("elements") or tpl.get("elements") or tpl.get("fields") or []
        raw_layouts = details.get("formats") or tpl.get("formats") or tpl.get("layouts") or []
        formats = details.get("formats") or []
        preview = None
        if formats and isinstance(formats[0], dict):
            preview = formats[0].get("preview_url")
        out.append(
            TemplateOption(
                id=tpl.get("id") or tpl.get("template_id") or tpl.get("name"),
                name=tpl.get("name") or tpl.get("title") or tpl.get("id") or "Untitled template",
                fields=[_map_field(f) for f in raw_fields if isinstance(f, dict)],
                layouts=[_map_layout(layout) for layout in raw_layouts if isinstance(layout, dict)],
                preview_url=preview or tpl.get("preview_url"),
                metadata=tpl.get("details"),
            )
        )
    return out


@dataclass
class TemplateCatalog:
    templates: list[TemplateOption]
    error: str | None = None
    remote: bool = False
    by_id: dict[str, TemplateOption] = field(init=False)

    def __post_init__(self) -> None:
        self.by_id = {t.id: t for t in self.templates}

    def get(self, template_id: str | None) -> TemplateOption | None:
        if template_id and template_id in self.by_id:
            return self.by_id[template_id]
        return self.templates[0] if self.templates else None


def catalog_from_remote(payload: Any, error: str | None = None) -> TemplateCatalog:
    """Remote templates when there are any, otherwise the built-in fallbacks."""
    if error:
        return TemplateCatalog(list(FALLBACK_TEMPLATES), error=error)
    remote = map_abyssale_templates(payload)
    if remote:
        return TemplateCatalog(remote, remote=True)
    return TemplateCatalog(list(FALLBACK_TEMPLATES))
