from __future__ import annotations

import base64
import logging
import time
from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from typing import Any, AsyncIterator

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from postgrest.exceptions import APIError

from promo_studio.api.schemas import (
    AbyssaleRunIn,
    ApiKeyIn,
    CampaignIn,
    CsvMatchIn,
    GenerateCampaignIn,
    ProductIn,
    ResultsZipIn,
    SelectProductIn,
    StudioAttachIn,
    StudioIn,
    StudioSaveNewIn,
    SupplierIn,
)
from promo_studio.assembly.zip_export import ZipEntry, build_results_zip
from promo_studio.campaigns.batch import BatchRequestError, generate_batch, summarize
from promo_studio.campaigns.deals import (
    apply_mapping,
    can_generate_csv,
    can_generate_manual,
    csv_deals_payload,
    layout_preview_dimensions,
    manual_deals_payload,
    match_csv_rows,
    select_product,
)
from promo_studio.campaigns.templates import TemplateCatalog, catalog_from_remote
from promo_studio.config import configure_logging, settings
from promo_studio.db import get_supabase_client
from promo_studio.errors import NotConfiguredError, ProviderError
from promo_studio.providers.abyssale import AbyssaleClient
from promo_studio.providers.base import StudioProvider
from promo_studio.providers.fal_provider import FalStudioProvider
from promo_studio.providers.gemini_provider import GeminiStudioProvider
from promo_studio.repository import BackOfficeRepository, filter_products
from promo_studio.storage import MediaStore, StoredMedia

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="promo_studio back office")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(ProviderError)
async def _provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(NotConfiguredError)
async def _not_configured_handler(request: Request, exc: NotConfiguredError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(APIError)
async def _backend_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.error("backend query failed: %s", exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message or "backend query failed"})


# Dependencies


def get_repository() -> BackOfficeRepository:
    return BackOfficeRepository(get_supabase_client())


@lru_cache(maxsize=1)
def get_media_store() -> MediaStore:
    return MediaStore()


def get_studio_provider(media_store: MediaStore = Depends(get_media_store)) -> StudioProvider | None:
    if settings.studio_provider == "gemini":
        if not settings.gemini_api_key:
            return None
        return GeminiStudioProvider(api_key=settings.gemini_api_key, media_store=media_store)
    if not settings.fal_api_key:
        return None
    return FalStudioProvider(api_key=settings.fal_api_key)


def get_abyssale_client(repo: BackOfficeRepository = Depends(get_repository)) -> AbyssaleClient | None:
    api_key = repo.get_setting(settings.abyssale_settings_key)
    if not api_key:
        return None
    return AbyssaleClient(api_key=api_key)


async def get_download_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True) as client:
        yield client


def _require(value: str | None, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail=message)
    return cleaned


def _media_payload(media: StoredMedia) -> dict[str, Any]:
    return asdict(media)


async def _load_catalog(client: AbyssaleClient | None) -> TemplateCatalog:
    if client is None:
        return catalog_from_remote(None, error="Abyssale API key is not saved in platform settings")
    try:
        designs = await client.fetch_templates()
    except ProviderError as exc:
        return catalog_from_remote(None, error=exc.message)
    except httpx.HTTPError as exc:
        logger.error("abyssale templates fetch failed: %s", exc)
        return catalog_from_remote(None, error="Could not fetch templates from the API")
    return catalog_from_remote(designs)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Media


@app.post("/media/upload")
async def upload_media(
    folder: str = Form("uploads"),
    file: UploadFile = File(...),
    media_store: MediaStore = Depends(get_media_store),
):
    content = await file.read()
    try:
        stored = media_store.save(file.filename or "upload.bin", content, folder=folder.strip("/") or "uploads")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _media_payload(stored)


# Suppliers


@app.get("/suppliers")
def list_suppliers(repo: BackOfficeRepository = Depends(get_repository)):
    return repo.list_suppliers()


@app.post("/suppliers", status_code=201)
def create_supplier(body: SupplierIn, repo: BackOfficeRepository = Depends(get_repository)):
    name = _require(body.name, "supplier name is required")
    return repo.create_supplier(name=name, logo_url=body.logo_url, brand_color=body.brand_color)


@app.put("/suppliers/{supplier_id}")
def update_supplier(supplier_id: str, body: SupplierIn, repo: BackOfficeRepository = Depends(get_repository)):
    name = _require(body.name, "supplier name is required")
    updated = repo.update_supplier(supplier_id, name=name, logo_url=body.logo_url, brand_color=body.brand_color)
    if updated is None:
        raise HTTPException(status_code=404, detail="supplier not found")
    return updated


# Products & media library


@app.get("/products")
def list_products(
    supplier_id: str = "",
    search: str = "",
    repo: BackOfficeRepository = Depends(get_repository),
):
    products = filter_products(repo.list_products(), supplier_id=supplier_id, search=search)
    counts: dict[str, int] = {}
    for asset in repo.list_assets():
        counts[asset["product_id"]] = counts.get(asset["product_id"], 0) + 1
    return [p | {"versions_count": counts.get(p["id"], 0)} for p in products]


@app.get("/products/summaries")
def list_product_summaries(repo: BackOfficeRepository = Depends(get_repository)):
    return repo.list_product_summaries()


@app.post("/products", status_code=201)
def create_product(body: ProductIn, repo: BackOfficeRepository = Depends(get_repository)):
    fields = body.model_dump()
    fields["name"] = _require(body.name, "product name is required")
    return repo.create_product(**fields)


@app.put("/products/{product_id}")
def update_product(product_id: str, body: ProductIn, repo: BackOfficeRepository = Depends(get_repository)):
    fields = body.model_dump()
    fields["name"] = _require(body.name, "product name is required")
    updated = repo.update_product(product_id, **fields)
    if updated is None:
        raise HTTPException(status_code=404, detail="product not found")
    return updated


@app.delete("/products/{product_id}")
def delete_product(
    product_id: str,
    repo: BackOfficeRepository = Depends(get_repository),
    media_store: MediaStore = Depends(get_media_store),
):
    removed = repo.delete_product(product_id)
    for asset in removed:
        _delete_media_quietly(media_store, asset.get("cloudinary_public_id"))
    return {"deleted": product_id, "assets_deleted": len(removed)}


@app.post("/products/{product_id}/image")
async def replace_product_image(
    product_id: str,
    file: UploadFile = File(...),
    repo: BackOfficeRepository = Depends(get_repository),
    media_store: MediaStore = Depends(get_media_store),
):
    if repo.get_product(product_id) is None:
        raise HTTPException(status_code=404, detail="product not found")
    content = await file.read()
    stored = media_store.save(file.filename or "image.png", content, folder="products")
    return repo.set_product_image(product_id, stored.secure_url)


@app.get("/products/{product_id}/assets")
def list_product_assets(product_id: str, repo: BackOfficeRepository = Depends(get_repository)):
    return repo.list_assets(product_id)


@app.post("/products/{product_id}/assets", status_code=201)
async def upload_product_assets(
    product_id: str,
    version_label: str = Form(""),
    files: list[UploadFile] = File(...),
    repo: BackOfficeRepository = Depends(get_repository),
    media_store: MediaStore = Depends(get_media_store),
):
    if repo.get_product(product_id) is None:
        raise HTTPException(status_code=404, detail="product not found")
    created: list[dict[str, Any]] = []
    for upload in files:
        content = await upload.read()
        filename = upload.filename or "asset.bin"
        stored = media_store.save(filename, content, folder="assets")
        created.append(
            repo.create_asset(
                {
                    "product_id": product_id,
                    "version_label": version_label.strip() or filename,
                    "file_type": stored.format,
                    "original_filename": stored.original_filename,
                    "cloudinary_public_id": stored.public_id,
                    "cloudinary_url": stored.secure_url,
                    "png_url": stored.png_url,
                    "file_size": stored.bytes,
                    "width": stored.width,
                    "height": stored.height,
                }
            )
        )
    return created


@app.delete("/assets/{asset_id}")
def delete_asset(
    asset_id: str,
    repo: BackOfficeRepository = Depends(get_repository),
    media_store: MediaStore = Depends(get_media_store),
):
    removed = repo.delete_asset(asset_id)
    if removed is None:
        raise HTTPException(status_code=404, detail="asset not found")
    _delete_media_quietly(media_store, removed.get("cloudinary_public_id"))
    return {"deleted": asset_id}


def _delete_media_quietly(media_store: MediaStore, public_id: str | None) -> None:
    if not public_id:
        return
    try:
        media_store.delete(public_id)
    except ValueError:
        logger.warning("not deleting media outside the library: %s", public_id)


# Platform settings


@app.get("/settings/abyssale-key")
def get_abyssale_key(repo: BackOfficeRepository = Depends(get_repository)):
    value = repo.get_setting(settings.abyssale_settings_key)
    return {"key": settings.abyssale_settings_key, "value": value or "", "configured": bool(value)}


@app.put("/settings/abyssale-key")
def save_abyssale_key(body: ApiKeyIn, repo: BackOfficeRepository = Depends(get_repository)):
    repo.upsert_setting(settings.abyssale_settings_key, body.value.strip())
    return {"key": settings.abyssale_settings_key, "saved": True}


# AI studio


@app.post("/functions/ai-studio")
async def ai_studio(body: StudioIn, provider: StudioProvider | None = Depends(get_studio_provider)):
    if provider is None:
        return JSONResponse(status_code=500, content={"error": "FAL_API_KEY is not configured"})
    image_urls = body.url_list()
    if not image_urls:
        return JSONResponse(status_code=400, content={"error": "imageUrls must contain at least one image URL"})
    try:
        result = await provider.studio(image_urls, body.product_name, body.model_id)
    except ProviderError as exc:
        logger.error("ai-studio function error: %s", exc.message)
        content: dict[str, Any] = {"error": exc.message}
        if exc.raw is not None:
            content["raw"] = exc.raw
        return JSONResponse(status_code=exc.status_code, content=content)
    return {"imageUrls": result.image_urls, "raw": result.raw}


@app.post("/studio/save-new", status_code=201)
def studio_save_new(body: StudioSaveNewIn, repo: BackOfficeRepository = Depends(get_repository)):
    image_url = _require(body.image_url, "no image was selected to save")
    name = _require(body.name, "enter a product name before saving")
    return repo.create_product(name=name, barcode=body.barcode, supplier_id=body.supplier_id, image_url=image_url)


@app.post("/studio/attach")
def studio_attach(body: StudioAttachIn, repo: BackOfficeRepository = Depends(get_repository)):
    image_url = _require(body.image_url, "no image was selected to save")
    product_id = _require(body.product_id, "choose an existing product to update")
    updated = repo.set_product_image(product_id, image_url)
    if updated is None:
        raise HTTPException(status_code=404, detail="product not found")
    return updated


# Campaigns


@app.get("/campaigns/templates")
async def list_templates(client: AbyssaleClient | None = Depends(get_abyssale_client)):
    catalog = await _load_catalog(client)
    templates = []
    for tpl in catalog.templates:
        data = tpl.to_dict()
        for layout in data["layouts"]:
            layout["preview"] = layout_preview_dimensions(layout["size"])
        templates.append(data)
    return {"templates": templates, "error": catalog.error, "remote": catalog.remote}


@app.get("/campaigns")
def list_campaigns(repo: BackOfficeRepository = Depends(get_repository)):
    return repo.list_campaigns()


@app.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: str, repo: BackOfficeRepository = Depends(get_repository)):
    campaign = repo.get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="campaign not found")
    return campaign


def _campaign_payload(body: CampaignIn) -> dict[str, Any]:
    return {
        "title": _require(body.title, "enter a campaign title"),
        "template_id": _require(body.template_id, "choose a template"),
        "selected_fields": body.selected_fields,
        "selected_layouts": body.selected_layouts,
    }


@app.post("/campaigns", status_code=201)
def create_campaign(body: CampaignIn, repo: BackOfficeRepository = Depends(get_repository)):
    return repo.create_campaign(_campaign_payload(body))


@app.put("/campaigns/{campaign_id}")
def update_campaign(campaign_id: str, body: CampaignIn, repo: BackOfficeRepository = Depends(get_repository)):
    updated = repo.update_campaign(campaign_id, _campaign_payload(body))
    if updated is None:
        raise HTTPException(status_code=404, detail="campaign not found")
    return updated


@app.post("/campaigns/deals/select-product")
def deal_select_product(body: SelectProductIn, repo: BackOfficeRepository = Depends(get_repository)):
    product = repo.get_product(body.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="product not found")
    deal, needs_mapping = select_product(body.deal.to_deal(), product, body.mapping)
    return {"deal": asdict(deal), "needs_mapping": needs_mapping}


@app.post("/campaigns/deals/apply-mapping")
def deal_apply_mapping(body: SelectProductIn, repo: BackOfficeRepository = Depends(get_repository)):
    product = repo.get_product(body.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="product not found")
    return {"deal": asdict(apply_mapping(body.deal.to_deal(), product, body.mapping))}


@app.post("/campaigns/csv/match")
def csv_match(body: CsvMatchIn, repo: BackOfficeRepository = Depends(get_repository)):
    entries, missing = match_csv_rows(body.rows, repo.list_product_summaries())
    return {"entries": [asdict(e) for e in entries], "missing_products": missing}


@app.post("/campaigns/generate")
async def generate_campaign(
    body: GenerateCampaignIn,
    repo: BackOfficeRepository = Depends(get_repository),
    client: AbyssaleClient | None = Depends(get_abyssale_client),
):
    if client is None:
        raise HTTPException(status_code=400, detail="Abyssale API key is not saved in platform settings")
    catalog = await _load_catalog(client)
    template = catalog.get(body.template_id)

    if body.mode == "manual":
        deals = manual_deals_payload([d.to_deal() for d in body.manual_deals], body.selected_fields, template)
        ready = can_generate_manual(deals, template)
    else:
        entries, missing = match_csv_rows(body.csv_rows, repo.list_product_summaries())
        deals = csv_deals_payload(entries, body.selected_fields, template)
        ready = can_generate_csv(deals, missing)
    if not ready:
        raise HTTPException(status_code=400, detail="Complete the deal data before generating")

    if body.campaign_id:
        repo.update_campaign(body.campaign_id, {"status": "running"})
    status = "draft"
    try:
        results = await generate_batch(client, body.template_id, [d.to_dict() for d in deals], body.layouts)
        summary = summarize(results)
        if summary["ok"]:
            status = "ready"
    except BatchRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    finally:
        if body.campaign_id:
            repo.update_campaign(body.campaign_id, {"status": status})
    logger.info("campaign generation: %s ok, %s failed", summary["success_count"], summary["fail_count"])
    return {
        "results": [r.to_dict() | {"url": r.url} for r in results],
        "summary": summary,
    }


@app.post("/functions/abyssale-run")
async def abyssale_run(body: AbyssaleRunIn, client: AbyssaleClient | None = Depends(get_abyssale_client)):
    if client is None:
        return JSONResponse(status_code=400, content={"error": "Abyssale API key is not saved in platform settings"})
    try:
        if body.action == "templates":
            return {"templates": await client.fetch_templates()}
        if body.action == "generate":
            deals = [d for d in body.deals if isinstance(d, dict)] if isinstance(body.deals, list) else body.deals
            layouts = [str(layout) for layout in body.layouts] if isinstance(body.layouts, list) else []
            results = await generate_batch(client, body.template_id, deals, layouts)
            return {"results": [r.to_dict() for r in results]}
    except (ProviderError, BatchRequestError) as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except httpx.HTTPError as exc:
        logger.error("abyssale-run error: %s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return JSONResponse(status_code=400, content={"error": "Unknown action"})


@app.post("/functions/results-zip")
async def results_zip(body: ResultsZipIn, client: httpx.AsyncClient = Depends(get_download_client)):
    if not isinstance(body.entries, list) or not body.entries:
        return JSONResponse(status_code=400, content={"error": "No entries provided"})
    entries = [
        ZipEntry(url=e.get("url"), file_name=e.get("fileName"))
        for e in body.entries
        if isinstance(e, dict)
    ]
    content, added = await build_results_zip(entries, client)
    if not added:
        return JSONResponse(status_code=400, content={"error": "Failed to collect files for ZIP"})
    file_name = body.file_name or f"campaign-results-{int(time.time() * 1000)}.zip"
    return {"zipBase64": base64.b64encode(content).decode("ascii"), "fileName": file_name}


# Must stay below every /media/* route.
media_dir = Path(settings.media_dir)
media_dir.mkdir(parents=True, exist_ok=True)
app.mount("/media", StaticFiles(directory=str(media_dir)), name="media")


def main() -> None:
    import uvicorn

    uvicorn.run("promo_studio.api.app:app", host="0.0.0.0", port=8000)
