"""Shared fixtures: fake data backend, temporary media store and an API test client."""

import os
import tempfile

os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="promo-media-"))
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")

import pytest
from fastapi.testclient import TestClient

from promo_studio.api import app as app_module
from promo_studio.repository import BackOfficeRepository
from promo_studio.storage import MediaStore

from tests.fakes import FakeSupabase


@pytest.fixture
def seed_tables():
    """A small library: two suppliers, three products, one asset, the banner key."""
    return {
        "suppliers": [
            {"id": "sup-1", "name": "Zeta Foods", "logo_url": None, "brand_color": "#ff0000", "created_at": "2025-01-01T00:00:00+00:00"},
            {"id": "sup-2", "name": "Acme Drinks", "logo_url": "http://cdn/acme.png", "brand_color": None, "created_at": "2025-01-02T00:00:00+00:00"},
        ],
        "products": [
            {
                "id": "prod-1",
                "supplier_id": "sup-1",
                "name": "Olive Oil",
                "barcode": "7290001",
                "description": "Cold pressed",
                "image_url": "http://cdn/olive.png",
                "created_at": "2025-02-01T00:00:00+00:00",
            },
            {
                "id": "prod-2",
                "supplier_id": "sup-2",
                "name": "Cola Zero",
                "barcode": "7290002",
                "description": None,
                "image_url": None,
                "created_at": "2025-02-02T00:00:00+00:00",
            },
            {
                "id": "prod-3",
                "supplier_id": None,
                "name": "Bread",
                "barcode": None,
                "description": None,
                "image_url": None,
                "created_at": "2025-02-03T00:00:00+00:00",
            },
        ],
        "product_assets": [
            {
                "id": "asset-1",
                "product_id": "prod-1",
                "version_label": "v1",
                "file_type": "png",
                "cloudinary_public_id": "assets/abc123",
                "cloudinary_url": "http://testserver/media/assets/abc123_v1.png",
                "created_at": "2025-03-01T00:00:00+00:00",
            }
        ],
        "campaigns": [],
        "platform_settings": [{"key": "abyssale_api_key", "value": "secret-key"}],
    }


@pytest.fixture
def fake_db(seed_tables):
    return FakeSupabase(seed_tables)


@pytest.fixture
def repo(fake_db):
    return BackOfficeRepository(fake_db)


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(root_dir=tmp_path / "media", base_url="http://testserver")


@pytest.fixture(name="client")
def client_fixture(repo, media_store):
    """Create a test client wired to the fake backend."""
    app = app_module.app
    app.dependency_overrides[app_module.get_repository] = lambda: repo
    app.dependency_overrides[app_module.get_media_store] = lambda: media_store
    yield TestClient(app)
    app.dependency_overrides.clear()
