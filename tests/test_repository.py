"""Tests for the table access layer."""

from promo_studio.repository import BackOfficeRepository, filter_products


class TestSuppliers:
    def test_lists_suppliers_by_name_with_product_counts(self, repo):
        suppliers = repo.list_suppliers()

        assert [s["name"] for s in suppliers] == ["Acme Drinks", "Zeta Foods"]
        assert suppliers[0]["products_count"] == 1
        assert suppliers[1]["products_count"] == 1

    def test_create_supplier_stores_blank_optionals_as_null(self, repo, fake_db):
        created = repo.create_supplier(name="New Co", logo_url="", brand_color="  ")

        assert created["logo_url"] is None
        assert created["brand_color"] is None
        assert any(s["name"] == "New Co" for s in fake_db.tables["suppliers"])

    def test_update_missing_supplier_returns_none(self, repo):
        assert repo.update_supplier("nope", name="X") is None


class TestProducts:
    def test_products_are_newest_first_with_flattened_supplier(self, repo):
        products = repo.list_products()

        assert [p["id"] for p in products] == ["prod-3", "prod-2", "prod-1"]
        assert products[2]["supplier"]["name"] == "Zeta Foods"
        assert products[0]["supplier"] is None
        assert "suppliers" not in products[0]

    def test_summaries_are_ordered_by_name_with_supplier_name(self, repo):
        summaries = repo.list_product_summaries()

        assert [p["name"] for p in summaries] == ["Bread", "Cola Zero", "Olive Oil"]
        assert summaries[2]["supplier_name"] == "Zeta Foods"
        assert summaries[0]["supplier_name"] is None

    def test_delete_product_removes_its_assets(self, repo, fake_db):
        removed = repo.delete_product("prod-1")

        assert [a["id"] for a in removed] == ["asset-1"]
        assert repo.get_product("prod-1") is None
        assert fake_db.tables["product_assets"] == []

    def test_set_product_image(self, repo):
        repo.set_product_image("prod-2", "http://cdn/new.png")

        assert repo.get_product("prod-2")["image_url"] == "http://cdn/new.png"


class TestFilterProducts:
    products = [
        {"id": "1", "name": "Olive Oil", "barcode": "7290001", "supplier_id": "a"},
        {"id": "2", "name": "Cola Zero", "barcode": None, "supplier_id": "b"},
    ]

    def test_no_filters_returns_everything(self):
        assert len(filter_products(self.products)) == 2

    def test_search_matches_name_case_insensitively(self):
        assert [p["id"] for p in filter_products(self.products, search="  OLIVE ")] == ["1"]

    def test_search_matches_barcode_substring(self):
        assert [p["id"] for p in filter_products(self.products, search="0001")] == ["1"]

    def test_supplier_filter_combines_with_search(self):
        assert filter_products(self.products, supplier_id="b", search="olive") == []


class TestCampaignsAndSettings:
    def test_new_campaigns_start_as_draft(self, repo):
        created = repo.create_campaign({"title": "Summer", "template_id": "t1"})

        assert created["status"] == "draft"
        assert repo.get_campaign(created["id"])["title"] == "Summer"

    def test_campaigns_are_newest_first(self, repo):
        first = repo.create_campaign({"title": "A", "template_id": "t"})
        second = repo.create_campaign({"title": "B", "template_id": "t"})

        assert [c["id"] for c in repo.list_campaigns()] == [second["id"], first["id"]]

    def test_setting_upsert_replaces_existing_value(self, repo, fake_db):
        repo.upsert_setting("abyssale_api_key", "rotated")

        assert repo.get_setting("abyssale_api_key") == "rotated"
        assert len(fake_db.tables["platform_settings"]) == 1

    def test_missing_setting_is_none(self, fake_db):
        fake_db.tables["platform_settings"] = []

        assert BackOfficeRepository(fake_db).get_setting("abyssale_api_key") is None
