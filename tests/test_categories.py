"""Managed category records."""

import pytest

from errors import ValidationError
from services.categories import slugify


def category(name_en="Evening Collection", **overrides):
    payload = {"name": {"en": name_en, "ar": "مجموعة المساء"}}
    payload.update(overrides)
    return payload


@pytest.fixture
def create(client, admin_headers):
    def _create(**kwargs):
        resp = client.post("/api/categories", json=category(**kwargs), headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _create


def test_slugify():
    assert slugify("  Oud & Amber -- Limited! ") == "oud-amber-limited"
    with pytest.raises(ValidationError):
        slugify("!!!")


class TestCategories:

    def test_slug_is_derived_from_english_name(self, create):
        assert create()["slug"] == "evening-collection"

    def test_duplicate_slug_conflicts(self, client, admin_headers, create):
        create()
        resp = client.post("/api/categories", json=category(), headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE_SLUG"

    def test_writes_require_admin(self, client, customer_headers):
        assert client.post("/api/categories", json=category(), headers=customer_headers).status_code == 403

    def test_list_sorted_and_active_filter(self, client, admin_headers, create):
        late = create(name_en="Zest", sort_order=2)
        create(name_en="Bloom", sort_order=1)
        client.patch(f"/api/categories/{late['id']}/toggle", headers=admin_headers)

        names = [c["name"]["en"] for c in client.get("/api/categories").json()["data"]]
        assert names == ["Bloom", "Zest"]
        active = client.get("/api/categories", params={"active_only": True}).json()["data"]
        assert [c["name"]["en"] for c in active] == ["Bloom"]

    def test_get_by_slug_localized(self, client, create):
        create()
        resp = client.get("/api/categories/slug/evening-collection", params={"lang": "ar"})
        assert resp.json()["data"]["name"] == "مجموعة المساء"

    def test_search(self, client, create):
        create(name_en="Oud Treasures")
        create(name_en="Citrus Garden")
        resp = client.get("/api/categories/search", params={"q": "oud"})
        assert [c["slug"] for c in resp.json()["data"]] == ["oud-treasures"]

    def test_update_and_reorder(self, client, admin_headers, create):
        first = create(name_en="One")
        second = create(name_en="Two")
        resp = client.put(f"/api/categories/{first['id']}", json={"slug": "first"}, headers=admin_headers)
        assert resp.json()["data"]["slug"] == "first"

        resp = client.put(f"/api/categories/{second['id']}", json={"slug": "first"}, headers=admin_headers)
        assert resp.status_code == 409

        resp = client.put("/api/categories/reorder", headers=admin_headers, json=[
            {"id": first["id"], "sort_order": 5},
            {"id": second["id"], "sort_order": 1},
        ])
        assert resp.json()["data"]["updated"] == 2
        assert [c["slug"] for c in client.get("/api/categories").json()["data"]] == ["two", "first"]

    def test_update_ignores_nulls(self, client, admin_headers, create, db):
        cat = create(name_en="Amber")
        resp = client.put(f"/api/categories/{cat['id']}", json={"name": None, "sort_order": 3},
                          headers=admin_headers)
        assert resp.status_code == 200
        stored = db["category"].find_one({"slug": "amber"})
        assert stored["name"]["en"] == "Amber"
        assert stored["sort_order"] == 3

        resp = client.put(f"/api/categories/{cat['id']}", json={"name": None}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_refused_while_in_use(self, client, admin_headers, create, make_product, db):
        cat = create(name_en="Floral")
        make_product(category="floral")
        resp = client.delete(f"/api/categories/{cat['id']}", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["details"] == {"product_count": 1}

        db["product"].delete_many({})
        assert client.delete(f"/api/categories/{cat['id']}", headers=admin_headers).status_code == 200

    def test_products_and_stats(self, client, admin_headers, create, make_product):
        cat = create(name_en="Woody")
        make_product(category="woody")
        make_product(category="fresh")
        products = client.get(f"/api/categories/{cat['id']}/products").json()["data"]
        assert len(products) == 1

        stats = client.get("/api/categories/stats", headers=admin_headers).json()["data"]
        assert stats["total"] == 1
        assert stats["categories"][0]["product_count"] == 1
