"""
Category CRUD tests: uniqueness, existence checks and delete protection.
"""

from freshcount.extensions import db
from freshcount.models import Category


class TestCategoryCrud:

    def test_create_and_get(self, client, admin_user, admin_headers):
        resp = client.post(
            "/api/categories",
            json={"name": "Fruits", "description": "Fresh fruits"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        category = resp.get_json()["category"]
        assert category["name"] == "Fruits"
        assert category["created_by_user_id"] == admin_user.id

        resp = client.get(f"/api/categories/{category['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["description"] == "Fresh fruits"

    def test_list_sorted_by_name(self, client, admin_headers):
        for name in ("Snacks", "Flour", "Packing"):
            client.post("/api/categories", json={"name": name}, headers=admin_headers)

        resp = client.get("/api/categories", headers=admin_headers)
        names = [c["name"] for c in resp.get_json()["categories"]]
        assert names == ["Flour", "Packing", "Snacks"]

    def test_name_required(self, client, admin_headers):
        resp = client.post("/api/categories", json={"description": "no name"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_duplicate_name_conflicts(self, client, admin_headers, veg):
        resp = client.post("/api/categories", json={"name": "Veg"}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "Category already exists"

    def test_duplicate_name_is_case_insensitive(self, client, admin_headers, veg):
        resp = client.post("/api/categories", json={"name": "VEG"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_rename_to_existing_conflicts(self, client, admin_headers, veg):
        other = client.post("/api/categories", json={"name": "Fruits"}, headers=admin_headers).get_json()["category"]
        resp = client.put(f"/api/categories/{other['id']}", json={"name": "Veg"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_rename(self, client, admin_headers, veg):
        resp = client.put(f"/api/categories/{veg.id}", json={"name": "Vegetables"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["category"]["name"] == "Vegetables"
        assert resp.get_json()["category"]["updated_at"] is not None

    def test_blank_rename_rejected(self, client, admin_headers, veg):
        resp = client.put(f"/api/categories/{veg.id}", json={"name": "   "}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, admin_headers, veg):
        resp = client.put(f"/api/categories/{veg.id}", json={"colour": "green"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_missing_category(self, client, admin_headers):
        assert client.get("/api/categories/999", headers=admin_headers).status_code == 404
        assert client.put("/api/categories/999", json={"name": "X"}, headers=admin_headers).status_code == 404
        assert client.delete("/api/categories/999", headers=admin_headers).status_code == 404


class TestCategoryDelete:

    def test_delete_blocked_while_products_reference_it(self, client, admin_headers, veg, tomato):
        resp = client.delete(f"/api/categories/{veg.id}", headers=admin_headers)
        assert resp.status_code == 409
        assert "existing products" in resp.get_json()["error"]
        assert db.session.get(Category, veg.id) is not None

    def test_delete_succeeds_once_products_removed(self, client, admin_headers, veg, tomato):
        veg_id, tomato_id = veg.id, tomato.id
        assert client.delete(f"/api/products/{tomato_id}", headers=admin_headers).status_code == 200

        resp = client.delete(f"/api/categories/{veg_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(Category, veg_id) is None
