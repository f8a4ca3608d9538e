"""
Tests for the FastAPI service with the store and extraction backend overridden.

Run with: pytest tests/test_api.py -v
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from quickcompare.api.compare_api import app, get_adapter, get_store
from quickcompare.extraction.adapter import ExtractionAdapter

from conftest import FakeBackend

USER = {"X-User-Id": "user-1"}


@pytest.fixture
def client(store, backend):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_adapter] = lambda: ExtractionAdapter(backend)
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_items(client, *names):
    for name in names:
        assert client.post("/api/items", json={"name": name}, headers=USER).status_code == 201


class TestBasics:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_platforms(self, client):
        ids = [p["id"] for p in client.get("/api/platforms").json()]
        assert ids == ["blinkit", "zepto", "swiggy_instamart", "bigbasket", "flipkart_minutes"]

    def test_owner_required(self, client):
        assert client.get("/api/items").status_code == 401
        assert client.get("/api/results", headers={"X-User-Id": "  "}).status_code == 401


class TestItems:

    def test_crud(self, client):
        created = client.post("/api/items", json={"name": " Milk "}, headers=USER).json()
        assert created["name"] == "Milk"

        renamed = client.put(f"/api/items/{created['id']}", json={"name": "Curd"}, headers=USER)
        assert renamed.json()["name"] == "Curd"

        assert client.delete(f"/api/items/{created['id']}", headers=USER).status_code == 204
        assert client.get("/api/items", headers=USER).json() == []

    def test_blank_item_rejected(self, client):
        assert client.post("/api/items", json={"name": "  "}, headers=USER).status_code == 422

    def test_other_owners_item_not_found(self, client):
        created = client.post("/api/items", json={"name": "Milk"}, headers=USER).json()
        other = {"X-User-Id": "user-2"}

        assert client.put(f"/api/items/{created['id']}", json={"name": "x"}, headers=other).status_code == 404
        assert client.delete(f"/api/items/{created['id']}", headers=other).status_code == 404


class TestSelection:

    def test_validate(self, client):
        body = client.post("/api/selection/validate", json={"pincode": "400001", "platform_ids": ["zepto"]}).json()
        assert body["ok"]

    def test_validate_reason(self, client):
        body = client.post("/api/selection/validate", json={"pincode": "04000", "platform_ids": ["zepto"]}).json()
        assert not body["ok"]
        assert body["reason"] == "InvalidPincode"

    def test_latest_selection_missing(self, client):
        assert client.get("/api/selection/latest", headers=USER).status_code == 404


class TestCompare:

    def test_compare_and_results(self, client, backend):
        add_items(client, "milk", "eggs")

        response = client.post(
            "/api/compare",
            json={"pincode": "400001", "platform_ids": ["blinkit", "zepto"]},
            headers=USER
        )

        assert response.status_code == 200
        summary = response.json()
        assert summary["started"]
        assert set(summary["per_platform"]) == {"blinkit", "zepto"}
        assert len(backend.calls) == 4

        groups = client.get("/api/results", headers=USER).json()
        assert [g["grocery_item"] for g in groups] == ["milk", "eggs"]
        best = groups[0]["ranked"][0]
        assert best["is_best_price"]
        assert Decimal(str(best["record"]["price"])) == Decimal("30.00")
        assert len(groups[0]["ranked"]) == 3

        latest = client.get("/api/selection/latest", headers=USER).json()
        assert latest["platform_ids"] == ["blinkit", "zepto"]

    @pytest.mark.parametrize("body, reason", [
        ({"pincode": "12345", "platform_ids": ["zepto"]}, "InvalidPincode"),
        ({"pincode": "400001", "platform_ids": []}, "NoPlatformSelected"),
        ({"pincode": "400001", "platform_ids": ["blinkit", "zepto", "bigbasket", "swiggy_instamart", "flipkart_minutes"]},
         "TooManyPlatforms"),
        ({"pincode": "400001", "platform_ids": ["dmart"]}, "UnknownPlatform"),
    ])
    def test_invalid_selection_rejected(self, client, backend, body, reason):
        add_items(client, "milk")

        response = client.post("/api/compare", json=body, headers=USER)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == reason
        assert backend.calls == []

    def test_no_items_rejected(self, client, backend):
        response = client.post("/api/compare", json={"pincode": "400001", "platform_ids": ["zepto"]}, headers=USER)

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "NoItems"
        assert backend.calls == []

    def test_background_run(self, client, backend, store):
        add_items(client, "milk")

        response = client.post(
            "/api/compare?background=true",
            json={"pincode": "400001", "platform_ids": ["zepto"]},
            headers=USER
        )

        assert response.status_code == 202
        assert response.json()["status"] == "accepted"
        # TestClient runs background tasks before returning
        assert len(store.list_results("user-1")) == 2

    def test_results_include_empty_groups(self, client):
        add_items(client, "saffron")

        groups = client.get("/api/results?include_empty=true", headers=USER).json()

        assert groups == [{"grocery_item": "saffron", "ranked": []}]
