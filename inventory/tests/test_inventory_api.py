import pytest
from catalog.tests.factories import ProductVariantFactory
from inventory.models import StockMovement
from inventory.tests.factories import stocked_variant


@pytest.mark.django_db
def test_inventory_endpoints_require_admin(api_client, customer_client):
    assert api_client.get("/api/v1/inventory/movements/").status_code == 401
    assert customer_client.get("/api/v1/inventory/movements/").status_code == 403
    assert customer_client.post("/api/v1/inventory/bulk/", {"updates": []}, format="json").status_code == 403


@pytest.mark.django_db
def test_add_stock_endpoint_records_movement(admin_client, admin_user):
    variant = ProductVariantFactory()

    resp = admin_client.post(
        f"/api/v1/inventory/variants/{variant.id}/add/", {"quantity": 12, "reason": "Delivery"}, format="json"
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["movement_type"] == "addition"
    assert (body["previous_stock"], body["new_stock"]) == (0, 12)
    assert body["created_by"] == admin_user.id
    variant.refresh_from_db()
    assert variant.stock == 12


@pytest.mark.django_db
def test_damage_beyond_stock_returns_conflict_body(admin_client):
    variant = stocked_variant(stock=2)

    resp = admin_client.post(f"/api/v1/inventory/variants/{variant.id}/damage/", {"quantity": 3}, format="json")

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "insufficient_stock"
    assert body["available"] == 2
    assert body["requested"] == 3
    assert StockMovement.objects.filter(variant=variant).count() == 1


@pytest.mark.django_db
def test_unknown_variant_returns_404(admin_client):
    resp = admin_client.post("/api/v1/inventory/variants/999999/add/", {"quantity": 1}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


@pytest.mark.django_db
def test_bulk_update_partial_failure_is_207(admin_client):
    ok = stocked_variant(stock=1)
    short = stocked_variant(stock=1)

    resp = admin_client.post(
        "/api/v1/inventory/bulk/",
        {"updates": [{"variant_id": ok.id, "quantity": 4}, {"variant_id": short.id, "quantity": -5}]},
        format="json",
    )

    assert resp.status_code == 207
    body = resp.json()
    assert [r["index"] for r in body["results"]] == [0]
    assert [e["index"] for e in body["errors"]] == [1]

    resp_ok = admin_client.post(
        "/api/v1/inventory/bulk/", {"updates": [{"variant_id": ok.id, "quantity": 1}]}, format="json"
    )
    assert resp_ok.status_code == 200


@pytest.mark.django_db
def test_movement_list_filters_by_type(admin_client):
    variant = stocked_variant(stock=5)
    admin_client.post(f"/api/v1/inventory/variants/{variant.id}/adjust/", {"quantity": -1}, format="json")

    resp = admin_client.get(f"/api/v1/inventory/movements/?variant_id={variant.id}&movement_type=correction")

    assert resp.status_code == 200
    rows = resp.json()["results"]
    assert len(rows) == 1
    assert rows[0]["quantity"] == -1


@pytest.mark.django_db
def test_ledger_check_endpoint(admin_client):
    variant = stocked_variant(stock=3)

    resp = admin_client.get(f"/api/v1/inventory/variants/{variant.id}/ledger/")

    assert resp.status_code == 200
    assert resp.json() == {"variant_id": variant.id, "stock": 3, "ledger": 3, "ok": True}


@pytest.mark.django_db
def test_alert_endpoints_round(admin_client):
    variant = stocked_variant(stock=2)

    resp = admin_client.put(f"/api/v1/inventory/variants/{variant.id}/alert/", {"threshold": 5}, format="json")
    assert resp.status_code == 200
    assert resp.json()["notified_at"] is not None

    active = admin_client.get("/api/v1/inventory/alerts/").json()["results"]
    assert [row["variant"] for row in active] == [variant.id]

    low = admin_client.get("/api/v1/inventory/low-stock/").json()["results"]
    assert low[0]["threshold"] == 5

    stats = admin_client.get("/api/v1/inventory/alerts/stats/").json()
    assert stats["breached"] == 1

    resolved = admin_client.post(f"/api/v1/inventory/variants/{variant.id}/alert/resolve/")
    assert resolved.json()["is_resolved"] is True

    disabled = admin_client.delete(f"/api/v1/inventory/variants/{variant.id}/alert/")
    assert disabled.json()["is_active"] is False

    bad = admin_client.put(f"/api/v1/inventory/variants/{variant.id}/alert/", {"threshold": -1}, format="json")
    assert bad.status_code == 400


@pytest.mark.django_db
def test_stock_take_flow_over_api(admin_client):
    variant = stocked_variant(stock=8)

    created = admin_client.post("/api/v1/inventory/stock-takes/", {"variant_ids": [variant.id]}, format="json")
    assert created.status_code == 201
    stock_take_id = created.json()["id"]

    base = f"/api/v1/inventory/stock-takes/{stock_take_id}"
    assert admin_client.post(f"{base}/start/").json()["status"] == "in_progress"
    counted = admin_client.post(f"{base}/counts/", {"counts": {str(variant.id): 6}}, format="json")
    assert counted.json()["items"][0]["variance"] == -2
    assert admin_client.post(f"{base}/complete/", {}, format="json").json()["status"] == "completed"
    assert admin_client.post(f"{base}/cancel/").status_code == 409
    assert admin_client.post(f"{base}/explode/").status_code == 404

    variant.refresh_from_db()
    assert variant.stock == 6


@pytest.mark.django_db
def test_movement_list_rejects_malformed_filters(admin_client):
    variant = stocked_variant(stock=5)

    for query in ("variant_id=abc", "reference_id=x1", "movement_type=bogus", "created_after=yesterday"):
        resp = admin_client.get(f"/api/v1/inventory/movements/?{query}")
        assert resp.status_code == 400, query

    ok = admin_client.get(f"/api/v1/inventory/movements/?variant_id={variant.id}&reference_type=")
    assert ok.status_code == 200
    assert ok.json()["count"] == 1
