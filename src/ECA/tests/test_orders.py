# src/ECA/tests/test_orders.py
from __future__ import annotations

from datetime import datetime

import pytest

pytestmark = pytest.mark.anyio


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def test_create_applies_defaults_and_resolves_names(client, order_payload, staff_headers, seed):
    r = await client.post("/api/orders", json=order_payload(), headers=staff_headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"]
    order = body["order"]

    assert order["isDuplication"] is False
    assert order["lentPhysicalBook"] is False
    assert order["billingStatus"] == "UNBILLED"
    assert order["billId"] is None
    assert order["createdDate"] is not None
    assert order["status"]["name"] == "En attente de validation"
    assert order["aveugle"]["email"] == "jeanne@example.org"
    assert order["catalogue"]["title"] == "Les Misérables"
    assert order["mediaFormat"]["id"] == seed.media_format


async def test_create_missing_field_is_validation_error(client, order_payload, staff_headers):
    body = order_payload()
    del body["aveugleId"]
    r = await client.post("/api/orders", json=body, headers=staff_headers)
    assert r.status_code == 400
    data = r.json()
    assert data["code"] == "validation_error"
    assert "aveugleId" in data["errors"]


async def test_create_unknown_reference_is_reference_error(client, order_payload, staff_headers):
    r = await client.post("/api/orders", json=order_payload(statusId=9999), headers=staff_headers)
    assert r.status_code == 400
    data = r.json()
    assert data["code"] == "reference_error"
    assert data["field"] == "statusId"
    assert data["value"] == 9999


async def test_create_rejects_closure_before_created(client, order_payload, staff_headers, ago):
    r = await client.post(
        "/api/orders",
        json=order_payload(createdDate=ago(1), closureDate=ago(5)),
        headers=staff_headers,
    )
    assert r.status_code == 400
    assert "closureDate" in r.json()["errors"]


async def test_create_rejects_negative_cost(client, order_payload, staff_headers):
    r = await client.post("/api/orders", json=order_payload(cost="-1.00"), headers=staff_headers)
    assert r.status_code == 400
    assert "cost" in r.json()["errors"]


async def test_create_requires_principal_and_staff_role(client, order_payload, reader_headers):
    r = await client.post("/api/orders", json=order_payload())
    assert r.status_code == 401

    r = await client.post("/api/orders", json=order_payload(), headers=reader_headers)
    assert r.status_code == 403


# ---------------------------------------------------------------------------
# Read modes
# ---------------------------------------------------------------------------

async def test_read_modes_select_field_depth(client, create_order):
    order = await create_order(notes="fragile")

    basic = (await client.get(f"/api/orders/{order['id']}?mode=basic")).json()
    assert "notes" not in basic
    assert "aveugle" not in basic
    assert basic["billingStatus"] == "UNBILLED"

    detailed = (await client.get(f"/api/orders/{order['id']}")).json()
    assert detailed["notes"] == "fragile"
    assert detailed["aveugle"]["name"] == "Jeanne Martin"
    assert "bill" not in detailed

    full = (await client.get(f"/api/orders/{order['id']}?mode=full")).json()
    assert full["assignments"] == []
    assert full["bill"] is None
    assert "createdAt" in full


async def test_read_includes(client, create_order):
    order = await create_order()
    r = await client.get(f"/api/orders/{order['id']}?mode=basic&include=bill,status,nonsense")
    assert r.status_code == 200
    data = r.json()
    assert data["bill"] is None
    assert data["status"]["name"]
    assert "nonsense" not in data
    assert "aveugle" not in data

    data = (await client.get(f"/api/orders/{order['id']}?mode=basic&include=all")).json()
    assert {"aveugle", "catalogue", "status", "mediaFormat", "processedByStaff", "bill", "assignments"} <= set(data)


async def test_unknown_mode_is_validation_error(client, create_order):
    order = await create_order()
    r = await client.get(f"/api/orders/{order['id']}?mode=everything")
    assert r.status_code == 400
    assert "mode" in r.json()["errors"]


async def test_get_missing_order_is_404(client):
    r = await client.get("/api/orders/424242")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


# ---------------------------------------------------------------------------
# Replace vs patch
# ---------------------------------------------------------------------------

async def test_put_nulls_omitted_optionals(client, create_order, order_payload, staff_headers, ago):
    order = await create_order(cost="12.50", notes="keep?", createdDate=ago(1), closureDate=ago(0))
    r = await client.put(f"/api/orders/{order['id']}", json=order_payload(), headers=staff_headers)
    assert r.status_code == 200, r.text
    updated = r.json()["order"]
    assert updated["cost"] is None
    assert updated["notes"] is None
    assert updated["closureDate"] is None
    # intake timestamp survives a replace that omits it
    assert _ts(updated["createdDate"]) == _ts(order["createdDate"])


async def test_patch_leaves_omitted_fields_untouched(client, create_order, staff_headers, ago):
    order = await create_order(cost="12.50", createdDate=ago(1), closureDate=ago(0))
    r = await client.patch(f"/api/orders/{order['id']}", json={"notes": "rappeler"}, headers=staff_headers)
    assert r.status_code == 200, r.text
    updated = r.json()["order"]
    assert updated["notes"] == "rappeler"
    assert updated["cost"] == "12.50"
    assert updated["closureDate"] is not None


async def test_patch_explicit_null_clears(client, create_order, staff_headers, ago):
    order = await create_order(createdDate=ago(1), closureDate=ago(0))
    r = await client.patch(f"/api/orders/{order['id']}", json={"closureDate": None}, headers=staff_headers)
    assert r.status_code == 200
    assert r.json()["order"]["closureDate"] is None


async def test_patch_is_idempotent(client, create_order, staff_headers, seed):
    order = await create_order()
    patch = {"statusId": seed.in_progress, "cost": "7.25", "isDuplication": True}

    first = (await client.patch(f"/api/orders/{order['id']}", json=patch, headers=staff_headers)).json()["order"]
    second = (await client.patch(f"/api/orders/{order['id']}", json=patch, headers=staff_headers)).json()["order"]

    first.pop("updatedAt")
    second.pop("updatedAt")
    assert first == second


async def test_patch_null_on_required_field_rejected(client, create_order, staff_headers):
    order = await create_order()
    r = await client.patch(f"/api/orders/{order['id']}", json={"statusId": None}, headers=staff_headers)
    assert r.status_code == 400
    assert "statusId" in r.json()["errors"]


async def test_billing_fields_are_read_only(client, create_order, create_bill, order_payload, staff_headers, seed):
    r = await client.post("/api/orders", json=order_payload(billingStatus="BILLED"), headers=staff_headers)
    assert r.status_code == 400
    assert "billingStatus" in r.json()["errors"]

    foreign_bill = await create_bill(clientId=seed.patron)
    order = await create_order(aveugleId=seed.patron2)
    r = await client.patch(
        f"/api/orders/{order['id']}",
        json={"billId": foreign_bill["id"], "billingStatus": "PAID"},
        headers=staff_headers,
    )
    assert r.status_code == 400
    assert {"billId", "billingStatus"} <= set(r.json()["errors"])

    r = await client.put(
        f"/api/orders/{order['id']}",
        json=order_payload(aveugleId=seed.patron2, billId=foreign_bill["id"]),
        headers=staff_headers,
    )
    assert r.status_code == 400
    assert "billId" in r.json()["errors"]

    data = (await client.get(f"/api/orders/{order['id']}?mode=basic")).json()
    assert (data["billingStatus"], data["billId"]) == ("UNBILLED", None)


async def test_paid_order_cannot_be_reverted(client, create_order, create_bill, staff_headers):
    bill = await create_bill()
    order = await create_order()
    await client.post(f"/api/bills/{bill['id']}/orders", json={"orderIds": [order["id"]]}, headers=staff_headers)
    assert (await client.post(f"/api/bills/{bill['id']}/pay", headers=staff_headers)).status_code == 200

    r = await client.patch(
        f"/api/orders/{order['id']}",
        json={"billingStatus": "UNBILLED", "billId": None},
        headers=staff_headers,
    )
    assert r.status_code == 400

    data = (await client.get(f"/api/orders/{order['id']}?mode=basic")).json()
    assert (data["billingStatus"], data["billId"]) == ("PAID", bill["id"])

    r = await client.patch(f"/api/orders/{order['id']}", json={"notes": "archivé"}, headers=staff_headers)
    assert r.status_code == 200
    assert r.json()["order"]["billingStatus"] == "PAID"


async def test_billed_order_keeps_its_patron(client, create_order, create_bill, staff_headers, seed):
    bill = await create_bill()
    order = await create_order()
    await client.post(f"/api/bills/{bill['id']}/orders", json={"orderIds": [order["id"]]}, headers=staff_headers)

    r = await client.patch(f"/api/orders/{order['id']}", json={"aveugleId": seed.patron2}, headers=staff_headers)
    assert r.status_code == 409
    assert r.json()["billId"] == bill["id"]

    r = await client.patch(f"/api/orders/{order['id']}", json={"notes": "rappeler"}, headers=staff_headers)
    assert r.status_code == 200
    assert r.json()["order"]["billingStatus"] == "BILLED"


async def test_patch_rechecks_closure_against_stored_created_date(client, create_order, staff_headers, ago):
    order = await create_order(createdDate=ago(2))
    r = await client.patch(f"/api/orders/{order['id']}", json={"closureDate": ago(10)}, headers=staff_headers)
    assert r.status_code == 400
    assert "closureDate" in r.json()["errors"]


async def test_mutation_requires_principal(client, create_order):
    order = await create_order()
    r = await client.patch(f"/api/orders/{order['id']}", json={"notes": "x"})
    assert r.status_code == 401


# ---------------------------------------------------------------------------
# Delete guard
# ---------------------------------------------------------------------------

async def test_delete_blocked_by_assignment_then_allowed(client, create_order, create_assignment, staff_headers):
    order = await create_order()
    assignment = await create_assignment(order["id"])

    r = await client.delete(f"/api/orders/{order['id']}", headers=staff_headers)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "conflict"
    assert body["assignmentCount"] == 1

    r = await client.delete(f"/api/assignments/{assignment['id']}", headers=staff_headers)
    assert r.status_code == 200

    r = await client.delete(f"/api/orders/{order['id']}", headers=staff_headers)
    assert r.status_code == 200
    assert r.json()["deletedId"] == order["id"]

    assert (await client.get(f"/api/orders/{order['id']}")).status_code == 404
