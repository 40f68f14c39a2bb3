# src/ECA/tests/test_order_filters.py
from __future__ import annotations

import pytest

pytestmark = pytest.mark.anyio


async def _ids(client, **params) -> set[int]:
    params.setdefault("limit", 100)
    r = await client.get("/api/orders", params=params)
    assert r.status_code == 200, r.text
    return {row["id"] for row in r.json()["items"]}


# ---------------------------------------------------------------------------
# Concrete scenarios
# ---------------------------------------------------------------------------

async def test_needs_return_follows_closure(client, create_order, staff_headers, ago):
    a = await create_order(lentPhysicalBook=True, createdDate=ago(3))
    other = await create_order(lentPhysicalBook=False)

    found = await _ids(client, needsReturn="true")
    assert a["id"] in found
    assert other["id"] not in found

    r = await client.patch(f"/api/orders/{a['id']}", json={"closureDate": ago(0)}, headers=staff_headers)
    assert r.status_code == 200, r.text
    assert a["id"] not in await _ids(client, needsReturn="true")


async def test_retard_tracks_completion(client, create_order, staff_headers, seed, ago):
    b = await create_order(requestReceivedDate=ago(100), statusId=seed.in_progress)

    assert b["id"] in await _ids(client, retard="true")
    assert b["id"] not in await _ids(client, retard="false")

    r = await client.patch(f"/api/orders/{b['id']}", json={"statusId": seed.completed}, headers=staff_headers)
    assert r.status_code == 200

    assert b["id"] not in await _ids(client, retard="true")
    assert b["id"] in await _ids(client, retard="false")


async def test_retard_true_and_false_together_rejected(client):
    r = await client.get("/api/orders", params=[("retard", "true"), ("retard", "false")])
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "validation_error"
    assert "retard" in body["errors"]


async def test_overdue_enum_conflicting_with_retard_rejected(client):
    r = await client.get("/api/orders", params={"retard": "false", "overdue": "only"})
    assert r.status_code == 400
    assert "overdue" in r.json()["errors"]


async def test_overdue_enum_matches_retard(client, create_order, seed, ago):
    old = await create_order(requestReceivedDate=ago(120), statusId=seed.pending)
    recent = await create_order(requestReceivedDate=ago(5), statusId=seed.pending)

    assert await _ids(client, overdue="only") == await _ids(client, retard="true") == {old["id"]}
    assert await _ids(client, overdue="exclude") == {recent["id"]}
    assert await _ids(client, overdue="any") == {old["id"], recent["id"]}


async def test_late_uses_short_window_and_open_orders(client, create_order, ago):
    late_open = await create_order(requestReceivedDate=ago(45), createdDate=ago(45))
    late_closed = await create_order(requestReceivedDate=ago(45), createdDate=ago(45), closureDate=ago(1))
    fresh = await create_order(requestReceivedDate=ago(10))

    found = await _ids(client, late="true")
    assert late_open["id"] in found
    assert late_closed["id"] not in found
    assert fresh["id"] not in found

    assert await _ids(client, filter="late") == found


async def test_legacy_filter_values(client, create_order):
    a = await create_order(lentPhysicalBook=True)
    b = await create_order()
    assert await _ids(client, filter="needsReturn") == {a["id"]}
    assert await _ids(client, filter="all") == {a["id"], b["id"]}

    r = await client.get("/api/orders", params={"filter": "bogus"})
    assert r.status_code == 400


# ---------------------------------------------------------------------------
# Simple predicates
# ---------------------------------------------------------------------------

async def test_search_matches_patron_or_catalogue(client, create_order, seed):
    hugo = await create_order(catalogueId=seed.book)
    zola_for_paul = await create_order(catalogueId=seed.book2, aveugleId=seed.patron2)

    assert await _ids(client, search="zola") == {zola_for_paul["id"]}
    assert await _ids(client, search="jeanne") == {hugo["id"]}
    assert await _ids(client, search="example.org") == {hugo["id"], zola_for_paul["id"]}


async def test_exact_match_filters_combine_with_and(client, create_order, seed):
    dup = await create_order(isDuplication=True, statusId=seed.in_progress)
    await create_order(isDuplication=True, statusId=seed.pending)
    await create_order(isDuplication=False, statusId=seed.in_progress)

    assert await _ids(client, isDuplication="true", statusId=seed.in_progress) == {dup["id"]}
    assert len(await _ids(client, billingStatus="UNBILLED")) == 3
    assert await _ids(client, billingStatus="BILLED") == set()


async def test_date_range_and_delivery_method(client, create_order, ago, days_ago):
    old = await create_order(requestReceivedDate=ago(60), deliveryMethod="RETRAIT")
    new = await create_order(requestReceivedDate=ago(2))

    assert await _ids(client, dateFrom=days_ago(10).isoformat()) == {new["id"]}
    assert await _ids(client, dateTo=days_ago(10).isoformat()) == {old["id"]}
    assert await _ids(client, deliveryMethod="RETRAIT") == {old["id"]}


# ---------------------------------------------------------------------------
# Paging & ordering
# ---------------------------------------------------------------------------

async def test_pagination_and_sort(client, create_order, ago):
    created = [await create_order(requestReceivedDate=ago(d)) for d in (5, 1, 3)]
    newest_first = [created[1]["id"], created[2]["id"], created[0]["id"]]

    r = await client.get("/api/orders", params={"page": 1, "limit": 2})
    page1 = r.json()
    assert [row["id"] for row in page1["items"]] == newest_first[:2]
    assert page1["total"] == 3
    assert page1["totalPages"] == 2
    assert page1["hasMore"] is True
    # list rows resolve display names
    assert page1["items"][0]["aveugle"]["name"] == "Jeanne Martin"
    assert page1["items"][0]["catalogue"]["title"]

    page2 = (await client.get("/api/orders", params={"page": 2, "limit": 2})).json()
    assert [row["id"] for row in page2["items"]] == newest_first[2:]
    assert page2["hasMore"] is False

    beyond = await client.get("/api/orders", params={"page": 9, "limit": 2})
    assert beyond.status_code == 200
    assert beyond.json()["items"] == []
    assert beyond.json()["total"] == 3


async def test_limit_is_capped(client):
    r = await client.get("/api/orders", params={"limit": 5000})
    assert r.status_code == 200
    assert r.json()["limit"] == 100


async def test_page_zero_rejected(client):
    r = await client.get("/api/orders", params={"page": 0})
    assert r.status_code == 400
