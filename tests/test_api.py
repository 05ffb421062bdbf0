"""HTTP layer: authentication, status codes and error payloads."""
from decimal import Decimal

import pytest


API = "/api/v1"


@pytest.fixture
async def api_order(client, auth_headers, steps, defects):
    response = await client.post(
        f"{API}/production-orders",
        json={"po_number": "PO-100", "po_quantity": 100, "lot_number": "LOT-7"},
        headers=auth_headers("admin"),
    )
    assert response.status_code == 201
    return response.json()


async def test_login_returns_token(client, users, password):
    response = await client.post(f"{API}/auth/login", json={"username": "op1", "password": password})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "operator"
    assert body["name"] == "Oscar Operator"

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "op1"


async def test_login_rejects_bad_password(client, users):
    response = await client.post(f"{API}/auth/login", json={"username": "op1", "password": "nope"})
    assert response.status_code == 401


async def test_requests_without_token_rejected(client):
    response = await client.get(f"{API}/production-orders")
    assert response.status_code in (401, 403)


async def test_invalid_token_rejected(client, users):
    response = await client.get(
        f"{API}/production-orders", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


async def test_create_and_fetch_order(client, auth_headers, api_order):
    assert [op["operation"] for op in api_order["operations"]] == ["OP10", "OP20", "OP30"]

    response = await client.get(f"{API}/production-orders/PO-100", headers=auth_headers("operator"))
    assert response.status_code == 200
    detail = response.json()
    assert detail["po_quantity"] == 100
    assert detail["lock"]["is_locked"] is False
    assert detail["operations"][0]["state"] == "not_started"

    exists = await client.get(f"{API}/production-orders/exists/PO-100", headers=auth_headers("viewer"))
    assert exists.json() == {"po_number": "PO-100", "exists": True}

    listing = await client.get(f"{API}/production-orders?search=LOT-7", headers=auth_headers("viewer"))
    assert listing.json()["total"] == 1


async def test_operator_cannot_create_order(client, auth_headers, steps):
    response = await client.post(
        f"{API}/production-orders",
        json={"po_number": "PO-9", "po_quantity": 10},
        headers=auth_headers("operator"),
    )
    assert response.status_code == 403
    assert response.json()["type"] == "PermissionDeniedError"


async def test_missing_order_is_404(client, auth_headers, users):
    response = await client.get(f"{API}/production-orders/PO-404", headers=auth_headers("operator"))
    assert response.status_code == 404
    assert response.json()["details"] == {"po_number": "PO-404"}


async def test_lock_conflict_is_423_with_holder(client, auth_headers, api_order):
    body = {"resource_type": "productionOrder", "resource_id": "PO-100"}
    acquired = await client.post(f"{API}/locks/acquire", json=body, headers=auth_headers("operator"))
    assert acquired.status_code == 200
    assert acquired.json()["is_owner"] is True

    conflict = await client.post(f"{API}/locks/acquire", json=body, headers=auth_headers("operator2"))
    assert conflict.status_code == 423
    payload = conflict.json()
    assert payload["type"] == "LockConflictError"
    assert payload["details"]["lock_info"]["user_name"] == "Oscar Operator"

    blocked = await client.post(
        f"{API}/operations/start",
        json={"po_number": "PO-100", "operation_code": "OP10"},
        headers=auth_headers("operator2"),
    )
    assert blocked.status_code == 423

    not_owner = await client.post(f"{API}/locks/release", json=body, headers=auth_headers("operator2"))
    assert not_owner.json()["released"] is False

    forbidden = await client.post(f"{API}/locks/force-release", json=body, headers=auth_headers("operator2"))
    assert forbidden.status_code == 403

    forced = await client.post(f"{API}/locks/force-release", json=body, headers=auth_headers("admin"))
    assert forced.json()["released"] is True

    status = await client.get(
        f"{API}/locks/status", params={"resource_id": "PO-100"}, headers=auth_headers("operator2")
    )
    assert status.json()["is_locked"] is False


async def test_viewer_lock_is_read_only(client, auth_headers, api_order):
    response = await client.post(
        f"{API}/locks/acquire",
        json={"resource_type": "productionOrder", "resource_id": "PO-100"},
        headers=auth_headers("viewer"),
    )
    assert response.status_code == 200
    assert response.json()["read_only"] is True


async def test_start_and_complete_through_api(client, auth_headers, defects, api_order):
    headers = auth_headers("operator")
    started = await client.post(
        f"{API}/operations/start", json={"po_number": "PO-100", "operation_code": "OP10"}, headers=headers
    )
    assert started.status_code == 200
    assert started.json()["state"] == "started"

    recorded = await client.post(
        f"{API}/operation-defects",
        json={
            "po_number": "PO-100",
            "operation_code": "OP10",
            "defect": {"defect_id": str(defects["scratch"].id), "quantity_nogood": 5},
        },
        headers=headers,
    )
    assert recorded.status_code == 200
    assert recorded.json()["quantity"] == 5

    blank = await client.post(
        f"{API}/operations/complete",
        json={"po_number": "PO-100", "operation_code": "OP10", "line_no": ""},
        headers=headers,
    )
    assert blank.status_code == 422
    assert blank.json()["details"] == {"field": "line_no"}

    completed = await client.post(
        f"{API}/operations/complete",
        json={"po_number": "PO-100", "operation_code": "OP10", "line_no": "L1"},
        headers=headers,
    )
    assert completed.status_code == 200
    result = completed.json()
    assert result["output_quantity"] == 95
    assert result["next_operation"] == "OP20"
    assert result["next_operation_started"] is True

    operations = await client.get(f"{API}/operations/PO-100", headers=headers)
    assert [op["input_quantity"] for op in operations.json()] == [100, 95, 0]


async def test_unbalanced_defect_rejected(client, auth_headers, defects, api_order):
    headers = auth_headers("operator")
    await client.post(
        f"{API}/operations/start", json={"po_number": "PO-100", "operation_code": "OP10"}, headers=headers
    )
    response = await client.post(
        f"{API}/operation-defects",
        json={
            "po_number": "PO-100",
            "operation_code": "OP10",
            "defect": {"defect_id": str(defects["scratch"].id), "quantity": 3, "quantity_nogood": 1},
        },
        headers=headers,
    )
    assert response.status_code == 422


async def test_edit_request_roundtrip(client, auth_headers, defects, api_order):
    operator = auth_headers("operator")
    admin = auth_headers("admin")
    await client.post(
        f"{API}/operations/start", json={"po_number": "PO-100", "operation_code": "OP10"}, headers=operator
    )
    completed = await client.post(
        f"{API}/operations/complete",
        json={
            "po_number": "PO-100",
            "operation_code": "OP10",
            "line_no": "L1",
            "defects": [{"defect_id": str(defects["scratch"].id), "quantity_nogood": 5}],
        },
        headers=operator,
    )
    record_id = completed.json()["operation"]["defects"][0]["id"]

    created = await client.post(
        f"{API}/operation-defects-edit-requests",
        json={"request_type": "edit", "operation_defect_id": record_id, "requested_ng": 8, "reason": "recount"},
        headers=operator,
    )
    assert created.status_code == 201
    request_id = created.json()["id"]

    count = await client.get(f"{API}/operation-defects-edit-requests/count", headers=admin)
    assert count.json() == {"status": "pending", "count": 1}

    badge = await client.get(f"{API}/notifications/my/count", headers=admin)
    assert badge.json()["unread"] == 1

    resolved = await client.put(
        f"{API}/operation-defects-edit-requests/{request_id}/resolve",
        json={"status": "approved", "comments": "ok"},
        headers=admin,
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "approved"

    again = await client.put(
        f"{API}/operation-defects-edit-requests/{request_id}/resolve",
        json={"status": "rejected"},
        headers=admin,
    )
    assert again.status_code == 409

    listing = await client.get(
        f"{API}/operation-defects-edit-requests",
        params={"status": "all", "sortField": "created_at", "sortDirection": "asc"},
        headers=admin,
    )
    assert listing.json()["total"] == 1

    operations = await client.get(f"{API}/operations/PO-100", headers=operator)
    assert operations.json()[0]["output_quantity"] == 95
    assert operations.json()[0]["defects"][0]["quantity_nogood"] == 8


async def test_audit_logs_admin_only(client, auth_headers, api_order):
    assert (await client.get(f"{API}/audit-logs", headers=auth_headers("operator"))).status_code == 403

    response = await client.get(
        f"{API}/audit-logs", params={"entity_type": "production_order"}, headers=auth_headers("admin")
    )
    assert response.status_code == 200
    assert response.json()["items"][0]["action"] == "CREATE"


async def test_master_defect_deactivation(client, auth_headers, defects):
    admin = auth_headers("admin")
    defect_id = str(defects["scratch"].id)

    response = await client.post(f"{API}/master-defects/{defect_id}/deactivate", headers=admin)
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    active = await client.get(f"{API}/master-defects", headers=auth_headers("operator"))
    assert defect_id not in [d["id"] for d in active.json()["items"]]

    for_op20 = await client.get(
        f"{API}/master-defects", params={"applicable_operation": "OP20"}, headers=admin
    )
    assert [d["name"] for d in for_op20.json()["items"]] == ["Dent"]


async def test_standard_cost_lifecycle(client, auth_headers, users):
    admin = auth_headers("admin")
    created = await client.post(
        f"{API}/standard-costs",
        json={"item_name": "Bracket", "cost_per_unit": "2.5", "currency": "usd"},
        headers=admin,
    )
    assert created.status_code == 201
    cost = created.json()
    assert cost["currency"] == "USD"
    assert Decimal(cost["cost_per_unit"]) == Decimal("2.5")

    forbidden = await client.post(
        f"{API}/standard-costs",
        json={"item_name": "Hinge", "cost_per_unit": "1"},
        headers=auth_headers("operator"),
    )
    assert forbidden.status_code == 403

    duplicate = await client.post(
        f"{API}/standard-costs", json={"item_name": "Bracket", "cost_per_unit": "3"}, headers=admin
    )
    assert duplicate.status_code == 409

    updated = await client.patch(
        f"{API}/standard-costs/{cost['id']}", json={"cost_per_unit": "3.25"}, headers=admin
    )
    assert Decimal(updated.json()["cost_per_unit"]) == Decimal("3.25")

    await client.post(f"{API}/standard-costs/{cost['id']}/deactivate", headers=admin)
    active = await client.get(f"{API}/standard-costs", params={"is_active": True}, headers=admin)
    assert active.json()["total"] == 0


async def test_user_admin(client, auth_headers, users):
    admin = auth_headers("admin")
    created = await client.post(
        f"{API}/users",
        json={"username": "op3", "password": "secret123", "name": "New Operator"},
        headers=admin,
    )
    assert created.status_code == 201
    assert created.json()["role"] == "operator"

    duplicate = await client.post(
        f"{API}/users", json={"username": "op3", "password": "secret123"}, headers=admin
    )
    assert duplicate.status_code == 409

    self_delete = await client.delete(f"{API}/users/{users['admin'].id}", headers=admin)
    assert self_delete.status_code == 422

    deleted = await client.delete(f"{API}/users/{created.json()['id']}", headers=admin)
    assert deleted.status_code == 204


async def test_update_order_through_api(client, auth_headers, api_order):
    body = {"po_quantity": 150, "item_name": "Harness B"}
    forbidden = await client.put(f"{API}/production-orders/PO-100", json=body, headers=auth_headers("operator"))
    assert forbidden.status_code == 403

    response = await client.put(f"{API}/production-orders/PO-100", json=body, headers=auth_headers("admin"))
    assert response.status_code == 200
    detail = response.json()
    assert (detail["po_quantity"], detail["item_name"], detail["lot_number"]) == (150, "Harness B", "LOT-7")
    assert [op["input_quantity"] for op in detail["operations"]] == [150, 0, 0]


async def test_operation_lines_through_api(client, auth_headers, users):
    admin = auth_headers("admin")
    for number in ("L1", "L2"):
        created = await client.post(
            f"{API}/operation-lines", json={"operation_number": "OP10", "line_number": number}, headers=admin
        )
        assert created.status_code == 201

    response = await client.get(
        f"{API}/operation-lines", params={"operation": "op10"}, headers=auth_headers("viewer")
    )
    assert response.status_code == 200
    assert response.json()["operation"] == "OP10"
    assert response.json()["lines"] == ["L1", "L2"]

    removed = await client.delete(f"{API}/operation-lines/{response.json()['items'][0]['id']}", headers=admin)
    assert removed.status_code == 204


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"
