from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from visionpolish import catalog, crud, models, orders, rls

from conftest import PASSWORD, auth_headers, cart_photos, create_account, session_for


@pytest.fixture
def placed_order(db, customer, service):
    catalog.add_photos_to_cart(db, customer.id, service.id, cart_photos(2))
    return orders.checkout(db, customer.id).order.id


def test_assign_and_unassign_editor(client, admin, editor, customer, placed_order):
    headers = auth_headers(admin)

    assigned = client.put(f"/admin/orders/{placed_order}/editor", json={"editor_id": editor.id}, headers=headers)
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "in_progress"
    assert assigned.json()["assigned_editor"] == editor.id

    unassigned = client.put(f"/admin/orders/{placed_order}/editor", json={"editor_id": None}, headers=headers)
    assert unassigned.json()["status"] == "pending"
    assert unassigned.json()["assigned_editor"] is None

    not_an_editor = client.put(f"/admin/orders/{placed_order}/editor", json={"editor_id": customer.id}, headers=headers)
    assert not_an_editor.status_code == 400


def test_reassigning_delivered_order_keeps_status(db, editor, placed_order):
    orders.assign_editor(db, placed_order, editor.id)
    item_id = crud.list_order_item_ids(db, placed_order)[0]
    orders.editor_upload_result(db, item_id, session_for(editor, "editor"), "done.jpg", "image/jpeg", b"\xff\xd8\xff")

    backup = create_account(db, "backup@example.com", "editor")
    assert orders.assign_editor(db, placed_order, backup.id).status == "completed"


def test_cancel_is_irreversible(client, staff, placed_order):
    headers = auth_headers(staff)

    assert client.post(f"/admin/orders/{placed_order}/cancel", headers=headers).json()["status"] == "cancelled"
    assert client.post(f"/admin/orders/{placed_order}/cancel", headers=headers).status_code == 409
    reopened = client.put(f"/admin/orders/{placed_order}/status", json={"status": "pending"}, headers=headers)
    assert reopened.status_code == 409


def test_admin_status_escape_hatch(client, admin, placed_order):
    headers = auth_headers(admin)
    response = client.put(f"/admin/orders/{placed_order}/status", json={"status": "completed"}, headers=headers)
    assert response.json()["status"] == "completed"

    bogus = client.put(f"/admin/orders/{placed_order}/status", json={"status": "shipped"}, headers=headers)
    assert bogus.status_code == 409


def test_order_list_joins_customer_and_editor(client, admin, editor, placed_order):
    client.put(f"/admin/orders/{placed_order}/editor", json={"editor_id": editor.id}, headers=auth_headers(admin))

    rows = client.get("/admin/orders", headers=auth_headers(admin)).json()
    assert len(rows) == 1
    assert rows[0]["customer_name"] == "Jane Customer"
    assert rows[0]["customer_email"] == "jane@example.com"
    assert rows[0]["editor_name"] == "Eddie Editor"
    assert rows[0]["item_count"] == 2
    assert rows[0]["total_amount"] == 20.0


def test_order_without_items_gets_a_notice(client, db, admin, customer):
    order = crud.create_order(db, user_id=customer.id, order_number="ORD-1", total_amount=Decimal("10.00"))

    detail = client.get(f"/admin/orders/{order.id}", headers=auth_headers(admin)).json()
    assert detail["items"] == []
    assert "no items" in detail["notice"]


def test_add_and_remove_order_items(client, db, admin, service, placed_order):
    headers = auth_headers(admin)
    added = client.post(f"/admin/orders/{placed_order}/items", json={"service_id": service.id, "price": "12.50"}, headers=headers)
    assert added.status_code == 201
    assert added.json()["price"] == 12.5

    removed = client.delete(f"/admin/order-items/{added.json()['id']}", headers=headers)
    assert removed.status_code == 200
    assert client.delete(f"/admin/order-items/{added.json()['id']}", headers=headers).status_code == 404
    assert len(crud.list_order_item_ids(db, placed_order)) == 2


def test_delete_order_cascades(client, db, admin, customer, editor, placed_order):
    orders.assign_editor(db, placed_order, editor.id)
    item_id = crud.list_order_item_ids(db, placed_order)[0]
    orders.editor_upload_result(db, item_id, session_for(editor, "editor"), "done.jpg", "image/jpeg", b"\xff\xd8\xff")
    orders.request_revision(db, item_id, session_for(customer, "customer"), "warmer please")
    orders.editor_upload_result(db, item_id, session_for(editor, "editor"), "done2.jpg", "image/jpeg", b"\xff\xd8\xff")

    response = client.delete(f"/admin/orders/{placed_order}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["warnings"] == []
    db.expire_all()
    assert crud.get_order(db, placed_order) is None
    assert db.query(models.OrderItem).count() == 0
    assert db.query(models.Revision).count() == 0
    assert db.query(models.RevisionImage).count() == 0
    assert db.query(models.UploadedImage).count() == 0


def test_delete_order_continues_past_failed_step(db, placed_order, monkeypatch):
    def broken(db, item_ids):
        raise SQLAlchemyError("revisions table locked")

    monkeypatch.setattr(crud, "delete_revisions_for_items", broken)
    result = orders.delete_order_cascade(db, placed_order)

    assert len(result.warnings) == 1
    assert "revisions" in result.warnings[0]
    assert crud.get_order(db, placed_order) is None
    assert db.query(models.OrderItem).count() == 0


def test_service_management(client, staff, customer):
    headers = auth_headers(staff)
    created = client.post(
        "/admin/services",
        json={"name": "Skin Retouch", "base_price": "19.99", "category": "retouching", "features": ["Blemish removal", " "]},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["base_price"] == 19.99
    assert created.json()["features"] == ["Blemish removal"]
    service_id = created.json()["id"]

    assert client.post("/admin/services", json={"name": "Free", "base_price": "0"}, headers=headers).status_code == 422
    assert client.post("/admin/services", json={"name": "X", "base_price": "5"}, headers=auth_headers(customer)).status_code == 403

    updated = client.put(f"/admin/services/{service_id}", json={"base_price": "24.50"}, headers=headers)
    assert updated.json()["base_price"] == 24.5

    client.delete(f"/admin/services/{service_id}", headers=headers)
    assert client.get("/services").json() == []
    assert client.get(f"/services/{service_id}").status_code == 404
    assert client.get("/admin/services", headers=headers).json()[0]["is_active"] is False


def test_user_management(client, admin, staff):
    headers = auth_headers(admin)
    created = client.post(
        "/admin/users",
        json={"email": "newbie@example.com", "password": PASSWORD, "full_name": "New Editor", "role": "editor"},
        headers=headers,
    )
    assert created.status_code == 201
    user_id = created.json()["id"]
    assert created.json()["role"] == "editor"

    bad_role = client.post(
        "/admin/users",
        json={"email": "x@example.com", "password": PASSWORD, "role": "superuser"},
        headers=headers,
    )
    assert bad_role.status_code == 422

    promoted = client.put(f"/admin/users/{user_id}", json={"role": "staff", "department": "Retouching"}, headers=headers)
    assert promoted.json()["role"] == "staff"
    assert promoted.json()["email"] == "newbie@example.com"

    deactivated = client.delete(f"/admin/users/{user_id}", headers=headers)
    assert deactivated.json()["is_active"] is False
    assert client.delete(f"/admin/users/{admin.id}", headers=headers).status_code == 400

    emails = {row["email"] for row in client.get("/admin/users", headers=headers).json()}
    assert "newbie@example.com" in emails
    assert client.get("/admin/users", headers=auth_headers(staff)).status_code == 403


def test_admin_cannot_demote_or_deactivate_self_via_update(client, admin):
    headers = auth_headers(admin)

    assert client.put(f"/admin/users/{admin.id}", json={"is_active": False}, headers=headers).status_code == 400
    assert client.put(f"/admin/users/{admin.id}", json={"role": "customer"}, headers=headers).status_code == 400

    renamed = client.put(f"/admin/users/{admin.id}", json={"full_name": "Ada L.", "role": "admin"}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json()["role"] == "admin"
    assert renamed.json()["is_active"] is True
    assert client.get("/admin/stats", headers=headers).status_code == 200


def test_editor_listing(client, staff, editor, customer):
    rows = client.get("/editors", headers=auth_headers(staff)).json()
    ids = {row["id"] for row in rows}
    assert editor.id in ids
    assert staff.id in ids
    assert customer.id not in ids


def test_rls_toggles_owner_filter(client, db, admin, customer, placed_order):
    other = create_account(db, "other@example.com", "customer")
    headers = auth_headers(admin)

    status = client.get("/admin/rls", headers=headers).json()
    assert len(status) == len(rls.RLS_TABLES)
    assert all(row["rls_enabled"] for row in status)
    assert client.get("/orders", headers=auth_headers(other)).json() == []

    toggled = client.put("/admin/rls/orders", json={"enabled": False}, headers=headers)
    assert toggled.json() == {"table_name": "orders", "rls_enabled": False}
    assert [o["id"] for o in client.get("/orders", headers=auth_headers(other)).json()] == [placed_order]

    assert client.put("/admin/rls/secrets", json={"enabled": False}, headers=headers).status_code == 404

    disabled = client.post("/admin/rls/disable-all", headers=headers).json()
    assert not any(row["rls_enabled"] for row in disabled)
    restored = client.post("/admin/rls/apply-recommended", headers=headers).json()
    assert all(row["rls_enabled"] for row in restored)


def test_staff_always_see_all_rows(db, staff, customer, placed_order):
    assert not rls.owner_filter_applies(db, "orders", session_for(staff, "staff"))
    assert rls.owner_filter_applies(db, "orders", session_for(customer, "customer"))


def test_stats(client, admin, editor, customer, service, placed_order):
    stats = client.get("/admin/stats", headers=auth_headers(admin)).json()
    assert stats["users_by_role"] == {"admin": 1, "editor": 1, "customer": 1}
    assert stats["orders_by_status"] == {"pending": 1}
    assert stats["active_services"] == 1
    assert stats["total_users"] == 3
    assert stats["total_orders"] == 1
