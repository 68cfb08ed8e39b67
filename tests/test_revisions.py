import datetime

import pytest

from visionpolish import catalog, crud, models, orders
from visionpolish.errors import InvalidTransition, NotEligible, NotFound, PermissionDenied, ValidationFailed

from conftest import JPEG_BYTES, auth_headers, cart_photos, create_account, session_for, track_event_loop


@pytest.fixture
def assigned_order(db, customer, editor, service):
    catalog.add_photos_to_cart(db, customer.id, service.id, cart_photos(1))
    result = orders.checkout(db, customer.id)
    orders.assign_editor(db, result.order.id, editor.id)
    return result.order.id, result.items[0].id


def deliver(db, editor, item_id):
    return orders.editor_upload_result(db, item_id, session_for(editor, "editor"), "final.jpg", "image/jpeg", JPEG_BYTES)


def test_delivery_appends_edited_image_and_completes_order(db, editor, assigned_order, fake_s3):
    order_id, item_id = assigned_order
    outcome = deliver(db, editor, item_id)

    assert outcome["order_status"] == "completed"
    assert outcome["revision_id"] is None
    db.expire_all()
    item = crud.get_order_item(db, item_id)
    edited = item.specifications["editedImages"]
    assert len(edited) == 1
    assert edited[0]["url"].startswith(f"uploads/edited/edited_{item_id}_")
    assert edited[0]["originalFilename"] == "final.jpg"
    assert edited[0]["uploadedBy"] == editor.id
    assert item.status == "completed"
    assert f"test/{edited[0]['url']}" in fake_s3.objects


def test_only_the_effective_editor_can_deliver(db, assigned_order, staff):
    _, item_id = assigned_order
    stranger = create_account(db, "stranger@example.com", "editor")

    with pytest.raises(PermissionDenied):
        deliver(db, stranger, item_id)
    assert deliver(db, staff, item_id)["order_status"] == "completed"


def test_item_level_editor_overrides_order_editor(db, editor, assigned_order):
    _, item_id = assigned_order
    specialist = create_account(db, "specialist@example.com", "editor")
    orders.assign_item_editor(db, item_id, specialist.id)

    with pytest.raises(PermissionDenied):
        deliver(db, editor, item_id)
    assert deliver(db, specialist, item_id)["order_status"] == "completed"


def test_delivery_rejects_non_images_and_cancelled_orders(db, editor, assigned_order):
    order_id, item_id = assigned_order
    with pytest.raises(ValidationFailed):
        orders.editor_upload_result(db, item_id, session_for(editor, "editor"), "notes.txt", "text/plain", b"hello")

    orders.cancel_order(db, order_id)
    with pytest.raises(InvalidTransition):
        deliver(db, editor, item_id)


def test_revision_request_rules(db, customer, editor, assigned_order):
    order_id, item_id = assigned_order
    customer_session = session_for(customer, "customer")

    with pytest.raises(NotEligible):
        orders.request_revision(db, item_id, customer_session, "too early")

    deliver(db, editor, item_id)

    other = create_account(db, "nosy@example.com", "customer")
    with pytest.raises(NotFound):
        orders.request_revision(db, item_id, session_for(other, "customer"), "not mine")
    with pytest.raises(ValidationFailed):
        orders.request_revision(db, item_id, customer_session, "   ")

    revision = orders.request_revision(db, item_id, customer_session, "crop tighter")
    assert revision.status == "pending"
    assert revision.assigned_to == editor.id
    assert revision.requested_by == customer.id
    db.expire_all()
    assert crud.get_order(db, order_id).status == "revision"
    assert crud.get_order_item(db, item_id).status == "revision"

    with pytest.raises(NotEligible):
        orders.request_revision(db, item_id, customer_session, "again")


def test_revision_needs_an_editor(db, customer, service, staff):
    catalog.add_photos_to_cart(db, customer.id, service.id, cart_photos(1))
    result = orders.checkout(db, customer.id)
    item_id = result.items[0].id
    deliver(db, staff, item_id)

    with pytest.raises(NotEligible) as exc:
        orders.request_revision(db, item_id, session_for(customer, "customer"), "please fix")
    assert exc.value.detail == "No editor assigned to this order. Please contact support."


def test_revision_request_is_idempotent(client, db, customer, editor, assigned_order):
    _, item_id = assigned_order
    deliver(db, editor, item_id)
    headers = {**auth_headers(customer), "Idempotency-Key": "rev-1"}

    first = client.post(f"/orders/items/{item_id}/revisions", json={"notes": "crop tighter"}, headers=headers)
    second = client.post(f"/orders/items/{item_id}/revisions", json={"notes": "crop tighter"}, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["id"] == second.json()["id"]
    assert len(crud.list_revisions_for_item(db, item_id)) == 1


def test_upload_resolves_newest_pending_revision(db, customer, editor, assigned_order):
    order_id, item_id = assigned_order
    deliver(db, editor, item_id)
    older = crud.create_revision(db, item_id, requested_by=customer.id, assigned_to=editor.id, notes="first")
    newer = crud.create_revision(db, item_id, requested_by=customer.id, assigned_to=editor.id, notes="second")
    older.created_at = datetime.datetime(2024, 1, 1, 9, 0)
    newer.created_at = datetime.datetime(2024, 1, 1, 10, 0)
    db.commit()
    crud.update_order(db, order_id, status="revision")

    outcome = deliver(db, editor, item_id)

    assert outcome["revision_id"] == newer.id
    assert outcome["order_status"] == "completed"
    db.expire_all()
    assert db.get(models.Revision, newer.id).status == "completed"
    assert db.get(models.Revision, newer.id).completed_at is not None
    assert db.get(models.Revision, older.id).status == "pending"
    images = db.query(models.RevisionImage).filter(models.RevisionImage.revision_id == newer.id).all()
    assert len(images) == 1
    assert images[0].uploaded_by == editor.id

    # The older request still blocks a new one
    with pytest.raises(NotEligible):
        orders.request_revision(db, item_id, session_for(customer, "customer"), "third")


def test_result_upload_endpoint_runs_off_the_event_loop(client, editor, assigned_order, fake_s3, monkeypatch):
    _, item_id = assigned_order
    seen = track_event_loop(fake_s3, monkeypatch)

    response = client.post(
        f"/editor/items/{item_id}/result",
        files={"file": ("final.jpg", JPEG_BYTES, "image/jpeg")},
        headers=auth_headers(editor),
    )

    assert response.status_code == 200
    assert response.json()["order_status"] == "completed"
    assert seen == [False]
