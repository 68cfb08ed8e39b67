"""
Order lifecycle effects: checkout, assignment, delivery and revisions.

Every status change is decided by ``workflow`` and then written here.
Writes are separate commits; checkout compensates a failed item insert by
removing the order it just created.
"""
import copy
import datetime
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import catalog, crud, models, storage, workflow
from .config import MAX_UPLOAD_BYTES
from .errors import CheckoutError, InvalidTransition, NotEligible, NotFound, PermissionDenied, ValidationFailed
from .logger import logger
from .session import EDITOR_ROLES, SessionContext
from .status_messages import get_status_message
from .validation import sanitize_input
from .workflow import OrderEvent


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}"


@dataclass
class CheckoutResult:
    order: models.Order
    items: List[models.OrderItem]
    cart_cleared: bool = True
    replayed: bool = False


def checkout(db: Session, user_id: str, idempotency_key: Optional[str] = None) -> CheckoutResult:
    """
    Turn the user's cart into an order with one item per cart row.

    Steps: insert order, insert items (price locked from the service now),
    clear the cart. A failed item insert deletes the new order again; a
    failed cart clear leaves the order in place and is reported.
    """
    if idempotency_key:
        existing = crud.get_order_by_idempotency_key(db, user_id, idempotency_key)
        if existing:
            logger.info(f"Checkout replayed for key {idempotency_key}: order {existing.order_number}")
            return CheckoutResult(order=existing, items=crud.list_order_items(db, existing.id), replayed=True)

    cart_items = crud.list_cart_items(db, user_id)
    if not cart_items:
        raise ValidationFailed("Your cart is empty")

    order = crud.create_order(
        db,
        user_id=user_id,
        order_number=generate_order_number(),
        total_amount=catalog.cart_total(cart_items),
        idempotency_key=idempotency_key,
    )
    logger.info(f"Created order {order.order_number} for user {user_id} with {len(cart_items)} item(s)")

    rows = [
        {
            "order_id": order.id,
            "service_id": cart_item.service_id,
            "quantity": cart_item.quantity,
            "price": cart_item.service.base_price,
            "status": "pending",
            "specifications": copy.deepcopy(cart_item.specifications or {}),
        }
        for cart_item in cart_items
    ]

    try:
        items = crud.create_order_items(db, rows)
        for cart_item, order_item in zip(cart_items, items):
            crud.reassign_cart_images_to_order_item(db, cart_item.id, order_item.id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Order item insert failed for order {order.order_number}: {e}")
        _compensate_order(db, order.id)
        raise CheckoutError("Failed to create order items. Your cart has not been changed.")

    cart_cleared = True
    try:
        crud.clear_cart(db, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        cart_cleared = False
        logger.warning(f"Order {order.order_number} created but cart clearing failed for user {user_id}: {e}")

    db.refresh(order)
    return CheckoutResult(order=order, items=items, cart_cleared=cart_cleared)


def _compensate_order(db: Session, order_id: str) -> None:
    try:
        crud.delete_order_items(db, order_id)
        crud.delete_order(db, order_id)
        logger.info(f"Rolled back order {order_id} after failed checkout")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not roll back order {order_id}; it may be left without items: {e}")


def _get_order(db: Session, order_id: str) -> models.Order:
    order = crud.get_order(db, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def _get_item(db: Session, order_item_id: str) -> models.OrderItem:
    item = crud.get_order_item(db, order_item_id)
    if item is None:
        raise NotFound("Order item not found")
    return item


def _require_assignable_editor(db: Session, editor_id: str) -> models.Profile:
    editor = crud.get_profile(db, editor_id)
    if editor is None or not editor.is_active or editor.role not in EDITOR_ROLES:
        raise ValidationFailed("Selected user cannot be assigned editing work")
    return editor


def pay_order(db: Session, order_id: str, session: SessionContext, payment_method: str = "card") -> models.Order:
    order = _get_order(db, order_id)
    if order.user_id != session.user.id:
        raise NotFound("Order not found")
    new_status = workflow.next_status(order.status, OrderEvent.PAY)
    order = crud.update_order(db, order.id, status=new_status.value, payment_status="paid", payment_method=payment_method)
    logger.info(f"Order {order.order_number} paid by {payment_method}")
    return order


def assign_editor(db: Session, order_id: str, editor_id: Optional[str]) -> models.Order:
    order = _get_order(db, order_id)
    if editor_id:
        _require_assignable_editor(db, editor_id)
    new_status = workflow.status_after_assignment(order.status, editor_id)
    order = crud.update_order(db, order.id, assigned_editor=editor_id, status=new_status.value)
    logger.info(f"Order {order.order_number} assigned to {editor_id or 'nobody'}, status {order.status}")
    return order


def assign_item_editor(db: Session, order_item_id: str, editor_id: Optional[str]) -> models.OrderItem:
    item = _get_item(db, order_item_id)
    if item.order.status == workflow.OrderStatus.CANCELLED:
        raise InvalidTransition("Cannot assign work on a cancelled order")
    if editor_id:
        _require_assignable_editor(db, editor_id)
        if item.order.assigned_editor and item.order.assigned_editor != editor_id:
            logger.warning(
                f"Item {item.id} assigned to {editor_id} while order {item.order.order_number} "
                f"is assigned to {item.order.assigned_editor}"
            )
    return crud.update_order_item(db, item.id, assigned_editor=editor_id)


def _is_editor_of_order(db: Session, order: models.Order, user_id: str) -> bool:
    if order.assigned_editor == user_id:
        return True
    return any(
        workflow.effective_editor(item.assigned_editor, order.assigned_editor) == user_id
        for item in crud.list_order_items(db, order.id)
    )


def start_work(db: Session, order_id: str, session: SessionContext) -> models.Order:
    order = _get_order(db, order_id)
    if not session.is_staff and not _is_editor_of_order(db, order, session.user.id):
        raise PermissionDenied("Only the assigned editor can start this order")
    new_status = workflow.next_status(order.status, OrderEvent.START_WORK)
    return crud.update_order(db, order.id, status=new_status.value)


def editor_upload_result(db: Session, order_item_id: str, session: SessionContext, file_name: str,
                         mime_type: str, data: bytes) -> dict:
    """
    Store an edited image for an item and move the order forward.

    With a pending revision on the item the newest one is resolved (older
    pending revisions stay pending); otherwise the upload is a delivery.
    Either way the order ends up completed.
    """
    item = _get_item(db, order_item_id)
    order = item.order

    editor_id = workflow.effective_editor(item.assigned_editor, order.assigned_editor)
    if editor_id != session.user.id and not session.is_staff:
        raise PermissionDenied("This item is assigned to another editor")

    errors = []
    if not (mime_type or "").startswith("image/"):
        errors.append("Please select an image file")
    if len(data) > MAX_UPLOAD_BYTES:
        errors.append(f"File size must be less than {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")
    if errors:
        raise ValidationFailed("Invalid edited image", errors)

    revisions = crud.list_revisions_for_item(db, item.id)
    pending = workflow.latest_pending_revision(revisions)
    event = OrderEvent.FULFILL_REVISION if pending else OrderEvent.DELIVER
    new_status = workflow.next_status(order.status, event)

    path = storage.edited_upload_path(item.id, file_name)
    public_url = storage.upload_file(data, path, mime_type)

    edited_image = {
        "url": path,
        "publicUrl": public_url,
        "filename": path.rsplit("/", 1)[-1],
        "originalFilename": file_name,
        "size": len(data),
        "uploadedAt": datetime.datetime.utcnow().isoformat(),
        "uploadedBy": session.user.id,
    }
    specifications = copy.deepcopy(item.specifications or {"photos": []})
    specifications.setdefault("editedImages", []).append(edited_image)
    crud.update_order_item(db, item.id, specifications=specifications, status="completed")

    revision_image = None
    if pending:
        crud.complete_revision(db, pending)
        revision_image = crud.create_revision_image(
            db,
            revision_id=pending.id,
            image_url=public_url,
            filename=edited_image["filename"],
            file_size=len(data),
            uploaded_by=session.user.id,
        )
        logger.info(f"Revision {pending.id} on item {item.id} fulfilled")

    order = crud.update_order(db, order.id, status=new_status.value)
    logger.info(f"Edited image uploaded for item {item.id}; order {order.order_number} is {order.status}")
    return {
        "order_item_id": item.id,
        "order_status": order.status,
        "edited_image": edited_image,
        "revision_id": pending.id if pending else None,
        "revision_image_id": revision_image.id if revision_image else None,
    }


def request_revision(db: Session, order_item_id: str, session: SessionContext, notes: str,
                     idempotency_key: Optional[str] = None) -> models.Revision:
    item = _get_item(db, order_item_id)
    order = item.order
    if order.user_id != session.user.id:
        raise NotFound("Order item not found")

    notes = (notes or "").strip()
    if not notes:
        raise ValidationFailed("Please provide revision notes")

    if idempotency_key:
        existing = crud.get_revision_by_idempotency_key(db, item.id, idempotency_key)
        if existing:
            return existing

    revisions = crud.list_revisions_for_item(db, item.id)
    edited_images = (item.specifications or {}).get("editedImages") or []
    if not workflow.can_request_revision(order.status, edited_images, revisions):
        raise NotEligible("This item is not eligible for a revision")

    editor_id = workflow.effective_editor(item.assigned_editor, order.assigned_editor)
    if not editor_id:
        raise NotEligible("No editor assigned to this order. Please contact support.")

    new_status = workflow.next_status(order.status, OrderEvent.REQUEST_REVISION)
    revision = crud.create_revision(
        db,
        order_item_id=item.id,
        requested_by=session.user.id,
        assigned_to=editor_id,
        notes=sanitize_input(notes),
        idempotency_key=idempotency_key,
    )
    crud.update_order_item(db, item.id, status="revision")
    crud.update_order(db, order.id, status=new_status.value)
    logger.info(f"Revision {revision.id} requested on item {item.id}, assigned to {editor_id}")
    return revision


def cancel_order(db: Session, order_id: str) -> models.Order:
    order = _get_order(db, order_id)
    new_status = workflow.next_status(order.status, OrderEvent.CANCEL)
    order = crud.update_order(db, order.id, status=new_status.value)
    logger.info(f"Order {order.order_number} cancelled")
    return order


def set_order_status(db: Session, order_id: str, status: str) -> models.Order:
    order = _get_order(db, order_id)
    new_status = workflow.admin_set_status(order.status, status)
    return crud.update_order(db, order.id, status=new_status.value)


def add_order_item(db: Session, order_id: str, service_id: str, quantity: int = 1,
                   price: Optional[Decimal] = None) -> models.OrderItem:
    order = _get_order(db, order_id)
    service = crud.get_service(db, service_id)
    if service is None:
        raise NotFound("Service not found")
    if quantity < 1:
        raise ValidationFailed("Quantity must be a positive number")
    items = crud.create_order_items(db, [{
        "order_id": order.id,
        "service_id": service.id,
        "quantity": quantity,
        "price": price if price is not None else service.base_price,
        "status": "pending",
        "specifications": {"photos": [], "notes": ""},
    }])
    return items[0]


def remove_order_item(db: Session, order_item_id: str) -> None:
    item = _get_item(db, order_item_id)
    crud.delete_revisions_for_items(db, [item.id])
    if crud.delete_order_item(db, item.id) == 0:
        raise NotFound("Item not found - may have been already deleted")


@dataclass
class DeleteResult:
    order_id: str
    warnings: List[str] = field(default_factory=list)


def delete_order_cascade(db: Session, order_id: str) -> DeleteResult:
    """
    Remove an order and everything hanging off it, child tables first.
    A failing child step is logged and reported but does not stop the
    remaining steps; a failure deleting the order itself propagates.
    """
    order = _get_order(db, order_id)
    result = DeleteResult(order_id=order.id)
    item_ids = crud.list_order_item_ids(db, order.id)

    if item_ids:
        steps = [
            ("revisions", lambda: crud.delete_revisions_for_items(db, item_ids)),
            ("uploaded images", lambda: crud.delete_uploaded_images_for_items(db, item_ids)),
            ("order items", lambda: crud.delete_order_items(db, order.id)),
        ]
        for label, step in steps:
            try:
                step()
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Error deleting {label} for order {order.id}: {e}")
                result.warnings.append(f"Error deleting {label}: {e}")

    crud.delete_order(db, order.id)
    logger.info(f"Order {order_id} deleted")
    return result


def describe_item(item: models.OrderItem) -> dict:
    """Customer-facing view of an item: derived status and images to show."""
    specifications = item.specifications or {}
    edited_images = specifications.get("editedImages") or []
    revisions = list(item.revisions or [])
    display_status = workflow.item_display_status(item.order.status, edited_images, revisions)
    active_revision = workflow.latest_pending_revision(revisions)
    latest_revision = workflow.latest_completed_revision(revisions)

    images = [
        {"url": storage.public_url(photo["url"]) if photo.get("url") else None,
         "type": "original", "filename": photo.get("filename"), "label": "Original"}
        for photo in specifications.get("photos") or []
    ]
    if latest_revision is not None and latest_revision.images:
        images.extend(
            {"url": img.image_url, "type": "revision", "filename": img.filename, "label": "Revised"}
            for img in latest_revision.images
        )
    else:
        images.extend(
            {"url": img.get("publicUrl") or storage.public_url(img["url"]), "type": "edited",
             "filename": img.get("filename"), "label": "Edited"}
            for img in edited_images
        )

    return {
        "item": item,
        "order_number": item.order.order_number,
        "order_status": item.order.status,
        "service_name": item.service.name if item.service else None,
        "display_status": display_status,
        "status_info": get_status_message(display_status),
        "active_revision": active_revision,
        "latest_revision": latest_revision,
        "can_request_revision": workflow.can_request_revision(item.order.status, edited_images, revisions),
        "images": images,
    }


def order_detail(db: Session, order_id: str) -> dict:
    order = _get_order(db, order_id)
    items = crud.list_order_items(db, order.id)
    notice = None
    if not items:
        notice = (
            "This order has no items. Item creation may have failed during checkout; "
            "add items manually or delete the order."
        )
    return {"order": summarize_order(order), "items": items, "notice": notice}


def summarize_order(order: models.Order) -> dict:
    """Order row with the customer and editor details the admin table shows."""
    customer = order.customer
    editor = order.editor
    return {
        "id": order.id,
        "user_id": order.user_id,
        "order_number": order.order_number,
        "status": order.status,
        "total_amount": order.total_amount,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "assigned_editor": order.assigned_editor,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "customer_name": customer.full_name if customer else None,
        "customer_email": customer.user.email if customer and customer.user else None,
        "editor_name": editor.full_name if editor else None,
        "item_count": len(order.items),
    }


def describe_editor_item(item: models.OrderItem) -> dict:
    order = item.order
    return {
        "item": item,
        "order_id": order.id,
        "order_number": order.order_number,
        "order_status": order.status,
        "customer_name": order.customer.full_name if order.customer else None,
        "service_name": item.service.name if item.service else None,
        "pending_revision": workflow.latest_pending_revision(item.revisions or []),
    }
