"""
Service catalog and the shopping cart.

The cart holds one row per uploaded photo rather than one per service, so
every photo keeps its own notes and is priced and tracked on its own after
checkout. ``quantity`` is therefore always 1.
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from . import crud, models
from .errors import NotFound, ValidationFailed
from .logger import logger
from .validation import sanitize_input, sanitize_search_term


def list_services(db: Session, category: Optional[str] = None, search: Optional[str] = None,
                  include_inactive: bool = False) -> List[models.Service]:
    services = crud.list_services(db, category=category, include_inactive=include_inactive)
    term = sanitize_search_term(search) if search else ""
    if not term:
        return services
    term = term.lower()
    return [
        s for s in services
        if term in (s.name or "").lower() or term in (s.description or "").lower()
    ]


def add_photos_to_cart(db: Session, user_id: str, service_id: str, photos: List[dict],
                       notes: Optional[str] = None) -> List[models.CartItem]:
    """
    Create one cart row per photo. Each photo dict carries url, path,
    filename, size and optionally mime_type and its own notes.
    """
    service = crud.get_service(db, service_id)
    if service is None or not service.is_active:
        raise NotFound("Service not found")
    if not photos:
        raise ValidationFailed("Please upload at least one photo to edit")

    cart_items = []
    for photo in photos:
        photo_notes = photo.get("notes") if photo.get("notes") is not None else notes
        specifications = {
            "photos": [{
                "url": photo.get("url"),
                "path": photo.get("path"),
                "filename": photo.get("filename"),
                "size": photo.get("size"),
            }],
            "notes": sanitize_input(photo_notes) if photo_notes else "",
        }
        cart_item = crud.create_cart_item(db, user_id, service.id, specifications)
        crud.create_uploaded_image(
            db,
            original_url=photo.get("url"),
            file_name=photo.get("filename"),
            file_size=photo.get("size"),
            mime_type=photo.get("mime_type"),
            cart_item_id=cart_item.id,
        )
        cart_items.append(cart_item)

    logger.info(f"Added {len(cart_items)} photo(s) to cart for user {user_id}, service {service.name}")
    return cart_items


def update_cart_item_notes(db: Session, user_id: str, cart_item_id: str, notes: str) -> models.CartItem:
    cart_item = crud.get_cart_item(db, cart_item_id)
    if cart_item is None or cart_item.user_id != user_id:
        raise NotFound("Cart item not found")
    specifications = dict(cart_item.specifications or {})
    specifications["notes"] = sanitize_input(notes) if notes else ""
    return crud.update_cart_item_specifications(db, cart_item_id, specifications)


def remove_cart_item(db: Session, user_id: str, cart_item_id: str) -> None:
    cart_item = crud.get_cart_item(db, cart_item_id)
    if cart_item is None or cart_item.user_id != user_id:
        raise NotFound("Cart item not found")
    crud.delete_cart_item(db, cart_item_id)


def cart_total(cart_items: List[models.CartItem]) -> Decimal:
    total = Decimal("0")
    for item in cart_items:
        price = item.service.base_price if item.service is not None else 0
        total += Decimal(str(price or 0)) * item.quantity
    return total.quantize(Decimal("0.01"))
