from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import catalog, crud, schemas
from ..access import get_current_session
from ..database import get_db
from ..session import SessionContext

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=schemas.CartResponse)
def get_cart(session: SessionContext = Depends(get_current_session), db: Session = Depends(get_db)):
    items = crud.list_cart_items(db, session.user.id)
    return {"items": items, "total": catalog.cart_total(items)}


@router.post("", response_model=List[schemas.CartItem], status_code=201)
def add_to_cart(
    payload: schemas.CartAddRequest,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    photos = [photo.dict() for photo in payload.photos]
    return catalog.add_photos_to_cart(db, session.user.id, payload.service_id, photos, payload.notes)


@router.put("/{cart_item_id}", response_model=schemas.CartItem)
def update_cart_item(
    cart_item_id: str,
    payload: schemas.CartNotesUpdate,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog.update_cart_item_notes(db, session.user.id, cart_item_id, payload.notes)


@router.delete("/{cart_item_id}")
def remove_cart_item(
    cart_item_id: str,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    catalog.remove_cart_item(db, session.user.id, cart_item_id)
    return {"success": True}
