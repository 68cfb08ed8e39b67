from typing import List, Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from .. import crud, orders, rls, schemas
from ..access import get_current_session
from ..database import get_db
from ..session import SessionContext

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/checkout", response_model=schemas.CheckoutResponse, status_code=201)
def checkout(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    result = orders.checkout(db, session.user.id, idempotency_key)
    return {
        "order": result.order,
        "items": result.items,
        "cart_cleared": result.cart_cleared,
        "replayed": result.replayed,
    }


@router.get("", response_model=List[schemas.Order])
def list_my_orders(session: SessionContext = Depends(get_current_session), db: Session = Depends(get_db)):
    user_id = session.user.id if rls.owner_filter_applies(db, "orders", session) else None
    return crud.list_orders(db, user_id=user_id)


@router.get("/items", response_model=List[schemas.CustomerItemView])
def list_my_items(session: SessionContext = Depends(get_current_session), db: Session = Depends(get_db)):
    """Every order item the caller may see, with its customer-facing status and images"""
    user_id = session.user.id if rls.owner_filter_applies(db, "order_items", session) else None
    return [orders.describe_item(item) for item in crud.list_order_items_for_customer(db, user_id)]


@router.post("/{order_id}/pay", response_model=schemas.Order)
def pay(
    order_id: str,
    payload: schemas.PayRequest,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return orders.pay_order(db, order_id, session, payload.payment_method)


@router.post("/items/{order_item_id}/revisions", response_model=schemas.Revision, status_code=201)
def request_revision(
    order_item_id: str,
    payload: schemas.RevisionRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return orders.request_revision(db, order_item_id, session, payload.notes, idempotency_key)
