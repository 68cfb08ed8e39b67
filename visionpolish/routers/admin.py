"""
Admin and staff management endpoints: services, users, orders, row-level
security and dashboard stats.
"""
from decimal import Decimal
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import auth, crud, orders, rls, schemas
from ..access import admin_only, staff_only
from ..database import get_db
from ..logger import logger
from ..session import SessionContext
from ..validation import sanitize_input

router = APIRouter(prefix="/admin", tags=["admin"])


# Services
@router.get("/services", response_model=List[schemas.Service])
def list_services(session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return crud.list_services(db, include_inactive=True)


@router.post("/services", response_model=schemas.Service, status_code=201)
def create_service(
    payload: schemas.ServiceCreate,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    service = crud.create_service(
        db,
        name=sanitize_input(payload.name),
        description=sanitize_input(payload.description),
        category=payload.category,
        base_price=Decimal(payload.base_price),
        turnaround_time=payload.turnaround_time,
        image_url=payload.image_url,
        features=[sanitize_input(feature) for feature in payload.features if feature.strip()],
        is_active=True,
    )
    logger.info(f"Service '{service.name}' created by {session.user.id}")
    return service


@router.put("/services/{service_id}", response_model=schemas.Service)
def update_service(
    service_id: str,
    payload: schemas.ServiceUpdate,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    fields = payload.dict(exclude_unset=True)
    for key in ("role", "is_active"):
        if fields.get(key, False) is None:
            del fields[key]
    if fields.get("base_price") is not None:
        fields["base_price"] = Decimal(fields["base_price"])
    for key in ("name", "description"):
        if fields.get(key) is not None:
            fields[key] = sanitize_input(fields[key])
    if fields.get("features") is not None:
        fields["features"] = [sanitize_input(feature) for feature in fields["features"] if feature.strip()]
    service = crud.update_service(db, service_id, **fields)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.delete("/services/{service_id}", response_model=schemas.Service)
def deactivate_service(service_id: str, session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    service = crud.update_service(db, service_id, is_active=False)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    logger.info(f"Service '{service.name}' deactivated by {session.user.id}")
    return service


# Users
def _user_row(profile, email):
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "role": profile.role,
        "is_active": profile.is_active,
        "phone": profile.phone,
        "department": profile.department,
        "email": email,
        "created_at": profile.created_at,
    }


@router.get("/users", response_model=List[schemas.User])
def list_users(session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    return [_user_row(row["profile"], row["email"]) for row in crud.list_profiles_with_email(db)]


@router.post("/users", response_model=schemas.User, status_code=201)
def create_user(payload: schemas.UserCreate, session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    user = auth.sign_up(db, payload.email, payload.password, sanitize_input(payload.full_name))
    profile = crud.create_profile(
        db,
        user.id,
        full_name=sanitize_input(payload.full_name),
        role=payload.role,
        phone=sanitize_input(payload.phone),
        department=sanitize_input(payload.department),
    )
    logger.info(f"Admin {session.user.id} created user {user.id} with role '{profile.role}'")
    return _user_row(profile, user.email)


@router.put("/users/{user_id}", response_model=schemas.User)
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    session: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    fields = payload.dict(exclude_unset=True)
    for key in ("role", "is_active"):
        if key in fields and fields[key] is None:
            del fields[key]
    if user_id == session.user.id and (fields.get("is_active") is False or fields.get("role", "admin") != "admin"):
        raise HTTPException(status_code=400, detail="You cannot deactivate or demote your own account")
    for key in ("full_name", "phone", "department"):
        if fields.get(key) is not None:
            fields[key] = sanitize_input(fields[key])
    profile = crud.update_profile(db, user_id, **fields)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_row(profile, profile.user.email if profile.user else None)


@router.delete("/users/{user_id}", response_model=schemas.User)
def deactivate_user(user_id: str, session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    if user_id == session.user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    profile = crud.update_profile(db, user_id, is_active=False)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"User {user_id} deactivated by {session.user.id}")
    return _user_row(profile, profile.user.email if profile.user else None)


# Orders
@router.get("/orders", response_model=List[schemas.AdminOrderSummary])
def list_orders(status: str = None, session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return [orders.summarize_order(order) for order in crud.list_orders(db, status=status)]


@router.get("/orders/{order_id}", response_model=schemas.AdminOrderDetail)
def get_order(order_id: str, session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return orders.order_detail(db, order_id)


@router.post("/orders/{order_id}/items", response_model=schemas.OrderItem, status_code=201)
def add_order_item(
    order_id: str,
    payload: schemas.AddOrderItemRequest,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    price = Decimal(payload.price) if payload.price is not None else None
    return orders.add_order_item(db, order_id, payload.service_id, payload.quantity, price)


@router.delete("/order-items/{order_item_id}")
def remove_order_item(order_item_id: str, session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    orders.remove_order_item(db, order_item_id)
    return {"success": True}


@router.put("/orders/{order_id}/status", response_model=schemas.Order)
def set_order_status(
    order_id: str,
    payload: schemas.StatusUpdate,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return orders.set_order_status(db, order_id, payload.status)


@router.post("/orders/{order_id}/cancel", response_model=schemas.Order)
def cancel_order(order_id: str, session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return orders.cancel_order(db, order_id)


@router.put("/orders/{order_id}/editor", response_model=schemas.Order)
def assign_editor(
    order_id: str,
    payload: schemas.AssignEditorRequest,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return orders.assign_editor(db, order_id, payload.editor_id)


@router.put("/order-items/{order_item_id}/editor", response_model=schemas.OrderItem)
def assign_item_editor(
    order_item_id: str,
    payload: schemas.AssignEditorRequest,
    session: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return orders.assign_item_editor(db, order_item_id, payload.editor_id)


@router.delete("/orders/{order_id}", response_model=schemas.DeleteOrderResponse)
def delete_order(order_id: str, session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    result = orders.delete_order_cascade(db, order_id)
    return {"order_id": result.order_id, "deleted": True, "warnings": result.warnings}


# Row-level security
@router.get("/rls", response_model=List[schemas.RlsStatus])
def rls_status(session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    return rls.get_rls_status(db)


@router.put("/rls/{table_name}", response_model=schemas.RlsStatus)
def toggle_rls(
    table_name: str,
    payload: schemas.RlsToggle,
    session: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    try:
        return rls.toggle_rls(db, table_name, payload.enabled, changed_by=session.user.id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/rls/disable-all", response_model=List[schemas.RlsStatus])
def disable_all_rls(session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    return rls.disable_all_rls(db, changed_by=session.user.id)


@router.post("/rls/apply-recommended", response_model=List[schemas.RlsStatus])
def apply_recommended_rls(session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    return rls.apply_recommended_rls(db, changed_by=session.user.id)


# Dashboard
@router.get("/stats", response_model=schemas.AdminStats)
def stats(session: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    users_by_role = crud.count_profiles_by_role(db)
    orders_by_status = crud.count_orders_by_status(db)
    return {
        "users_by_role": users_by_role,
        "orders_by_status": orders_by_status,
        "active_services": crud.count_active_services(db),
        "total_users": sum(users_by_role.values()),
        "total_orders": sum(orders_by_status.values()),
    }
