import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from . import models

# Profile CRUD Operations
def get_profile(db: Session, profile_id: str):
    return db.query(models.Profile).filter(models.Profile.id == profile_id).first()

def list_profiles_with_email(db: Session):
    """All profiles joined with their auth e-mail, newest first"""
    rows = (
        db.query(models.Profile, models.AuthUser.email)
        .outerjoin(models.AuthUser, models.AuthUser.id == models.Profile.id)
        .order_by(models.Profile.created_at.desc())
        .all()
    )
    return [{"profile": profile, "email": email} for profile, email in rows]

def list_editors(db: Session):
    """Active profiles that can be assigned work, with their e-mail"""
    rows = (
        db.query(models.Profile, models.AuthUser.email)
        .outerjoin(models.AuthUser, models.AuthUser.id == models.Profile.id)
        .filter(models.Profile.role.in_(["editor", "staff", "admin"]))
        .filter(models.Profile.is_active.is_(True))
        .order_by(models.Profile.full_name)
        .all()
    )
    return [{"profile": profile, "email": email} for profile, email in rows]

def create_profile(db: Session, user_id: str, full_name: str = None, role: str = "customer",
                   phone: str = None, department: str = None):
    db_profile = models.Profile(
        id=user_id,
        full_name=full_name,
        role=role,
        phone=phone,
        department=department,
        is_active=True
    )
    db.add(db_profile)
    db.commit()
    db.refresh(db_profile)
    return db_profile

def update_profile(db: Session, profile_id: str, **fields):
    db_profile = get_profile(db, profile_id)
    if db_profile:
        for key, value in fields.items():
            setattr(db_profile, key, value)
        db.commit()
        db.refresh(db_profile)
    return db_profile

def count_profiles_by_role(db: Session):
    rows = db.query(models.Profile.role, func.count(models.Profile.id)).group_by(models.Profile.role).all()
    return {role: count for role, count in rows}

# Service CRUD Operations
def get_service(db: Session, service_id: str):
    return db.query(models.Service).filter(models.Service.id == service_id).first()

def list_services(db: Session, category: str = None, include_inactive: bool = False):
    query = db.query(models.Service)
    if not include_inactive:
        query = query.filter(models.Service.is_active.is_(True))
    if category:
        query = query.filter(models.Service.category == category)
    return query.order_by(models.Service.name).all()

def create_service(db: Session, **fields):
    db_service = models.Service(**fields)
    db.add(db_service)
    db.commit()
    db.refresh(db_service)
    return db_service

def update_service(db: Session, service_id: str, **fields):
    db_service = get_service(db, service_id)
    if db_service:
        for key, value in fields.items():
            setattr(db_service, key, value)
        db.commit()
        db.refresh(db_service)
    return db_service

def count_active_services(db: Session) -> int:
    return db.query(models.Service).filter(models.Service.is_active.is_(True)).count()

# Cart CRUD Operations
def get_cart_item(db: Session, cart_item_id: str):
    return db.query(models.CartItem).filter(models.CartItem.id == cart_item_id).first()

def list_cart_items(db: Session, user_id: str):
    return (
        db.query(models.CartItem)
        .options(joinedload(models.CartItem.service))
        .filter(models.CartItem.user_id == user_id)
        .order_by(models.CartItem.created_at)
        .all()
    )

def create_cart_item(db: Session, user_id: str, service_id: str, specifications: dict):
    db_item = models.CartItem(
        user_id=user_id,
        service_id=service_id,
        quantity=1,
        specifications=specifications
    )
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    return db_item

def update_cart_item_specifications(db: Session, cart_item_id: str, specifications: dict):
    db_item = get_cart_item(db, cart_item_id)
    if db_item:
        db_item.specifications = specifications
        db.commit()
        db.refresh(db_item)
    return db_item

def delete_cart_item(db: Session, cart_item_id: str):
    db.query(models.UploadedImage).filter(models.UploadedImage.cart_item_id == cart_item_id).delete(synchronize_session=False)
    db.query(models.CartItem).filter(models.CartItem.id == cart_item_id).delete(synchronize_session=False)
    db.commit()

def clear_cart(db: Session, user_id: str) -> int:
    deleted = db.query(models.CartItem).filter(models.CartItem.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return deleted

# Uploaded image CRUD Operations
def create_uploaded_image(db: Session, original_url: str, file_name: str, file_size: int, mime_type: str,
                          cart_item_id: str = None, order_item_id: str = None, commit: bool = True):
    db_image = models.UploadedImage(
        cart_item_id=cart_item_id,
        order_item_id=order_item_id,
        original_url=original_url,
        file_name=file_name,
        file_size=file_size,
        mime_type=mime_type,
        upload_status="completed"
    )
    db.add(db_image)
    if commit:
        db.commit()
        db.refresh(db_image)
    return db_image

def reassign_cart_images_to_order_item(db: Session, cart_item_id: str, order_item_id: str):
    db.query(models.UploadedImage).filter(models.UploadedImage.cart_item_id == cart_item_id).update(
        {"order_item_id": order_item_id}, synchronize_session=False
    )

# Order CRUD Operations
def get_order(db: Session, order_id: str):
    return db.query(models.Order).filter(models.Order.id == order_id).first()

def get_order_by_idempotency_key(db: Session, user_id: str, idempotency_key: str):
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user_id, models.Order.idempotency_key == idempotency_key)
        .first()
    )

def list_orders(db: Session, user_id: str = None, status: str = None):
    query = db.query(models.Order).options(
        joinedload(models.Order.customer),
        joinedload(models.Order.editor),
    )
    if user_id:
        query = query.filter(models.Order.user_id == user_id)
    if status:
        query = query.filter(models.Order.status == status)
    return query.order_by(models.Order.created_at.desc()).all()

def create_order(db: Session, user_id: str, order_number: str, total_amount, idempotency_key: str = None):
    db_order = models.Order(
        user_id=user_id,
        order_number=order_number,
        status="pending",
        total_amount=total_amount,
        payment_status="pending",
        idempotency_key=idempotency_key
    )
    db.add(db_order)
    db.commit()
    db.refresh(db_order)
    return db_order

def update_order(db: Session, order_id: str, **fields):
    db_order = get_order(db, order_id)
    if db_order:
        for key, value in fields.items():
            setattr(db_order, key, value)
        db.commit()
        db.refresh(db_order)
    return db_order

def delete_order(db: Session, order_id: str) -> int:
    deleted = db.query(models.Order).filter(models.Order.id == order_id).delete(synchronize_session=False)
    db.commit()
    return deleted

def count_orders_by_status(db: Session):
    rows = db.query(models.Order.status, func.count(models.Order.id)).group_by(models.Order.status).all()
    return {status: count for status, count in rows}

# Order item CRUD Operations
def get_order_item(db: Session, order_item_id: str):
    return (
        db.query(models.OrderItem)
        .options(joinedload(models.OrderItem.order), joinedload(models.OrderItem.revisions))
        .filter(models.OrderItem.id == order_item_id)
        .first()
    )

def list_order_items(db: Session, order_id: str):
    return (
        db.query(models.OrderItem)
        .options(joinedload(models.OrderItem.service), joinedload(models.OrderItem.revisions))
        .filter(models.OrderItem.order_id == order_id)
        .order_by(models.OrderItem.created_at)
        .all()
    )

def list_order_item_ids(db: Session, order_id: str):
    return [row.id for row in db.query(models.OrderItem.id).filter(models.OrderItem.order_id == order_id).all()]

def list_order_items_for_customer(db: Session, user_id: str = None):
    query = (
        db.query(models.OrderItem)
        .join(models.Order, models.Order.id == models.OrderItem.order_id)
        .options(
            joinedload(models.OrderItem.order),
            joinedload(models.OrderItem.service),
            joinedload(models.OrderItem.revisions).joinedload(models.Revision.images),
        )
    )
    if user_id:
        query = query.filter(models.Order.user_id == user_id)
    return query.order_by(models.OrderItem.created_at.desc()).all()

def list_order_items_for_editor(db: Session, editor_id: str):
    """Items whose effective editor is ``editor_id``"""
    return (
        db.query(models.OrderItem)
        .join(models.Order, models.Order.id == models.OrderItem.order_id)
        .options(
            joinedload(models.OrderItem.order).joinedload(models.Order.customer),
            joinedload(models.OrderItem.service),
            joinedload(models.OrderItem.revisions),
        )
        .filter(
            (models.OrderItem.assigned_editor == editor_id)
            | ((models.OrderItem.assigned_editor.is_(None)) & (models.Order.assigned_editor == editor_id))
        )
        .order_by(models.OrderItem.created_at.desc())
        .all()
    )

def create_order_items(db: Session, rows):
    """Insert several order items in one commit"""
    db_items = [models.OrderItem(**row) for row in rows]
    db.add_all(db_items)
    db.commit()
    for db_item in db_items:
        db.refresh(db_item)
    return db_items

def update_order_item(db: Session, order_item_id: str, **fields):
    db_item = db.query(models.OrderItem).filter(models.OrderItem.id == order_item_id).first()
    if db_item:
        for key, value in fields.items():
            setattr(db_item, key, value)
        db.commit()
        db.refresh(db_item)
    return db_item

def delete_order_item(db: Session, order_item_id: str) -> int:
    db.query(models.UploadedImage).filter(models.UploadedImage.order_item_id == order_item_id).delete(synchronize_session=False)
    deleted = db.query(models.OrderItem).filter(models.OrderItem.id == order_item_id).delete(synchronize_session=False)
    db.commit()
    return deleted

def delete_order_items(db: Session, order_id: str) -> int:
    deleted = db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).delete(synchronize_session=False)
    db.commit()
    return deleted

def delete_uploaded_images_for_items(db: Session, order_item_ids) -> int:
    deleted = (
        db.query(models.UploadedImage)
        .filter(models.UploadedImage.order_item_id.in_(order_item_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted

# Revision CRUD Operations
def list_revisions_for_item(db: Session, order_item_id: str):
    return (
        db.query(models.Revision)
        .filter(models.Revision.order_item_id == order_item_id)
        .order_by(models.Revision.created_at.desc())
        .all()
    )

def get_revision_by_idempotency_key(db: Session, order_item_id: str, idempotency_key: str):
    return (
        db.query(models.Revision)
        .filter(models.Revision.order_item_id == order_item_id, models.Revision.idempotency_key == idempotency_key)
        .first()
    )

def create_revision(db: Session, order_item_id: str, requested_by: str, assigned_to: str, notes: str,
                    idempotency_key: str = None):
    db_revision = models.Revision(
        order_item_id=order_item_id,
        requested_by=requested_by,
        assigned_to=assigned_to,
        notes=notes,
        status="pending",
        idempotency_key=idempotency_key
    )
    db.add(db_revision)
    db.commit()
    db.refresh(db_revision)
    return db_revision

def complete_revision(db: Session, revision: models.Revision):
    revision.status = "completed"
    revision.completed_at = datetime.datetime.utcnow()
    db.commit()
    db.refresh(revision)
    return revision

def create_revision_image(db: Session, revision_id: str, image_url: str, filename: str, file_size: int,
                          uploaded_by: str):
    db_image = models.RevisionImage(
        revision_id=revision_id,
        image_url=image_url,
        filename=filename,
        file_size=file_size,
        uploaded_by=uploaded_by
    )
    db.add(db_image)
    db.commit()
    db.refresh(db_image)
    return db_image

def delete_revisions_for_items(db: Session, order_item_ids) -> int:
    revision_ids = [
        row.id for row in db.query(models.Revision.id).filter(models.Revision.order_item_id.in_(order_item_ids)).all()
    ]
    if revision_ids:
        db.query(models.RevisionImage).filter(models.RevisionImage.revision_id.in_(revision_ids)).delete(synchronize_session=False)
    deleted = db.query(models.Revision).filter(models.Revision.order_item_id.in_(order_item_ids)).delete(synchronize_session=False)
    db.commit()
    return deleted
