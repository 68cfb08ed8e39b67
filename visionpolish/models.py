from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Numeric, JSON, ForeignKey
from sqlalchemy.orm import relationship
from .database import Base
import datetime
import uuid

def _uuid() -> str:
    return str(uuid.uuid4())

class AuthUser(Base):
    """Authentication identity; the profile row shares its id"""
    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)  # Sign-up metadata
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("auth_users.id"), primary_key=True)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="customer")
    is_active = Column(Boolean, nullable=False, default=True)
    phone = Column(String, nullable=True)
    department = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    user = relationship("AuthUser")

class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    base_price = Column(Numeric(10, 2), nullable=False)
    turnaround_time = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    features = Column(JSON, default=list)  # Ordered list of strings
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)  # One row per photo, so always 1
    specifications = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    service = relationship("Service")

class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    order_number = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=True)
    assigned_editor = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    idempotency_key = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    items = relationship("OrderItem", back_populates="order")
    customer = relationship("Profile", foreign_keys=[user_id])
    editor = relationship("Profile", foreign_keys=[assigned_editor])

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default="pending")
    specifications = Column(JSON, default=dict)  # photos, notes, editedImages
    assigned_editor = Column(String(36), ForeignKey("profiles.id"), nullable=True)  # Overrides the order-level editor
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    order = relationship("Order", back_populates="items")
    service = relationship("Service")
    revisions = relationship("Revision", back_populates="order_item", order_by="Revision.created_at")

class UploadedImage(Base):
    __tablename__ = "uploaded_images"

    id = Column(String(36), primary_key=True, default=_uuid)
    cart_item_id = Column(String(36), nullable=True, index=True)
    order_item_id = Column(String(36), nullable=True, index=True)
    original_url = Column(String, nullable=False)
    file_name = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    upload_status = Column(String, default="completed")
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

class Revision(Base):
    __tablename__ = "revisions"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    requested_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    notes = Column(Text, nullable=True)
    idempotency_key = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    order_item = relationship("OrderItem", back_populates="revisions")
    images = relationship("RevisionImage", back_populates="revision")

class RevisionImage(Base):
    __tablename__ = "revision_images"

    id = Column(String(36), primary_key=True, default=_uuid)
    revision_id = Column(String(36), ForeignKey("revisions.id"), nullable=False, index=True)
    image_url = Column(String, nullable=False)
    filename = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.datetime.utcnow)

    revision = relationship("Revision", back_populates="images")

class RlsSetting(Base):
    """Per-table switch for the row-level ownership filter"""
    __tablename__ = "rls_settings"

    table_name = Column(String, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)
