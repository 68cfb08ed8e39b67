from pydantic import BaseModel, Field, validator
import datetime
from typing import Any, Dict, List, Optional

from .session import ROLES
from .validation import validate_price

# Auth Schemas
class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str
    full_name: Optional[str] = Field(None, max_length=255)

    @validator('email')
    def validate_email(cls, v):
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError('Please enter a valid email address')
        return v.strip().lower()

class SignInRequest(BaseModel):
    email: str
    password: str

class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=255)

class Profile(BaseModel):
    id: str
    full_name: Optional[str] = None
    role: str
    is_active: bool = True
    phone: Optional[str] = None
    department: Optional[str] = None

    class Config:
        from_attributes = True

class SessionUser(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None

    class Config:
        from_attributes = True

class SessionResponse(BaseModel):
    user: SessionUser
    profile: Profile
    profile_authoritative: bool

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: SessionUser

# Service Schemas
class ServiceBase(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    turnaround_time: Optional[str] = None
    image_url: Optional[str] = None
    features: List[str] = []

class ServiceCreate(ServiceBase):
    base_price: str

    @validator('base_price')
    def validate_base_price(cls, v):
        error = validate_price(v)
        if error:
            raise ValueError(error)
        return v

class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[str] = None
    turnaround_time: Optional[str] = None
    image_url: Optional[str] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @validator('base_price')
    def validate_base_price(cls, v):
        if v is None:
            return v
        error = validate_price(v)
        if error:
            raise ValueError(error)
        return v

class Service(ServiceBase):
    id: str
    base_price: float
    features: Optional[List[str]] = None
    is_active: bool
    created_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True

# Cart Schemas
class CartPhoto(BaseModel):
    url: str
    path: Optional[str] = None
    filename: str
    size: Optional[int] = None
    mime_type: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)

class CartAddRequest(BaseModel):
    service_id: str
    photos: List[CartPhoto]
    notes: Optional[str] = Field(None, max_length=2000)

class CartNotesUpdate(BaseModel):
    notes: str = Field("", max_length=2000)

class CartItem(BaseModel):
    id: str
    service_id: str
    quantity: int
    specifications: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime.datetime] = None
    service: Optional[Service] = None

    class Config:
        from_attributes = True

class CartResponse(BaseModel):
    items: List[CartItem]
    total: float

# Upload Schemas
class UploadResult(BaseModel):
    file_name: str
    status: str
    path: Optional[str] = None
    url: Optional[str] = None
    size: int
    mime_type: Optional[str] = None
    error: Optional[str] = None

class UploadBatchResponse(BaseModel):
    results: List[UploadResult]
    errors: List[str] = []

# Order Schemas
class Order(BaseModel):
    id: str
    user_id: str
    order_number: str
    status: str
    total_amount: float
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    assigned_editor: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True

class OrderItem(BaseModel):
    id: str
    order_id: str
    service_id: str
    quantity: int
    price: float
    status: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    assigned_editor: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True

class CheckoutResponse(BaseModel):
    order: Order
    items: List[OrderItem]
    cart_cleared: bool
    replayed: bool = False

class PayRequest(BaseModel):
    payment_method: str = Field("card", max_length=50)

class RevisionImage(BaseModel):
    id: str
    image_url: str
    filename: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True

class Revision(BaseModel):
    id: str
    order_item_id: str
    status: str
    assigned_to: Optional[str] = None
    requested_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    images: List[RevisionImage] = []

    class Config:
        from_attributes = True

class RevisionRequest(BaseModel):
    notes: str = Field(..., max_length=2000)

class StatusInfo(BaseModel):
    label: str
    message: str
    progress_percent: int
    is_complete: bool
    is_error: bool

class DisplayImage(BaseModel):
    url: Optional[str] = None
    type: str
    filename: Optional[str] = None
    label: str

class CustomerItemView(BaseModel):
    """An order item as the customer sees it on their orders page"""
    item: OrderItem
    order_number: str
    order_status: str
    service_name: Optional[str] = None
    display_status: str
    status_info: StatusInfo
    active_revision: Optional[Revision] = None
    latest_revision: Optional[Revision] = None
    can_request_revision: bool
    images: List[DisplayImage]

# Editor Schemas
class Editor(BaseModel):
    id: str
    full_name: Optional[str] = None
    role: str
    email: Optional[str] = None

class EditorItemView(BaseModel):
    item: OrderItem
    order_id: str
    order_number: str
    order_status: str
    customer_name: Optional[str] = None
    service_name: Optional[str] = None
    pending_revision: Optional[Revision] = None

class EditedImage(BaseModel):
    url: str
    publicUrl: str
    filename: str
    originalFilename: str
    size: int
    uploadedAt: str
    uploadedBy: str

class EditorUploadResponse(BaseModel):
    order_item_id: str
    order_status: str
    edited_image: EditedImage
    revision_id: Optional[str] = None
    revision_image_id: Optional[str] = None

# Admin Schemas
class AssignEditorRequest(BaseModel):
    editor_id: Optional[str] = None

class StatusUpdate(BaseModel):
    status: str

class AddOrderItemRequest(BaseModel):
    service_id: str
    quantity: int = Field(1, ge=1)
    price: Optional[str] = None

    @validator('price')
    def validate_item_price(cls, v):
        if v is None:
            return v
        error = validate_price(v)
        if error:
            raise ValueError(error)
        return v

class AdminOrderSummary(Order):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    editor_name: Optional[str] = None
    item_count: int = 0

class AdminOrderDetail(BaseModel):
    order: AdminOrderSummary
    items: List[OrderItem]
    notice: Optional[str] = None

class DeleteOrderResponse(BaseModel):
    order_id: str
    deleted: bool = True
    warnings: List[str] = []

class UserCreate(BaseModel):
    email: str
    password: str
    full_name: Optional[str] = None
    role: str = "customer"
    phone: Optional[str] = None
    department: Optional[str] = None

    @validator('role')
    def validate_role(cls, v):
        if v not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        return v

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    phone: Optional[str] = None
    department: Optional[str] = None

    @validator('role')
    def validate_role(cls, v):
        if v is not None and v not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        return v

class User(Profile):
    email: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

class RlsToggle(BaseModel):
    enabled: bool

class RlsStatus(BaseModel):
    table_name: str
    rls_enabled: bool

class AdminStats(BaseModel):
    users_by_role: Dict[str, int]
    orders_by_status: Dict[str, int]
    active_services: int
    total_users: int
    total_orders: int
