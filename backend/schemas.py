from pydantic import BaseModel, ConfigDict, Field, EmailStr
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any, Literal
from datetime import datetime

Role = Literal["customer", "admin", "pharmacist"]
ProductStatus = Literal["active", "inactive"]
OrderStatus = Literal["pending", "approved", "rejected", "dispatched", "delivered"]
PaymentMethod = Literal["cod", "card", "mpesa"]
ContactStatus = Literal["new", "read", "replied", "archived"]


class ApiModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class MessageResponse(ApiModel):
    success: bool = True
    message: str


# ==================== USERS ====================

class UserCreate(ApiModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=50)
    profile_pic: str = ""

class UserLogin(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class UserResponse(ApiModel):
    id: str
    name: str
    email: str
    role: str
    profile_pic: str = ""
    is_blocked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserSummary(ApiModel):
    id: str
    name: str
    email: str
    role: str

class AuthResponse(ApiModel):
    token: str
    user: UserResponse

class AdminUserCreate(ApiModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=50)
    role: Role = "customer"
    profile_pic: str = ""

class UserUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=2)
    role: Optional[Role] = None
    profile_pic: Optional[str] = None
    is_blocked: Optional[bool] = None

class PasswordReset(ApiModel):
    new_password: str = Field(..., min_length=6, max_length=50)

class UserCreatedResponse(ApiModel):
    message: str
    user: UserResponse


# ==================== PRODUCTS ====================

class ProductCreate(ApiModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    count_in_stock: int = Field(..., ge=0)
    prescription_required: bool = False
    expiry_date: datetime
    status: ProductStatus = "active"
    image: str = ""
    images: List[str] = Field(default_factory=list)

class ProductUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    count_in_stock: Optional[int] = Field(None, ge=0)
    prescription_required: Optional[bool] = None
    expiry_date: Optional[datetime] = None
    status: Optional[ProductStatus] = None
    image: Optional[str] = None
    images: Optional[List[str]] = None

class ProductResponse(ApiModel):
    id: str
    name: str
    description: str = ""
    category: str
    price: float
    count_in_stock: int
    prescription_required: bool = False
    expiry_date: datetime
    status: str
    image: str = ""
    images: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ProductPage(ApiModel):
    items: List[ProductResponse]
    page: int
    limit: int
    total: int
    pages: int

class ProductImageResponse(ApiModel):
    success: bool = True
    image_url: str
    product: ProductResponse

class DeactivatedResponse(ApiModel):
    success: bool = True
    deactivated: int


# ==================== ORDERS ====================

class OrderItemCreate(ApiModel):
    product: str = Field(..., min_length=1)
    qty: int = Field(..., ge=1)

class ShippingAddress(ApiModel):
    phone: str = Field(..., min_length=7)
    county: Optional[str] = None
    city: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    apartment: Optional[str] = None
    notes: Optional[str] = None

class OrderCreate(ApiModel):
    order_items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: Optional[PaymentMethod] = None
    # accepted for compatibility; totals are always recomputed server side
    items_price: Optional[float] = Field(None, ge=0)
    shipping_price: Optional[float] = Field(None, ge=0)
    total_price: Optional[float] = Field(None, ge=0)

class OrderItemResponse(ApiModel):
    product: str
    name: str
    price: float
    qty: int
    prescription_required: bool = False

class PrescriptionInfo(ApiModel):
    url: str
    uploaded_at: Optional[datetime] = None

class PaymentResult(ApiModel):
    id: str = ""
    status: str
    update_time: str

class OrderResponse(ApiModel):
    id: str
    user: UserSummary
    order_items: List[OrderItemResponse]
    shipping_address: ShippingAddress
    payment_method: str
    items_price: float
    shipping_price: float
    total_price: float
    requires_prescription: bool
    prescription: Optional[PrescriptionInfo] = None
    status: str
    pharmacist_note: str = ""
    is_paid: bool
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class OrderDecision(ApiModel):
    action: Literal["approve", "reject"]
    pharmacist_note: Optional[str] = None

class OrderStatusUpdate(ApiModel):
    status: Literal["approved", "dispatched", "delivered"]

class PrescriptionUploadResponse(ApiModel):
    success: bool = True
    message: str
    prescription_url: str


# ==================== PAYMENTS ====================

class MpesaInitiate(ApiModel):
    phone: str

class MpesaInitiateResponse(ApiModel):
    success: bool = True
    message: str
    payment_id: str
    checkout_request_id: Optional[str] = Field(None, alias="checkoutRequestID")

class MpesaDetails(ApiModel):
    merchant_request_id: Optional[str] = Field(None, alias="merchantRequestID")
    checkout_request_id: Optional[str] = Field(None, alias="checkoutRequestID")
    result_code: Optional[str] = None
    result_desc: Optional[str] = None
    receipt: Optional[str] = None
    transaction_date: Optional[str] = None

class PaymentOrderSummary(ApiModel):
    id: str
    total_price: float
    is_paid: bool
    status: str

class PaymentResponse(ApiModel):
    id: str
    order: Optional[PaymentOrderSummary] = None
    user: Optional[UserSummary] = None
    provider: str
    status: str
    amount: float
    currency: str
    phone: str
    mpesa: MpesaDetails
    raw: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ==================== SETTINGS ====================

class SettingsResponse(ApiModel):
    store_name: str
    store_email: str
    store_phone: str
    whatsapp_number: str
    address: str
    tagline: str
    low_stock_threshold: int
    expiring_soon_days: int
    auto_deactivate_expired: bool
    require_rx_approval_before_dispatch: bool
    delivery_enabled: bool
    delivery_fee: float
    free_delivery_min: float
    mpesa_enabled: bool
    mpesa_short_code: str
    mpesa_passkey: str
    mpesa_callback_url: str
    payment_notes: str
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

class SettingsUpdate(ApiModel):
    store_name: Optional[str] = None
    store_email: Optional[str] = None
    store_phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    address: Optional[str] = None
    tagline: Optional[str] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    expiring_soon_days: Optional[int] = Field(None, ge=1)
    auto_deactivate_expired: Optional[bool] = None
    require_rx_approval_before_dispatch: Optional[bool] = None
    delivery_enabled: Optional[bool] = None
    delivery_fee: Optional[float] = Field(None, ge=0)
    free_delivery_min: Optional[float] = Field(None, ge=0)
    mpesa_enabled: Optional[bool] = None
    mpesa_short_code: Optional[str] = None
    mpesa_passkey: Optional[str] = None
    mpesa_callback_url: Optional[str] = None
    payment_notes: Optional[str] = None


# ==================== CONTACT ====================

class ContactCreate(ApiModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""
    subject: str = ""
    message: str = Field(..., min_length=1)

class ContactResponse(ApiModel):
    id: str
    name: str
    email: str
    phone: str = ""
    subject: str = ""
    message: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ContactStatusUpdate(ApiModel):
    status: ContactStatus


# ==================== REPORTS ====================

class DailyRevenue(ApiModel):
    day: str
    orders: int
    revenue: float

class ReportSummary(ApiModel):
    days: int
    total_orders: int
    paid_orders: int
    status_counts: Dict[str, int]
    revenue: float
    paid_revenue: float
    rx_orders: int
    rx_waiting_upload: int
    rx_pending_review: int
    payment_split: Dict[str, int]
    revenue_by_day: List[DailyRevenue]
    low_stock: int
    expiring_soon: int
