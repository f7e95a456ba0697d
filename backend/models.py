from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, Text, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from .database import Base

USER_ROLES = ("customer", "admin", "pharmacist")
STAFF_ROLES = ("admin", "pharmacist")
PRODUCT_STATUSES = ("active", "inactive")
ORDER_STATUSES = ("pending", "approved", "rejected", "dispatched", "delivered")
PAYMENT_METHODS = ("cod", "card", "mpesa")
PAYMENT_STATUSES = ("pending", "success", "failed")
CONTACT_STATUSES = ("new", "read", "replied", "archived")


def utcnow():
    return datetime.now(timezone.utc)


def new_id():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="customer")
    profile_pic = Column(Text, nullable=False, default="")
    is_blocked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price"),
        CheckConstraint("count_in_stock >= 0", name="ck_products_stock"),
    )

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, index=True)
    price = Column(Float, nullable=False)
    count_in_stock = Column(Integer, nullable=False, default=0)
    prescription_required = Column(Boolean, nullable=False, default=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)
    image = Column(Text, nullable=False, default="")
    images = Column(JSON, nullable=False, default=list)
    created_by = Column(String(36), ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False, index=True)
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String(20), nullable=False, default="cod")
    items_price = Column(Float, nullable=False)
    shipping_price = Column(Float, nullable=False, default=0)
    total_price = Column(Float, nullable=False)
    requires_prescription = Column(Boolean, nullable=False, default=False)
    prescription_url = Column(Text, nullable=True)
    prescription_uploaded_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    pharmacist_note = Column(Text, nullable=False, default="")
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_result = Column(JSON, nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User")
    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    @property
    def prescription(self):
        if not self.prescription_url:
            return None
        return {"url": self.prescription_url, "uploaded_at": self.prescription_uploaded_at}


class OrderItem(Base):
    """Line item snapshot; `product` keeps the id only, so later product edits never leak in."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product = Column("product_id", String(36), nullable=False)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    qty = Column(Integer, nullable=False)
    prescription_required = Column(Boolean, nullable=False, default=False)

    order = relationship("Order", back_populates="order_items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    provider = Column(String(20), nullable=False, default="mpesa")
    status = Column(String(20), nullable=False, default="pending", index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False, default="KES")
    phone = Column(String(20), nullable=False, default="")
    merchant_request_id = Column(String(100), nullable=True)
    checkout_request_id = Column(String(100), nullable=True, index=True)
    result_code = Column(String(20), nullable=True)
    result_desc = Column(Text, nullable=True)
    receipt = Column(String(50), nullable=True)
    transaction_date = Column(String(20), nullable=True)
    raw = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    order = relationship("Order")
    user = relationship("User")

    @property
    def mpesa(self):
        return {
            "merchant_request_id": self.merchant_request_id,
            "checkout_request_id": self.checkout_request_id,
            "result_code": self.result_code,
            "result_desc": self.result_desc,
            "receipt": self.receipt,
            "transaction_date": self.transaction_date,
        }


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, default=1)

    # Store
    store_name = Column(String(255), nullable=False, default="Pharmacy Store")
    store_email = Column(String(255), nullable=False, default="")
    store_phone = Column(String(50), nullable=False, default="")
    whatsapp_number = Column(String(50), nullable=False, default="254719583400")
    address = Column(String(255), nullable=False, default="Nairobi, Kenya")
    tagline = Column(String(255), nullable=False, default="Get Medicines With Ease")

    # Operations
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    expiring_soon_days = Column(Integer, nullable=False, default=30)
    auto_deactivate_expired = Column(Boolean, nullable=False, default=True)
    require_rx_approval_before_dispatch = Column(Boolean, nullable=False, default=True)

    # Delivery
    delivery_enabled = Column(Boolean, nullable=False, default=True)
    delivery_fee = Column(Float, nullable=False, default=0)
    free_delivery_min = Column(Float, nullable=False, default=0)

    # Payments
    mpesa_enabled = Column(Boolean, nullable=False, default=False)
    mpesa_short_code = Column(String(50), nullable=False, default="")
    mpesa_passkey = Column(String(255), nullable=False, default="")
    mpesa_callback_url = Column(Text, nullable=False, default="")
    payment_notes = Column(Text, nullable=False, default="Cash on delivery and Card supported.")

    updated_by = Column(String(36), ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    subject = Column(String(255), nullable=False, default="")
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="new", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
