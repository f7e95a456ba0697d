from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from collections import OrderedDict
from typing import List, Optional
import logging

from .. import models, schemas, auth
from ..database import get_db
from .settings import get_or_create_settings

logger = logging.getLogger(__name__)

router = APIRouter()

# the only legal move from each non-terminal status through the status endpoint
NEXT_STATUS = {
    "pending": "approved",
    "approved": "dispatched",
    "dispatched": "delivered",
}

def get_order_or_404(order_id: str, db: Session) -> models.Order:
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order

def shipping_price_for(items_price: float, settings: models.Settings) -> float:
    if not settings.delivery_enabled or settings.delivery_fee <= 0:
        return 0.0
    if settings.free_delivery_min > 0 and items_price >= settings.free_delivery_min:
        return 0.0
    return float(settings.delivery_fee)

def build_order(order_data: schemas.OrderCreate, user: models.User, db: Session) -> models.Order:
    """Snapshot the live products into a new pending order; nothing is written on failure."""
    product_ids = [item.product for item in order_data.order_items]
    products = {
        p.id: p for p in db.query(models.Product).filter(models.Product.id.in_(set(product_ids))).all()
    }
    if any(product_id not in products for product_id in product_ids):
        raise HTTPException(status_code=400, detail="One or more products not found")

    requested = OrderedDict()
    for item in order_data.order_items:
        requested[item.product] = requested.get(item.product, 0) + item.qty

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.status != "active":
            raise HTTPException(status_code=400, detail=f"{product.name} is not available")
        if product.count_in_stock < qty:
            raise HTTPException(
                status_code=400,
                detail=f"Not enough stock for {product.name}. Available: {product.count_in_stock}"
            )

    items_price = 0.0
    requires_prescription = False
    order_items = []
    for position, item in enumerate(order_data.order_items):
        product = products[item.product]
        items_price += product.price * item.qty
        requires_prescription = requires_prescription or product.prescription_required
        order_items.append(models.OrderItem(
            position=position,
            product=product.id,
            name=product.name,
            price=product.price,
            qty=item.qty,
            prescription_required=product.prescription_required
        ))

    shipping_price = shipping_price_for(items_price, get_or_create_settings(db))

    return models.Order(
        user_id=user.id,
        order_items=order_items,
        shipping_address=order_data.shipping_address.model_dump(),
        payment_method=order_data.payment_method or "cod",
        items_price=items_price,
        shipping_price=shipping_price,
        total_price=items_price + shipping_price,
        requires_prescription=requires_prescription,
        status="pending"
    )

def ensure_prescription_ready(order: models.Order, db: Session) -> None:
    if not order.requires_prescription or order.prescription_url:
        return
    if get_or_create_settings(db).require_rx_approval_before_dispatch:
        raise HTTPException(status_code=400, detail="A prescription must be uploaded before this order can be approved")

@router.post("/orders", response_model=schemas.OrderResponse, status_code=201)
async def create_order(
    order_data: schemas.OrderCreate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    order = build_order(order_data, current_user, db)
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} placed by {current_user.id} for {order.total_price}")
    return schemas.OrderResponse.model_validate(order)

@router.get("/orders/my", response_model=List[schemas.OrderResponse])
async def get_my_orders(
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    orders = db.query(models.Order).filter(
        models.Order.user_id == current_user.id
    ).order_by(models.Order.created_at.desc()).all()
    return [schemas.OrderResponse.model_validate(order) for order in orders]

@router.get("/orders", response_model=List[schemas.OrderResponse])
async def get_all_orders(
    status: Optional[schemas.OrderStatus] = None,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    query = db.query(models.Order)
    if status:
        query = query.filter(models.Order.status == status)
    orders = query.order_by(models.Order.created_at.desc()).all()
    return [schemas.OrderResponse.model_validate(order) for order in orders]

@router.get("/orders/{order_id}", response_model=schemas.OrderResponse)
async def get_order_by_id(
    order_id: str,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    order = get_order_or_404(order_id, db)
    if order.user_id != current_user.id and not current_user.is_staff:
        raise HTTPException(status_code=403, detail="Access denied")
    return schemas.OrderResponse.model_validate(order)

@router.put("/orders/{order_id}/decision", response_model=schemas.OrderResponse)
async def decide_order(
    order_id: str,
    decision: schemas.OrderDecision,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    order = get_order_or_404(order_id, db)
    if order.status != "pending":
        raise HTTPException(status_code=400, detail=f"Order is already {order.status}")

    if decision.action == "approve":
        ensure_prescription_ready(order, db)
        order.status = "approved"
    else:
        order.status = "rejected"
    if decision.pharmacist_note:
        order.pharmacist_note = decision.pharmacist_note

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} {order.status} by {current_user.id}")
    return schemas.OrderResponse.model_validate(order)

@router.put("/orders/{order_id}/status", response_model=schemas.OrderResponse)
async def update_order_status(
    order_id: str,
    status_update: schemas.OrderStatusUpdate,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    order = get_order_or_404(order_id, db)
    if NEXT_STATUS.get(order.status) != status_update.status:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change status from {order.status} to {status_update.status}"
        )

    if status_update.status in ("approved", "dispatched"):
        ensure_prescription_ready(order, db)

    order.status = status_update.status
    if order.status == "delivered":
        order.delivered_at = models.utcnow()

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} moved to {order.status} by {current_user.id}")
    return schemas.OrderResponse.model_validate(order)
