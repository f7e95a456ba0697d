from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from collections import Counter, OrderedDict
from datetime import timedelta
from typing import List
import csv
import io

from .. import models, schemas, auth
from ..database import get_db
from .settings import get_or_create_settings

router = APIRouter(prefix="/reports")

CSV_COLUMNS = [
    "orderId", "createdAt", "customer", "email", "status", "paymentMethod",
    "isPaid", "itemsPrice", "shippingPrice", "totalPrice", "requiresPrescription",
]

def _orders_since(days: int, db: Session) -> List[models.Order]:
    since = models.utcnow() - timedelta(days=days)
    return db.query(models.Order).filter(
        models.Order.created_at >= since
    ).order_by(models.Order.created_at.asc()).all()

def build_summary(days: int, db: Session) -> schemas.ReportSummary:
    orders = _orders_since(days, db)
    settings = get_or_create_settings(db)

    status_counts = OrderedDict((status, 0) for status in models.ORDER_STATUSES)
    status_counts.update(Counter(o.status for o in orders))

    # rejected orders never turn into sales
    billable = [o for o in orders if o.status != "rejected"]

    by_day = OrderedDict()
    for order in billable:
        day = order.created_at.date().isoformat()
        entry = by_day.setdefault(day, {"day": day, "orders": 0, "revenue": 0.0})
        entry["orders"] += 1
        entry["revenue"] += order.total_price

    now = models.utcnow()
    active_products = db.query(models.Product).filter(models.Product.status == "active")
    low_stock = active_products.filter(
        models.Product.count_in_stock <= settings.low_stock_threshold
    ).count()
    expiring_soon = active_products.filter(
        models.Product.expiry_date <= now + timedelta(days=settings.expiring_soon_days)
    ).count()

    return schemas.ReportSummary(
        days=days,
        total_orders=len(orders),
        paid_orders=sum(1 for o in orders if o.is_paid),
        status_counts=dict(status_counts),
        revenue=round(sum(o.total_price for o in billable), 2),
        paid_revenue=round(sum(o.total_price for o in orders if o.is_paid), 2),
        rx_orders=sum(1 for o in orders if o.requires_prescription),
        rx_waiting_upload=sum(1 for o in orders if o.requires_prescription and not o.prescription_url),
        rx_pending_review=sum(
            1 for o in orders
            if o.requires_prescription and o.prescription_url and o.status == "pending"
        ),
        payment_split=dict(Counter((o.payment_method or "unknown").lower() for o in orders)),
        revenue_by_day=[schemas.DailyRevenue(**entry) for entry in by_day.values()],
        low_stock=low_stock,
        expiring_soon=expiring_soon,
    )

@router.get("/summary", response_model=schemas.ReportSummary)
async def get_summary(
    days: int = Query(7, ge=1, le=365),
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    return build_summary(days, db)

@router.get("/orders.csv")
async def export_orders_csv(
    days: int = Query(30, ge=1, le=365),
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for order in _orders_since(days, db):
        writer.writerow([
            order.id,
            order.created_at.isoformat() if order.created_at else "",
            order.user.name if order.user else "",
            order.user.email if order.user else "",
            order.status,
            order.payment_method,
            "yes" if order.is_paid else "no",
            order.items_price,
            order.shipping_price,
            order.total_price,
            "yes" if order.requires_prescription else "no",
        ])

    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="orders-last-{days}-days.csv"'},
    )
