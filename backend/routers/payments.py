from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging
import re
import secrets

from .. import models, schemas, auth, mpesa
from ..database import get_db
from .orders import get_order_or_404

logger = logging.getLogger(__name__)

router = APIRouter()

PHONE_PATTERN = re.compile(r"^254\d{9}$")

@router.get("/payments", response_model=List[schemas.PaymentResponse])
async def get_payments(
    q: Optional[str] = None,
    status: Optional[str] = None,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    query = db.query(models.Payment)

    if status and status != "All":
        if status not in models.PAYMENT_STATUSES:
            raise HTTPException(status_code=400, detail=f"Status must be one of {list(models.PAYMENT_STATUSES)}")
        query = query.filter(models.Payment.status == status)

    term = (q or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(
            models.Payment.phone.ilike(pattern),
            models.Payment.receipt.ilike(pattern),
            models.Payment.checkout_request_id.ilike(pattern),
        ))

    payments = query.order_by(models.Payment.created_at.desc()).all()
    return [schemas.PaymentResponse.model_validate(p) for p in payments]

@router.post("/payments/mpesa/stk/{order_id}", response_model=schemas.MpesaInitiateResponse, status_code=201)
def initiate_mpesa(
    order_id: str,
    payload: schemas.MpesaInitiate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    phone = payload.phone
    if not PHONE_PATTERN.match(phone):
        raise HTTPException(status_code=400, detail="Phone must be in format 2547XXXXXXXX")

    order = get_order_or_404(order_id, db)
    if order.user_id != current_user.id and current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Not allowed")

    if order.is_paid:
        raise HTTPException(status_code=400, detail="Order already paid")

    amount = float(order.total_price or 0)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Invalid amount")

    stk = mpesa.stk_push(
        phone=phone,
        amount=amount,
        account_ref=f"ORDER-{order.id[-6:]}",
        description="Pharmacy order payment"
    )

    payment = models.Payment(
        order_id=order.id,
        user_id=order.user_id,
        provider="mpesa",
        status="pending",
        amount=amount,
        currency="KES",
        phone=phone,
        merchant_request_id=stk.get("MerchantRequestID"),
        checkout_request_id=stk.get("CheckoutRequestID"),
        result_desc=stk.get("ResponseDescription"),
        raw=stk
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info(f"STK push {payment.checkout_request_id} started for order {order.id}")

    return schemas.MpesaInitiateResponse(
        message="STK prompt sent. Enter PIN on your phone.",
        payment_id=payment.id,
        checkout_request_id=payment.checkout_request_id
    )

def reconcile_callback(payload: Dict[str, Any], db: Session) -> Optional[models.Payment]:
    """
    Apply an STK callback to the stored payment and its order.

    Unknown checkout ids and payments that already succeeded are left
    untouched. The payment and order updates share one commit.
    """
    body = payload.get("Body")
    callback = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(callback, dict):
        return None

    checkout_request_id = callback.get("CheckoutRequestID")
    if not checkout_request_id:
        return None

    payment = db.query(models.Payment).filter(
        models.Payment.checkout_request_id == str(checkout_request_id)
    ).first()
    if not payment:
        logger.warning(f"Callback for unknown checkout request {checkout_request_id}")
        return None

    if payment.status == "success":
        logger.info(f"Duplicate callback for {checkout_request_id} ignored")
        return payment

    payment.raw = payload
    payment.result_code = str(callback.get("ResultCode"))
    payment.result_desc = callback.get("ResultDesc")

    if payment.result_code == "0":
        metadata = mpesa.callback_metadata(callback)
        payment.status = "success"
        payment.receipt = str(metadata.get("MpesaReceiptNumber") or "")
        payment.transaction_date = str(metadata.get("TransactionDate") or "")

        order = payment.order
        if order:
            now = models.utcnow()
            order.is_paid = True
            order.paid_at = now
            order.payment_method = "mpesa"
            order.payment_result = {
                "id": payment.receipt,
                "status": "success",
                "update_time": now.isoformat(),
            }
    else:
        payment.status = "failed"

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Payment {payment.id} marked {payment.status} (result {payment.result_code})")
    return payment

@router.post("/payments/mpesa/callback")
async def mpesa_callback(
    payload: Dict[str, Any] = Body(...),
    token: Optional[str] = None,
    db: Session = Depends(get_db)
):
    if mpesa.MPESA_CALLBACK_TOKEN and not secrets.compare_digest(token or "", mpesa.MPESA_CALLBACK_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid callback token")

    reconcile_callback(payload, db)
    # the provider only needs an acknowledgement, whatever happened
    return {"ok": True}
