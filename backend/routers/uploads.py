from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
import logging

from .. import models, schemas, auth, media
from ..database import get_db
from .orders import get_order_or_404

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/uploads/prescription/{order_id}",
    response_model=schemas.PrescriptionUploadResponse,
    status_code=201
)
async def upload_prescription(
    order_id: str,
    file: UploadFile = File(None),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    order = get_order_or_404(order_id, db)
    if order.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")

    content = await media.read_upload(file, media.DOCUMENT_TYPES)
    url = await run_in_threadpool(media.upload_file, content, folder="pharmacy_prescriptions", resource_type="auto")

    order.prescription_url = url
    order.prescription_uploaded_at = models.utcnow()
    db.commit()
    logger.info(f"Prescription uploaded for order {order.id}")

    return schemas.PrescriptionUploadResponse(
        message="Prescription uploaded successfully",
        prescription_url=url
    )
