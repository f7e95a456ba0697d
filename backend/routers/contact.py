from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas, auth, mailer
from ..database import get_db

router = APIRouter()

@router.post("/contact", response_model=schemas.MessageResponse, status_code=201)
def create_contact_message(payload: schemas.ContactCreate, db: Session = Depends(get_db)):
    message = models.ContactMessage(
        name=payload.name,
        email=payload.email.lower(),
        phone=payload.phone,
        subject=payload.subject,
        message=payload.message
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    # the message is already stored; a mail failure is only logged
    mailer.send_contact_notification(message)

    return schemas.MessageResponse(message="Message sent successfully. We will contact you soon.")

@router.get("/contact", response_model=List[schemas.ContactResponse])
async def get_contact_messages(
    status: Optional[schemas.ContactStatus] = None,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    query = db.query(models.ContactMessage)
    if status:
        query = query.filter(models.ContactMessage.status == status)
    messages = query.order_by(models.ContactMessage.created_at.desc()).all()
    return [schemas.ContactResponse.model_validate(m) for m in messages]

@router.put("/contact/{message_id}/status", response_model=schemas.ContactResponse)
async def update_contact_status(
    message_id: str,
    payload: schemas.ContactStatusUpdate,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    message = db.query(models.ContactMessage).filter(models.ContactMessage.id == message_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    message.status = payload.status
    db.commit()
    db.refresh(message)
    return schemas.ContactResponse.model_validate(message)
