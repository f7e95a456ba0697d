from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from .. import models, schemas, auth
from ..database import get_db

router = APIRouter()

def get_or_create_settings(db: Session, user_id: Optional[str] = None) -> models.Settings:
    """Return the singleton settings row, inserting the defaults on first use."""
    settings = db.query(models.Settings).first()
    if not settings:
        settings = models.Settings(id=1, updated_by=user_id)
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings

@router.get("/settings", response_model=schemas.SettingsResponse)
async def get_settings(
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    settings = get_or_create_settings(db, current_user.id)
    return schemas.SettingsResponse.model_validate(settings)

@router.put("/settings", response_model=schemas.SettingsResponse)
async def update_settings(
    payload: schemas.SettingsUpdate,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    settings = get_or_create_settings(db, current_user.id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(settings, field, value)
    settings.updated_by = current_user.id

    db.commit()
    db.refresh(settings)
    return schemas.SettingsResponse.model_validate(settings)
