from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List
import logging

from .. import models, schemas, auth
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

HAS_HISTORY_MESSAGE = "User has orders or payments and cannot be deleted; block the account instead"

def get_user_or_404(user_id: str, db: Session) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def create_user(user_data: schemas.AdminUserCreate, db: Session) -> models.User:
    email = user_data.email.lower()
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists")

    user = models.User(
        name=user_data.name,
        email=email,
        password=auth.hash_password(user_data.password),
        role=user_data.role,
        profile_pic=user_data.profile_pic
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} created with role {user.role}")
    return user

def apply_user_update(user: models.User, user_data: schemas.UserUpdate, db: Session) -> models.User:
    # email and password have their own flows and are never patched here
    for field, value in user_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user

def delete_user(user: models.User, db: Session) -> None:
    has_history = (
        db.query(models.Order.id).filter(models.Order.user_id == user.id).first()
        or db.query(models.Payment.id).filter(models.Payment.user_id == user.id).first()
    )
    if has_history:
        raise HTTPException(status_code=400, detail=HAS_HISTORY_MESSAGE)

    db.delete(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail=HAS_HISTORY_MESSAGE)
    logger.info(f"User {user.id} deleted")

@router.get("/users", response_model=List[schemas.UserResponse])
async def get_users(
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    users = db.query(models.User).order_by(models.User.created_at.desc()).all()
    return [schemas.UserResponse.model_validate(u) for u in users]

@router.get("/users/{user_id}", response_model=schemas.UserResponse)
async def get_user_info(
    user_id: str,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    return schemas.UserResponse.model_validate(get_user_or_404(user_id, db))

@router.post("/users", response_model=schemas.UserCreatedResponse, status_code=201)
async def create_user_route(
    user_data: schemas.AdminUserCreate,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    user = create_user(user_data, db)
    return schemas.UserCreatedResponse(message="User created", user=schemas.UserResponse.model_validate(user))

@router.put("/users/{user_id}", response_model=schemas.UserResponse)
async def update_user(
    user_id: str,
    user_data: schemas.UserUpdate,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    user = apply_user_update(get_user_or_404(user_id, db), user_data, db)
    return schemas.UserResponse.model_validate(user)

@router.delete("/users/{user_id}", response_model=schemas.MessageResponse)
async def delete_user_route(
    user_id: str,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account.")

    delete_user(get_user_or_404(user_id, db), db)
    return schemas.MessageResponse(message=f"User with id {user_id} deleted")
