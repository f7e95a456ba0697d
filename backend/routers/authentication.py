from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from .. import models, schemas, auth
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/auth/register", response_model=schemas.AuthResponse, status_code=201)
async def register(user_data: schemas.UserCreate, db: Session = Depends(get_db)):
    email = user_data.email.lower()
    existing_user = db.query(models.User).filter(models.User.email == email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="User already exists")

    # the role is never taken from the client
    user = models.User(
        email=email,
        name=user_data.name,
        password=auth.hash_password(user_data.password),
        profile_pic=user_data.profile_pic,
        role="customer"
    )

    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered customer {user.id}")

    token = auth.create_jwt_token(user.id)
    return schemas.AuthResponse(token=token, user=schemas.UserResponse.model_validate(user))

@router.post("/auth/login", response_model=schemas.AuthResponse)
async def login(login_data: schemas.UserLogin, db: Session = Depends(get_db)):
    email = login_data.email.lower()
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not auth.verify_password(login_data.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.is_blocked:
        raise HTTPException(status_code=403, detail="User is blocked")

    token = auth.create_jwt_token(user.id)
    return schemas.AuthResponse(token=token, user=schemas.UserResponse.model_validate(user))

@router.get("/auth/me", response_model=schemas.UserResponse)
async def get_current_user_info(current_user: models.User = Depends(auth.get_current_user)):
    return schemas.UserResponse.model_validate(current_user)
