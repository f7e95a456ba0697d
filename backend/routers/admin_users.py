from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas, auth
from ..database import get_db
from .users import get_user_or_404, create_user, apply_user_update, delete_user

router = APIRouter(prefix="/admin")

@router.get("/users", response_model=List[schemas.UserResponse])
async def get_users_admin(
    role: Optional[str] = None,
    q: Optional[str] = None,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    query = db.query(models.User)

    if role and role != "All":
        if role not in models.USER_ROLES:
            raise HTTPException(status_code=400, detail=f"Role must be one of {list(models.USER_ROLES)}")
        query = query.filter(models.User.role == role)

    term = (q or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(models.User.name.ilike(pattern), models.User.email.ilike(pattern)))

    users = query.order_by(models.User.created_at.desc()).all()
    return [schemas.UserResponse.model_validate(u) for u in users]

@router.post("/users", response_model=schemas.UserResponse, status_code=201)
async def create_user_admin(
    user_data: schemas.AdminUserCreate,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    return schemas.UserResponse.model_validate(create_user(user_data, db))

@router.put("/users/{user_id}", response_model=schemas.UserResponse)
async def update_user_admin(
    user_id: str,
    user_data: schemas.UserUpdate,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    user = apply_user_update(get_user_or_404(user_id, db), user_data, db)
    return schemas.UserResponse.model_validate(user)

@router.delete("/users/{user_id}", response_model=schemas.MessageResponse)
async def delete_user_admin(
    user_id: str,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account.")

    delete_user(get_user_or_404(user_id, db), db)
    return schemas.MessageResponse(message="User deleted")

@router.put("/users/{user_id}/reset-password", response_model=schemas.MessageResponse)
async def reset_user_password_admin(
    user_id: str,
    payload: schemas.PasswordReset,
    current_user: models.User = Depends(auth.get_current_admin),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(user_id, db)
    user.password = auth.hash_password(payload.new_password)
    db.commit()
    return schemas.MessageResponse(message="Password reset successful")
