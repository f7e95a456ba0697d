from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from datetime import timedelta
from typing import Optional, Literal
import logging
import math

from .. import models, schemas, auth, media
from ..database import get_db
from .settings import get_or_create_settings

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 50

SORT_FIELDS = {
    "createdAt": models.Product.created_at,
    "price": models.Product.price,
    "countInStock": models.Product.count_in_stock,
    "expiryDate": models.Product.expiry_date,
    "name": models.Product.name,
}

def _get_product_or_404(product_id: str, db: Session) -> models.Product:
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product

def deactivate_expired_products(db: Session) -> int:
    """Flip every active product past its expiry date to inactive. Returns how many changed."""
    expired = db.query(models.Product).filter(
        models.Product.status == "active",
        models.Product.expiry_date < models.utcnow()
    ).all()
    for product in expired:
        product.status = "inactive"
    db.commit()
    if expired:
        logger.info(f"Deactivated {len(expired)} expired products")
    return len(expired)

@router.get("/products", response_model=schemas.ProductPage)
async def get_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[schemas.ProductStatus] = None,
    prescription: Optional[bool] = None,
    low_stock: Optional[bool] = Query(None, alias="lowStock"),
    expiring_days: Optional[int] = Query(None, alias="expiringDays", ge=1),
    page: int = 1,
    limit: int = 10,
    sort_by: Literal["createdAt", "price", "countInStock", "expiryDate", "name"] = Query("createdAt", alias="sortBy"),
    sort_dir: Literal["asc", "desc"] = Query("desc", alias="sortDir"),
    current_user: Optional[models.User] = Depends(auth.get_optional_user),
    db: Session = Depends(get_db)
):
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.query(models.Product)

    # shoppers only ever see the active catalog
    if current_user is None or not current_user.is_staff:
        query = query.filter(models.Product.status == "active")
    elif status:
        query = query.filter(models.Product.status == status)

    term = (q or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(
            models.Product.name.ilike(pattern),
            models.Product.category.ilike(pattern),
            models.Product.description.ilike(pattern),
        ))
    if category:
        query = query.filter(func.lower(models.Product.category) == category.strip().lower())
    if prescription is not None:
        query = query.filter(models.Product.prescription_required == prescription)
    if low_stock:
        threshold = get_or_create_settings(db).low_stock_threshold
        query = query.filter(models.Product.count_in_stock <= threshold)
    if expiring_days:
        until = models.utcnow() + timedelta(days=expiring_days)
        query = query.filter(models.Product.expiry_date <= until)

    total = query.count()

    column = SORT_FIELDS[sort_by]
    order = column.asc() if sort_dir == "asc" else column.desc()
    products = query.order_by(order, models.Product.id).offset((page - 1) * limit).limit(limit).all()

    return schemas.ProductPage(
        items=[schemas.ProductResponse.model_validate(p) for p in products],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )

@router.get("/products/{product_id}", response_model=schemas.ProductResponse)
async def get_product(
    product_id: str,
    current_user: Optional[models.User] = Depends(auth.get_optional_user),
    db: Session = Depends(get_db)
):
    product = _get_product_or_404(product_id, db)
    if product.status != "active" and (current_user is None or not current_user.is_staff):
        raise HTTPException(status_code=404, detail="Product not found")
    return schemas.ProductResponse.model_validate(product)

@router.post("/products", response_model=schemas.ProductResponse, status_code=201)
async def create_product(
    product_data: schemas.ProductCreate,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    product = models.Product(**product_data.model_dump(), created_by=current_user.id)
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product.id} created by {current_user.id}")
    return schemas.ProductResponse.model_validate(product)

@router.post("/products/deactivate-expired", response_model=schemas.DeactivatedResponse)
async def deactivate_expired(
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    return schemas.DeactivatedResponse(deactivated=deactivate_expired_products(db))

@router.put("/products/{product_id}", response_model=schemas.ProductResponse)
async def update_product(
    product_id: str,
    product_data: schemas.ProductUpdate,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    product = _get_product_or_404(product_id, db)
    for field, value in product_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, field, value)

    db.commit()
    db.refresh(product)
    return schemas.ProductResponse.model_validate(product)

@router.delete("/products/{product_id}", response_model=schemas.MessageResponse)
async def delete_product(
    product_id: str,
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    product = _get_product_or_404(product_id, db)
    db.delete(product)
    db.commit()
    logger.info(f"Product {product_id} deleted by {current_user.id}")
    return schemas.MessageResponse(message="Product deleted")

@router.post("/products/{product_id}/image", response_model=schemas.ProductImageResponse, status_code=201)
async def upload_product_image(
    product_id: str,
    file: UploadFile = File(None),
    current_user: models.User = Depends(auth.get_current_staff),
    db: Session = Depends(get_db)
):
    product = _get_product_or_404(product_id, db)
    content = await media.read_upload(file, media.IMAGE_TYPES)
    url = await run_in_threadpool(media.upload_file, content, folder="pharmacy_products", resource_type="image")

    # newest upload becomes the cover and joins the gallery
    product.image = url
    if url not in (product.images or []):
        product.images = list(product.images or []) + [url]

    db.commit()
    db.refresh(product)
    return schemas.ProductImageResponse(image_url=url, product=schemas.ProductResponse.model_validate(product))
