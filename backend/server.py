from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from .database import Base, SessionLocal, engine
from .errors import register_error_handlers
from .create_admin import ensure_admin_exists
from .routers import (
    admin_users,
    authentication,
    contact,
    orders,
    payments,
    products,
    reports,
    settings,
    uploads,
    users,
)
from .routers.products import deactivate_expired_products
from .routers.settings import get_or_create_settings

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ==================== LIFESPAN HANDLER ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        ensure_admin_exists(db)
        if get_or_create_settings(db).auto_deactivate_expired:
            deactivate_expired_products(db)
    except Exception:
        logger.exception("Error during startup seeding")
        db.rollback()
    finally:
        db.close()

    yield

    # Shutdown
    logger.info("Shutting down...")

app = FastAPI(
    title="Pharmacy Store API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

api_router = APIRouter(prefix="/api")

# ==================== ROUTES ====================

@api_router.get("/")
async def root():
    return {"message": "Pharmacy API running"}

for module in (
    authentication,
    products,
    orders,
    uploads,
    payments,
    settings,
    users,
    admin_users,
    contact,
    reports,
):
    api_router.include_router(module.router)

app.include_router(api_router)

@app.get("/")
async def health():
    return {"message": "Pharmacy API running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
