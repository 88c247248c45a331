# cartflow/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from cartflow.core.config import get_settings
from cartflow.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from cartflow.models import user as _user_models  # noqa: F401
from cartflow.models import product as _product_models  # noqa: F401
from cartflow.models import cart as _cart_models  # noqa: F401
from cartflow.models import promotion as _promotion_models  # noqa: F401
from cartflow.models import usage as _usage_models  # noqa: F401


# Routers
from cartflow.routers.cart import router as cart_router
from cartflow.routers.promotions import router as promotions_router
from cartflow.routers.admin_stats import router as admin_stats_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Cartflow API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(promotions_router, prefix=settings.API_V1_STR)
app.include_router(admin_stats_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cartflow"}
