# app/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import dishes_router, tables_router, users_router
from app.errors import AppError, StoreError, Unauthorized
from app.storage import InMemoryStorage, SQLAlchemyStorage, Storage

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_storage_from_env() -> Storage:
    """
    Build the storage selected by STORAGE_BACKEND.

    - inmemory (default): InMemoryStorage
    - sqlalchemy / sqlite: SQLAlchemyStorage on APP_DATABASE_URL
    Unknown values fall back to InMemoryStorage.
    """
    backend = os.getenv("STORAGE_BACKEND", "inmemory").strip().lower()
    if backend in ("sqlalchemy", "sqlite"):
        database_url = os.getenv("APP_DATABASE_URL", "sqlite:///./restaurant_tabs.db")
        return SQLAlchemyStorage(database_url)
    if backend != "inmemory":
        logger.warning("Unknown STORAGE_BACKEND '%s', using in-memory storage", backend)
    return InMemoryStorage()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.storage.close()


app = FastAPI(title="Restaurant Tabs Backend", lifespan=lifespan)

cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Built once per process; routers reach it through get_storage
app.state.storage = create_storage_from_env()
logger.info("Using %s storage", app.state.storage.backend_name)


# ---------- Error translation ----------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, StoreError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": type(exc).__name__},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s -> 400 invalid request", request.method, request.url.path)
    return JSONResponse(
        status_code=400,
        content={
            "message": "Invalid request.",
            "error": "ValidationError",
            "details": jsonable_encoder(exc.errors()),
        },
    )


app.include_router(users_router.router)
app.include_router(tables_router.router)
app.include_router(dishes_router.router)


@app.get("/health", summary="Liveness check")
async def health():
    return {"status": "ok", "storage": app.state.storage.backend_name}
