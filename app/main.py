import logging
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.core import exceptions
from app.database import AsyncSessionLocal
from app.routers.dashboard import router as dashboard_router
from app.routers.found_items import router as found_items_router
from app.routers.lost_items import router as lost_items_router
from app.routers.matches import router as matches_router
from app.routers.users import router as users_router
from app.services.match_queue import get_match_queue

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# CORS must be added before other middleware
configured_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys([*default_origins, *configured_origins])),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# Exception Handlers
app.add_exception_handler(exceptions.LostFoundError, exceptions.lost_found_exception_handler)  # type: ignore
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)  # type: ignore
app.add_exception_handler(IntegrityError, exceptions.integrity_exception_handler)  # type: ignore

# Routers
app.include_router(users_router, prefix=f"{settings.API_V1_STR}/users", tags=["Users"])
app.include_router(lost_items_router, prefix=f"{settings.API_V1_STR}/lost-items", tags=["LostItems"])
app.include_router(found_items_router, prefix=f"{settings.API_V1_STR}/found-items", tags=["FoundItems"])
app.include_router(matches_router, prefix=f"{settings.API_V1_STR}/matches", tags=["Matches"])
app.include_router(dashboard_router, prefix=f"{settings.API_V1_STR}/dashboard", tags=["Dashboard"])


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database unavailable",
        ) from exc
    return {"status": "ok", "database": "ok"}


@app.get("/")
async def root():
    return {"message": "Welcome to the Campus Lost & Found API", "docs": "/docs"}


@app.on_event("startup")
async def startup_match_queue() -> None:
    if not settings.MATCH_QUEUE_ENABLED:
        logger.info("Match queue disabled by config")
        return
    await get_match_queue().start()


@app.on_event("shutdown")
async def shutdown_match_queue() -> None:
    await get_match_queue().stop()
