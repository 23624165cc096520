import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.auth.api import router as auth_router
from app.chats.api import router as chats_router
from app.common.exceptions import ServiceError
from app.config import settings
from app.db.session import init_models
from app.events.api import router as events_router
from app.files.api import router as files_router
from app.friends.api import router as friends_router
from app.notifications.api import router as notifications_router
from app.participation.api import router as participation_router
from app.polling.api import router as polling_router
from app.realtime.api import router as realtime_router
from app.realtime.gateway import gateway
from app.reports.api import router as reports_router
from app.roles.api import router as roles_router
from app.users.api import router as users_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await init_models()
        logger.info("Database tables ensured")
    logger.info("Application startup")
    yield
    logger.info(f"Application shutdown ({await gateway.connected_count()} sockets open)")


app = FastAPI(title="Parsifal API", lifespan=lifespan)


# ===============================
# ERROR HANDLERS
# ===============================
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Two requests raced on a unique constraint; the session is rolled back on teardown
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": "Resource already exists"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
for router in (
    auth_router,
    users_router,
    roles_router,
    events_router,
    participation_router,
    friends_router,
    chats_router,
    notifications_router,
    polling_router,
    files_router,
    reports_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)
app.include_router(realtime_router)


@app.get("/")
async def root():
    return {"message": "Parsifal API is running", "online": await gateway.connected_count()}
