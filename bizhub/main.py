# bizhub/main.py

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from bizhub.api.endpoints import websocket
from bizhub.api.v1 import api_router
from bizhub.core.config import settings
from bizhub.core.database import mongo_manager
from bizhub.core.logging_config import add_trace_id_middleware, setup_logging
from bizhub.core.rate_limit import limiter
from bizhub.models.api_common import DetailResponse, ErrorDetail, ValidationErrorResponse
from bizhub.modules.activity.repository import ActivityRepository
from bizhub.modules.chat.repository import ChatMessageRepository
from bizhub.modules.inbox.repository import CustomerMessageRepository
from bizhub.modules.invites.repository import InviteRepository
from bizhub.modules.messaging.repository import MessageRepository
from bizhub.modules.notifications.repository import NotificationRepository
from bizhub.modules.products.repository import ProductRepository
from bizhub.modules.sales.repository import SaleRepository
from bizhub.modules.teams.repository import TeamRepository
from bizhub.modules.users.repository import UserRepository
from bizhub.modules.users.services import avatar_dir
from bizhub.services.llm_client import get_llm_client_instance
from bizhub.websocket.connection_manager import chat_manager, notification_manager

REPOSITORIES = (
    UserRepository, ProductRepository, SaleRepository, NotificationRepository, ActivityRepository,
    MessageRepository, CustomerMessageRepository, TeamRepository, InviteRepository, ChatMessageRepository,
)


# --- Exception handlers ---
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    trace_id = getattr(request.state, "trace_id", "N/A")
    logger.bind(trace_id=trace_id).warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=DetailResponse(detail=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    trace_id = getattr(request.state, "trace_id", "N/A")
    logger.bind(trace_id=trace_id).warning(f"Validation error on {request.url.path}: {exc.errors()}")
    errors = [
        ErrorDetail(field=list(err.get("loc", []))[1:] or None, message=err.get("msg", "Invalid value"))
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ValidationErrorResponse(errors=errors).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception):
    trace_id = getattr(request.state, "trace_id", "N/A")
    logger.bind(trace_id=trace_id).exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=DetailResponse(detail="Internal server error").model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    await mongo_manager.connect()
    db = mongo_manager.get_db()
    for repository_cls in REPOSITORIES:
        await repository_cls(db).ensure_indexes()
    avatar_dir().mkdir(parents=True, exist_ok=True)
    logger.success("Application startup complete.")
    yield
    logger.info("Shutting down...")
    await get_llm_client_instance().aclose()
    await mongo_manager.disconnect()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        exception_handlers={
            StarletteHTTPException: http_exception_handler,
            RequestValidationError: validation_exception_handler,
            RateLimitExceeded: _rate_limit_exceeded_handler,
            Exception: generic_exception_handler,
        },
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(add_trace_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(websocket.router)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    @app.get("/health", tags=["Health Check"])
    async def health():
        return {
            "status": "ok",
            "message": f"{settings.PROJECT_NAME} is running",
            "timestamp": datetime.now(timezone.utc),
            "websocket": {
                "notification_sockets": notification_manager.connection_count(),
                "chat_sockets": chat_manager.connection_count(),
            },
        }

    @app.get("/", tags=["Health Check"], include_in_schema=False)
    async def read_root():
        return {"message": f"{settings.PROJECT_NAME} API", "docs": "/docs", "health": "/health"}

    return app


app = create_app()
