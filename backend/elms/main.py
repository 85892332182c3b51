import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import elms.models  # noqa: F401
from elms.api.routes import bulk_import, health, sessions
from elms.core.config import get_settings
from elms.core.exceptions import AppError, ConfigurationError
from elms.db.base import Base
from elms.db.session import engine

settings = get_settings()

if not isinstance(logging.getLevelName(settings.log_level), int):
    raise ConfigurationError(f"Unknown log level: {settings.log_level}")
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.create_schema_on_startup:
        Base.metadata.create_all(bind=engine)
        logger.info("Database schema ensured")
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(sessions.router, prefix=f"{settings.api_prefix}/sessions", tags=["sessions"])
app.include_router(bulk_import.router, prefix=f"{settings.api_prefix}/bulk-import", tags=["bulk-import"])
