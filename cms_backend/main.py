import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import configure_logging, settings
from .database import Base, engine
from .errors import CMSError, ValidationFailed
from .responses import error_response
from .routes import auth as auth_routes
from .routes import comments as comments_routes
from .routes import dashboard as dashboard_routes
from .routes import health as health_routes
from .routes import posts as posts_routes
from .routes import tags as tags_routes
from .routes import users as users_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create DB tables so the app is immediately usable.
    Base.metadata.create_all(bind=engine)
    yield


def _field_errors(exc: RequestValidationError) -> dict:
    errors: dict = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        errors.setdefault(".".join(loc) or "body", []).append(error["msg"])
    return errors


async def cms_error_handler(request: Request, exc: CMSError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.message, exc.status_code, exc.errors)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(ValidationFailed.default_message, 422, _field_errors(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response("Internal server error.", 500)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Content-management API: JWT auth, users, posts, tags and comments.",
        lifespan=lifespan,
    )

    app.add_exception_handler(CMSError, cms_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_routes.router)
    app.include_router(auth_routes.router)
    app.include_router(users_routes.router)
    app.include_router(posts_routes.router)
    app.include_router(comments_routes.router)
    app.include_router(tags_routes.router)
    app.include_router(dashboard_routes.router)
    return app


app = create_app()
