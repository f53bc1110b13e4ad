"""Request-scoped providers.

Handlers never build stores themselves: each capability is constructed here
from the request's session and handed over through ``Depends``, so tests can
swap any of them with ``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import get_db
from .errors import TokenMissing
from .repositories import (
    CommentRepository,
    DashboardRepository,
    PostRepository,
    TagRepository,
    UserRepository,
)
from .tokens import TokenService

bearer_scheme = HTTPBearer(auto_error=False)

# Keeps the row offset inside a 64-bit integer for every backend.
MAX_PAGE = 1_000_000_000


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_post_repository(db: Session = Depends(get_db)) -> PostRepository:
    return PostRepository(db)


def get_tag_repository(db: Session = Depends(get_db)) -> TagRepository:
    return TagRepository(db)


def get_comment_repository(db: Session = Depends(get_db)) -> CommentRepository:
    return CommentRepository(db)


def get_dashboard_repository(db: Session = Depends(get_db)) -> DashboardRepository:
    return DashboardRepository(db)


def get_token_service(db: Session = Depends(get_db)) -> TokenService:
    return TokenService(db)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise TokenMissing()
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
) -> models.User:
    return tokens.validate(token)


def pagination_params(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    per_page: Optional[int] = Query(None, ge=1),
) -> dict:
    return {
        "page": page,
        "per_page": min(per_page or settings.default_per_page, settings.max_per_page),
    }
