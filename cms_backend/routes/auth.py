import logging

from fastapi import APIRouter, Depends, status

from .. import models, schemas
from ..deps import get_bearer_token, get_current_user, get_token_service, get_user_repository
from ..errors import InvalidCredentials
from ..repositories import UserRepository
from ..responses import auth_response, dump, success_response
from ..security import verify_password
from ..tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(
    credentials: schemas.LoginIn,
    users: UserRepository = Depends(get_user_repository),
    tokens: TokenService = Depends(get_token_service),
):
    user = users.get_by_email(credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.info("Failed login for %s", credentials.email)
        raise InvalidCredentials()

    return auth_response(dump(schemas.UserOut, user), tokens.issue(user), "Login successful.")


@router.post("/register")
def register(
    user_in: schemas.RegisterIn,
    users: UserRepository = Depends(get_user_repository),
    tokens: TokenService = Depends(get_token_service),
):
    user = users.create(user_in)
    logger.info("Registered user %s", user.id)
    return auth_response(
        dump(schemas.UserOut, user),
        tokens.issue(user),
        "User registered successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/logout", dependencies=[Depends(get_current_user)])
def logout(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
):
    tokens.invalidate(token)
    return success_response(message="Logged out successfully.")


@router.get("/me")
def me(current_user: models.User = Depends(get_current_user)):
    return success_response(dump(schemas.UserOut, current_user), "Authenticated user retrieved.")


@router.post("/refresh")
def refresh(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
):
    return success_response({"token": tokens.refresh(token)}, "Token refreshed.")
