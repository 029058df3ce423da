"""
User account and authentication endpoints.
Handles registration, login, logout, token refresh and the current profile.
"""
import time
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status

from app.api.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_app_settings,
    get_auth_service,
    get_current_user,
    get_user_service,
)
from app.core.config import Settings
from app.core.logging import log_operation_complete, log_operation_error, log_operation_start
from app.database.models.user import User
from app.models.domain import TokenPair
from app.models.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshTokenRequest,
    TokenPairResponse,
    UserResponse,
)
from app.services.auth_service import AuthService
from app.services.user_service import UserService

router = APIRouter(prefix="/users")

LOGGER_NAME = "app.api.endpoints.users"


def optional_upload(upload: Optional[UploadFile]) -> Optional[UploadFile]:
    """Treat a file field sent without a filename as absent."""
    if upload is None or not getattr(upload, "filename", None):
        return None
    return upload


def set_auth_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    """Set both tokens as httpOnly cookies."""
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        pair.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        pair.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None, alias="fullName"),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user_service: UserService = Depends(get_user_service),
):
    """
    Create an account.

    Multipart form with username, email, fullName, password and an avatar
    file; coverImage is optional.
    """
    start_time = time.time()
    operation = "register_user"

    log_operation_start(
        logger=LOGGER_NAME,
        function="register_user",
        operation=operation,
        message="Registering user",
        context={"username": username, "email": email},
    )

    try:
        user = await user_service.register(
            username=username,
            email=email,
            full_name=full_name,
            password=password,
            avatar=optional_upload(avatar),
            cover_image=optional_upload(cover_image),
        )
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="register_user",
            operation=operation,
            error=e,
            message="Registration failed",
            context={"username": username},
        )
        raise

    log_operation_complete(
        logger=LOGGER_NAME,
        function="register_user",
        operation=operation,
        message="User registered",
        context={"user_id": str(user.id)},
        duration=time.time() - start_time,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login_user(
    credentials: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """Log in with username or email plus password. Tokens are returned and set as cookies."""
    start_time = time.time()
    operation = "login_user"

    log_operation_start(
        logger=LOGGER_NAME,
        function="login_user",
        operation=operation,
        message="Login attempt",
        context={"username": credentials.username, "email": credentials.email},
    )

    try:
        user = await auth_service.verify_credentials(
            credentials.password,
            username=credentials.username,
            email=credentials.email,
        )
        pair = await auth_service.issue_token_pair(user)
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="login_user",
            operation=operation,
            error=e,
            message="Login failed",
        )
        raise

    set_auth_cookies(response, pair, settings)
    log_operation_complete(
        logger=LOGGER_NAME,
        function="login_user",
        operation=operation,
        message="User logged in",
        context={"user_id": str(user.id)},
        duration=time.time() - start_time,
    )
    return LoginResponse(
        user=UserResponse.model_validate(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout_user(
    response: Response,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """Revoke the stored refresh token and clear both cookies."""
    await auth_service.revoke(current_user.id)
    clear_auth_cookies(response, settings)
    return MessageResponse(message="User logged out")


@router.post("/refresh-token", response_model=TokenPairResponse)
async def refresh_access_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = Body(None),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Rotate the refresh token.

    The token is read from the refreshToken cookie, falling back to the
    request body. A token that has already been rotated is rejected.
    """
    presented = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not presented and body is not None:
        presented = body.refresh_token

    try:
        user, pair = await auth_service.rotate_refresh(presented)
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="refresh_access_token",
            operation="refresh_token",
            error=e,
            message="Refresh token rejected",
        )
        raise

    set_auth_cookies(response, pair, settings)
    log_operation_complete(
        logger=LOGGER_NAME,
        function="refresh_access_token",
        operation="refresh_token",
        message="Access token refreshed",
        context={"user_id": str(user.id)},
    )
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Profile of the authenticated user."""
    return UserResponse.model_validate(await user_service.get_profile(current_user.id))
