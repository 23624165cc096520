from typing import Optional
from urllib.parse import urlencode
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import oauth
from app.auth.dependencies import get_current_user
from app.auth.jwt_handler import create_user_token
from app.auth.models import User
from app.auth.oauth import OAuthProvider, OAuthProviderError
from app.auth.password import generate_password
from app.auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    GeneratedPasswordResponse,
    OAuthAccessTokenRequest,
    OAuthCodeRequest,
    ProviderStatusResponse,
    ResetPasswordRequest,
    TokenResponse,
    UpdateFromProviderRequest,
    UserLogin,
    UserRegister,
    UserResponse,
)
from app.auth.services import AuthService
from app.common.schemas import MessageResponse
from app.config import settings
from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with this email exists, a password reset link has been sent"


def token_response(user: User) -> TokenResponse:
    return TokenResponse(access_token=create_user_token(user), user=UserResponse.model_validate(user))


def mobile_callback_url(provider: OAuthProvider) -> str:
    return f"{settings.BACKEND_URL}{settings.API_PREFIX}/auth/{provider.value}/mobile-callback"


def mobile_redirect(provider: OAuthProvider, **params) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return RedirectResponse(
        f"{settings.MOBILE_APP_SCHEME}://{provider.value}-callback?{query}",
        status_code=status.HTTP_302_FOUND,
    )


def oauth_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Failed to authenticate")


# ===============================
# LOCAL ACCOUNTS
# ===============================
@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    user = await AuthService(db).register(data)
    return token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await AuthService(db).authenticate(data.email, data.password)
    logger.info(f"User logged in: id={user.id}")
    return token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(data: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    await AuthService(db).forgot_password(data.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await AuthService(db).reset_password(data.token, data.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).change_password(current_user, data.current_password, data.new_password)
    return MessageResponse(message="Password has been changed")


@router.get("/generate-password", response_model=GeneratedPasswordResponse)
async def generate_random_password(length: int = Query(12, ge=8, le=50)):
    return GeneratedPasswordResponse(password=generate_password(length), length=length)


@router.post("/update-from-provider", response_model=UserResponse)
async def update_from_provider(
    data: UpdateFromProviderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await oauth.fetch_profile(data.provider, data.access_token)
    except OAuthProviderError:
        raise oauth_failed()

    if profile.provider != current_user.auth_provider or profile.provider_id != current_user.provider_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account does not match")

    return await AuthService(db).process_oauth_user(profile, update_profile=True)


# ===============================
# OAUTH (GOOGLE / YANDEX)
# ===============================
@router.get("/{provider}/status", response_model=ProviderStatusResponse)
async def provider_status(provider: OAuthProvider):
    _, _, callback_url = oauth.get_client_credentials(provider)
    return ProviderStatusResponse(
        provider=provider,
        configured=oauth.is_configured(provider),
        callback_url=callback_url,
    )


@router.get("/{provider}")
async def provider_login(provider: OAuthProvider, mobile: bool = False, state: Optional[str] = None):
    redirect_uri = mobile_callback_url(provider) if mobile else None
    return RedirectResponse(
        oauth.build_authorization_url(provider, redirect_uri=redirect_uri, state=state),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/{provider}/callback")
async def provider_callback(
    provider: OAuthProvider,
    code: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if not code:
        return RedirectResponse(f"{settings.FRONTEND_URL}/auth-error", status_code=status.HTTP_302_FOUND)

    try:
        access_token = await oauth.exchange_code(provider, code)
        profile = await oauth.fetch_profile(provider, access_token)
    except OAuthProviderError:
        logger.warning(f"{provider.value} callback failed")
        return RedirectResponse(f"{settings.FRONTEND_URL}/auth-error", status_code=status.HTTP_302_FOUND)

    user = await AuthService(db).process_oauth_user(profile)
    token = create_user_token(user)
    return RedirectResponse(
        f"{settings.FRONTEND_URL}/auth-success?{urlencode({'token': token})}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/{provider}/mobile-callback")
async def provider_mobile_callback(
    provider: OAuthProvider,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if not code:
        return mobile_redirect(provider, error="authentication_failed", state=state)

    try:
        access_token = await oauth.exchange_code(provider, code, redirect_uri=mobile_callback_url(provider))
        profile = await oauth.fetch_profile(provider, access_token)
    except OAuthProviderError:
        logger.warning(f"{provider.value} mobile callback failed")
        return mobile_redirect(provider, error="authentication_failed", state=state)

    user = await AuthService(db).process_oauth_user(profile)
    return mobile_redirect(provider, token=create_user_token(user), code=code, state=state)


@router.post("/{provider}/token", response_model=TokenResponse)
async def provider_token(provider: OAuthProvider, data: OAuthCodeRequest, db: AsyncSession = Depends(get_db)):
    """Exchange an authorization code obtained by the client for a session token."""
    try:
        access_token = await oauth.exchange_code(provider, data.code, redirect_uri=data.redirect_uri)
        profile = await oauth.fetch_profile(provider, access_token)
    except OAuthProviderError:
        raise oauth_failed()

    user = await AuthService(db).process_oauth_user(profile)
    return token_response(user)


@router.post("/{provider}/userinfo", response_model=TokenResponse)
async def provider_userinfo(
    provider: OAuthProvider,
    data: OAuthAccessTokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """Log in with a provider access token obtained by a native SDK."""
    try:
        profile = await oauth.fetch_profile(provider, data.access_token)
    except OAuthProviderError:
        raise oauth_failed()

    user = await AuthService(db).process_oauth_user(profile)
    return token_response(user)
