# app/auth/oauth.py
# ===========================
# Google / Yandex OAuth: code exchange, profile fetch and normalization
# ===========================
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlencode
import logging

import requests
from starlette.concurrency import run_in_threadpool

from app.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

YANDEX_AUTH_URL = "https://oauth.yandex.ru/authorize"
YANDEX_TOKEN_URL = "https://oauth.yandex.ru/token"
YANDEX_USERINFO_URL = "https://login.yandex.ru/info"

YANDEX_AVATAR_URL = "https://avatars.yandex.net/get-yapic/{avatar_id}/islands-200"

REQUEST_TIMEOUT = 10


class OAuthProvider(str, Enum):
    GOOGLE = "google"
    YANDEX = "yandex"


class OAuthProviderError(Exception):
    """The provider rejected the code/token or returned unusable data."""
    pass


@dataclass
class ProviderProfile:
    provider: str
    provider_id: str
    email: str
    first_name: str
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None


def _first_word(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    parts = value.split()
    return parts[0] if parts else None


# ===========================
# NORMALIZATION
# ===========================
def normalize_google(data: dict) -> ProviderProfile:
    email = data.get("email")
    if not email or not data.get("id"):
        raise OAuthProviderError("Google profile is missing id or email")

    return ProviderProfile(
        provider=OAuthProvider.GOOGLE.value,
        provider_id=str(data["id"]),
        email=email.lower(),
        first_name=data.get("given_name") or _first_word(data.get("name")) or "User",
        last_name=data.get("family_name"),
        display_name=data.get("name"),
        avatar=data.get("picture"),
    )


def normalize_yandex(data: dict) -> ProviderProfile:
    email = data.get("default_email") or next(iter(data.get("emails") or []), None)
    if not email or not data.get("id"):
        raise OAuthProviderError("Yandex profile is missing id or email")

    avatar = None
    if data.get("default_avatar_id") and not data.get("is_avatar_empty", False):
        avatar = YANDEX_AVATAR_URL.format(avatar_id=data["default_avatar_id"])

    return ProviderProfile(
        provider=OAuthProvider.YANDEX.value,
        provider_id=str(data["id"]),
        email=email.lower(),
        first_name=data.get("first_name") or _first_word(data.get("real_name")) or "User",
        last_name=data.get("last_name"),
        display_name=data.get("display_name") or data.get("real_name"),
        avatar=avatar,
    )


def normalize_profile(provider: OAuthProvider, data: dict) -> ProviderProfile:
    if provider == OAuthProvider.GOOGLE:
        return normalize_google(data)
    return normalize_yandex(data)


# ===========================
# PROVIDER HTTP CALLS
# ===========================
def get_client_credentials(provider: OAuthProvider) -> Tuple[str, str, str]:
    if provider == OAuthProvider.GOOGLE:
        return settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET, settings.GOOGLE_CALLBACK_URL
    return settings.YANDEX_CLIENT_ID, settings.YANDEX_CLIENT_SECRET, settings.YANDEX_CALLBACK_URL


def is_configured(provider: OAuthProvider) -> bool:
    client_id, client_secret, _ = get_client_credentials(provider)
    return bool(client_id and client_secret)


def build_authorization_url(
    provider: OAuthProvider,
    redirect_uri: Optional[str] = None,
    state: Optional[str] = None,
) -> str:
    client_id, _, callback_url = get_client_credentials(provider)
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri or callback_url,
    }
    if provider == OAuthProvider.GOOGLE:
        params["scope"] = "openid email profile"
        base_url = GOOGLE_AUTH_URL
    else:
        base_url = YANDEX_AUTH_URL
    if state:
        params["state"] = state
    return f"{base_url}?{urlencode(params)}"


def _exchange_code_sync(provider: OAuthProvider, code: str, redirect_uri: Optional[str]) -> str:
    client_id, client_secret, callback_url = get_client_credentials(provider)
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
    }
    if provider == OAuthProvider.GOOGLE:
        url = GOOGLE_TOKEN_URL
        data["redirect_uri"] = redirect_uri or callback_url
    else:
        url = YANDEX_TOKEN_URL

    try:
        response = requests.post(url, data=data, headers={"Accept": "application/json"}, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"{provider.value} token exchange request failed: {e}")
        raise OAuthProviderError("Token exchange failed") from e

    if response.status_code != 200:
        logger.error(f"{provider.value} token exchange returned {response.status_code}: {response.text}")
        raise OAuthProviderError("Token exchange failed")

    access_token = response.json().get("access_token")
    if not access_token:
        raise OAuthProviderError("Provider response has no access_token")
    return access_token


def _fetch_profile_sync(provider: OAuthProvider, access_token: str) -> dict:
    if provider == OAuthProvider.GOOGLE:
        url = GOOGLE_USERINFO_URL
        headers = {"Authorization": f"Bearer {access_token}"}
        params = None
    else:
        url = YANDEX_USERINFO_URL
        headers = {"Authorization": f"OAuth {access_token}"}
        params = {"format": "json"}

    try:
        response = requests.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"{provider.value} profile request failed: {e}")
        raise OAuthProviderError("Profile request failed") from e

    if response.status_code != 200:
        logger.error(f"{provider.value} profile request returned {response.status_code}: {response.text}")
        raise OAuthProviderError("Profile request failed")
    return response.json()


async def exchange_code(provider: OAuthProvider, code: str, redirect_uri: Optional[str] = None) -> str:
    return await run_in_threadpool(_exchange_code_sync, provider, code, redirect_uri)


async def fetch_profile(provider: OAuthProvider, access_token: str) -> ProviderProfile:
    data = await run_in_threadpool(_fetch_profile_sync, provider, access_token)
    return normalize_profile(provider, data)
