"""
Google OAuth 2.0 sign-in

Authorization-code flow against Google's OAuth endpoints. The consent screen
also asks for the Content API scope so the user's Merchant Center access can
be used later.
"""
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlencode

import requests

from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log
from merchantdesk.utils.retry import retry_sync

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/content",
]

REQUEST_TIMEOUT = 15


class GoogleOAuthError(Exception):
    pass


@dataclass
class GoogleProfile:
    google_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


def _client_credentials() -> tuple[str, str]:
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise GoogleOAuthError("Google OAuth is not configured (GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET)")
    return settings.google_client_id, settings.google_client_secret


def build_authorization_url(state: str) -> str:
    client_id, _ = _client_credentials()
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": get_settings().google_callback_url,
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


@retry_sync(max_attempts=3, base_delay=1.0)
def _post_token(data: Dict[str, str]) -> requests.Response:
    response = requests.post(TOKEN_URL, data=data, timeout=REQUEST_TIMEOUT)
    if response.status_code >= 500:
        response.raise_for_status()
    return response


def exchange_code(code: str) -> Dict:
    """Trade an authorization code for tokens."""
    client_id, client_secret = _client_credentials()
    response = _post_token({
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": get_settings().google_callback_url,
        "grant_type": "authorization_code",
    })
    if response.status_code != 200:
        log.error(f"Google token exchange failed ({response.status_code}): {response.text}")
        raise GoogleOAuthError("Failed to exchange authorization code")

    tokens = response.json()
    if "access_token" not in tokens:
        raise GoogleOAuthError("Token response did not include an access token")
    return tokens


def fetch_profile(access_token: str) -> GoogleProfile:
    response = requests.get(
        USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        log.error(f"Google userinfo request failed ({response.status_code}): {response.text}")
        raise GoogleOAuthError("Failed to fetch Google profile")

    data = response.json()
    if not data.get("sub") or not data.get("email"):
        raise GoogleOAuthError("Google profile is missing id or email")

    return GoogleProfile(
        google_id=data["sub"],
        email=data["email"],
        name=data.get("name"),
        picture=data.get("picture"),
    )
