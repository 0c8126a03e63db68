"""Google sign-in and merchant account selection."""
import asyncio
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from merchantdesk.api.deps import require_user
from merchantdesk.config import get_settings
from merchantdesk.models.base import get_db
from merchantdesk.models.user import User
from merchantdesk.services import account_service, auth_service, google_oauth_service
from merchantdesk.services.account_sync_service import sync_user_accounts
from merchantdesk.utils.logger import log

router = APIRouter(prefix="/api/auth", tags=["google-auth"])

STATE_COOKIE = "google_oauth_state"


class SelectAccountRequest(BaseModel):
    merchant_id: str


def _client_redirect(path: str, **params) -> RedirectResponse:
    url = f"{get_settings().primary_client_url}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    response = RedirectResponse(url=url, status_code=302)
    response.delete_cookie(STATE_COOKIE, path="/api/auth/google")
    return response


@router.get("/google")
async def google_login():
    """Send the browser to Google's consent screen."""
    state = secrets.token_urlsafe(24)
    try:
        url = google_oauth_service.build_authorization_url(state)
    except google_oauth_service.GoogleOAuthError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    response = RedirectResponse(url=url, status_code=302)
    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        httponly=True,
        secure=get_settings().environment != "development",
        samesite="lax",
        max_age=600,
        path="/api/auth/google",
    )
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str = "",
    state: str = "",
    error: str = "",
    db: Session = Depends(get_db),
):
    """Finish the OAuth flow, sync accounts and hand a token to the client."""
    expected_state = request.cookies.get(STATE_COOKIE)
    if error or not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        log.warning(f"Google callback rejected (error={error!r}, state ok={state == expected_state})")
        return _client_redirect("/login", error="authentication_failed")

    try:
        tokens = await asyncio.to_thread(google_oauth_service.exchange_code, code)
        profile = await asyncio.to_thread(google_oauth_service.fetch_profile, tokens["access_token"])
        user = auth_service.upsert_google_user(
            db, profile.google_id, profile.email, profile.name, profile.picture
        )
    except Exception as exc:
        log.error(f"Google auth error: {exc}")
        return _client_redirect("/login", error="authentication_failed")

    log.info(f"Google login for {user.email}")
    result = await sync_user_accounts(db, user)
    log.info(f"Google login synced {len(result.get('accounts', []))} account(s) for {user.email}")

    token = auth_service.create_session(db, user.id)
    return _client_redirect("/admin", token=token)


@router.get("/google/failure")
async def google_failure():
    return JSONResponse(
        status_code=401,
        content={"success": False, "message": "Google authentication failed"},
    )


@router.get("/merchant-accounts")
async def merchant_accounts(user: User = Depends(require_user), db: Session = Depends(get_db)):
    """Accounts visible to the current user plus their selection."""
    accounts = account_service.list_accessible_accounts(db, user)
    selected = account_service.resolve_selected_account(db, user)
    return {
        "success": True,
        "accounts": [account_service.account_out(a) for a in accounts],
        "selected_account": selected.id if selected else None,
        "email": user.email,
    }


@router.post("/select-account")
async def select_account(
    body: SelectAccountRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Select an accessible account by merchant ID."""
    try:
        account = account_service.select_by_merchant_id(db, user, body.merchant_id)
    except account_service.AccountNotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        "success": True,
        "message": "Account selected successfully",
        "selected_account": account.id,
        "account": account_service.account_out(account),
    }
