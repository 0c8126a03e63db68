"""Merchant account API: list, link, update, share, switch, discover."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from merchantdesk.api.deps import require_user
from merchantdesk.connectors.merchant_center_connector import MerchantCenterConnector
from merchantdesk.models.base import get_db
from merchantdesk.models.user import User
from merchantdesk.services import account_service
from merchantdesk.services.account_service import account_out
from merchantdesk.services.account_sync_service import sync_user_accounts
from merchantdesk.utils.credentials import get_service_account_email

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


class CreateAccountRequest(BaseModel):
    account_name: str
    merchant_id: str
    verify_access: bool = True


class UpdateAccountRequest(BaseModel):
    account_name: Optional[str] = None
    merchant_id: Optional[str] = None


class AuthorizedEmailRequest(BaseModel):
    email: str


def _raise_for(exc: Exception):
    if isinstance(exc, account_service.AccountNotFound):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, account_service.AccountAccessDenied):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, account_service.AccountConflict):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc))
    raise exc


@router.get("")
async def list_accounts(user: User = Depends(require_user), db: Session = Depends(get_db)):
    """All accounts the user owns or is authorized on, newest first."""
    accounts = account_service.list_accessible_accounts(db, user)
    return {"success": True, "accounts": [account_out(a) for a in accounts]}


@router.post("", status_code=201)
async def create_account(
    body: CreateAccountRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Link a merchant account by ID."""
    if not account_service.is_valid_merchant_id(body.merchant_id):
        raise HTTPException(status_code=400, detail="Merchant ID must be numeric")

    if body.verify_access:
        connector = MerchantCenterConnector()
        if not await connector.check_access(body.merchant_id.strip()):
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Merchant account {body.merchant_id.strip()} is not accessible. Add "
                    f"{get_service_account_email()} as an admin user in Merchant Center."
                ),
            )

    try:
        account = account_service.create_account(db, user, body.account_name, body.merchant_id)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "message": "Account created successfully", "account": account_out(account)}


@router.post("/sync")
async def sync_accounts(user: User = Depends(require_user), db: Session = Depends(get_db)):
    """Re-run merchant account discovery for the current user."""
    result = await sync_user_accounts(db, user)
    if not result.get("success"):
        raise HTTPException(status_code=502, detail=result.get("message", "Failed to sync accounts"))
    return {
        "success": True,
        "message": result.get("message"),
        "accounts": [account_out(a) for a in result.get("accounts", [])],
    }


@router.get("/{account_id}")
async def get_account(account_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    try:
        account = account_service.get_account(db, user, account_id)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "account": account_out(account)}


@router.put("/{account_id}")
async def update_account(
    account_id: int,
    body: UpdateAccountRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        account = account_service.update_account(
            db, user, account_id, account_name=body.account_name, merchant_id=body.merchant_id
        )
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "message": "Account updated successfully", "account": account_out(account)}


@router.delete("/{account_id}")
async def delete_account(account_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    try:
        account_service.delete_account(db, user, account_id)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "message": "Account deleted successfully"}


@router.post("/{account_id}/switch")
async def switch_account(account_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    """Make this account the user's selected account."""
    try:
        account = account_service.switch_account(db, user, account_id)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "message": "Account switched successfully", "account": account_out(account)}


@router.post("/{account_id}/authorized-emails")
async def add_authorized_email(
    account_id: int,
    body: AuthorizedEmailRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Share an account with another email (owner only)."""
    try:
        account = account_service.add_authorized_email(db, user, account_id, body.email)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "account": account_out(account)}


@router.delete("/{account_id}/authorized-emails/{email}")
async def remove_authorized_email(
    account_id: int,
    email: str,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        account = account_service.remove_authorized_email(db, user, account_id, email)
    except Exception as exc:
        _raise_for(exc)
    return {"success": True, "account": account_out(account)}
