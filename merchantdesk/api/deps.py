"""Shared router dependencies."""
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from merchantdesk.models.account import Account
from merchantdesk.models.base import get_db
from merchantdesk.models.user import User
from merchantdesk.services import account_service
from merchantdesk.services.merchant_service import MerchantService
from merchantdesk.services.optimize_service import OptimizeService


def require_user(request: Request) -> User:
    """Dependency: raise 401 if no authenticated user on request."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_selected_account(
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> Account:
    account = account_service.resolve_selected_account(db, user)
    if not account:
        raise HTTPException(status_code=400, detail="No merchant account selected")
    return account


_merchant_service: MerchantService | None = None
_optimize_service: OptimizeService | None = None


def get_merchant_service() -> MerchantService:
    global _merchant_service
    if _merchant_service is None:
        _merchant_service = MerchantService()
    return _merchant_service


def get_optimize_service() -> OptimizeService:
    global _optimize_service
    if _optimize_service is None:
        _optimize_service = OptimizeService()
    return _optimize_service
