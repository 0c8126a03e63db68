"""
Merchant account discovery

Works out which Merchant Center accounts a user should see:

1. merchant IDs from the user's email mapping, else from MERCHANT_IDS
2. keep the numeric IDs the service account can actually read
3. reuse or create an Account row per accessible ID
4. auto-select the first one if the user has no selection yet
"""
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from merchantdesk.config import get_settings
from merchantdesk.connectors.merchant_center_connector import MerchantCenterConnector
from merchantdesk.models.account import Account, AccountAuthorizedEmail
from merchantdesk.models.user import User
from merchantdesk.services import email_mapping_service
from merchantdesk.services.account_service import is_valid_merchant_id
from merchantdesk.services.auth_service import normalize_email
from merchantdesk.utils.logger import log


def merchant_ids_from_settings(raw: Optional[str] = None) -> List[str]:
    """MERCHANT_IDS, comma- or colon-separated."""
    value = get_settings().merchant_ids if raw is None else raw
    if not value or not value.strip():
        return []
    return [part.strip() for part in re.split(r"[,:]", value) if part.strip()]


def merchant_ids_for_email(db: Session, email: str) -> List[str]:
    try:
        mapping = email_mapping_service.get_mapping(db, email)
    except Exception as e:
        log.error(f"Error fetching merchant IDs for email {email}: {e}")
        return []

    if not mapping or not mapping.merchant_ids:
        return []

    ids = [str(mid).strip() for mid in mapping.merchant_ids if mid and str(mid).strip()]
    log.info(f"Found {len(ids)} merchant ID(s) for {normalize_email(email)} from email mapping")
    return ids


async def _accessible_ids(connector: MerchantCenterConnector, merchant_ids: List[str]) -> List[str]:
    accessible = []
    for merchant_id in merchant_ids:
        if not is_valid_merchant_id(merchant_id):
            log.warning(f"Invalid merchant ID format: {merchant_id!r} (should be numeric)")
            continue
        merchant_id = merchant_id.strip()
        if merchant_id in accessible:
            continue
        if await connector.check_access(merchant_id):
            accessible.append(merchant_id)
        else:
            log.info(f"Merchant ID {merchant_id} is not accessible")
    return accessible


async def _link_account(
    db: Session,
    connector: MerchantCenterConnector,
    user: User,
    email: str,
    merchant_id: str,
) -> Account:
    # 1. The user's own account for this merchant
    account = (
        db.query(Account)
        .filter(Account.user_id == user.id, Account.merchant_id == merchant_id)
        .first()
    )
    if account:
        if account.authorize_email(email):
            db.commit()
        return account

    # 2. An account that already authorizes this email
    account = (
        db.query(Account)
        .filter(
            Account.merchant_id == merchant_id,
            Account.authorized.any(AccountAuthorizedEmail.email == email),
        )
        .first()
    )
    if account:
        if account.user_id is None:
            account.user_id = user.id
            db.commit()
        return account

    # 3. A new account
    account_name = await connector.get_account_name(merchant_id)
    account = Account(account_name=account_name, merchant_id=merchant_id, user_id=user.id)
    account.authorize_email(email)
    db.add(account)
    db.commit()
    db.refresh(account)
    log.info(f"Created account {account_name} ({merchant_id}) for user {email}")
    return account


async def sync_user_accounts(
    db: Session,
    user: Optional[User],
    connector: Optional[MerchantCenterConnector] = None,
) -> Dict[str, Any]:
    """
    Discover and link the merchant accounts visible to ``user``.

    Never raises; failures come back as ``{"success": False, "message": ...}``.
    """
    if not user or not user.email:
        log.info("Account sync skipped: no user or email provided")
        return {"success": False, "message": "User email required"}

    email = normalize_email(user.email)
    try:
        merchant_ids = merchant_ids_for_email(db, email)
        if not merchant_ids:
            merchant_ids = merchant_ids_from_settings()
            if merchant_ids:
                log.info("Using merchant IDs from MERCHANT_IDS setting")

        if not merchant_ids:
            log.info(f"No merchant IDs found for {email} (no email mapping and MERCHANT_IDS unset)")
            return {"success": True, "accounts": [], "message": "No merchant IDs configured for this email"}

        log.info(f"Checking {len(merchant_ids)} merchant ID(s) for user {email}")
        connector = connector or MerchantCenterConnector()
        accessible = await _accessible_ids(connector, merchant_ids)

        if not accessible:
            log.info(f"No accessible merchant IDs found for user {email}")
            return {"success": True, "accounts": [], "message": "No accessible merchant accounts found"}

        accounts: List[Account] = []
        for merchant_id in accessible:
            try:
                accounts.append(await _link_account(db, connector, user, email, merchant_id))
            except Exception as e:
                db.rollback()
                log.error(f"Error processing merchant ID {merchant_id} for {email}: {e}")

        if accounts:
            db_user = db.get(User, user.id)
            if db_user and db_user.selected_account_id is None:
                db_user.selected_account_id = accounts[0].id
                db.commit()
                log.info(f"Auto-selected account {accounts[0].account_name} for user {email}")

        log.info(f"Synced {len(accounts)} account(s) for user {email}")
        return {
            "success": True,
            "accounts": accounts,
            "message": f"Synced {len(accounts)} account(s) for user {email}",
        }

    except Exception as e:
        db.rollback()
        log.error(f"Error syncing accounts for {email}: {e}")
        return {"success": False, "message": str(e) or "Failed to sync accounts"}
