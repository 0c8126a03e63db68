"""
Merchant account access and management

A user can access an account when they own it or when their email is in
the account's authorized emails. Only owners may change or delete it.
"""
import re
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from merchantdesk.models.account import Account, AccountAuthorizedEmail
from merchantdesk.models.user import User
from merchantdesk.services.auth_service import normalize_email
from merchantdesk.utils.logger import log

_NUMERIC_ID = re.compile(r"^\d+$")


class AccountNotFound(LookupError):
    pass


class AccountAccessDenied(PermissionError):
    pass


class AccountConflict(ValueError):
    pass


class InvalidMerchantId(ValueError):
    pass


def is_valid_merchant_id(merchant_id: Optional[str]) -> bool:
    return bool(merchant_id) and bool(_NUMERIC_ID.match(merchant_id.strip()))


def is_owner(account: Account, user: User) -> bool:
    return account.user_id is not None and account.user_id == user.id


def has_email_access(account: Account, email: Optional[str]) -> bool:
    return account.has_authorized_email(normalize_email(email))


def can_access(account: Account, user: User) -> bool:
    return is_owner(account, user) or has_email_access(account, user.email)


def _access_filter(user: User):
    clauses = [Account.user_id == user.id]
    if user.email:
        clauses.append(
            Account.authorized.any(AccountAuthorizedEmail.email == normalize_email(user.email))
        )
    return or_(*clauses)


def list_accessible_accounts(db: Session, user: User) -> List[Account]:
    return (
        db.query(Account)
        .filter(_access_filter(user))
        .order_by(Account.created_at.desc(), Account.id.desc())
        .all()
    )


def _load(db: Session, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if not account:
        raise AccountNotFound("Account not found")
    return account


def get_account(db: Session, user: User, account_id: int) -> Account:
    account = _load(db, account_id)
    if not can_access(account, user):
        raise AccountAccessDenied("You do not have access to this account")
    return account


def _get_owned(db: Session, user: User, account_id: int, action: str) -> Account:
    account = _load(db, account_id)
    if not is_owner(account, user):
        raise AccountAccessDenied(f"You do not have permission to {action} this account")
    return account


def _ensure_no_duplicate(db: Session, user: User, merchant_id: str) -> None:
    existing = (
        db.query(Account)
        .filter(Account.user_id == user.id, Account.merchant_id == merchant_id)
        .first()
    )
    if existing:
        raise AccountConflict("Account with this merchant ID already exists")


def create_account(db: Session, user: User, account_name: str, merchant_id: str) -> Account:
    """Link a merchant account to the user by hand."""
    account_name = (account_name or "").strip()
    if not account_name:
        raise ValueError("Account name is required")
    if not is_valid_merchant_id(merchant_id):
        raise InvalidMerchantId("Merchant ID must be numeric")
    merchant_id = merchant_id.strip()
    _ensure_no_duplicate(db, user, merchant_id)

    account = Account(account_name=account_name, merchant_id=merchant_id, user_id=user.id)
    if user.email:
        account.authorize_email(normalize_email(user.email))
    db.add(account)
    db.flush()

    db_user = db.get(User, user.id)
    if db_user.selected_account_id is None:
        db_user.selected_account_id = account.id

    db.commit()
    db.refresh(account)
    log.info(f"User {user.email} linked account {account_name} ({merchant_id})")
    return account


def update_account(
    db: Session,
    user: User,
    account_id: int,
    account_name: Optional[str] = None,
    merchant_id: Optional[str] = None,
) -> Account:
    account = _get_owned(db, user, account_id, "update")

    if merchant_id:
        if not is_valid_merchant_id(merchant_id):
            raise InvalidMerchantId("Merchant ID must be numeric")
        merchant_id = merchant_id.strip()
        if merchant_id != account.merchant_id:
            _ensure_no_duplicate(db, user, merchant_id)
            account.merchant_id = merchant_id

    if account_name and account_name.strip():
        account.account_name = account_name.strip()

    db.commit()
    db.refresh(account)
    return account


def delete_account(db: Session, user: User, account_id: int) -> None:
    account = _get_owned(db, user, account_id, "delete")

    # Not every backend enforces ON DELETE SET NULL
    db.query(User).filter(User.selected_account_id == account.id).update(
        {User.selected_account_id: None}, synchronize_session=False
    )
    db.delete(account)
    db.commit()
    log.info(f"User {user.email} deleted account {account_id}")


def switch_account(db: Session, user: User, account_id: int) -> Account:
    account = get_account(db, user, account_id)
    db_user = db.get(User, user.id)
    db_user.selected_account_id = account.id
    db.commit()
    db.refresh(account)
    return account


def select_by_merchant_id(db: Session, user: User, merchant_id: str) -> Account:
    merchant_id = (merchant_id or "").strip()
    for account in list_accessible_accounts(db, user):
        if account.merchant_id == merchant_id:
            return switch_account(db, user, account.id)
    raise AccountNotFound("Merchant account not found")


def add_authorized_email(db: Session, user: User, account_id: int, email: str) -> Account:
    account = _get_owned(db, user, account_id, "share")
    email = normalize_email(email)
    if not email:
        raise ValueError("Email is required")
    account.authorize_email(email)
    db.commit()
    db.refresh(account)
    return account


def remove_authorized_email(db: Session, user: User, account_id: int, email: str) -> Account:
    account = _get_owned(db, user, account_id, "share")
    email = normalize_email(email)
    account.authorized = [a for a in account.authorized if a.email != email]
    db.commit()
    db.refresh(account)
    return account


def resolve_selected_account(db: Session, user: User) -> Optional[Account]:
    """The user's selected account, provided they can still access it."""
    db_user = db.get(User, user.id)
    if not db_user or db_user.selected_account_id is None:
        return None
    account = db.get(Account, db_user.selected_account_id)
    if not account or not can_access(account, db_user):
        return None
    return account


def account_out(account: Account) -> dict:
    return {
        "id": account.id,
        "account_name": account.account_name,
        "merchant_id": account.merchant_id,
        "user_id": account.user_id,
        "authorized_emails": account.authorized_emails,
        "is_active": account.is_active,
        "created_at": account.created_at.isoformat() if account.created_at else None,
        "updated_at": account.updated_at.isoformat() if account.updated_at else None,
    }
