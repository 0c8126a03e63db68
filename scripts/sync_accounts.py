#!/usr/bin/env python3
"""
Run merchant account discovery for one or more users from the shell.

    python scripts/sync_accounts.py user@example.com
    python scripts/sync_accounts.py --all
"""
import argparse
import asyncio
import sys
from typing import Optional

from merchantdesk.models.base import SessionLocal, init_db
from merchantdesk.models.user import User
from merchantdesk.services.account_sync_service import sync_user_accounts
from merchantdesk.services.auth_service import normalize_email


def select_users(db, emails: list[str], sync_all: bool) -> list[tuple[str, Optional[User]]]:
    """(label, user) pairs to sync; a user is None when no account matches the email."""
    if sync_all:
        users = db.query(User).filter(User.is_active == True).order_by(User.id).all()  # noqa: E712
        return [(u.email, u) for u in users]
    return [
        (email, db.query(User).filter(User.email == normalize_email(email)).first())
        for email in emails
    ]


async def run(emails: list[str], sync_all: bool) -> int:
    init_db()
    db = SessionLocal()
    failures = 0
    try:
        for email, user in select_users(db, emails, sync_all):
            if user is None:
                print(f"  ✗ {email}: no such user")
                failures += 1
                continue
            result = await sync_user_accounts(db, user)
            marker = "✓" if result.get("success") else "✗"
            print(f"  {marker} {user.email}: {result.get('message')}")
            for account in result.get("accounts", []):
                print(f"      - {account.account_name} ({account.merchant_id})")
            if not result.get("success"):
                failures += 1
    finally:
        db.close()
    return failures


def main():
    parser = argparse.ArgumentParser(description="Discover Merchant Center accounts for users")
    parser.add_argument("emails", nargs="*", help="User emails to sync")
    parser.add_argument("--all", action="store_true", help="Sync every active user")
    args = parser.parse_args()

    if not args.emails and not args.all:
        parser.error("pass at least one email or --all")
    if args.emails and args.all:
        parser.error("pass either emails or --all, not both")

    failures = asyncio.run(run(args.emails, args.all))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
