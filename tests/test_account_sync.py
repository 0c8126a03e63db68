"""
Merchant account discovery tests.

Discovery reads merchant IDs from the user's email mapping (falling back to
MERCHANT_IDS), keeps the ones the service account can read and links an
Account per ID without duplicating or stealing existing ones.
"""
import asyncio

from merchantdesk.config import get_settings
from merchantdesk.models.account import Account
from merchantdesk.services import account_service, auth_service, email_mapping_service
from merchantdesk.services.account_sync_service import (
    merchant_ids_for_email,
    merchant_ids_from_settings,
    sync_user_accounts,
)


def _run(coro):
    return asyncio.run(coro)


class StubConnector:
    """Answers access checks from a fixed set of readable merchant IDs."""

    def __init__(self, accessible=(), names=None):
        self.accessible = set(accessible)
        self.names = names or {}
        self.checked = []

    async def check_access(self, merchant_id):
        self.checked.append(merchant_id)
        return merchant_id in self.accessible

    async def get_account_name(self, merchant_id):
        return self.names.get(merchant_id, f"GMC Account {merchant_id}")


def _user(db, email="seller@example.com"):
    return auth_service.create_user(db, email, None, "Seller")


# ---------------------------------------------------------------------------
# Merchant ID sources
# ---------------------------------------------------------------------------

def test_merchant_ids_from_settings_accepts_commas_and_colons():
    assert merchant_ids_from_settings("111, 222:333 ,") == ["111", "222", "333"]
    assert merchant_ids_from_settings("") == []
    assert merchant_ids_from_settings("   ") == []


def test_mapping_lookup_is_case_insensitive(db):
    email_mapping_service.upsert_mapping(db, "Seller@Example.com", ["111", 222])
    assert merchant_ids_for_email(db, "seller@EXAMPLE.com") == ["111", "222"]
    assert merchant_ids_for_email(db, "nobody@example.com") == []


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

def test_sync_requires_an_email(db):
    result = _run(sync_user_accounts(db, None, connector=StubConnector()))
    assert result["success"] is False


def test_sync_without_any_merchant_ids(db):
    user = _user(db)
    connector = StubConnector()

    result = _run(sync_user_accounts(db, user, connector=connector))

    assert result["success"] is True
    assert result["accounts"] == []
    assert connector.checked == []


def test_sync_links_only_accessible_valid_ids(db):
    user = _user(db)
    email_mapping_service.upsert_mapping(db, user.email, ["111", "222", "333"])
    connector = StubConnector(accessible={"111", "333"}, names={"111": "US"})

    result = _run(sync_user_accounts(db, user, connector=connector))

    assert result["success"] is True
    assert [a.merchant_id for a in result["accounts"]] == ["111", "333"]
    assert [a.account_name for a in result["accounts"]] == ["US", "GMC Account 333"]
    assert all(a.user_id == user.id for a in result["accounts"])
    assert all(a.authorized_emails == [user.email] for a in result["accounts"])
    db.refresh(user)
    assert user.selected_account_id == result["accounts"][0].id


def test_sync_falls_back_to_configured_ids(db, monkeypatch):
    monkeypatch.setattr(get_settings(), "merchant_ids", "111,abc,111,222")
    user = _user(db)
    connector = StubConnector(accessible={"111", "222"})

    result = _run(sync_user_accounts(db, user, connector=connector))

    assert [a.merchant_id for a in result["accounts"]] == ["111", "222"]
    # Non-numeric and repeated IDs never reach the API
    assert connector.checked == ["111", "222"]


def test_sync_twice_does_not_duplicate(db):
    user = _user(db)
    email_mapping_service.upsert_mapping(db, user.email, ["111", "222"])
    connector = StubConnector(accessible={"111", "222"})

    _run(sync_user_accounts(db, user, connector=connector))
    second = account_service.list_accessible_accounts(db, user)[0]
    account_service.switch_account(db, user, second.id)
    _run(sync_user_accounts(db, user, connector=connector))

    assert db.query(Account).count() == 2
    db.refresh(user)
    assert user.selected_account_id == second.id


def test_sync_reuses_shared_account_without_taking_ownership(db):
    owner = _user(db, "owner@example.com")
    shared = account_service.create_account(db, owner, "Shared", "111")
    account_service.add_authorized_email(db, owner, shared.id, "seller@example.com")
    user = _user(db)
    email_mapping_service.upsert_mapping(db, user.email, ["111"])

    result = _run(sync_user_accounts(db, user, connector=StubConnector(accessible={"111"})))

    assert [a.id for a in result["accounts"]] == [shared.id]
    db.refresh(shared)
    assert shared.user_id == owner.id
    assert db.query(Account).count() == 1


def test_sync_claims_ownerless_shared_account(db):
    orphan = Account(account_name="Orphan", merchant_id="111", user_id=None)
    orphan.authorize_email("seller@example.com")
    db.add(orphan)
    db.commit()
    user = _user(db)
    email_mapping_service.upsert_mapping(db, user.email, ["111"])

    _run(sync_user_accounts(db, user, connector=StubConnector(accessible={"111"})))

    db.refresh(orphan)
    assert orphan.user_id == user.id


def test_sync_adds_email_to_own_account(db):
    user = _user(db)
    account = Account(account_name="Mine", merchant_id="111", user_id=user.id)
    db.add(account)
    db.commit()
    email_mapping_service.upsert_mapping(db, user.email, ["111"])

    _run(sync_user_accounts(db, user, connector=StubConnector(accessible={"111"})))

    db.refresh(account)
    assert account.authorized_emails == [user.email]


def test_sync_reports_failure_instead_of_raising(db):
    class BrokenConnector(StubConnector):
        async def check_access(self, merchant_id):
            raise RuntimeError("network down")

    user = _user(db)
    email_mapping_service.upsert_mapping(db, user.email, ["111"])

    result = _run(sync_user_accounts(db, user, connector=BrokenConnector()))

    assert result["success"] is False
    assert "network down" in result["message"]
