import pytest

from merchantdesk.services import email_mapping_service
from merchantdesk.services.email_mapping_service import MappingValidationError, clean_merchant_ids


def test_clean_merchant_ids():
    assert clean_merchant_ids([" 111 ", 222, "abc", None, "", "3-3"]) == ["111", "222"]


def test_upsert_validates_input(db):
    with pytest.raises(MappingValidationError):
        email_mapping_service.upsert_mapping(db, "", ["111"])
    with pytest.raises(MappingValidationError):
        email_mapping_service.upsert_mapping(db, "a@example.com", [])
    with pytest.raises(MappingValidationError):
        email_mapping_service.upsert_mapping(db, "a@example.com", "111")
    with pytest.raises(MappingValidationError):
        email_mapping_service.upsert_mapping(db, "a@example.com", ["abc"])


def test_upsert_replaces_existing_mapping(db):
    first = email_mapping_service.upsert_mapping(db, "A@Example.com", ["111"])
    second = email_mapping_service.upsert_mapping(db, "a@example.com ", ["222", "333"])

    assert first.id == second.id
    assert second.email == "a@example.com"
    assert second.merchant_ids == ["222", "333"]
    assert len(email_mapping_service.list_mappings(db)) == 1


def test_inactive_mappings_are_hidden(db):
    mapping = email_mapping_service.upsert_mapping(db, "a@example.com", ["111"])
    mapping.is_active = False
    db.commit()

    assert email_mapping_service.get_mapping(db, "a@example.com") is None
    assert email_mapping_service.list_mappings(db) == []

    # Upserting reactivates it
    email_mapping_service.upsert_mapping(db, "a@example.com", ["111"])
    assert email_mapping_service.get_mapping(db, "a@example.com") is not None
