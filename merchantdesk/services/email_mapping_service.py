"""Email to merchant ID mappings used by account discovery."""
import re
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from merchantdesk.models.email_mapping import EmailMerchantMapping
from merchantdesk.services.auth_service import normalize_email
from merchantdesk.utils.logger import log

_NUMERIC_ID = re.compile(r"^\d+$")


class MappingValidationError(ValueError):
    pass


def clean_merchant_ids(merchant_ids: Iterable) -> List[str]:
    """Stringify, trim and keep only numeric IDs (order preserved)."""
    cleaned = []
    for raw in merchant_ids:
        if raw is None:
            continue
        value = str(raw).strip()
        if value and _NUMERIC_ID.match(value):
            cleaned.append(value)
    return cleaned


def upsert_mapping(db: Session, email: str, merchant_ids) -> EmailMerchantMapping:
    if not email or not email.strip():
        raise MappingValidationError("Email is required")
    if not merchant_ids or not isinstance(merchant_ids, (list, tuple)):
        raise MappingValidationError("merchant_ids array is required and must not be empty")

    valid_ids = clean_merchant_ids(merchant_ids)
    if not valid_ids:
        raise MappingValidationError("At least one valid numeric merchant ID is required")

    email = normalize_email(email)
    mapping = db.query(EmailMerchantMapping).filter(EmailMerchantMapping.email == email).first()
    if mapping:
        mapping.merchant_ids = valid_ids
        mapping.is_active = True
    else:
        mapping = EmailMerchantMapping(email=email, merchant_ids=valid_ids, is_active=True)
        db.add(mapping)

    db.commit()
    db.refresh(mapping)
    log.info(f"Created/updated email mapping for {email}: {', '.join(valid_ids)}")
    return mapping


def get_mapping(db: Session, email: str) -> Optional[EmailMerchantMapping]:
    return (
        db.query(EmailMerchantMapping)
        .filter(
            EmailMerchantMapping.email == normalize_email(email),
            EmailMerchantMapping.is_active == True,  # noqa: E712
        )
        .first()
    )


def list_mappings(db: Session) -> List[EmailMerchantMapping]:
    return (
        db.query(EmailMerchantMapping)
        .filter(EmailMerchantMapping.is_active == True)  # noqa: E712
        .order_by(EmailMerchantMapping.created_at.desc(), EmailMerchantMapping.id.desc())
        .all()
    )


def mapping_out(mapping: EmailMerchantMapping) -> dict:
    return {
        "id": mapping.id,
        "email": mapping.email,
        "merchant_ids": list(mapping.merchant_ids or []),
        "is_active": mapping.is_active,
        "created_at": mapping.created_at.isoformat() if mapping.created_at else None,
        "updated_at": mapping.updated_at.isoformat() if mapping.updated_at else None,
    }
