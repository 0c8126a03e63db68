"""Email to merchant ID mapping API (admins only)."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from merchantdesk.api.deps import require_admin
from merchantdesk.models.base import get_db
from merchantdesk.services import email_mapping_service
from merchantdesk.services.email_mapping_service import mapping_out

router = APIRouter(
    prefix="/api/email-mappings",
    tags=["email-mappings"],
    dependencies=[Depends(require_admin)],
)


class EmailMappingRequest(BaseModel):
    email: str = ""
    merchant_ids: List[str | int] = []


@router.post("")
async def create_or_update_mapping(body: EmailMappingRequest, db: Session = Depends(get_db)):
    try:
        mapping = email_mapping_service.upsert_mapping(db, body.email, body.merchant_ids)
    except email_mapping_service.MappingValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {
        "success": True,
        "message": "Email mapping created/updated successfully",
        "mapping": mapping_out(mapping),
    }


@router.get("")
async def list_mappings(db: Session = Depends(get_db)):
    mappings = email_mapping_service.list_mappings(db)
    return {"success": True, "mappings": [mapping_out(m) for m in mappings]}


@router.get("/{email}")
async def get_mapping(email: str, db: Session = Depends(get_db)):
    mapping = email_mapping_service.get_mapping(db, email)
    if not mapping:
        raise HTTPException(status_code=404, detail="No mapping found for this email")
    return {"success": True, "mapping": mapping_out(mapping)}
