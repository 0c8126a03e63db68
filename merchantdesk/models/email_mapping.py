"""
Email to merchant ID mapping

Lets account discovery find Merchant Center IDs for a user by email.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from merchantdesk.models.base import Base


class EmailMerchantMapping(Base):
    __tablename__ = "email_merchant_mappings"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    merchant_ids = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<EmailMerchantMapping {self.email} -> {self.merchant_ids}>"
