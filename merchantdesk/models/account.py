"""
Merchant Center account models

An Account links a Merchant Center ID to an owning user. Other users reach
it through its authorized emails.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from merchantdesk.models.base import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    account_name = Column(String, nullable=False)
    merchant_id = Column(String(32), index=True, nullable=False)
    # Owner; the same merchant ID may be linked once per user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    authorized = relationship(
        "AccountAuthorizedEmail",
        back_populates="account",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "merchant_id", name="uq_account_user_merchant"),
    )

    @property
    def authorized_emails(self) -> list[str]:
        return [a.email for a in self.authorized]

    def has_authorized_email(self, email: str) -> bool:
        return email in self.authorized_emails

    def authorize_email(self, email: str) -> bool:
        """Add email to the authorized list. Returns False if already present."""
        if self.has_authorized_email(email):
            return False
        self.authorized.append(AccountAuthorizedEmail(email=email))
        return True

    def __repr__(self):
        return f"<Account {self.merchant_id} - {self.account_name}>"


class AccountAuthorizedEmail(Base):
    __tablename__ = "account_authorized_emails"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    email = Column(String, index=True, nullable=False)

    account = relationship("Account", back_populates="authorized")

    __table_args__ = (
        UniqueConstraint("account_id", "email", name="uq_account_authorized_email"),
    )
