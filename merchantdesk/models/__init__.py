"""Database models for MerchantDesk"""

from merchantdesk.models.user import User, UserSession
from merchantdesk.models.account import Account, AccountAuthorizedEmail
from merchantdesk.models.email_mapping import EmailMerchantMapping

__all__ = [
    "User",
    "UserSession",
    "Account",
    "AccountAuthorizedEmail",
    "EmailMerchantMapping",
]
