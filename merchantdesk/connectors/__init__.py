"""Upstream API connectors for MerchantDesk"""

from merchantdesk.connectors.base_connector import BaseConnector
from merchantdesk.connectors.merchant_center_connector import MerchantCenterConnector

__all__ = [
    "BaseConnector",
    "MerchantCenterConnector",
]
