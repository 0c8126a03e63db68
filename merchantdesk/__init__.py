"""MerchantDesk: Google Merchant Center account dashboard API."""
__version__ = "1.0.0"
