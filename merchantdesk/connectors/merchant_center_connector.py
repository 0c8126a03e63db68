"""
Google Merchant Center data connector
Pages through the Content API v2.1 product and product-status feeds
for any merchant account the service account can see.
"""
import asyncio
from typing import Any, Dict, List, Optional
from google.oauth2 import service_account
from googleapiclient.discovery import build
from merchantdesk.connectors.base_connector import BaseConnector
from merchantdesk.config import get_settings
from merchantdesk.utils.credentials import get_service_account_email
from merchantdesk.utils.logger import log
from merchantdesk.utils.retry import http_status

CONTENT_SCOPE = "https://www.googleapis.com/auth/content"

# Only basic fields are served by products.list; status, issues and
# categories come from productstatuses.list.
PRODUCT_FIELDS = "resources(id,offerId,title,imageLink,description,brand,feedLabel,availability)"
STATUS_FIELDS = "resources(productId,destinationStatuses,itemLevelIssues)"


class MerchantCenterConnector(BaseConnector):
    """Connector for Google Merchant Center"""

    def __init__(self, service=None, page_size: Optional[int] = None, page_delay: Optional[float] = None):
        super().__init__("Google Merchant Center")
        settings = get_settings()
        self.credentials_path = settings.google_service_account_path
        self.page_size = page_size or settings.merchant_page_size
        self.page_delay = settings.merchant_page_delay_seconds if page_delay is None else page_delay
        self.service = service

    async def connect(self) -> bool:
        """Build the Content API client from the service-account key"""
        try:
            credentials = service_account.Credentials.from_service_account_file(
                self.credentials_path,
                scopes=[CONTENT_SCOPE]
            )
            self.service = build('content', 'v2.1', credentials=credentials, cache_discovery=False)
            log.info("Connected to Google Merchant Center")
            return True
        except Exception as e:
            log.error(f"Failed to connect to Merchant Center: {str(e)}")
            return False

    async def validate_connection(self) -> bool:
        """Make sure a Content API client exists"""
        if self.service is None:
            return await self.connect()
        return True

    async def _ensure_service(self):
        if not await self.validate_connection():
            raise ConnectionError("Merchant Center client is not available (check service account key)")
        return self.service

    async def _paginate(self, resource: str, merchant_id: str, fields: str) -> List[Dict]:
        """Collect every resource from a paged list endpoint"""
        service = await self._ensure_service()
        collection = getattr(service, resource)()
        items: List[Dict] = []
        page_token = None

        while True:
            request = collection.list(
                merchantId=merchant_id,
                maxResults=self.page_size,
                pageToken=page_token,
                fields=f"nextPageToken,{fields}",
            )
            result = await self._call(request.execute, operation_name=f"{resource}.list") or {}

            batch = result.get('resources', [])
            items.extend(batch)
            log.debug(f"{resource}.list returned {len(batch)} resources for merchant {merchant_id}")

            page_token = result.get('nextPageToken')
            if not page_token:
                break

            # Spacing between pages to stay under the API rate limit
            if self.page_delay:
                await asyncio.sleep(self.page_delay)

        return items

    async def list_products(self, merchant_id: str) -> List[Dict]:
        """Fetch all products (field-filtered) for a merchant"""
        products = await self._paginate("products", merchant_id, PRODUCT_FIELDS)
        log.info(f"Fetched {len(products)} products from Merchant Center {merchant_id}")
        return products

    async def list_product_statuses(self, merchant_id: str) -> List[Dict]:
        """Fetch all product statuses (destination statuses and item issues)"""
        statuses = await self._paginate("productstatuses", merchant_id, STATUS_FIELDS)
        log.info(f"Fetched {len(statuses)} product statuses from Merchant Center {merchant_id}")
        return statuses

    async def check_access(self, merchant_id: str) -> bool:
        """
        Probe whether the service account can read a merchant account.

        Lists a single product id; any failure means "not accessible".
        """
        try:
            service = await self._ensure_service()
            log.info(f"Checking access for Merchant ID {merchant_id}")
            request = service.products().list(
                merchantId=merchant_id,
                maxResults=1,
                fields="resources/id",
            )
            await self._call(request.execute, operation_name="products.list access check", max_attempts=1)
            log.info(f"Merchant ID {merchant_id} is accessible")
            return True
        except Exception as e:
            status = http_status(e)
            if status in (401, 403):
                sa_email = get_service_account_email(self.credentials_path)
                log.warning(
                    f"Merchant ID {merchant_id} access denied ({status}): the service account has no access. "
                    f"Add {sa_email} as an admin user in Merchant Center "
                    f"(merchants.google.com > account {merchant_id} > Settings > Users)"
                )
            elif status == 404:
                log.warning(f"Merchant ID {merchant_id} not found (404); verify the ID is correct")
            else:
                log.warning(f"Merchant ID {merchant_id} access check failed with code {status}: {e}")
            return False

    async def get_account_name(self, merchant_id: str) -> str:
        """Best-effort display name: first product's feed label, else a generic name"""
        try:
            service = await self._ensure_service()
            request = service.products().list(
                merchantId=merchant_id,
                maxResults=1,
                fields="resources/feedLabel",
            )
            result = await self._call(request.execute, operation_name="products.list feed label")
            resources = (result or {}).get('resources') or []
            if resources and resources[0].get('feedLabel'):
                return resources[0]['feedLabel']
        except Exception as e:
            log.debug(f"Could not read feed label for {merchant_id}: {e}")

        return f"GMC Account {merchant_id}"

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["connected"] = self.service is not None
        return status
