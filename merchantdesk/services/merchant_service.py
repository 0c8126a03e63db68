"""
Merchant catalog service

Reconciles the Content API ``products.list`` and ``productstatuses.list``
feeds into one denormalized product view per merchant, caches it in memory
and serves filtered, paginated pages and approval statistics from the cache.
"""
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from merchantdesk.config import get_settings
from merchantdesk.connectors.merchant_center_connector import MerchantCenterConnector
from merchantdesk.utils import cache
from merchantdesk.utils.logger import log
from merchantdesk.utils.retry import http_status

PLACEHOLDER_IMAGE = "https://via.placeholder.com/60"
MISSING = "-"

_CHANNEL_PREFIX = re.compile(r"^online:[a-z]{2}:[a-z]{2}:")

_APPROVED = {"approved", "fully_approved", "active"}
_PENDING = {"pending", "under_review", "in_review"}
_SHOPPING_DESTINATIONS = {"Shopping ads", "Shopping", "shopping_ads"}
_BLOCKING_SEVERITIES = {"error", "critical"}


class MerchantAuthError(Exception):
    """The service account could not authenticate against the merchant account."""


class MerchantPermissionError(Exception):
    """The service account lacks permissions on the merchant account."""


# ── Matching helpers ────────────────────────────────────────

def normalize_product_key(raw_id: Any, strip_prefix: bool = False) -> Optional[str]:
    """Lowercased, trimmed product key; optionally without the ``online:xx:yy:`` prefix."""
    if raw_id is None:
        return None
    key = str(raw_id).strip().lower()
    if not key:
        return None
    if strip_prefix:
        key = _CHANNEL_PREFIX.sub("", key)
    return key


def build_status_map(statuses: Iterable[Dict]) -> Dict[str, Dict]:
    """Index product statuses under both their full and prefix-stripped keys."""
    status_map: Dict[str, Dict] = {}
    for entry in statuses:
        raw_id = entry.get("productId")
        if not raw_id:
            continue
        full_key = normalize_product_key(raw_id)
        short_key = normalize_product_key(raw_id, strip_prefix=True)
        if full_key:
            status_map[full_key] = entry
        if short_key and short_key != full_key:
            status_map[short_key] = entry
    return status_map


def find_status_for_product(product: Optional[Dict], status_map: Dict[str, Dict]) -> Optional[Dict]:
    """Look a product up by id (full, then stripped), then by offer id."""
    if not product:
        return None

    candidates = []
    if product.get("id"):
        candidates.append(normalize_product_key(product["id"]))
        candidates.append(normalize_product_key(product["id"], strip_prefix=True))
    if product.get("offerId"):
        candidates.append(normalize_product_key(product["offerId"]))

    for key in candidates:
        if key and key in status_map:
            return status_map[key]
    return None


# ── Status resolution ───────────────────────────────────────

def _pick_destination(destinations: List[Dict]) -> Dict:
    for dest in destinations:
        name = dest.get("destination") or ""
        if name in _SHOPPING_DESTINATIONS or "shopping" in name.lower():
            return dest
    return destinations[0]


def normalize_status_value(raw: str) -> str:
    normalized = re.sub(r"\s+", "_", raw.strip().lower())
    if normalized in _APPROVED:
        return "approved"
    if normalized in _PENDING:
        return "pending"
    if "disapproved" in normalized or "not_approved" in normalized:
        return "disapproved"
    return normalized


def resolve_approval_status(product_status: Optional[Dict]) -> str:
    """
    Collapse a productstatuses entry into approved / pending / disapproved.

    Shopping destinations win over others. With no usable destination status,
    item-level issues decide: a blocking issue means disapproved, otherwise
    pending. No status entry at all is "unknown".
    """
    if not product_status:
        return "unknown"

    status = "unknown"
    destinations = product_status.get("destinationStatuses")
    if isinstance(destinations, list) and destinations:
        chosen = _pick_destination(destinations)
        raw = chosen.get("status") or chosen.get("approvalStatus") or chosen.get("state")
        if raw and raw != "unknown":
            status = normalize_status_value(raw)

    issues = product_status.get("itemLevelIssues")
    if status == "unknown" and isinstance(issues, list):
        blocking = any(
            (issue.get("severity") or "").lower() in _BLOCKING_SEVERITIES
            or (issue.get("servability") or "").lower() == "disapproved"
            for issue in issues
        )
        status = "disapproved" if blocking else "pending"

    return status


def disapproval_reasons(product_status: Optional[Dict]) -> List[str]:
    issues = (product_status or {}).get("itemLevelIssues")
    if not isinstance(issues, list):
        return []
    reasons = []
    for issue in issues:
        reason = (
            issue.get("description")
            or issue.get("reason")
            or issue.get("attributeName")
            or issue.get("attribute")
        )
        if reason:
            reasons.append(reason)
    return reasons


def format_product(product: Dict, product_status: Optional[Dict]) -> Dict[str, Any]:
    """Denormalized catalog row for one product."""
    return {
        "id": product.get("id") or MISSING,
        "title": product.get("title") or MISSING,
        "image_link": product.get("imageLink") or PLACEHOLDER_IMAGE,
        "description": product.get("description") or MISSING,
        "brand": product.get("brand") or MISSING,
        "feed_label": product.get("feedLabel") or MISSING,
        # Not served by the products.list field selection
        "product_type": MISSING,
        "google_category": MISSING,
        "status": resolve_approval_status(product_status),
        "availability": product.get("availability") or "unknown",
        "disapproval_reasons": disapproval_reasons(product_status),
    }


def merge_catalog(products: List[Dict], statuses: List[Dict]) -> List[Dict]:
    status_map = build_status_map(statuses)
    return [format_product(p, find_status_for_product(p, status_map)) for p in products]


def matches_search(product: Dict, query: str) -> bool:
    q = query.lower()
    return any(
        q in (product.get(field) or "").lower()
        for field in ("title", "description", "brand", "id")
    )


def paginate(items: List[Dict], page: int, limit: int) -> Dict[str, Any]:
    total = len(items)
    start = (page - 1) * limit
    return {
        "products": items[start:start + limit],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def empty_page(page: int, limit: int) -> Dict[str, Any]:
    return {"products": [], "total": 0, "page": page, "limit": limit, "total_pages": 0}


def empty_stats() -> Dict[str, Any]:
    return {
        "total_products": 0,
        "approved_products": 0,
        "pending_products": 0,
        "disapproved_products": 0,
        "approval_rate": "0.0%",
    }


def _cache_key(merchant_id: str) -> str:
    return f"products:{merchant_id}"


class MerchantService:
    """Cached, merged product catalog per merchant ID"""

    def __init__(self, connector: Optional[MerchantCenterConnector] = None, ttl_seconds: Optional[int] = None):
        self.connector = connector or MerchantCenterConnector()
        self.ttl_seconds = ttl_seconds or get_settings().product_cache_ttl_seconds

    async def _fetch_catalog(self, merchant_id: str) -> List[Dict]:
        products = await self.connector.list_products(merchant_id)

        try:
            statuses = await self.connector.list_product_statuses(merchant_id)
        except Exception as e:
            # Products are still worth showing without approval info
            log.error(f"Status fetch failed for merchant {merchant_id}, statuses left unknown: {e}")
            statuses = []

        catalog = merge_catalog(products, statuses)
        matched = sum(1 for p in catalog if p["status"] != "unknown")
        log.info(
            f"Merged {len(catalog)} products with {len(statuses)} statuses "
            f"for merchant {merchant_id} ({matched} with a known status)"
        )
        return catalog

    async def load_catalog(self, merchant_id: str) -> Optional[List[Dict]]:
        """
        Return the merged catalog, refetching when the cache entry is missing or stale.

        Raises MerchantAuthError / MerchantPermissionError for 401 / 403;
        other upstream failures are logged and yield None.
        """
        if not merchant_id:
            raise ValueError("Merchant ID required")

        cached = cache.get_cached(_cache_key(merchant_id))
        if not cache.is_miss(cached):
            return cached

        log.info(f"Cache expired/invalid for merchant {merchant_id}, fetching from Google API...")
        try:
            catalog = await self._fetch_catalog(merchant_id)
        except Exception as e:
            status = http_status(e)
            if status == 401:
                cache.delete_cached(_cache_key(merchant_id))
                log.error(f"Authentication failed for merchant {merchant_id}: {e}")
                raise MerchantAuthError(
                    f"Authentication failed: service account does not have access to merchant account "
                    f"{merchant_id}. Please check Google API permissions."
                ) from e
            if status == 403:
                log.error(f"Permission denied for merchant {merchant_id}: {e}")
                raise MerchantPermissionError(
                    f"Permission denied: service account does not have required permissions for "
                    f"merchant account {merchant_id}."
                ) from e
            log.error(f"Error fetching catalog for merchant {merchant_id}: {e}")
            return None

        cache.set_cached(_cache_key(merchant_id), catalog, seconds=self.ttl_seconds)
        log.info(f"Cached {len(catalog)} products for merchant {merchant_id}")
        return catalog

    async def get_products(self, merchant_id: str, page: int = 1, limit: int = 50, search: str = "") -> Dict[str, Any]:
        """Filtered, paginated slice of the merchant's catalog."""
        catalog = await self.load_catalog(merchant_id)
        if not catalog:
            return empty_page(page, limit)

        filtered = catalog
        if search and search.strip():
            query = search.strip()
            filtered = [p for p in catalog if matches_search(p, query)]

        result = paginate(filtered, page, limit)
        log.debug(
            f"Returning {len(result['products'])} products "
            f"(page {page}, limit {limit}, total {result['total']}) for merchant {merchant_id}"
        )
        return result

    async def get_product(self, merchant_id: str, product_id: str) -> Optional[Dict]:
        catalog = await self.load_catalog(merchant_id)
        wanted = normalize_product_key(product_id)
        for product in catalog or []:
            if normalize_product_key(product["id"]) == wanted:
                return product
        return None

    async def get_stats(self, merchant_id: str) -> Dict[str, Any]:
        """Approval counts and rate over the whole cached catalog."""
        catalog = await self.load_catalog(merchant_id)
        if not catalog:
            return empty_stats()

        total = len(catalog)
        approved = sum(1 for p in catalog if p["status"] == "approved")
        pending = sum(1 for p in catalog if p["status"] == "pending")
        disapproved = sum(1 for p in catalog if p["status"] == "disapproved")

        return {
            "total_products": total,
            "approved_products": approved,
            "pending_products": pending,
            "disapproved_products": disapproved,
            "approval_rate": f"{approved / total * 100:.1f}%",
        }

    def invalidate(self, merchant_id: str) -> bool:
        return cache.delete_cached(_cache_key(merchant_id))
