"""
Merchant catalog tests.

Covers product/status reconciliation (id and offer id matching, the
``online:xx:yy:`` channel prefix), approval status resolution, search and
pagination over the cached catalog, and upstream error handling.
"""
import asyncio

import pytest

from merchantdesk.services.merchant_service import (
    PLACEHOLDER_IMAGE,
    MerchantAuthError,
    MerchantPermissionError,
    MerchantService,
    build_status_map,
    find_status_for_product,
    format_product,
    merge_catalog,
    normalize_product_key,
    paginate,
    resolve_approval_status,
)
from merchantdesk.utils import cache

MERCHANT = "123456"


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _product(n, **extra):
    product = {
        "id": f"online:en:US:SKU{n}",
        "offerId": f"SKU{n}",
        "title": f"Blue Widget {n}",
        "description": f"A sturdy widget, model {n}",
        "brand": "Acme",
        "imageLink": f"https://cdn.example.com/{n}.jpg",
        "feedLabel": "US",
        "availability": "in stock",
    }
    product.update(extra)
    return product


def _status(product_id, status="approved", issues=None):
    entry = {
        "productId": product_id,
        "destinationStatuses": [{"destination": "Shopping ads", "status": status}],
    }
    if issues is not None:
        entry["itemLevelIssues"] = issues
    return entry


# ---------------------------------------------------------------------------
# Key matching
# ---------------------------------------------------------------------------

def test_normalize_product_key_strips_channel_prefix():
    assert normalize_product_key(" Online:EN:us:SKU1 ") == "online:en:us:sku1"
    assert normalize_product_key("online:en:US:SKU1", strip_prefix=True) == "sku1"
    assert normalize_product_key("SKU1", strip_prefix=True) == "sku1"
    assert normalize_product_key(None) is None
    assert normalize_product_key("   ") is None


def test_status_found_by_full_id_stripped_id_or_offer_id():
    status_map = build_status_map([
        _status("online:en:US:SKU1"),
        _status("SKU2", status="disapproved"),
        _status("online:de:DE:SKU3", status="pending"),
    ])

    assert find_status_for_product(_product(1), status_map)["productId"] == "online:en:US:SKU1"
    # Status keyed without a prefix, product carries one
    assert find_status_for_product(_product(2), status_map)["productId"] == "SKU2"
    # Only the offer id lines up
    by_offer = {"id": "local:xx:SKU3", "offerId": "SKU3"}
    assert find_status_for_product(by_offer, status_map)["productId"] == "online:de:DE:SKU3"
    assert find_status_for_product(_product(9), status_map) is None
    assert find_status_for_product(None, status_map) is None


def test_status_entries_without_product_id_are_ignored():
    status_map = build_status_map([{"destinationStatuses": []}, _status("SKU1")])
    assert set(status_map) == {"sku1"}


# ---------------------------------------------------------------------------
# Approval status
# ---------------------------------------------------------------------------

def test_shopping_destination_wins():
    entry = {
        "productId": "SKU1",
        "destinationStatuses": [
            {"destination": "SurfacesAcrossGoogle", "status": "disapproved"},
            {"destination": "Shopping ads", "status": "approved"},
        ],
    }
    assert resolve_approval_status(entry) == "approved"


def test_first_destination_used_when_no_shopping_destination():
    entry = {
        "productId": "SKU1",
        "destinationStatuses": [
            {"destination": "SurfacesAcrossGoogle", "status": "pending"},
            {"destination": "DisplayAds", "status": "approved"},
        ],
    }
    assert resolve_approval_status(entry) == "pending"


def test_status_value_normalization():
    for raw, expected in [
        ("Approved", "approved"),
        ("active", "approved"),
        ("Under Review", "pending"),
        ("DISAPPROVED", "disapproved"),
        ("not_approved", "disapproved"),
    ]:
        entry = {"productId": "x", "destinationStatuses": [{"destination": "Shopping", "status": raw}]}
        assert resolve_approval_status(entry) == expected, raw


def test_item_issues_decide_when_destinations_are_silent():
    blocking = {"productId": "x", "itemLevelIssues": [{"severity": "error", "description": "Missing GTIN"}]}
    by_servability = {"productId": "x", "itemLevelIssues": [{"servability": "disapproved"}]}
    advisory = {"productId": "x", "itemLevelIssues": [{"severity": "warning"}]}

    assert resolve_approval_status(blocking) == "disapproved"
    assert resolve_approval_status(by_servability) == "disapproved"
    assert resolve_approval_status(advisory) == "pending"
    assert resolve_approval_status({"productId": "x", "itemLevelIssues": []}) == "pending"


def test_no_status_entry_is_unknown():
    assert resolve_approval_status(None) == "unknown"
    assert resolve_approval_status({"productId": "x"}) == "unknown"


def test_format_product_fills_placeholders():
    row = format_product({"id": "SKU1"}, None)

    assert row["title"] == "-"
    assert row["description"] == "-"
    assert row["brand"] == "-"
    assert row["image_link"] == PLACEHOLDER_IMAGE
    assert row["availability"] == "unknown"
    assert row["status"] == "unknown"
    assert row["disapproval_reasons"] == []


def test_merge_collects_disapproval_reasons():
    issues = [
        {"severity": "error", "description": "Image too small"},
        {"severity": "warning", "attributeName": "gtin"},
    ]
    catalog = merge_catalog(
        [_product(1)],
        [{"productId": "online:en:US:SKU1", "itemLevelIssues": issues}],
    )

    assert catalog[0]["status"] == "disapproved"
    assert catalog[0]["disapproval_reasons"] == ["Image too small", "gtin"]


def test_paginate_past_the_end():
    items = [{"id": str(i)} for i in range(5)]

    page = paginate(items, page=3, limit=2)
    assert [p["id"] for p in page["products"]] == ["4"]
    assert page["total_pages"] == 3

    beyond = paginate(items, page=4, limit=2)
    assert beyond["products"] == []
    assert beyond["total"] == 5


# ---------------------------------------------------------------------------
# MerchantService over a fake Content API
# ---------------------------------------------------------------------------

def _seed(content_service, count=5):
    products = [_product(n) for n in range(1, count + 1)]
    statuses = [_status(p["id"]) for p in products[:2]]
    statuses.append(_status("SKU3", status="disapproved", issues=[{"severity": "error", "description": "Bad price"}]))
    content_service.items["products"][MERCHANT] = products
    content_service.items["productstatuses"][MERCHANT] = statuses
    return products


def test_get_products_pages_through_both_feeds(content_service, connector):
    _seed(content_service, count=5)
    service = MerchantService(connector=connector)

    result = _run(service.get_products(MERCHANT, page=1, limit=2))

    assert result["total"] == 5
    assert result["total_pages"] == 3
    assert [p["title"] for p in result["products"]] == ["Blue Widget 1", "Blue Widget 2"]
    # page_size=2 on the connector: 5 products over 3 list calls, 3 statuses over 2
    assert len(content_service.calls_for("products")) == 3
    assert len(content_service.calls_for("productstatuses")) == 2
    first = content_service.calls_for("products")[0]
    assert first["merchant_id"] == MERCHANT
    assert first["fields"].startswith("nextPageToken,resources(")


def test_catalog_served_from_cache(content_service, connector):
    _seed(content_service)
    service = MerchantService(connector=connector)

    _run(service.get_products(MERCHANT))
    calls = len(content_service.calls)
    _run(service.get_products(MERCHANT, page=2, limit=2))
    _run(service.get_stats(MERCHANT))

    assert len(content_service.calls) == calls


def test_expired_cache_entry_is_refetched(content_service, connector):
    _seed(content_service)
    service = MerchantService(connector=connector)
    _run(service.get_products(MERCHANT))
    calls = len(content_service.calls)

    expires, value = cache._cache[f"products:{MERCHANT}"]
    cache._cache[f"products:{MERCHANT}"] = (0, value)
    _run(service.get_products(MERCHANT))

    assert len(content_service.calls) > calls


def test_invalidate_forces_refetch(content_service, connector):
    _seed(content_service)
    service = MerchantService(connector=connector)
    _run(service.get_products(MERCHANT))

    assert service.invalidate(MERCHANT) is True
    assert service.invalidate(MERCHANT) is False
    content_service.items["products"][MERCHANT].append(_product(99))

    assert _run(service.get_products(MERCHANT))["total"] == 6


def test_search_is_case_insensitive_over_title_description_brand_id(content_service, connector):
    products = _seed(content_service)
    products[3]["brand"] = "Globex"
    service = MerchantService(connector=connector)

    assert _run(service.get_products(MERCHANT, search="GLOBEX"))["total"] == 1
    # Surrounding whitespace in the query is ignored
    assert _run(service.get_products(MERCHANT, search="  globex "))["total"] == 1
    assert _run(service.get_products(MERCHANT, search="model 2"))["total"] == 1
    assert _run(service.get_products(MERCHANT, search="sku5"))["total"] == 1
    assert _run(service.get_products(MERCHANT, search="   "))["total"] == 5
    assert _run(service.get_products(MERCHANT, search="nothing-like-this"))["total"] == 0


def test_stats_count_every_status(content_service, connector):
    _seed(content_service, count=5)
    service = MerchantService(connector=connector)

    stats = _run(service.get_stats(MERCHANT))

    assert stats == {
        "total_products": 5,
        "approved_products": 2,
        "pending_products": 0,
        "disapproved_products": 1,
        "approval_rate": "40.0%",
    }


def test_get_product_by_id(content_service, connector):
    _seed(content_service)
    service = MerchantService(connector=connector)

    product = _run(service.get_product(MERCHANT, "ONLINE:en:US:SKU3"))
    assert product["status"] == "disapproved"
    assert product["disapproval_reasons"] == ["Bad price"]
    assert _run(service.get_product(MERCHANT, "nope")) is None


def test_empty_catalog(connector):
    service = MerchantService(connector=connector)

    page = _run(service.get_products(MERCHANT, page=1, limit=50))
    assert page == {"products": [], "total": 0, "page": 1, "limit": 50, "total_pages": 0}
    assert _run(service.get_stats(MERCHANT))["approval_rate"] == "0.0%"


def test_merchant_id_required(connector):
    with pytest.raises(ValueError):
        _run(MerchantService(connector=connector).load_catalog(""))


# ---------------------------------------------------------------------------
# Upstream failures
# ---------------------------------------------------------------------------

def test_auth_error_raises_and_drops_cache(content_service, connector, http_error):
    service = MerchantService(connector=connector)
    cache.set_cached(f"products:{MERCHANT}", [{"id": "stale"}], seconds=-1)
    content_service.errors["products"].append(http_error(401, "unauthorized"))

    with pytest.raises(MerchantAuthError):
        _run(service.get_products(MERCHANT))
    assert f"products:{MERCHANT}" not in cache._cache


def test_permission_error_raises(content_service, connector, http_error):
    content_service.errors["products"].append(http_error(403, "forbidden"))

    with pytest.raises(MerchantPermissionError):
        _run(MerchantService(connector=connector).get_stats(MERCHANT))


def test_other_errors_yield_empty_page_and_are_not_cached(content_service, connector, http_error):
    _seed(content_service)
    content_service.errors["products"].append(http_error(400, "bad request"))
    service = MerchantService(connector=connector)

    assert _run(service.get_products(MERCHANT))["total"] == 0
    # The next read goes back upstream
    assert _run(service.get_products(MERCHANT))["total"] == 5


def test_transient_errors_are_retried(content_service, connector, http_error):
    _seed(content_service)
    content_service.errors["products"].append(http_error(503, "backend error"))

    result = _run(MerchantService(connector=connector).get_products(MERCHANT))

    assert result["total"] == 5
    assert connector.retry_count == 1


def test_status_feed_failure_leaves_statuses_unknown(content_service, connector, http_error):
    _seed(content_service)
    content_service.errors["productstatuses"].append(http_error(400, "bad request"))

    result = _run(MerchantService(connector=connector).get_products(MERCHANT))

    assert result["total"] == 5
    assert {p["status"] for p in result["products"]} == {"unknown"}


def test_scheduled_purge_drops_only_expired_entries():
    from merchantdesk.scheduler import purge_catalog_cache

    cache.set_cached("products:1", [], seconds=-1)
    cache.set_cached("products:2", [], seconds=600)

    _run(purge_catalog_cache())

    assert set(cache._cache) == {"products:2"}
