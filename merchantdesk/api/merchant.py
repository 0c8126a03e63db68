"""
Merchant catalog API

Product listing, approval stats and LLM listing optimization for the
user's selected merchant account.
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from merchantdesk.api.deps import get_merchant_service, get_optimize_service, require_selected_account
from merchantdesk.models.account import Account
from merchantdesk.services.merchant_service import (
    MerchantAuthError,
    MerchantPermissionError,
    MerchantService,
)
from merchantdesk.services.optimize_service import (
    LLMUnavailableError,
    OptimizationError,
    OptimizeService,
)

router = APIRouter(prefix="/api/merchant", tags=["merchant"])


class OptimizeRequest(BaseModel):
    title: str = ""
    description: str = ""


def _upstream_error(exc: Exception) -> HTTPException:
    return HTTPException(status_code=403, detail=str(exc))


async def _optimize(optimizer: OptimizeService, title: str, description: str) -> dict:
    # Provider SDK calls block; keep them off the event loop
    try:
        return await asyncio.to_thread(optimizer.optimize_title_description, title, description)
    except LLMUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except OptimizationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.get("/products")
async def get_products(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=250),
    search: str = Query("", description="Matches title, description, brand or id"),
    account: Account = Depends(require_selected_account),
    service: MerchantService = Depends(get_merchant_service),
):
    """Paginated, annotated product catalog."""
    try:
        result = await service.get_products(account.merchant_id, page=page, limit=limit, search=search)
    except (MerchantAuthError, MerchantPermissionError) as exc:
        raise _upstream_error(exc)
    return {"success": True, "merchant_id": account.merchant_id, **result}


@router.get("/stats")
async def get_stats(
    account: Account = Depends(require_selected_account),
    service: MerchantService = Depends(get_merchant_service),
):
    """Approval counts for the selected merchant."""
    try:
        stats = await service.get_stats(account.merchant_id)
    except (MerchantAuthError, MerchantPermissionError) as exc:
        raise _upstream_error(exc)
    return {"success": True, "merchant_id": account.merchant_id, "stats": stats}


@router.post("/products/{product_id}/optimize")
async def optimize_product(
    product_id: str,
    account: Account = Depends(require_selected_account),
    service: MerchantService = Depends(get_merchant_service),
    optimizer: OptimizeService = Depends(get_optimize_service),
):
    """Rewrite a catalog product's title and description."""
    try:
        product = await service.get_product(account.merchant_id, product_id)
    except (MerchantAuthError, MerchantPermissionError) as exc:
        raise _upstream_error(exc)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    optimized = await _optimize(optimizer, product["title"], product["description"])
    return {
        "success": True,
        "product_id": product["id"],
        "original": {"title": product["title"], "description": product["description"]},
        "optimized": optimized,
    }


@router.get("/products/{product_id}")
async def get_product(
    product_id: str,
    account: Account = Depends(require_selected_account),
    service: MerchantService = Depends(get_merchant_service),
):
    try:
        product = await service.get_product(account.merchant_id, product_id)
    except (MerchantAuthError, MerchantPermissionError) as exc:
        raise _upstream_error(exc)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "product": product}


@router.post("/optimize")
async def optimize_text(
    body: OptimizeRequest,
    optimizer: OptimizeService = Depends(get_optimize_service),
):
    """Rewrite a supplied title and description."""
    if not body.title.strip() or not body.description.strip():
        raise HTTPException(status_code=400, detail="Title and description required")

    optimized = await _optimize(optimizer, body.title, body.description)
    return {
        "success": True,
        "original": {"title": body.title, "description": body.description},
        "optimized": optimized,
    }


@router.post("/refresh")
async def refresh_catalog(
    account: Account = Depends(require_selected_account),
    service: MerchantService = Depends(get_merchant_service),
):
    """Drop the cached catalog so the next read refetches from Google."""
    cleared = service.invalidate(account.merchant_id)
    return {"success": True, "merchant_id": account.merchant_id, "cleared": cleared}
