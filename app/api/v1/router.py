from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Product master
    products,
    # Receiving
    grn,
    # Bins & suggestion
    wms,
    # Scanner putaway
    putaway,
)


api_router = APIRouter(prefix="/api/v1")

# ==================== Products ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)

# ==================== Goods Receipt Notes (GRN) ====================
api_router.include_router(
    grn.router,
    prefix="/grns",
    tags=["Goods Receipt Notes"]
)

# ==================== WMS (Bins/PutAway Suggestion) ====================
api_router.include_router(
    wms.router,
    prefix="/wms",
    tags=["WMS (Bins/PutAway)"]
)

# ==================== Scanner PutAway ====================
api_router.include_router(
    putaway.router,
    prefix="/putaway",
    tags=["PutAway"]
)
