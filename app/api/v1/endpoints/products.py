from fastapi import APIRouter, HTTPException, status

from app.api.deps import DB
from app.schemas.product import ProductCreate, ProductResponse
from app.services.product_service import ProductService


router = APIRouter()


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    data: ProductCreate,
    db: DB,
):
    """Create a product master entry."""
    service = ProductService(db)
    try:
        product = await service.create_product(data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return ProductResponse.model_validate(product)


@router.get(
    "/{sku}",
    response_model=ProductResponse,
)
async def get_product(
    sku: str,
    db: DB,
):
    """Get a product by SKU."""
    service = ProductService(db)
    product = await service.get_product_by_sku(sku)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )

    return ProductResponse.model_validate(product)
