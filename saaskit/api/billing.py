from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from saaskit.api.deps import get_db
from saaskit.schemas.billing import CatalogProductRead, ListResponse, PriceRead, ProductRead
from saaskit.services.billing import products as product_service
from saaskit.services.common import list_response

router = APIRouter(prefix="/billing", tags=["billing"])


# ── Catalog ──────────────────────────────────────────────


@router.get("/products", response_model=ListResponse[CatalogProductRead])
def list_catalog(
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """Active products with their active prices, for the pricing page."""
    rows, total = product_service.list_catalog(db, order_by, order_dir, limit, offset)
    items = [
        CatalogProductRead(
            **ProductRead.model_validate(product).model_dump(),
            prices=[PriceRead.model_validate(price) for price in product_prices],
        )
        for product, product_prices in rows
    ]
    return list_response(items, limit, offset, total=total)
