"""Production order endpoints."""
from typing import Optional

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, CurrentActor
from pchart.models.production import ProductionOrderStatus
from pchart.schemas.production import (
    ProductionOrderCreate, ProductionOrderUpdate, ProductionOrderResponse, ProductionOrderDetail,
    ProductionOrderListResponse, ProductionOrderExists, OperationResponse,
)
from pchart.services.lock_service import LockService
from pchart.services.production_order_service import ProductionOrderService, ordered_operations


router = APIRouter()


@router.get("", response_model=ProductionOrderListResponse)
async def list_production_orders(
    db: DB,
    actor: CurrentActor,
    status_filter: Optional[ProductionOrderStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Search PO number, lot number or item"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    orders, total = await ProductionOrderService(db).list_orders(
        status=status_filter.value if status_filter else None,
        search=search,
        skip=skip,
        limit=limit,
    )
    return ProductionOrderListResponse(
        items=[ProductionOrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=ProductionOrderDetail, status_code=status.HTTP_201_CREATED)
async def create_production_order(data: ProductionOrderCreate, db: DB, actor: CurrentActor):
    """Create an order with one operation per configured step (admin only)."""
    order = await ProductionOrderService(db).create(data, actor)
    detail = ProductionOrderDetail.model_validate(order)
    detail.operations = [OperationResponse.model_validate(op) for op in ordered_operations(order)]
    return detail


@router.get("/exists/{po_number}", response_model=ProductionOrderExists)
async def production_order_exists(po_number: str, db: DB, actor: CurrentActor):
    return ProductionOrderExists(
        po_number=po_number,
        exists=await ProductionOrderService(db).exists(po_number),
    )


@router.get("/{po_number}", response_model=ProductionOrderDetail)
async def get_production_order(po_number: str, db: DB, actor: CurrentActor):
    """Order with its operations, defect ledgers and lock status for the caller."""
    order = await ProductionOrderService(db).get_by_po_number(po_number)
    detail = ProductionOrderDetail.model_validate(order)
    detail.operations = [OperationResponse.model_validate(op) for op in ordered_operations(order)]
    detail.lock = await LockService(db).status_of(order, actor)
    return detail


@router.put("/{po_number}", response_model=ProductionOrderDetail)
async def update_production_order(po_number: str, data: ProductionOrderUpdate, db: DB, actor: CurrentActor):
    """Update lot number, quantity or item name (admin only)."""
    order = await ProductionOrderService(db).update(po_number, data, actor)
    detail = ProductionOrderDetail.model_validate(order)
    detail.operations = [OperationResponse.model_validate(op) for op in ordered_operations(order)]
    detail.lock = await LockService(db).status_of(order, actor)
    return detail
