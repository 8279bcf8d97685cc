"""
Inventory API Routes - Stock Items and Movements
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledgerbook.core.database import get_db
from ledgerbook.models import StockItem
from ledgerbook.schemas import (
    StockItemCreate, StockItemResponse, StockMovementCreate, StockMovementResponse
)
from ledgerbook.services.stock_service import StockService, is_low_stock, is_out_of_stock

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def _item_response(item: StockItem) -> StockItemResponse:
    return StockItemResponse.model_validate(item).model_copy(update={
        "is_low_stock": is_low_stock(item),
        "is_out_of_stock": is_out_of_stock(item)
    })


# ==================== ITEMS ====================

@router.get("/items", response_model=List[StockItemResponse])
async def list_items(db: Session = Depends(get_db)):
    """List all stock items with their stock signals"""
    return [_item_response(item) for item in StockService(db).get_all()]


@router.post("/items", response_model=StockItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(item_data: StockItemCreate, db: Session = Depends(get_db)):
    """Create a new stock item"""
    item = StockService(db).create(item_data)
    db.commit()
    return _item_response(item)


@router.get("/items/{item_id}", response_model=StockItemResponse)
async def get_item(item_id: int, db: Session = Depends(get_db)):
    """Get stock item by ID"""
    item = StockService(db).get_by_id(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Stock item not found")
    return _item_response(item)


@router.get("/low-stock", response_model=List[StockItemResponse])
async def list_low_stock(db: Session = Depends(get_db)):
    """Items at or below their reorder level"""
    return [_item_response(item) for item in StockService(db).get_low_stock()]


@router.get("/out-of-stock", response_model=List[StockItemResponse])
async def list_out_of_stock(db: Session = Depends(get_db)):
    """Items with nothing (or less than nothing) on hand"""
    return [_item_response(item) for item in StockService(db).get_out_of_stock()]


# ==================== MOVEMENTS ====================

@router.post("/items/{item_id}/movements", response_model=StockMovementResponse,
             status_code=status.HTTP_201_CREATED)
async def record_movement(
    item_id: int,
    movement_data: StockMovementCreate,
    db: Session = Depends(get_db)
):
    """Record a purchase, sale, adjustment or return against an item"""
    movement = StockService(db).record_movement(
        item_id,
        movement_data.kind,
        movement_data.quantity,
        movement_data.reference_type,
        movement_data.reference_id,
        movement_data.notes
    )
    db.commit()
    return movement


@router.get("/movements", response_model=List[StockMovementResponse])
async def list_movements(
    item_id: Optional[int] = None,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """Recent stock movements, optionally for one item"""
    return StockService(db).get_movements(item_id, limit)
