"""
Stock Service - Stock Items and Movements
"""
from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import func, case, desc
from decimal import Decimal
import logging

from ledgerbook.core.exceptions import InvalidQuantity, ItemNotFound, InvalidMovementKind
from ledgerbook.models import (
    StockItem, StockMovement, MovementKind, STOCK_INCREASING_KINDS
)
from ledgerbook.schemas import StockItemCreate

logger = logging.getLogger(__name__)


def is_low_stock(item: StockItem) -> bool:
    return 0 < item.current_stock <= item.reorder_level


def is_out_of_stock(item: StockItem) -> bool:
    return item.current_stock <= 0


def signed_delta(kind: MovementKind, quantity: Decimal) -> Decimal:
    # TODO: confirm whether "return" means a supplier return (stock out) or a customer return (stock in)
    return quantity if kind.value in STOCK_INCREASING_KINDS else -quantity


class StockService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, item_id: int) -> Optional[StockItem]:
        return self.db.query(StockItem).filter(StockItem.id == item_id).first()

    def get_all(self) -> List[StockItem]:
        return self.db.query(StockItem).order_by(StockItem.name).all()

    def get_low_stock(self) -> List[StockItem]:
        """Items at or below their reorder level but not yet out of stock"""
        return self.db.query(StockItem).filter(
            StockItem.current_stock > 0,
            StockItem.current_stock <= StockItem.reorder_level
        ).order_by(StockItem.name).all()

    def get_out_of_stock(self) -> List[StockItem]:
        return self.db.query(StockItem).filter(
            StockItem.current_stock <= 0
        ).order_by(StockItem.name).all()

    def _get_or_raise(self, item_id: int, for_update: bool = False) -> StockItem:
        query = self.db.query(StockItem).filter(StockItem.id == item_id)
        if for_update:
            query = query.with_for_update()
        item = query.first()
        if not item:
            raise ItemNotFound(f"Stock item {item_id} not found", field="item_id")
        return item

    def create(self, item_data: StockItemCreate) -> StockItem:
        opening_stock = item_data.opening_stock or Decimal("0")
        item = StockItem(
            name=item_data.name,
            sku=item_data.sku,
            hsn_code=item_data.hsn_code,
            unit=item_data.unit,
            sale_price=item_data.sale_price,
            purchase_price=item_data.purchase_price,
            tax_rate=item_data.tax_rate,
            opening_stock=opening_stock,
            current_stock=opening_stock,
            reorder_level=item_data.reorder_level or Decimal("0")
        )
        self.db.add(item)
        self.db.flush()
        return item

    @staticmethod
    def _parse_kind(kind) -> MovementKind:
        try:
            return MovementKind(getattr(kind, "value", kind))
        except ValueError:
            allowed = ", ".join(k.value for k in MovementKind)
            raise InvalidMovementKind(f"Unknown movement kind '{kind}'. Expected one of: {allowed}", field="kind")

    @staticmethod
    def _validate_quantity(quantity) -> Decimal:
        if quantity is None:
            raise InvalidQuantity("Quantity is required", field="quantity")
        try:
            quantity = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
        except ArithmeticError:
            raise InvalidQuantity(f"Quantity must be a number, got {quantity!r}", field="quantity")
        if not quantity.is_finite() or quantity <= 0:
            raise InvalidQuantity(f"Quantity must be greater than zero, got {quantity}", field="quantity")
        return quantity

    def record_movement(self, item_id: int, kind, quantity: Decimal,
                        reference_type: str = None, reference_id: str = None,
                        notes: str = None) -> StockMovement:
        """
        Append a movement and apply its signed quantity to the item.

        purchase/adjustment add stock, sale/return remove it. Stock may go
        negative; oversells are logged, not blocked.
        """
        movement_kind = self._parse_kind(kind)
        quantity = self._validate_quantity(quantity)

        with self.db.begin_nested():
            item = self._get_or_raise(item_id, for_update=True)
            movement = StockMovement(
                item_id=item.id,
                kind=movement_kind.value,
                quantity=quantity,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id is not None else None,
                notes=notes
            )
            self.db.add(movement)
            item.current_stock = item.current_stock + signed_delta(movement_kind, quantity)
            self.db.flush()

        if item.current_stock < 0:
            logger.warning(
                f"Stock for '{item.name}' (item {item.id}) is negative after {movement_kind.value} "
                f"of {quantity}: {item.current_stock}"
            )
        return movement

    def recompute_stock(self, item_id: int) -> Decimal:
        """Opening stock plus the signed sum of the movement log"""
        item = self._get_or_raise(item_id)
        signed_total = self.db.query(
            func.sum(
                case(
                    (StockMovement.kind.in_(STOCK_INCREASING_KINDS), StockMovement.quantity),
                    else_=-StockMovement.quantity
                )
            )
        ).filter(
            StockMovement.item_id == item_id
        ).scalar() or Decimal("0")
        return Decimal(item.opening_stock) + Decimal(signed_total)

    def verify_stock(self, item_id: int) -> bool:
        return self._get_or_raise(item_id).current_stock == self.recompute_stock(item_id)

    def get_movements(self, item_id: int = None, limit: int = 100) -> List[StockMovement]:
        query = self.db.query(StockMovement)
        if item_id is not None:
            self._get_or_raise(item_id)
            query = query.filter(StockMovement.item_id == item_id)
        return query.order_by(desc(StockMovement.created_at), desc(StockMovement.id)).limit(limit).all()
