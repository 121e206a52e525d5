# Overview: Inventory ledger and inventory item maintenance; encapsulates business logic and database work.

# backend/canonjet/services/inventory_service.py

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    InventoryItem,
    StockMovement,
    Order,
    OrderLine,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_APPROVED,
    MOVEMENT_RESERVE,
    MOVEMENT_RETURN,
    MOVEMENT_ADJUST,
)
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- InventoryItem.stock_count is a stored counter, not derived.
- Every change is ONE `UPDATE ... SET stock_count = stock_count + :delta`
  statement, so the read-modify-write happens inside storage and concurrent
  orders on the same item cannot lose updates. Nothing caches stock in memory.
- Every change appends a StockMovement in the same DB transaction.

Policy:
- Negative stock is accepted unless ALLOW_NEGATIVE_STOCK is false, in which
  case a decrement is conditional on stock_count >= quantity.
- Movements tied to an order line are unique per (order_line_id, kind): a
  replayed reservation/return raises instead of moving stock twice.

Transactions:
- *_inner functions never commit; they join the caller's transaction
  (order creation, delivery, import).
- Public functions own their transaction: retry + commit.
"""


class InsufficientStockError(ConflictError):
    """Raised when a decrement would take stock below zero and the policy forbids it."""


def get_item(item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found", details={"id_producto": item_id})
    return item


def get_stock(item_id: int) -> dict:
    """Current base cost and stock count, read straight from storage."""
    row = (
        db.session.query(InventoryItem.base_cost_cents, InventoryItem.stock_count)
        .filter(InventoryItem.id == item_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Inventory item {item_id} not found", details={"id_producto": item_id})
    return {"base_cost_cents": int(row.base_cost_cents), "stock_count": int(row.stock_count)}


def _negative_stock_allowed() -> bool:
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", True))


def _apply_stock_delta(
    *,
    item_id: int,
    delta: int,
    kind: str,
    order_id: int | None = None,
    order_line_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """Core counter update + movement row. No retry, no commit."""
    query = db.session.query(InventoryItem).filter(InventoryItem.id == item_id)
    if delta < 0 and not _negative_stock_allowed():
        query = query.filter(InventoryItem.stock_count >= -delta)

    updated = query.update(
        {InventoryItem.stock_count: InventoryItem.stock_count + delta},
        synchronize_session=False,
    )
    if updated == 0:
        current = (
            db.session.query(InventoryItem.stock_count)
            .filter(InventoryItem.id == item_id)
            .scalar()
        )
        if current is None:
            raise NotFoundError(f"Inventory item {item_id} not found", details={"id_producto": item_id})
        raise InsufficientStockError(
            f"Insufficient stock for item {item_id}",
            details={"id_producto": item_id, "disponible": int(current), "solicitado": -delta},
        )

    stock_after = (
        db.session.query(InventoryItem.stock_count)
        .filter(InventoryItem.id == item_id)
        .scalar()
    )

    movement = StockMovement(
        item_id=item_id,
        order_id=order_id,
        order_line_id=order_line_id,
        kind=kind,
        quantity_delta=delta,
        stock_after=stock_after,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def decrement_stock_inner(
    *,
    item_id: int,
    quantity: int,
    kind: str = MOVEMENT_RESERVE,
    order_id: int | None = None,
    order_line_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    return _apply_stock_delta(
        item_id=item_id,
        delta=-quantity,
        kind=kind,
        order_id=order_id,
        order_line_id=order_line_id,
        note=note,
    )


def increment_stock_inner(
    *,
    item_id: int,
    quantity: int,
    kind: str = MOVEMENT_RETURN,
    order_id: int | None = None,
    order_line_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    return _apply_stock_delta(
        item_id=item_id,
        delta=quantity,
        kind=kind,
        order_id=order_id,
        order_line_id=order_line_id,
        note=note,
    )


def set_stock_inner(*, item_id: int, stock_count: int, note: str | None = None) -> StockMovement | None:
    """
    Set an absolute count (inventory edit, import) as an ADJUST movement.

    The delta is computed against the locked row, then applied through the
    same UPDATE path as order movements.
    """
    item = get_item(item_id, lock=True)
    current = (
        db.session.query(InventoryItem.stock_count)
        .filter(InventoryItem.id == item.id)
        .scalar()
    )
    delta = stock_count - int(current)
    if delta == 0:
        return None
    return _apply_stock_delta(item_id=item_id, delta=delta, kind=MOVEMENT_ADJUST, note=note)


def decrement_stock(item_id: int, quantity: int, *, note: str | None = None) -> int:
    """Take `quantity` units out of stock. Returns the stock after the change."""
    def _op():
        movement = decrement_stock_inner(
            item_id=item_id, quantity=quantity, kind=MOVEMENT_ADJUST, note=note
        )
        db.session.commit()
        return movement.stock_after

    return run_with_retry(_op)


def increment_stock(item_id: int, quantity: int, *, note: str | None = None) -> int:
    """Put `quantity` units back into stock. Returns the stock after the change."""
    def _op():
        movement = increment_stock_inner(
            item_id=item_id, quantity=quantity, kind=MOVEMENT_ADJUST, note=note
        )
        db.session.commit()
        return movement.stock_after

    return run_with_retry(_op)


def list_movements(item_id: int, limit: int = 100) -> list[StockMovement]:
    get_item(item_id)
    return (
        db.session.query(StockMovement)
        .filter_by(item_id=item_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# INVENTORY ITEM MAINTENANCE
# =============================================================================

ITEM_MUTABLE_FIELDS = {"name", "description", "base_cost_cents", "image"}


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.id.desc()).all()


def _create_item_inner(patch: dict) -> InventoryItem:
    item = InventoryItem(
        name=patch["name"],
        description=patch.get("description"),
        base_cost_cents=patch.get("base_cost_cents") or 0,
        stock_count=0,
        image=patch.get("image"),
    )
    db.session.add(item)
    db.session.flush()

    initial = patch.get("stock_count") or 0
    if initial:
        _apply_stock_delta(item_id=item.id, delta=initial, kind=MOVEMENT_ADJUST, note="Initial stock")
    return item


def _update_item_inner(item: InventoryItem, patch: dict, *, note: str | None = None) -> InventoryItem:
    for k, v in patch.items():
        if k in ITEM_MUTABLE_FIELDS:
            setattr(item, k, v)
    if "stock_count" in patch:
        set_stock_inner(item_id=item.id, stock_count=patch["stock_count"], note=note or "Inventory edit")
    db.session.flush()
    return item


def create_item(patch: dict) -> InventoryItem:
    def _op():
        item = _create_item_inner(patch)
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(item_id: int, patch: dict) -> InventoryItem:
    def _op():
        item = get_item(item_id, lock=True)
        _update_item_inner(item, patch)
        db.session.commit()
        return item

    return run_with_retry(_op)


def _open_order_reference_count(item_id: int) -> int:
    return (
        db.session.query(OrderLine.id)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(
            OrderLine.product_id == item_id,
            Order.status.in_([ORDER_STATUS_PENDING, ORDER_STATUS_APPROVED]),
        )
        .count()
    )


def delete_item(item_id: int) -> str | None:
    """
    Delete an item that no open order still references.

    Delivered/rejected history keeps its product_id; readers left-join.
    Returns the image filename so the caller can discard the file.
    """
    def _op():
        item = get_item(item_id, lock=True)
        open_refs = _open_order_reference_count(item_id)
        if open_refs:
            raise ConflictError(
                "Inventory item is referenced by open orders",
                details={"id_producto": item_id, "lineas_abiertas": open_refs},
            )
        image = item.image
        db.session.delete(item)
        db.session.commit()
        return image

    return run_with_retry(_op)
