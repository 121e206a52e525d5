from __future__ import annotations

from ..extensions import db
from ..money_utils import cents_to_amount
from ..time_utils import to_utc_z, utcnow


MOVEMENT_RESERVE = "reserve"    # order created: stock leaves the shelf
MOVEMENT_RETURN = "return"      # delivery shortfall: unsold units come back
MOVEMENT_RELEASE = "release"    # order rejected: the whole reservation comes back
MOVEMENT_ADJUST = "adjust"      # manual edit or import

MOVEMENT_KINDS = {MOVEMENT_RESERVE, MOVEMENT_RETURN, MOVEMENT_RELEASE, MOVEMENT_ADJUST}


class InventoryItem(db.Model):
    """
    Sellable item with its current stock count and base cost.

    stock_count is a mutable counter, changed only through the ledger
    functions in services.inventory_service (single UPDATE statements).
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    base_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_count = db.Column(db.Integer, nullable=False, default=0)

    # Generated filename under IMAGES_DIR
    image = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.stock_count}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.name,
            "descripcion": self.description,
            "precio_base": cents_to_amount(self.base_cost_cents),
            "cantidad": self.stock_count,
            "imagen": self.image,
            "fecha_creacion": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every stock_count mutation.

    One movement of each kind per order line: the unique constraint makes a
    replayed reservation or return fail instead of moving stock twice.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.UniqueConstraint("order_line_id", "kind", name="uq_stock_movements_line_kind"),
        db.Index("ix_stock_movements_item_occurred", "item_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Plain references: items may be deleted, their history stays
    item_id = db.Column(db.Integer, nullable=False)
    order_id = db.Column(db.Integer, nullable=True, index=True)
    order_line_id = db.Column(db.Integer, nullable=True)

    kind = db.Column(db.String(16), nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "order_id": self.order_id,
            "order_line_id": self.order_line_id,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
