from __future__ import annotations

from ..extensions import db
from ..money_utils import cents_to_amount
from ..time_utils import to_utc_z, utcnow


ORDER_STATUS_PENDING = "pendiente"
ORDER_STATUS_APPROVED = "aprobado"
ORDER_STATUS_REJECTED = "rechazado"
ORDER_STATUS_DELIVERED = "entregado"

ORDER_STATUSES = {
    ORDER_STATUS_PENDING,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_DELIVERED,
}

ORDER_KIND_LOCAL = "local"
ORDER_KIND_DELIVERY = "domicilio"

ORDER_KINDS = {ORDER_KIND_LOCAL, ORDER_KIND_DELIVERY}


class Order(db.Model):
    """
    Order header (pedido).

    manager_name and courier_name are snapshots copied when the order is
    created / approved, so reports stay stable if a user is renamed or deleted.

    grand_total_cents is the at-creation estimate (lines + delivery fee);
    delivered_total_cents is filled at delivery from the delivered quantities.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_delivered", "status", "delivered_at"),
        db.Index("ix_orders_manager_created", "manager_id", "created_at"),
        db.Index("ix_orders_courier_created", "courier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    manager_id = db.Column(db.Integer, nullable=False)
    manager_name = db.Column(db.String(64), nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    order_kind = db.Column(db.String(16), nullable=False)
    schedule = db.Column(db.String(64), nullable=True)

    # Amounts in cents
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    line_items_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    delivered_total_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    courier_id = db.Column(db.Integer, nullable=True)
    courier_name = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} manager_id={self.manager_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "id_gestor": self.manager_id,
            "nombre_gestor": self.manager_name,
            "nombre_cliente": self.customer_name,
            "numero_cliente": self.customer_phone,
            "direccion": self.address,
            "tipo_pedido": self.order_kind,
            "horario": self.schedule,
            "precio_mensajeria": cents_to_amount(self.delivery_fee_cents),
            "estado": self.status,
            "total_productos": cents_to_amount(self.line_items_total_cents),
            "total_general": cents_to_amount(self.grand_total_cents),
            "total_entregado": cents_to_amount(self.delivered_total_cents),
            "id_repartidor": self.courier_id,
            "nombre_repartidor": self.courier_name,
            "fecha_creacion": to_utc_z(self.created_at),
            "fecha_aprobado": to_utc_z(self.approved_at),
            "fecha_rechazado": to_utc_z(self.rejected_at),
            "fecha_entregado": to_utc_z(self.delivered_at),
        }


class OrderLine(db.Model):
    """
    Line item on an order (detalle).

    unit_cost_cents is a snapshot of the item's base cost when the order was
    created; margin_cents = unit_price_cents - unit_cost_cents.
    """
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Reference into inventory_items, not ownership
    product_id = db.Column(db.Integer, nullable=False, index=True)

    quantity_requested = db.Column(db.Integer, nullable=False)
    quantity_delivered = db.Column(db.Integer, nullable=False, default=0)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    margin_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "id_pedido": self.order_id,
            "id_producto": self.product_id,
            "cantidad_pedida": self.quantity_requested,
            "cantidad_entregada": self.quantity_delivered,
            "precio_base": cents_to_amount(self.unit_cost_cents),
            "precio_vendido": cents_to_amount(self.unit_price_cents),
            "ganancia": cents_to_amount(self.margin_cents),
        }
