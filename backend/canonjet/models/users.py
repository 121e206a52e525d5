from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ROLE_MANAGER = "gestor"
ROLE_COMPANY = "empresa"
ROLE_COURIER = "repartidor"

USER_ROLES = {ROLE_MANAGER, ROLE_COMPANY, ROLE_COURIER}


class User(db.Model):
    """
    Accounts for the three roles of the operation.

    gestor submits orders, empresa approves/rejects them and receives the
    aggregate notifications, repartidor delivers approved orders.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    payment_card = db.Column(db.String(64), nullable=True)

    # Expo push token registered by the mobile client
    push_token = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "usuario": self.username,
            "rol": self.role,
            "telefono": self.phone,
            "tarjeta": self.payment_card,
            "push_habilitado": bool(self.push_token),
            "fecha_creacion": to_utc_z(self.created_at),
        }
