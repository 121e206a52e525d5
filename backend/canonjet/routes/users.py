# Overview: Flask API routes for user accounts; parses input and returns JSON responses.

# backend/canonjet/routes/users.py
from flask import Blueprint, request

from ..models import User
from ..services import user_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_user,
    validate_payload,
)

USER_POLICY = ModelValidationPolicy(
    writable_fields={"usuario", "rol", "telefono", "tarjeta"},
    required_on_create={"usuario", "password", "rol"},
    aliases={
        "usuario": "username",
        "rol": "role",
        "telefono": "phone",
        "tarjeta": "payment_card",
    },
    # password is hashed by the service, never written through the patch
    ignored_fields={"id", "password"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/usuarios")


@users_bp.get("")
def list_users():
    """List users, optionally filtered with ?rol=gestor|empresa|repartidor."""
    role = request.args.get("rol")
    return {"usuarios": [u.to_dict() for u in user_service.list_users(role)]}


@users_bp.get("/<int:user_id>")
def get_user(user_id: int):
    return user_service.get_user(user_id).to_dict()


@users_bp.post("")
def create_user():
    data = request.get_json(silent=True) or {}
    patch = validate_payload(model=User, payload=data, policy=USER_POLICY, partial=False)
    enforce_rules_user(patch)

    user = user_service.create_user(patch, str(data["password"]))
    return {"id": user.id, "usuario": user.to_dict()}, 201


@users_bp.put("/<int:user_id>")
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    patch = validate_payload(model=User, payload=data, policy=USER_POLICY, partial=True)
    enforce_rules_user(patch)

    password = data.get("password")
    if password is not None and not isinstance(password, str):
        raise ValidationError("password must be a string")

    user = user_service.update_user(user_id, patch, password=password or None)
    return user.to_dict()


@users_bp.delete("/<int:user_id>")
def delete_user(user_id: int):
    user_service.delete_user(user_id)
    return {"mensaje": "Usuario eliminado", "id": user_id}


@users_bp.post("/<int:user_id>/token")
def register_push_token(user_id: int):
    """Register (or clear, with an empty token) the Expo push token of a device."""
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if token is not None and not isinstance(token, str):
        raise ValidationError("token must be a string")

    user = user_service.set_push_token(user_id, token)
    return {"mensaje": "Token guardado", "usuario": user.to_dict()}
