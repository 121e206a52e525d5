# Overview: User accounts, credential checks and push token registration.

"""
User service.

Passwords are stored as bcrypt hashes and never returned. There is no
session or token layer: login answers with the user record and the clients
keep it (see DESIGN.md).
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, ROLE_MANAGER, ROLE_COMPANY, ROLE_COURIER
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry


# Accounts seeded by `flask system init` on an empty database
DEFAULT_USERS = [
    ("gestor", "123", ROLE_MANAGER),
    ("empresa", "123", ROLE_COMPANY),
    ("empresaa", "123", ROLE_COMPANY),
    ("repartidor", "123", ROLE_COURIER),
]


def hash_password(password: str) -> str:
    if not password:
        raise ValidationError("password cannot be blank")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"id_usuario": user_id})
    return user


def list_users(role: str | None = None) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.id.asc()).all()


def authenticate(username: str | None, password: str | None) -> User | None:
    if not username or not password:
        return None
    user = db.session.query(User).filter_by(username=username.strip()).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def _ensure_username_free(username: str, exclude_user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.username == username)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise ConflictError(f"Username '{username}' already exists")


def create_user(patch: dict, password: str) -> User:
    def _op():
        _ensure_username_free(patch["username"])
        user = User(
            username=patch["username"],
            password_hash=hash_password(password),
            role=patch["role"],
            phone=patch.get("phone"),
            payment_card=patch.get("payment_card"),
        )
        db.session.add(user)
        db.session.commit()
        return user

    return run_with_retry(_op)


USER_MUTABLE_FIELDS = {"username", "phone", "payment_card", "role"}


def update_user(user_id: int, patch: dict, password: str | None = None) -> User:
    def _op():
        user = get_user(user_id)
        if "username" in patch:
            _ensure_username_free(patch["username"], exclude_user_id=user.id)
        for k, v in patch.items():
            if k in USER_MUTABLE_FIELDS:
                setattr(user, k, v)
        if password:
            user.password_hash = hash_password(password)
        db.session.commit()
        return user

    return run_with_retry(_op)


def delete_user(user_id: int) -> None:
    """
    Delete a user account.

    Orders keep their manager/courier ids and name snapshots.
    """
    def _op():
        user = get_user(user_id)
        db.session.delete(user)
        db.session.commit()

    run_with_retry(_op)


def set_push_token(user_id: int, token: str | None) -> User:
    def _op():
        user = get_user(user_id)
        user.push_token = (token or "").strip() or None
        db.session.commit()
        return user

    return run_with_retry(_op)


def seed_default_users() -> list[User]:
    """Create the default accounts when the users table is empty."""
    if db.session.query(User.id).first() is not None:
        return []
    created = []
    for username, password, role in DEFAULT_USERS:
        user = User(username=username, password_hash=hash_password(password), role=role,
                    phone="00000000", payment_card="0000")
        db.session.add(user)
        created.append(user)
    db.session.commit()
    return created
