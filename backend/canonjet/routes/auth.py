# backend/canonjet/routes/auth.py
"""
Login.

There is no session layer: a successful login returns the user record
(never the password) and the mobile client keeps it.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import user_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    username = data.get("usuario")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "usuario and password required"}), 400

    user = user_service.authenticate(str(username), str(password))
    if user is None:
        current_app.logger.info("Failed login for %r", username)
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify(user.to_dict()), 200
