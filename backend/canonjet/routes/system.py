# backend/canonjet/routes/system.py
"""
System health endpoint and product image serving.
"""

import time
from flask import Blueprint, current_app, send_from_directory
from ..extensions import db
from ..models import Order, InventoryItem, User
from ..services.image_store import images_dir

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with one count per core table.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        item_count = db.session.query(InventoryItem).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "inventory_items": item_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {"status": database["status"], "checks": {"database": database}}, status_code


@system_bp.get("/images/<path:filename>")
def serve_image(filename: str):
    return send_from_directory(images_dir(), filename)
