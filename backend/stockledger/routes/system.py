# backend/stockledger/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Customer, InventoryItem, LedgerTransaction
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        customer_count = db.session.query(Customer).count()
        item_count = db.session.query(InventoryItem).count()
        transaction_count = db.session.query(LedgerTransaction).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "customers": customer_count,
                "inventory_items": item_count,
                "transactions": transaction_count,
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


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: Database reachable
    - 503: Database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging. Exposes no secrets or paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
