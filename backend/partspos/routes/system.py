# backend/partspos/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, SaleSequence, User
from ..services.sale_number_service import SEQUENCE_NAME
from partspos.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    """Database connectivity plus a row count of the core tables."""
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "products": db.session.query(Product).count(),
            "sales": db.session.query(Sale).count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


def check_sale_sequence_health() -> dict:
    """
    The counter row is created on the first sale, so a missing row is
    reported as degraded, not unhealthy.
    """
    try:
        seq = db.session.get(SaleSequence, SEQUENCE_NAME)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Sale sequence health check failed")
        return {"status": "unhealthy", "error": "Sale sequence unreadable"}

    if seq is None:
        return {"status": "degraded", "warning": "Sale sequence not initialized yet"}
    return {"status": "healthy", "details": {"next_number": seq.next_number}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "sale_sequence": check_sale_sequence_health(),
    }
    statuses = {c["status"] for c in checks.values()}

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
