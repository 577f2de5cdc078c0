# backend/stockpost/routes/system.py
"""
System health endpoint.

No company context: this is what load balancers and deploy checks poll.
A database failure answers 503 with the error logged, never raised.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Company, Sale, StockLot, Variant
from stockpost.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def check_database_health() -> dict:
    """Row counts that prove the schema is reachable, plus the query latency."""
    started = time.perf_counter()
    try:
        details = {
            "companies": db.session.query(func.count(Company.id)).scalar(),
            "variants": db.session.query(func.count(Variant.id)).scalar(),
            "active_stock_lots": db.session.query(func.count(StockLot.id))
            .filter(StockLot.is_active.is_(True))
            .scalar(),
            "sales": db.session.query(func.count(Sale.id)).scalar(),
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}

    return {"status": "healthy", "latency_ms": _elapsed_ms(started), "details": details}


@system_bp.get("/health")
def health():
    """
    200 when the database answers, 503 otherwise.

    Also echoes the configured STOCK_ENFORCEMENT mode so operators can see
    whether oversold sales are being accepted.
    """
    started = time.perf_counter()
    database = check_database_health()

    body = {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(started),
        "stock_enforcement": current_app.config.get("STOCK_ENFORCEMENT"),
        "checks": {"database": database},
    }
    return body, 200 if database["status"] == "healthy" else 503
