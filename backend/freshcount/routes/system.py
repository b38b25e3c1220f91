# backend/freshcount/routes/system.py
"""
System health and version endpoints.

/api/health answers 503 when the database cannot be queried, so load
balancers and uptime checks can tell a dead store from a live API.
"""

import sys
import time
from dataclasses import asdict, dataclass, field

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, StockMovement, User
from ..time_utils import to_utc_z, utcnow

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__, url_prefix="/api")


@dataclass
class DatabaseHealth:
    status: str
    latency_ms: float
    details: dict = field(default_factory=dict)
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["error"] is None:
            del data["error"]
        return data


def check_database_health() -> DatabaseHealth:
    """
    Check database connectivity and basic queries.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "users": db.session.query(User).count(),
            "products": db.session.query(Product).count(),
            "stock_movements": db.session.query(StockMovement).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return DatabaseHealth(status="healthy", latency_ms=round(elapsed_ms, 2), details=details)
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return DatabaseHealth(
            status="unhealthy",
            latency_ms=round(elapsed_ms, 2),
            error="Database error",
        )


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()

    response = {
        "status": "OK" if database_health.healthy else "unavailable",
        "message": "FreshCount API is running",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health.to_dict()},
    }
    return response, (200 if database_health.healthy else 503)


@system_bp.get("/version")
def version():
    """
    Non-sensitive deployment information.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
