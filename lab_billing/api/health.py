"""
Health check endpoint.

Used by load balancers and monitoring to verify the
service is up and can reach its database.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lab_billing.logging_config import get_logger
from lab_billing.models.base import get_db

logger = get_logger("api.health")

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return service health including database connectivity.

    A failing database does not fail the endpoint; it reports
    "degraded" so the caller can tell the two apart.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as exc:
        logger.warning("health_database_unreachable", extra={"error": str(exc)})
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "lab-billing-ledger",
        "database": db_status,
    }
