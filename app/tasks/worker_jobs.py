import logging

from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.email_service import process_pending_emails

logger = logging.getLogger(__name__)


def process_email_queue(limit: int = 50) -> dict:
    """Retry queued/failed emails. Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            result = process_pending_emails(db, limit=limit)
        except (ProgrammingError, OperationalError):
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        if result["processed"]:
            logger.info("email queue: %s", result)
        return result
    finally:
        db.close()
