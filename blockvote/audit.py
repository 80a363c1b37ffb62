import logging
from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session

from .models import AdminUser, AuditLog


logger = logging.getLogger(__name__)


class AuditRecorder(Protocol):
    def record(
        self,
        actor_type: str,
        action: str,
        resource_type: str,
        details: Optional[dict[str, Any]] = None,
        user_id: Optional[int] = None,
    ) -> None: ...


class SqlAuditRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record(self, actor_type, action, resource_type, details=None, user_id=None):
        self.db.add(
            AuditLog(
                user_id=user_id,
                user_type=actor_type,
                action=action,
                resource_type=resource_type,
                details=details,
            )
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise


def safe_record(recorder: AuditRecorder, actor_type, action, resource_type, details=None, user_id=None) -> bool:
    """Record an audit event; failures are logged and never raised."""
    try:
        recorder.record(actor_type, action, resource_type, details, user_id=user_id)
        return True
    except Exception:
        logger.exception("Error logging audit event %s", action)
        return False


def list_audit_logs(db: Session, page: int = 1, limit: int = 50):
    total = db.query(AuditLog).count()
    rows = (
        db.query(AuditLog, AdminUser.username)
        .outerjoin(AdminUser, AuditLog.user_id == AdminUser.id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total
