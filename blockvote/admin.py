from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .audit import SqlAuditRecorder, list_audit_logs, safe_record
from .auth import require_admin
from .database import get_by_id, get_db
from .errors import ElectionNotFound
from .ledger import count_verified_votes
from .models import AdminUser, Candidate, Election
from .schemas import AuditLogItem, AuditLogPage, Dashboard, DashboardStats, ElectionPatch, MessageResponse


router = APIRouter(prefix="/api/admin", tags=["admin"])


def _audit_item(log, username) -> AuditLogItem:
    return AuditLogItem(
        id=log.id,
        username=username,
        user_type=log.user_type,
        action=log.action,
        resource_type=log.resource_type,
        details=log.details,
        timestamp=log.timestamp,
    )


@router.patch("/elections/{election_id}", response_model=MessageResponse)
def patch_election(
    election_id: int, req: ElectionPatch, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)
):
    changes = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    election = get_by_id(db, Election, election_id)
    if election is None:
        raise ElectionNotFound(election_id)
    for field, value in changes.items():
        setattr(election, field, value)
    if election.end_date < election.start_date:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not precede start_date")
    db.commit()

    details = {k: v.isoformat() if hasattr(v, "isoformat") else v for k, v in changes.items()}
    details["admin_api"] = True
    safe_record(SqlAuditRecorder(db), "admin", "UPDATE_ELECTION", "election", details, user_id=admin.id)
    return MessageResponse(message="Election updated successfully")


@router.get("/dashboard", response_model=Dashboard)
def dashboard(db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)):
    stats = DashboardStats(
        total_elections=db.query(Election).count(),
        active_elections=db.query(Election).filter(Election.status == "active").count(),
        total_candidates=db.query(Candidate).filter(Candidate.is_active.is_(True)).count(),
        total_votes=count_verified_votes(db),
    )
    rows, _ = list_audit_logs(db, page=1, limit=10)
    return Dashboard(stats=stats, recent_activity=[_audit_item(log, username) for log, username in rows])


@router.get("/audit-logs", response_model=AuditLogPage)
def audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin),
):
    rows, total = list_audit_logs(db, page=page, limit=limit)
    items = [_audit_item(log, username) for log, username in rows]
    return AuditLogPage(items=items, page=page, page_size=limit, total=total)
