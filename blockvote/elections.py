from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from .auth import require_admin
from .crypto_utils import generate_blockchain_address
from .database import get_by_id, get_db
from .errors import Conflict, ElectionNotFound, NotFound
from .ledger import VERIFIED, count_transactions
from .models import AdminUser, Candidate, Election, Vote
from .results import candidate_vote_counts, get_results
from .schemas import (
    CandidateCreate,
    CandidateOut,
    CandidateUpdate,
    ElectionCreate,
    ElectionCreated,
    ElectionDetail,
    ElectionOut,
    ElectionResults,
    ElectionUpdate,
    MessageResponse,
)


router = APIRouter(prefix="/api", tags=["elections"])


def _get_election_or_404(db: Session, election_id: int) -> Election:
    election = get_by_id(db, Election, election_id)
    if election is None:
        raise ElectionNotFound(election_id)
    return election


def _check_window(start_date, end_date):
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not precede start_date")


@router.get("/elections", response_model=List[ElectionOut])
def list_elections(db: Session = Depends(get_db)):
    candidate_count = (
        db.query(Candidate.election_id, func.count(Candidate.id).label("n"))
        .filter(Candidate.is_active.is_(True))
        .group_by(Candidate.election_id)
        .subquery()
    )
    vote_count = (
        db.query(Vote.election_id, func.count(Vote.id).label("n"))
        .filter(Vote.verification_status == VERIFIED)
        .group_by(Vote.election_id)
        .subquery()
    )
    rows = (
        db.query(Election, candidate_count.c.n, vote_count.c.n)
        .outerjoin(candidate_count, candidate_count.c.election_id == Election.id)
        .outerjoin(vote_count, vote_count.c.election_id == Election.id)
        .order_by(Election.created_at.desc(), Election.id.desc())
        .all()
    )
    items = []
    for election, n_candidates, n_votes in rows:
        item = ElectionOut.model_validate(election)
        item.candidate_count = n_candidates or 0
        item.vote_count = n_votes or 0
        items.append(item)
    return items


@router.get("/elections/{election_id}", response_model=ElectionDetail)
def get_election(election_id: int, db: Session = Depends(get_db)):
    election = _get_election_or_404(db, election_id)
    candidates = (
        db.query(Candidate)
        .filter(Candidate.election_id == election_id, Candidate.is_active.is_(True))
        .order_by(Candidate.display_order, Candidate.id)
        .all()
    )
    detail = ElectionDetail.model_validate(election)
    detail.candidates = [CandidateOut.model_validate(c) for c in candidates]
    return detail


@router.post("/elections", response_model=ElectionCreated, status_code=status.HTTP_201_CREATED)
def create_election(req: ElectionCreate, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)):
    _check_window(req.start_date, req.end_date)
    election = Election(**req.model_dump(), status="draft", blockchain_address=generate_blockchain_address())
    db.add(election)
    db.commit()
    return ElectionCreated(
        message="Election created successfully", id=election.id, blockchain_address=election.blockchain_address
    )


@router.put("/elections/{election_id}", response_model=MessageResponse)
def update_election(
    election_id: int, req: ElectionUpdate, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)
):
    election = _get_election_or_404(db, election_id)
    _check_window(req.start_date, req.end_date)
    for field, value in req.model_dump().items():
        setattr(election, field, value)
    db.commit()
    return MessageResponse(message="Election updated successfully")


@router.delete("/elections/{election_id}", response_model=MessageResponse)
def delete_election(election_id: int, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)):
    election = _get_election_or_404(db, election_id)
    referenced = count_transactions(db, election_id)
    if referenced:
        raise Conflict(
            "Election has recorded transactions and cannot be deleted",
            {"electionId": election_id, "transactions": referenced},
        )
    db.delete(election)
    db.commit()
    return MessageResponse(message="Election deleted successfully")


@router.get("/elections/{election_id}/candidates", response_model=List[CandidateOut])
def list_candidates(election_id: int, db: Session = Depends(get_db)):
    _get_election_or_404(db, election_id)
    rows = sorted(candidate_vote_counts(db, election_id), key=lambda row: (row[0].display_order, row[0].id))
    items = []
    for candidate, count in rows:
        item = CandidateOut.model_validate(candidate)
        item.vote_count = count
        items.append(item)
    return items


@router.post(
    "/elections/{election_id}/candidates", response_model=CandidateOut, status_code=status.HTTP_201_CREATED
)
def add_candidate(
    election_id: int, req: CandidateCreate, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)
):
    _get_election_or_404(db, election_id)
    candidate = Candidate(election_id=election_id, **req.model_dump())
    db.add(candidate)
    db.commit()
    db.refresh(candidate)
    return candidate


@router.put("/candidates/{candidate_id}", response_model=MessageResponse)
def update_candidate(
    candidate_id: int, req: CandidateUpdate, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)
):
    candidate = get_by_id(db, Candidate, candidate_id)
    if candidate is None:
        raise NotFound("Candidate not found", {"candidateId": candidate_id})
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(candidate, field, value)
    db.commit()
    return MessageResponse(message="Candidate updated successfully")


@router.delete("/candidates/{candidate_id}", response_model=MessageResponse)
def deactivate_candidate(candidate_id: int, db: Session = Depends(get_db), admin: AdminUser = Depends(require_admin)):
    candidate = get_by_id(db, Candidate, candidate_id)
    if candidate is None:
        raise NotFound("Candidate not found", {"candidateId": candidate_id})
    candidate.is_active = False
    db.commit()
    return MessageResponse(message="Candidate deactivated successfully")


@router.get("/elections/{election_id}/results", response_model=ElectionResults)
def election_results(election_id: int, db: Session = Depends(get_db)):
    return get_results(db, election_id)
