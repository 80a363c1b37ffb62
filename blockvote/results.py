"""
Results aggregation.

Counts come straight from verified vote rows of the election's active
candidates, and ``total_votes`` is the sum of those counts rather than a
stored counter.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from .database import get_by_id
from .errors import ElectionNotFound
from .ledger import VERIFIED
from .models import Candidate, Election, Vote


def compute_percentage(count: int, total: int) -> Optional[float]:
    if not total:
        return None
    value = Decimal(count * 100) / Decimal(total)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def candidate_vote_counts(db: Session, election_id: int):
    vote_count = func.count(Vote.id).label("vote_count")
    return (
        db.query(Candidate, vote_count)
        .outerjoin(
            Vote,
            and_(
                Vote.candidate_id == Candidate.id,
                Vote.election_id == Candidate.election_id,
                Vote.verification_status == VERIFIED,
            ),
        )
        .filter(Candidate.election_id == election_id, Candidate.is_active.is_(True))
        .group_by(Candidate.id)
        .all()
    )


def get_results(db: Session, election_id: int) -> dict:
    if get_by_id(db, Election, election_id) is None:
        raise ElectionNotFound(election_id)

    rows = sorted(candidate_vote_counts(db, election_id), key=lambda row: (-row[1], row[0].id))
    total_votes = sum(count for _, count in rows)
    candidates = [
        {
            "id": candidate.id,
            "name": candidate.name,
            "party": candidate.party,
            "photo_url": candidate.photo_url,
            "vote_count": count,
            "percentage": compute_percentage(count, total_votes),
        }
        for candidate, count in rows
    ]
    return {"election_id": election_id, "total_votes": total_votes, "candidates": candidates}
