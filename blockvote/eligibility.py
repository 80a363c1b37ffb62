"""
Eligibility checks for a vote: is the election open, and does the candidate
belong to it.

Checks run in a fixed order and the first failing one is reported. For an
election the temporal window is tested before the status, so an election
that has not started reports ``not_started`` even when it is also inactive.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .database import utcnow
from .errors import ElectionNotFound
from .models import Candidate, Election


NOT_STARTED = "not_started"
ENDED = "ended"
INACTIVE = "inactive"

INVALID_CANDIDATE = "invalid_candidate"
CANDIDATE_WRONG_ELECTION = "candidate_wrong_election"
CANDIDATE_INACTIVE = "candidate_inactive"


@dataclass
class EligibilityResult:
    allowed: bool
    election: Election
    evaluated_at: datetime
    reason: Optional[str] = None


@dataclass
class CandidateCheck:
    allowed: bool
    candidate: Optional[Candidate] = None
    reason: Optional[str] = None


def election_window_reason(status: str, start: datetime, end: datetime, now: datetime) -> Optional[str]:
    if now < start:
        return NOT_STARTED
    if now > end:
        return ENDED
    if status != "active":
        return INACTIVE
    return None


def check_eligibility(store, election_id: int, now: Optional[datetime] = None) -> EligibilityResult:
    election = store.get_election(election_id)
    if election is None:
        raise ElectionNotFound(election_id)
    now = now or utcnow()
    reason = election_window_reason(election.status, election.start_date, election.end_date, now)
    return EligibilityResult(allowed=reason is None, election=election, evaluated_at=now, reason=reason)


def check_candidate(store, candidate_id: int, election_id: int) -> CandidateCheck:
    candidate = store.get_candidate(candidate_id)
    if candidate is None:
        return CandidateCheck(allowed=False, reason=INVALID_CANDIDATE)
    if candidate.election_id != election_id:
        return CandidateCheck(allowed=False, candidate=candidate, reason=CANDIDATE_WRONG_ELECTION)
    if not candidate.is_active:
        return CandidateCheck(allowed=False, candidate=candidate, reason=CANDIDATE_INACTIVE)
    return CandidateCheck(allowed=True, candidate=candidate)
