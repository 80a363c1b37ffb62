"""
Ledger Store and Vote Record Store.

Both tables are append-only: nothing in this module updates or deletes a
written transaction or vote record. Writes only ``flush``; the caller owns
the unit of work and decides when to commit or roll back.
"""
import json
import logging
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import TRANSACTION_HASH_LENGTH, TRANSACTION_HASH_PREFIX
from .crypto_utils import random_hex
from .database import get_by_id
from .errors import StorageUnavailable
from .models import Candidate, Election, LedgerTransaction, Vote


logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
VERIFIED = "verified"


def default_hash_factory() -> str:
    nbytes = (TRANSACTION_HASH_LENGTH - len(TRANSACTION_HASH_PREFIX)) // 2
    return random_hex(nbytes, prefix=TRANSACTION_HASH_PREFIX)


def new_transaction_hash(
    factory: Callable[[], str] = default_hash_factory,
    capacity: int = TRANSACTION_HASH_LENGTH,
) -> str:
    """Draw a transaction hash from ``factory`` sized to the ledger column.

    Over-long values are truncated, which is logged as exceptional; values
    shorter than the column are refused.
    """
    value = factory()
    if len(value) > capacity:
        logger.warning(
            "Generated transaction hash has %d chars, ledger holds %d; truncating", len(value), capacity
        )
        value = value[:capacity]
    if len(value) != capacity:
        raise ValueError(f"transaction hash must be {capacity} characters, got {len(value)}")
    return value


def storage_error_code(exc: SQLAlchemyError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    for attr in ("sqlite_errorname", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    if orig.args and isinstance(orig.args[0], int):
        return str(orig.args[0])
    return type(orig).__name__


def storage_error_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def is_data_too_long(exc: SQLAlchemyError) -> bool:
    message = storage_error_message(exc).lower()
    return (
        "ck_transaction_hash_length" in message
        or "data too long" in message
        or "value too long" in message
        or storage_error_code(exc) == "1406"
    )


def is_unique_violation(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, IntegrityError):
        return False
    message = storage_error_message(exc).lower()
    return "unique" in message or "duplicate" in message


class SqlVotingStore:
    """Election/candidate reader plus ledger and vote writers over one session."""

    def __init__(self, db: Session):
        self.db = db

    def get_election(self, election_id: int) -> Optional[Election]:
        try:
            return get_by_id(self.db, Election, election_id)
        except SQLAlchemyError as exc:
            raise StorageUnavailable(storage_error_message(exc)) from exc

    def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        try:
            return get_by_id(self.db, Candidate, candidate_id)
        except SQLAlchemyError as exc:
            raise StorageUnavailable(storage_error_message(exc)) from exc

    def insert_transaction(
        self,
        transaction_hash: str,
        election_id: int,
        voter_address: str,
        candidate_id: int,
        payload,
        signature: str,
        status: str = CONFIRMED,
    ) -> int:
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        record = LedgerTransaction(
            transaction_hash=transaction_hash,
            election_id=election_id,
            voter_address=voter_address,
            candidate_id=candidate_id,
            vote_data=payload,
            signature=signature,
            status=status,
        )
        self.db.add(record)
        self.db.flush()
        return record.id

    def insert_vote(
        self,
        transaction_id: int,
        election_id: int,
        candidate_id: int,
        voter_token: str,
        status: str = VERIFIED,
    ) -> int:
        record = Vote(
            transaction_id=transaction_id,
            election_id=election_id,
            candidate_id=candidate_id,
            voter_id=voter_token,
            verification_status=status,
        )
        self.db.add(record)
        self.db.flush()
        return record.id

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()


def count_verified_votes(db: Session, election_id: Optional[int] = None) -> int:
    q = db.query(func.count(Vote.id)).filter(Vote.verification_status == VERIFIED)
    if election_id is not None:
        q = q.filter(Vote.election_id == election_id)
    return q.scalar() or 0


def count_transactions(db: Session, election_id: Optional[int] = None) -> int:
    q = db.query(func.count(LedgerTransaction.id))
    if election_id is not None:
        q = q.filter(LedgerTransaction.election_id == election_id)
    return q.scalar() or 0


def find_orphaned_transactions(db: Session) -> list[LedgerTransaction]:
    """Confirmed transactions that have no vote record."""
    return (
        db.query(LedgerTransaction)
        .outerjoin(Vote, Vote.transaction_id == LedgerTransaction.id)
        .filter(LedgerTransaction.status == CONFIRMED, Vote.id.is_(None))
        .order_by(LedgerTransaction.id.asc())
        .all()
    )


def recent_transactions(db: Session, limit: int = 20):
    return (
        db.query(LedgerTransaction, Election.title, Candidate.name)
        .join(Election, LedgerTransaction.election_id == Election.id)
        .join(Candidate, LedgerTransaction.candidate_id == Candidate.id)
        .order_by(LedgerTransaction.timestamp.desc(), LedgerTransaction.id.desc())
        .limit(limit)
        .all()
    )
