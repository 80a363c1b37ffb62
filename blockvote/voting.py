"""
Vote submission pipeline.

A submission moves through::

    RECEIVED -> ELIGIBILITY_CHECKED -> CANDIDATE_VALIDATED
             -> LEDGER_WRITTEN -> VOTE_RECORDED -> RECEIPT_ISSUED

and ends in REJECTED (election or candidate check failed) or FAILED
(storage error). Rejections and failures raise a ``BlockVoteError`` whose
``state`` is the terminal state. The audit recorder is told about every
terminal outcome but can never change it.

The ledger row and the vote row are written in one unit of work: if the
vote row cannot be written the ledger row is rolled back with it.
"""
import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .audit import AuditRecorder, safe_record
from .config import SECRET_KEY, TRANSACTION_HASH_LENGTH, VOTE_DATA_SAMPLE_LIMIT
from .crypto_utils import derive_voter_token
from .database import id_in_range, utcnow
from .eligibility import check_candidate, check_eligibility
from .errors import (
    BlockVoteError,
    ElectionNotAcceptingVotes,
    InvalidCandidate,
    InvalidInput,
    TransactionIdentifierTooLong,
    TransactionWriteFailed,
    VoteRecordingFailed,
)
from .ledger import (
    CONFIRMED,
    VERIFIED,
    default_hash_factory,
    is_data_too_long,
    is_unique_violation,
    new_transaction_hash,
    storage_error_code,
    storage_error_message,
)


logger = logging.getLogger(__name__)


class VoteState(str, enum.Enum):
    RECEIVED = "received"
    ELIGIBILITY_CHECKED = "eligibility_checked"
    CANDIDATE_VALIDATED = "candidate_validated"
    LEDGER_WRITTEN = "ledger_written"
    VOTE_RECORDED = "vote_recorded"
    RECEIPT_ISSUED = "receipt_issued"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class Receipt:
    transaction_id: int
    transaction_hash: str
    timestamp: datetime
    election_id: int
    verification_code: str


@dataclass
class VoteOutcome:
    transaction_hash: str
    receipt: Receipt
    state: VoteState = VoteState.RECEIPT_ISSUED


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple)):
        return len(value) == 0
    return False


def _as_id(name: str, value) -> int:
    if isinstance(value, (bool, float)):
        raise InvalidInput(f"{name} must be an integer identifier")
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be an integer identifier")
    if not id_in_range(ident):
        raise InvalidInput(f"{name} is out of range")
    return ident


def _terminal_state(error: BlockVoteError) -> VoteState:
    return VoteState.FAILED if error.status_code >= 500 else VoteState.REJECTED


def payload_sample(payload, limit: int = VOTE_DATA_SAMPLE_LIMIT) -> str:
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
    return text[:limit]


class VotePipeline:
    def __init__(
        self,
        store,
        audit: AuditRecorder,
        clock: Callable[[], datetime] = utcnow,
        hash_factory: Callable[[], str] = default_hash_factory,
        hash_capacity: int = TRANSACTION_HASH_LENGTH,
        token_key: str = SECRET_KEY,
    ):
        self.store = store
        self.audit = audit
        self.clock = clock
        self.hash_factory = hash_factory
        self.hash_capacity = hash_capacity
        self.token_key = token_key

    def _transition(self, state: VoteState, **context):
        logger.debug("Vote submission -> %s %s", state.value, context)

    def _fail(self, error, state: VoteState, **context):
        self._transition(state, **context)
        error.state = state
        return error

    def submit_vote(
        self,
        election_id,
        candidate_id,
        voter_address: Optional[str],
        vote_data,
        signature: Optional[str],
    ) -> VoteOutcome:
        fields = {
            "election_id": election_id,
            "candidate_id": candidate_id,
            "voter_address": voter_address,
            "vote_data": vote_data,
            "signature": signature,
        }
        missing = [name for name, value in fields.items() if _is_blank(value)]
        if missing:
            raise InvalidInput("Missing required voting data", missing=missing)
        election_id = _as_id("election_id", election_id)
        candidate_id = _as_id("candidate_id", candidate_id)

        self._transition(VoteState.RECEIVED, election_id=election_id)

        try:
            eligibility = check_eligibility(self.store, election_id, now=self.clock())
        except BlockVoteError as exc:
            self._fail(exc, _terminal_state(exc))
            raise
        election = eligibility.election
        if not eligibility.allowed:
            logger.info("Vote rejected for election %s: %s", election_id, eligibility.reason)
            safe_record(
                self.audit,
                "voter",
                "VOTE_REJECTED",
                "election",
                {
                    "reason": eligibility.reason,
                    "election_id": election_id,
                    "status": election.status,
                    "start_date": election.start_date.isoformat(),
                    "end_date": election.end_date.isoformat(),
                    "now": eligibility.evaluated_at.isoformat(),
                    "candidate_id": candidate_id,
                    "voter_address": voter_address,
                },
            )
            raise self._fail(
                ElectionNotAcceptingVotes(
                    eligibility.reason,
                    election.status,
                    election.start_date,
                    election.end_date,
                    eligibility.evaluated_at,
                ),
                VoteState.REJECTED,
                reason=eligibility.reason,
            )
        self._transition(VoteState.ELIGIBILITY_CHECKED)

        try:
            candidate = check_candidate(self.store, candidate_id, election_id)
        except BlockVoteError as exc:
            self._fail(exc, _terminal_state(exc))
            raise
        if not candidate.allowed:
            logger.info("Vote rejected for candidate %s: %s", candidate_id, candidate.reason)
            raise self._fail(
                InvalidCandidate(candidate.reason, candidate_id=candidate_id, election_id=election_id),
                VoteState.REJECTED,
                reason=candidate.reason,
            )
        self._transition(VoteState.CANDIDATE_VALIDATED)

        drawn = self.hash_factory()
        try:
            transaction_hash = new_transaction_hash(lambda: drawn, self.hash_capacity)
        except ValueError as exc:
            detail = str(exc)
            logger.error("Error creating transaction hash: %s", detail)
            self._audit_transaction_failure(
                detail, "INVALID_HASH", drawn, election_id, candidate_id, voter_address, vote_data
            )
            raise self._fail(TransactionWriteFailed(detail), VoteState.FAILED, stage="hash") from exc

        try:
            transaction_id = self.store.insert_transaction(
                transaction_hash,
                election_id,
                voter_address,
                candidate_id,
                vote_data,
                signature,
                status=CONFIRMED,
            )
        except SQLAlchemyError as exc:
            self.store.rollback()
            error = self._ledger_failure(exc, transaction_hash, election_id, candidate_id, voter_address, vote_data)
            raise self._fail(error, VoteState.FAILED, stage="ledger") from exc
        self._transition(VoteState.LEDGER_WRITTEN, transaction_id=transaction_id)

        instant = self.clock()
        voter_token, verification_code = derive_voter_token(voter_address, instant, self.token_key)
        try:
            self.store.insert_vote(transaction_id, election_id, candidate_id, voter_token, status=VERIFIED)
            self.store.commit()
        except SQLAlchemyError as exc:
            self.store.rollback()
            detail = storage_error_message(exc)
            logger.error("Error creating vote for transaction %s: %s", transaction_hash, detail)
            safe_record(
                self.audit,
                "system",
                "VOTE_RECORDING_FAILED",
                "vote",
                {
                    "error": detail,
                    "code": storage_error_code(exc),
                    "election_id": election_id,
                    "transactionHash": transaction_hash,
                    "timestamp": utcnow().isoformat(),
                },
            )
            raise self._fail(VoteRecordingFailed(detail), VoteState.FAILED, stage="vote") from exc
        self._transition(VoteState.VOTE_RECORDED)

        receipt = Receipt(
            transaction_id=transaction_id,
            transaction_hash=transaction_hash,
            timestamp=self.clock(),
            election_id=election_id,
            verification_code=verification_code,
        )
        self._transition(VoteState.RECEIPT_ISSUED)
        logger.info("Vote recorded successfully: %s (receipt %s)", transaction_hash, transaction_id)
        safe_record(
            self.audit,
            "voter",
            "VOTE_CAST",
            "blockchain_transaction",
            {"transactionHash": transaction_hash, "election_id": election_id, "voter_id": voter_token},
        )
        return VoteOutcome(transaction_hash=transaction_hash, receipt=receipt)

    def _audit_transaction_failure(
        self, detail, code, transaction_hash, election_id, candidate_id, voter_address, vote_data
    ):
        safe_record(
            self.audit,
            "system",
            "TRANSACTION_FAILED",
            "blockchain_transaction",
            {
                "error": detail,
                "code": code,
                "election_id": election_id,
                "candidate_id": candidate_id,
                "voter_address": voter_address,
                "transactionHash": transaction_hash,
                "transactionHashLength": len(transaction_hash),
                "vote_data_sample": payload_sample(vote_data),
                "timestamp": utcnow().isoformat(),
            },
        )

    def _ledger_failure(self, exc, transaction_hash, election_id, candidate_id, voter_address, vote_data):
        detail = storage_error_message(exc)
        logger.error(
            "Error creating transaction: %s (attempted hash length %d)", detail, len(transaction_hash)
        )
        self._audit_transaction_failure(
            detail, storage_error_code(exc), transaction_hash, election_id, candidate_id, voter_address, vote_data
        )
        if is_data_too_long(exc):
            return TransactionIdentifierTooLong(len(transaction_hash), TRANSACTION_HASH_LENGTH)
        return TransactionWriteFailed(detail, retryable=is_unique_violation(exc))
