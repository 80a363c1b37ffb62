"""
Error taxonomy for the voting service.

Every error carries an ``error_kind`` that is echoed to clients, an HTTP
status code, and a ``details`` dict of structured context.
"""
from typing import Any, Optional


class BlockVoteError(Exception):
    error_kind = "BlockVoteError"
    status_code = 500
    # Pipeline state the error ended in, when raised by the vote pipeline.
    state = None

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        body = {"error": self.message, "errorKind": self.error_kind}
        body.update(self.details)
        return body


class InvalidInput(BlockVoteError):
    error_kind = "InvalidInput"
    status_code = 400

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message, {"missing": missing} if missing else None)
        self.missing = missing or []


class NotFound(BlockVoteError):
    error_kind = "NotFound"
    status_code = 404


class ElectionNotFound(NotFound):
    error_kind = "ElectionNotFound"

    def __init__(self, election_id):
        super().__init__("Election not found", {"electionId": election_id})
        self.election_id = election_id


class Conflict(BlockVoteError):
    error_kind = "Conflict"
    status_code = 409


class ElectionNotAcceptingVotes(BlockVoteError):
    error_kind = "ElectionNotAcceptingVotes"
    status_code = 400

    def __init__(self, reason: str, status: str, start, end, evaluated_at):
        super().__init__(
            "Election is not currently accepting votes",
            {
                "reason": reason,
                "status": status,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "evaluatedAt": evaluated_at.isoformat(),
            },
        )
        self.reason = reason


class InvalidCandidate(BlockVoteError):
    error_kind = "InvalidCandidate"
    status_code = 400

    MESSAGES = {
        "invalid_candidate": "Invalid candidate",
        "candidate_wrong_election": "Candidate does not belong to election",
        "candidate_inactive": "Candidate is not active",
    }

    def __init__(self, reason: str, candidate_id=None, election_id=None):
        super().__init__(
            self.MESSAGES.get(reason, "Invalid candidate"),
            {"reason": reason, "candidateId": candidate_id, "electionId": election_id},
        )
        self.reason = reason


class TransactionWriteFailed(BlockVoteError):
    error_kind = "TransactionWriteFailed"
    status_code = 500

    def __init__(self, detail: str, retryable: bool = False):
        super().__init__("Transaction creation failed", {"detail": detail, "retryable": retryable})
        self.retryable = retryable


class TransactionIdentifierTooLong(TransactionWriteFailed):
    error_kind = "TransactionIdentifierTooLong"

    def __init__(self, length: int, capacity: int):
        super().__init__(
            f"Generated transaction hash is {length} characters but the ledger column holds {capacity}. "
            "Check TRANSACTION_HASH_LENGTH against the transaction_hash column size."
        )
        self.details.update({"length": length, "capacity": capacity})


class VoteRecordingFailed(BlockVoteError):
    error_kind = "VoteRecordingFailed"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__("Vote recording failed", {"detail": detail})


class StorageUnavailable(BlockVoteError):
    error_kind = "StorageUnavailable"
    status_code = 503

    def __init__(self, detail: str):
        super().__init__("Database error", {"detail": detail})
