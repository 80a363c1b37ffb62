from datetime import timedelta

from blockvote.audit import SqlAuditRecorder
from blockvote.database import utcnow
from blockvote.ledger import SqlVotingStore, count_transactions, count_verified_votes
from blockvote.main import app, get_vote_pipeline
from blockvote.models import AuditLog, LedgerTransaction
from blockvote.voting import VotePipeline


def vote_body(election, candidate, **overrides):
    body = {
        "electionId": election.id,
        "candidateId": candidate.id,
        "voterAddress": "0x9f3c",
        "votePayload": {"choice": candidate.id},
        "signature": "0xsig",
    }
    body.update(overrides)
    return body


def test_submit_vote_returns_receipt(client, db, election, candidate):
    resp = client.post("/api/vote", json=vote_body(election, candidate))
    assert resp.status_code == 200, resp.text
    data = resp.json()

    assert data["success"] is True
    assert len(data["transactionHash"]) == 64
    receipt = data["receipt"]
    assert receipt["electionId"] == election.id
    assert receipt["transactionHash"] == data["transactionHash"]
    assert len(receipt["verificationCode"]) == 12
    db.expire_all()
    assert db.query(LedgerTransaction).one().id == receipt["transactionId"]


def test_submit_vote_accepts_snake_case(client, election, candidate):
    body = {
        "election_id": election.id,
        "candidate_id": candidate.id,
        "voter_address": "0x9f3c",
        "vote_data": {"choice": 1},
        "signature": "0xsig",
    }
    assert client.post("/api/vote", json=body).status_code == 200


def test_not_started_election_is_rejected(client, db, election_factory, candidate_factory):
    now = utcnow()
    election = election_factory(start=now + timedelta(days=1), end=now + timedelta(days=2))
    candidate = candidate_factory(election)

    resp = client.post("/api/vote", json=vote_body(election, candidate))
    assert resp.status_code == 400
    data = resp.json()
    assert data["reason"] == "not_started"
    assert data["errorKind"] == "ElectionNotAcceptingVotes"
    assert {"status", "start", "end", "evaluatedAt"} <= set(data)
    assert count_transactions(db) == 0


def test_candidate_from_other_election_is_client_error(client, db, election, election_factory, candidate_factory):
    foreign = candidate_factory(election_factory(title="Other"), name="Grace")
    resp = client.post("/api/vote", json=vote_body(election, foreign))
    assert resp.status_code == 400
    assert resp.json()["reason"] == "candidate_wrong_election"
    assert count_transactions(db) == 0


def test_missing_fields_are_invalid_input(client, db, election, candidate):
    resp = client.post("/api/vote", json=vote_body(election, candidate, signature=""))
    assert resp.status_code == 400
    assert resp.json()["errorKind"] == "InvalidInput"
    assert resp.json()["missing"] == ["signature"]


def test_unknown_election_is_404(client, candidate, election):
    resp = client.post("/api/vote", json=vote_body(election, candidate, electionId=9999))
    assert resp.status_code == 404
    assert resp.json()["errorKind"] == "ElectionNotFound"


def test_oversized_identifier_is_invalid_input(client, db, election, candidate):
    resp = client.post("/api/vote", json=vote_body(election, candidate, electionId="9" * 30))
    assert resp.status_code == 400
    assert resp.json()["errorKind"] == "InvalidInput"
    assert count_transactions(db) == 0


def test_fractional_identifier_is_invalid_input(client, db, election, candidate):
    resp = client.post("/api/vote", json=vote_body(election, candidate, candidateId=1.5))
    assert resp.status_code == 400
    assert resp.json()["errorKind"] == "InvalidInput"


def test_unreadable_storage_is_503(client, db, unreadable_db, election, candidate):
    app.dependency_overrides[get_vote_pipeline] = lambda: VotePipeline(
        SqlVotingStore(unreadable_db), SqlAuditRecorder(db)
    )
    try:
        resp = client.post("/api/vote", json=vote_body(election, candidate))
    finally:
        app.dependency_overrides.pop(get_vote_pipeline, None)

    assert resp.status_code == 503
    assert resp.json()["errorKind"] == "StorageUnavailable"
    assert count_transactions(db) == 0
    assert db.query(AuditLog).count() == 0


def test_results_endpoint(client, db, election, candidate_factory):
    ada = candidate_factory(election, name="Ada")
    grace = candidate_factory(election, name="Grace")
    for target in (ada, ada, ada, grace):
        assert client.post("/api/vote", json=vote_body(election, target)).status_code == 200

    resp = client.get(f"/api/elections/{election.id}/results")
    assert resp.status_code == 200
    data = resp.json()
    assert data["totalVotes"] == 4 == count_verified_votes(db, election.id)
    assert [(c["name"], c["voteCount"], c["percentage"]) for c in data["candidates"]] == [
        ("Ada", 3, 75.0),
        ("Grace", 1, 25.0),
    ]
    assert "photoUrl" in data["candidates"][0]


def test_results_for_unknown_election(client, db):
    assert client.get("/api/elections/77/results").status_code == 404


def test_results_for_oversized_election_id_is_404(client, db):
    resp = client.get(f"/api/elections/{'9' * 30}/results")
    assert resp.status_code == 404
    assert resp.json()["errorKind"] == "ElectionNotFound"


def test_public_election_views(client, election, candidate_factory):
    candidate_factory(election, name="Second", display_order=2)
    candidate_factory(election, name="First", display_order=1)
    candidate_factory(election, name="Gone", is_active=False)

    listing = client.get("/api/elections").json()
    assert listing[0]["id"] == election.id
    assert listing[0]["candidate_count"] == 2

    detail = client.get(f"/api/elections/{election.id}").json()
    assert [c["name"] for c in detail["candidates"]] == ["First", "Second"]

    candidates = client.get(f"/api/elections/{election.id}/candidates").json()
    assert [c["vote_count"] for c in candidates] == [0, 0]


def test_ledger_views(client, election, candidate):
    client.post("/api/vote", json=vote_body(election, candidate))

    stats = client.get("/api/blockchain/stats").json()
    assert stats == {
        "total_transactions": 1,
        "verified_votes": 1,
        "active_elections": 1,
        "orphaned_transactions": 0,
    }
    txs = client.get("/api/blockchain/transactions").json()
    assert txs[0]["election_title"] == election.title
    assert txs[0]["candidate_name"] == candidate.name
    assert txs[0]["status"] == "confirmed"


def test_health(client, db):
    data = client.get("/api/health").json()
    assert data["status"] == "OK"
    assert data["database"] == "connected"
