from datetime import timedelta

import pytest

from blockvote.database import utcnow
from blockvote.eligibility import (
    CANDIDATE_INACTIVE,
    CANDIDATE_WRONG_ELECTION,
    ENDED,
    INACTIVE,
    INVALID_CANDIDATE,
    NOT_STARTED,
    check_candidate,
    check_eligibility,
    election_window_reason,
)
from blockvote.errors import ElectionNotFound
from blockvote.ledger import SqlVotingStore


NOW = utcnow()
DAY = timedelta(days=1)


@pytest.mark.parametrize(
    "status,start,end,expected",
    [
        ("active", NOW - DAY, NOW + DAY, None),
        ("active", NOW + DAY, NOW + 2 * DAY, NOT_STARTED),
        ("draft", NOW + DAY, NOW + 2 * DAY, NOT_STARTED),
        ("closed", NOW + DAY, NOW + 2 * DAY, NOT_STARTED),
        ("active", NOW - 2 * DAY, NOW - DAY, ENDED),
        ("inactive", NOW - 2 * DAY, NOW - DAY, ENDED),
        ("draft", NOW - DAY, NOW + DAY, INACTIVE),
        ("closed", NOW - DAY, NOW + DAY, INACTIVE),
    ],
)
def test_window_reason_precedence(status, start, end, expected):
    assert election_window_reason(status, start, end, NOW) == expected


def test_window_bounds_are_inclusive():
    assert election_window_reason("active", NOW, NOW, NOW) is None


def test_check_eligibility_allows_open_election(db, election):
    result = check_eligibility(SqlVotingStore(db), election.id)
    assert result.allowed
    assert result.reason is None
    assert result.election.id == election.id


def test_check_eligibility_reports_reason(db, election_factory):
    election = election_factory(status="draft", start=NOW + DAY, end=NOW + 2 * DAY)
    result = check_eligibility(SqlVotingStore(db), election.id, now=NOW)
    assert not result.allowed
    assert result.reason == NOT_STARTED
    assert result.evaluated_at == NOW


def test_check_eligibility_missing_election(db):
    with pytest.raises(ElectionNotFound):
        check_eligibility(SqlVotingStore(db), 999)


def test_check_candidate_rules(db, election, candidate, election_factory, candidate_factory):
    store = SqlVotingStore(db)
    other = candidate_factory(election_factory(title="Other"), name="Grace")
    retired = candidate_factory(election, name="Linus", is_active=False)

    assert check_candidate(store, candidate.id, election.id).allowed
    assert check_candidate(store, 999, election.id).reason == INVALID_CANDIDATE
    assert check_candidate(store, other.id, election.id).reason == CANDIDATE_WRONG_ELECTION
    assert check_candidate(store, retired.id, election.id).reason == CANDIDATE_INACTIVE
