from datetime import datetime, timedelta

from blockvote.crypto_utils import (
    derive_voter_token,
    generate_blockchain_address,
    random_hex,
    sha256_hex,
)


def test_sha256_hex_known_vector():
    assert sha256_hex(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_random_hex_length_and_prefix():
    value = random_hex(31, prefix="0x")
    assert len(value) == 64
    assert value.startswith("0x")
    int(value[2:], 16)


def test_blockchain_address_shape():
    address = generate_blockchain_address()
    assert len(address) == 42
    assert address.startswith("0x")


def test_voter_token_is_deterministic_for_address_and_instant():
    instant = datetime(2026, 5, 1, 12, 0, 0)
    token, code = derive_voter_token("0xabc", instant, key="k")
    again, _ = derive_voter_token("0xabc", instant, key="k")
    assert token == again
    assert token == "ANON_" + code
    assert len(code) == 12


def test_voter_token_does_not_expose_address():
    instant = datetime(2026, 5, 1, 12, 0, 0)
    token, _ = derive_voter_token("0xvoter-address", instant, key="k")
    assert "voter-address" not in token


def test_voter_token_changes_with_instant_and_key():
    instant = datetime(2026, 5, 1, 12, 0, 0)
    base, _ = derive_voter_token("0xabc", instant, key="k")
    later, _ = derive_voter_token("0xabc", instant + timedelta(milliseconds=1), key="k")
    other_key, _ = derive_voter_token("0xabc", instant, key="other")
    assert base != later
    assert base != other_key
