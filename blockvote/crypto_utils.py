from cryptography.hazmat.primitives import hashes, hmac
from datetime import datetime, timezone
import os

from .config import SECRET_KEY, VOTER_TOKEN_LENGTH, VOTER_TOKEN_PREFIX


def sha256_hex(data: bytes) -> str:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def hmac_sha256_hex(key: bytes, data: bytes) -> str:
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(data)
    return mac.finalize().hex()


def random_hex(nbytes: int, prefix: str = "") -> str:
    """``prefix`` followed by ``2 * nbytes`` hex chars from the OS CSPRNG."""
    return prefix + os.urandom(nbytes).hex()


def generate_blockchain_address() -> str:
    return random_hex(20, prefix="0x")


def derive_verification_code(voter_address: str, instant: datetime, key: str = SECRET_KEY) -> str:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    message = f"{voter_address}|{int(instant.timestamp() * 1000)}".encode()
    return hmac_sha256_hex(key.encode(), message)[:VOTER_TOKEN_LENGTH]


def derive_voter_token(voter_address: str, instant: datetime, key: str = SECRET_KEY) -> tuple[str, str]:
    """Return ``(token, verification_code)``; the token is the prefixed code."""
    code = derive_verification_code(voter_address, instant, key)
    return VOTER_TOKEN_PREFIX + code, code
