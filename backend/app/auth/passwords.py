"""Password credentials: scrypt digests stored as "<hex digest>.<hex salt>".

Derivation is deliberately expensive, so request handlers go through the async
helpers (hash_password / verify_password), which run it in the thread pool.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass

from starlette.concurrency import run_in_threadpool

# scrypt cost parameters (N, r, p); maxmem leaves headroom above 128 * N * r
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 32 * 1024 * 1024

DIGEST_BYTES = 32
SALT_BYTES = 16
_SEPARATOR = "."


class MalformedCredentialError(ValueError):
    """Stored credential text is not "<hex digest>.<hex salt>"."""


class CredentialDerivationError(RuntimeError):
    """Key derivation failed (e.g. memory limit). Not a verification outcome."""


def _is_hex(value: str) -> bool:
    if not value or len(value) % 2:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class StoredCredential:
    """A derived key and the salt it was derived with."""

    digest: bytes
    salt: str  # hex text; its UTF-8 bytes are the scrypt salt

    def encode(self) -> str:
        return f"{self.digest.hex()}{_SEPARATOR}{self.salt}"

    @classmethod
    def parse(cls, text: str) -> "StoredCredential":
        """Parse the stored form. Raises MalformedCredentialError."""
        parts = (text or "").split(_SEPARATOR)
        if len(parts) != 2:
            raise MalformedCredentialError("Stored credential must be '<digest>.<salt>'")
        digest_hex, salt = parts
        if not _is_hex(digest_hex) or not _is_hex(salt):
            raise MalformedCredentialError("Stored credential digest and salt must be hex")
        return cls(digest=bytes.fromhex(digest_hex), salt=salt)


def derive_key(password: str, salt: str, length: int = DIGEST_BYTES) -> bytes:
    """scrypt(password, salt). Same inputs always give the same key."""
    # surrogatepass: lone surrogates from JSON still map to fixed bytes
    secret = password.encode("utf-8", "surrogatepass")
    try:
        return hashlib.scrypt(
            secret,
            salt=salt.encode("utf-8"),
            n=SCRYPT_N,
            r=SCRYPT_R,
            p=SCRYPT_P,
            maxmem=SCRYPT_MAXMEM,
            dklen=length,
        )
    except (ValueError, MemoryError) as e:
        raise CredentialDerivationError(f"scrypt derivation failed: {e}") from e


def issue_credential(password: str) -> StoredCredential:
    """Derive a credential for password with a fresh random salt."""
    salt = secrets.token_hex(SALT_BYTES)
    return StoredCredential(digest=derive_key(password, salt), salt=salt)


def verify_credential(password: str, credential: StoredCredential) -> bool:
    """Constant-time check of password against credential.

    The key is derived at the stored digest's length, so older 64-byte digests
    verify as well as the current 32-byte ones.
    """
    candidate = derive_key(password, credential.salt, len(credential.digest))
    return hmac.compare_digest(candidate, credential.digest)


# Used to spend one derivation on logins for unknown usernames
_DUMMY_CREDENTIAL = StoredCredential(digest=bytes(DIGEST_BYTES), salt="00" * SALT_BYTES)


async def hash_password(password: str) -> str:
    """Issue a credential off the event loop and return its stored form."""
    credential = await run_in_threadpool(issue_credential, password)
    return credential.encode()


async def verify_password(password: str, stored: str) -> bool:
    """Verify password against the stored form off the event loop.

    Raises MalformedCredentialError for a corrupt stored value and
    CredentialDerivationError if derivation fails.
    """
    credential = StoredCredential.parse(stored)
    return await run_in_threadpool(verify_credential, password, credential)


async def burn_verification(password: str) -> None:
    """Run one derivation whose result is discarded."""
    await run_in_threadpool(verify_credential, password, _DUMMY_CREDENTIAL)
