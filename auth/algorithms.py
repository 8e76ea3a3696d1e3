"""
auth/algorithms.py -- Closed set of password digest algorithms.

Every algorithm name that can appear in a stored credential is an Algorithm
member, and each member maps to a concrete hashlib constructor through
_DIGESTS. Nothing resolves a function from a user-supplied string.

The base-36 helpers live here too: digests are stored as base-36 text rather
than hex so a 256-bit digest fits the 64-character password column. The
conversion uses exact integer arithmetic, so a stored value is reproducible on
every run and every platform.

Layer rule: stdlib only.
"""

from __future__ import annotations

import hashlib
import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger("keyward.auth")

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class Algorithm(str, Enum):
    """Algorithm identifiers as stored in the password_encryption column."""

    NONE = "none"
    MD5 = "md5"
    SHA1 = "sha1"
    SHA224 = "sha224"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"
    SHA3_224 = "sha3_224"
    SHA3_256 = "sha3_256"
    SHA3_384 = "sha3_384"
    SHA3_512 = "sha3_512"
    BLAKE2B = "blake2b"
    BLAKE2S = "blake2s"

    @classmethod
    def parse(cls, name: "str | Algorithm | None") -> "Algorithm | None":
        """Return the member for name (case-insensitive), or None if unknown."""
        if isinstance(name, Algorithm):
            return name
        key = (name or "").strip().lower().replace("-", "_")
        if not key:
            return None
        try:
            return cls(key)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


_DIGESTS: dict[Algorithm, Callable] = {
    Algorithm.MD5: hashlib.md5,
    Algorithm.SHA1: hashlib.sha1,
    Algorithm.SHA224: hashlib.sha224,
    Algorithm.SHA256: hashlib.sha256,
    Algorithm.SHA384: hashlib.sha384,
    Algorithm.SHA512: hashlib.sha512,
    Algorithm.SHA3_224: hashlib.sha3_224,
    Algorithm.SHA3_256: hashlib.sha3_256,
    Algorithm.SHA3_384: hashlib.sha3_384,
    Algorithm.SHA3_512: hashlib.sha3_512,
    Algorithm.BLAKE2B: hashlib.blake2b,
    Algorithm.BLAKE2S: hashlib.blake2s,
}

# Always reported as supported, even when the runtime refuses to construct them.
FALLBACK_ALGORITHMS: frozenset[Algorithm] = frozenset({Algorithm.MD5, Algorithm.SHA1})


def _usable(algorithm: Algorithm) -> bool:
    # FIPS-restricted OpenSSL builds raise ValueError when md5/sha1 are constructed.
    try:
        _DIGESTS[algorithm]()
    except ValueError:
        logger.debug("Digest %s is not usable in this runtime", algorithm.value)
        return False
    return True


def available_algorithms() -> frozenset[Algorithm]:
    """Return every hashing Algorithm this runtime can compute, plus the md5/sha1 floor."""
    found = {alg for alg in _DIGESTS if _usable(alg)}
    return frozenset(found | FALLBACK_ALGORITHMS)


def hex_digest(algorithm: Algorithm, data: bytes) -> str:
    """Hex digest of data under algorithm. Raises KeyError for Algorithm.NONE."""
    return _DIGESTS[algorithm](data).hexdigest()


def to_base36(number: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if number < 0:
        raise ValueError("to_base36() expects a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def hex_to_base36(hex_string: str) -> str:
    """Re-encode a hexadecimal string in base 36."""
    return to_base36(int(hex_string, 16))
