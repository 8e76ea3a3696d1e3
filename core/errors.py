"""
core/errors.py -- Exception hierarchy for Keyward.

Only conditions a caller can act on get an exception. "No such member",
"wrong password" and "bootstrap credential already set" are ordinary outcomes
and are reported through return values (None / False) instead.
"""

from __future__ import annotations


class KeywardError(Exception):
    """Base class for all Keyward errors."""


class UnsupportedAlgorithmError(KeywardError, ValueError):
    """An encode request named an algorithm outside the supported set.

    Subclasses ValueError so callers that already treat bad input as
    ValueError keep working.
    """

    def __init__(self, algorithm: str) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unsupported password encryption algorithm: {algorithm!r}")


class EncryptionDisabledError(KeywardError):
    """Password encryption is switched off, so there is nothing to migrate to."""
