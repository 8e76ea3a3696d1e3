"""
auth/encoder.py -- Password encoding under a runtime-configurable policy.

Security design decisions:
  Self-describing output: encode() returns an EncodedSecret carrying the
       algorithm and salt it used. Verification always re-derives with the
       *stored* algorithm/salt, never the current policy, so changing the
       policy does not lock anyone out. The current policy only applies when a
       new credential is created.

  Salts: secrets.token_hex (CSPRNG) plus the current unix time, read as one
       base-16 number and rendered base 36, first 50 characters.

  Storage format: hex digest -> exact integer -> base 36, first 64 characters.
       This is a storage-size trick (a sha512 digest would not fit the column
       as hex), not a security property. It must stay bit-for-bit stable or
       every stored credential stops verifying.

  Comparison: verify() uses hmac.compare_digest so response time does not
       leak how much of the stored value matched.

Layer rule: imports from auth/ and core/ only.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import time

from auth.algorithms import Algorithm, available_algorithms, hex_digest, hex_to_base36
from auth.models import EncodedSecret, EncodingPolicy
from auth.security import SecurityConfig
from core.errors import UnsupportedAlgorithmError

logger = logging.getLogger("keyward.auth")

MAX_VALUE_LENGTH = 64
MAX_SALT_LENGTH = 50

_EMPTY = EncodedSecret(value=None, salt=None, algorithm=Algorithm.NONE)


def generate_salt() -> str:
    """Return a fresh random salt of at most 50 base-36 characters."""
    raw = secrets.token_hex(20) + str(int(time.time()))
    return hex_to_base36(raw)[:MAX_SALT_LENGTH]


class PasswordEncoder:
    """Encodes passwords according to a shared SecurityConfig.

    Usage:
        encoder = PasswordEncoder(get_security_config())
        stored = encoder.encode("hunter2")
        encoder.verify("hunter2", stored)  # True
    """

    def __init__(self, config: SecurityConfig) -> None:
        self._config = config

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def supported_algorithms(self) -> frozenset[Algorithm]:
        return available_algorithms()

    def get_policy(self) -> EncodingPolicy:
        return self._config.policy

    def set_policy(self, algorithm: str | Algorithm, use_salt: bool) -> bool:
        """Switch the algorithm and salt setting for newly encoded passwords.

        Returns False and leaves the policy untouched if algorithm is not in
        supported_algorithms().
        """
        parsed = Algorithm.parse(algorithm)
        if parsed is None or parsed not in self.supported_algorithms():
            logger.warning("Refusing to set unsupported password algorithm %r", str(algorithm))
            return False
        policy = self._config.replace_policy(algorithm=parsed, use_salt=bool(use_salt))
        logger.info("Password policy set: algorithm=%s use_salt=%s", policy.algorithm.value, policy.use_salt)
        return True

    def set_enabled(self, enabled: bool) -> None:
        """Turn encryption of new passwords on or off.

        With encryption off, new passwords are stored as clear text with
        algorithm "none". Existing hashed credentials keep verifying.
        """
        self._config.replace_policy(enabled=bool(enabled))
        logger.info("Password encryption %s", "enabled" if enabled else "disabled")

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(
        self,
        secret: str | None,
        salt: str | None = None,
        algorithm: str | Algorithm | None = None,
    ) -> EncodedSecret:
        """Encode secret under the current policy.

        Args:
            secret:    Clear-text password. Blank input yields an empty
                       EncodedSecret (value and salt None) -- "no password".
            salt:      Salt to reuse, typically the one stored with a
                       credential being verified. Blank means "none given".
            algorithm: Override the policy algorithm. "none" stores the
                       clear text.

        Raises:
            UnsupportedAlgorithmError: algorithm is not in supported_algorithms().
        """
        if secret is None or not secret.strip():
            return _EMPTY

        policy = self._config.policy
        if not policy.enabled or Algorithm.parse(algorithm) is Algorithm.NONE:
            return EncodedSecret(value=secret[:MAX_VALUE_LENGTH], salt=None, algorithm=Algorithm.NONE)

        selected = self._resolve_algorithm(algorithm) or policy.algorithm

        if salt is not None and not salt.strip():
            salt = None
        if salt is None and policy.use_salt:
            salt = generate_salt()

        digest = hex_digest(selected, (secret + (salt or "")).encode("utf-8"))
        return EncodedSecret(
            value=hex_to_base36(digest)[:MAX_VALUE_LENGTH],
            salt=salt,
            algorithm=selected,
        )

    def _resolve_algorithm(self, algorithm: str | Algorithm | None) -> Algorithm | None:
        """Map the caller's algorithm argument to a member, or None for "use the policy"."""
        if algorithm is None:
            return None
        if isinstance(algorithm, str) and not algorithm.strip():
            return None
        parsed = Algorithm.parse(algorithm)
        if parsed is None or parsed not in self.supported_algorithms():
            raise UnsupportedAlgorithmError(str(algorithm))
        return parsed

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, secret: str | None, stored: EncodedSecret) -> bool:
        """Return True if secret re-encodes to the stored value.

        Uses the stored algorithm and salt. An empty stored credential never
        matches -- a member without a password cannot log in with a blank one.
        """
        if stored.value is None or not secret:
            return False
        if stored.algorithm is Algorithm.NONE:
            candidate = secret[:MAX_VALUE_LENGTH]
        else:
            candidate = self._rederive(secret, stored)
        return hmac.compare_digest(candidate.encode("utf-8"), stored.value.encode("utf-8"))

    def _rederive(self, secret: str, stored: EncodedSecret) -> str:
        # Ignores policy.enabled and policy.use_salt; only the stored record counts.
        digest = hex_digest(stored.algorithm, (secret + (stored.salt or "")).encode("utf-8"))
        return hex_to_base36(digest)[:MAX_VALUE_LENGTH]

    def needs_rehash(self, stored: EncodedSecret) -> bool:
        """True if stored was not produced under the current policy's algorithm."""
        policy = self._config.policy
        if stored.value is None:
            return False
        if not policy.enabled:
            return False
        return stored.algorithm is not policy.algorithm
