"""
auth/security.py -- Shared, process-wide credential policy state.

SecurityConfig owns the two pieces of mutable state the kernel needs:

  EncodingPolicy: how new passwords are encoded. Stored as a frozen snapshot
      and replaced wholesale under a lock, so concurrent readers never see a
      half-written policy.

  DefaultAdminCredential: the bootstrap login. Write-once for the life of the
      process -- the first set wins and later attempts are refused.

One instance is created at startup (get_security_config()) and passed by
reference to PasswordEncoder and CredentialVerifier. Tests build their own
instances instead of touching the singleton.

Layer rule: imports from auth/ and core/ only.
"""

from __future__ import annotations

import hmac
import logging
import threading
from dataclasses import replace
from functools import lru_cache

from auth.algorithms import Algorithm, available_algorithms
from auth.models import DefaultAdminCredential, EncodingPolicy
from core.config import Settings, get_settings
from core.errors import UnsupportedAlgorithmError

logger = logging.getLogger("keyward.auth")


class SecurityConfig:
    """Lock-guarded holder for the encoding policy and bootstrap credential.

    Usage:
        config = SecurityConfig()
        config.replace_policy(algorithm=Algorithm.SHA256)
        config.policy.algorithm  # Algorithm.SHA256
    """

    def __init__(self, policy: EncodingPolicy | None = None) -> None:
        self._lock = threading.Lock()
        self._policy = policy or EncodingPolicy()
        self._default_admin: DefaultAdminCredential | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecurityConfig":
        """Build the startup state from Settings.

        Settings only checks the name against the enumeration; whether this
        runtime's hashlib can actually compute it is checked here.

        Raises UnsupportedAlgorithmError if the configured algorithm is not
        available (e.g. md5 on a FIPS build).
        """
        algorithm = Algorithm.parse(settings.password_algorithm) or Algorithm.SHA1
        if algorithm not in available_algorithms():
            raise UnsupportedAlgorithmError(algorithm.value)
        config = cls(
            EncodingPolicy(
                enabled=settings.encrypt_passwords,
                algorithm=algorithm,
                use_salt=settings.password_use_salt,
            )
        )
        if settings.default_admin_username and settings.default_admin_password:
            config.set_default_admin(settings.default_admin_username, settings.default_admin_password)
        return config

    # ------------------------------------------------------------------
    # Encoding policy
    # ------------------------------------------------------------------

    @property
    def policy(self) -> EncodingPolicy:
        return self._policy

    def replace_policy(self, **changes) -> EncodingPolicy:
        """Swap in a copy of the current policy with the given fields changed.

        No validation happens here; PasswordEncoder.set_policy() is the public
        entry point and checks the algorithm first.
        """
        with self._lock:
            self._policy = replace(self._policy, **changes)
            return self._policy

    # ------------------------------------------------------------------
    # Bootstrap credential
    # ------------------------------------------------------------------

    @property
    def default_admin(self) -> DefaultAdminCredential | None:
        return self._default_admin

    def set_default_admin(self, username: str, password: str) -> bool:
        """Store the bootstrap credential unless one is already stored."""
        with self._lock:
            current = self._default_admin
            if current is not None and (current.username or current.password):
                logger.warning("Default admin already configured; ignoring new credential")
                return False
            self._default_admin = DefaultAdminCredential(username=username or "", password=password or "")
        logger.info("Default admin configured for username %r", username)
        return True

    def has_default_admin(self) -> bool:
        current = self._default_admin
        return current is not None and current.is_set

    def check_default_admin(self, username: str, password: str) -> bool:
        """Exact clear-text match against the bootstrap credential."""
        current = self._default_admin
        if current is None or not current.is_set:
            return False
        return current.username == username and hmac.compare_digest(
            current.password.encode("utf-8"), (password or "").encode("utf-8")
        )


@lru_cache
def get_security_config() -> SecurityConfig:
    """Return the process-wide SecurityConfig, built from get_settings() on first call."""
    return SecurityConfig.from_settings(get_settings())
