"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for Keyward happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. password_algorithm -> PASSWORD_ALGORITHM).

  @field_validator: the configured password algorithm is normalised and checked
      against the algorithm enumeration at startup, so a typo in the .env file
      fails fast instead of surfacing on the first login.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("keyward.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'keyward.db'}"

# Names accepted for PASSWORD_ALGORITHM. Kept in sync with auth.algorithms.Algorithm;
# duplicated here because core/ may not import from auth/.
_KNOWN_ALGORITHMS = frozenset(
    {
        "md5",
        "sha1",
        "sha224",
        "sha256",
        "sha384",
        "sha512",
        "sha3_224",
        "sha3_256",
        "sha3_384",
        "sha3_512",
        "blake2b",
        "blake2s",
    }
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The defaults reproduce the
    historical policy: sha1, salted, encryption enabled.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Password encoding policy
    # ------------------------------------------------------------------

    encrypt_passwords: bool = True
    password_algorithm: str = "sha1"
    password_use_salt: bool = True

    # ------------------------------------------------------------------
    # Bootstrap administrator (empty string = not configured)
    # ------------------------------------------------------------------

    default_admin_username: str = ""
    default_admin_password: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("password_algorithm")
    @classmethod
    def validate_password_algorithm(cls, value: str) -> str:
        name = (value or "").strip().lower().replace("-", "_")
        if name not in _KNOWN_ALGORITHMS:
            raise ValueError(f"PASSWORD_ALGORITHM must be one of {sorted(_KNOWN_ALGORITHMS)}, got {value!r}")
        return name

    @model_validator(mode="after")
    def validate_default_admin(self) -> "Settings":
        """A bootstrap credential needs both halves.

        Only one of DEFAULT_ADMIN_USERNAME / DEFAULT_ADMIN_PASSWORD being set is
        almost certainly a deployment mistake. It is ignored with a warning
        rather than rejected so a half-configured dev box still starts.
        """
        if bool(self.default_admin_username) != bool(self.default_admin_password):
            logger.warning(
                "Ignoring partial default admin configuration: both DEFAULT_ADMIN_USERNAME "
                "and DEFAULT_ADMIN_PASSWORD must be set."
            )
            self.default_admin_username = ""
            self.default_admin_password = ""
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
