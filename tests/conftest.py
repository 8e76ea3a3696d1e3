"""
tests/conftest.py -- Shared fixtures for Keyward tests.

This module provides:
  - config: a fresh SecurityConfig per test (sha1, salted, enabled)
  - encoder: PasswordEncoder bound to that config
  - store: MemberStore on an isolated in-memory SQLite database
  - verifier: CredentialVerifier wired to all three

Design: every fixture builds its own SecurityConfig instead of using the
get_security_config() singleton, so policy changes and bootstrap credentials
set in one test never leak into another.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from auth.encoder import PasswordEncoder
from auth.models import EncodingPolicy
from auth.security import SecurityConfig
from auth.store import MemberStore
from auth.verifier import CredentialVerifier
from core.config import get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    """Drop cached Settings around each test so monkeypatched env vars take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def config() -> SecurityConfig:
    return SecurityConfig(EncodingPolicy())


@pytest.fixture
def encoder(config: SecurityConfig) -> PasswordEncoder:
    return PasswordEncoder(config)


@pytest.fixture
def store(encoder: PasswordEncoder) -> Generator[MemberStore, None, None]:
    s = MemberStore(encoder, db_url="sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def verifier(config: SecurityConfig, encoder: PasswordEncoder, store: MemberStore) -> CredentialVerifier:
    return CredentialVerifier(config, encoder, store)
