"""Unit tests for auth/maintenance.py -- encrypt_all_passwords()."""

from __future__ import annotations

import pytest

from auth.algorithms import Algorithm
from auth.encoder import PasswordEncoder
from auth.maintenance import encrypt_all_passwords
from auth.models import EncodedSecret
from auth.store import MemberStore
from core.errors import EncryptionDisabledError


class TestEncryptAllPasswords:
    def test_migrates_only_clear_text(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        hashed = store.create_member("hashed@example.com", encoder.encode("a"))
        clear = store.create_member("clear@example.com", EncodedSecret("b", None, Algorithm.NONE))

        migrated = encrypt_all_passwords(encoder, store)

        assert [m.id for m in migrated] == [clear.id]
        assert store.get_by_email("clear@example.com").password_encryption == "sha1"
        assert store.get_by_email("hashed@example.com").password == hashed.password
        assert store.find_by_email_and_encoded_password("clear@example.com", "b") is not None
        assert store.find_by_email_and_encoded_password("hashed@example.com", "a") is not None

    def test_nothing_to_do(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("hashed@example.com", encoder.encode("a"))
        assert encrypt_all_passwords(encoder, store) == []

    def test_second_run_is_noop(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("clear@example.com", EncodedSecret("b", None, Algorithm.NONE))
        assert len(encrypt_all_passwords(encoder, store)) == 1
        assert encrypt_all_passwords(encoder, store) == []

    def test_uses_current_policy(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("clear@example.com", EncodedSecret("b", None, Algorithm.NONE))
        encoder.set_policy("sha256", False)
        (member,) = encrypt_all_passwords(encoder, store)
        assert member.password_encryption == "sha256"
        assert member.salt is None

    def test_disabled_raises(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("clear@example.com", EncodedSecret("b", None, Algorithm.NONE))
        encoder.set_enabled(False)
        with pytest.raises(EncryptionDisabledError):
            encrypt_all_passwords(encoder, store)
        assert len(store.list_clear_text_members()) == 1
