"""Unit tests for auth/store.py -- MemberStore.

Covers:
- find_by_email_and_encoded_password() with salted, unsalted and clear-text rows
- unknown stored algorithms never verify
- admin group lookup / creation (reusing a group that lacks ADMIN) and first-member lookup
- atomic() joins nested calls into one transaction and rolls back on error
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.algorithms import Algorithm
from auth.encoder import PasswordEncoder
from auth.models import EncodedSecret
from auth.store import ADMIN_GROUP_CODE, MemberStore


class TestFindByEmailAndPassword:
    def test_salted_match(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        created = store.create_member("jane@example.com", encoder.encode("hunter2"))
        found = store.find_by_email_and_encoded_password("jane@example.com", "hunter2")
        assert found is not None
        assert found.id == created.id

    def test_wrong_password(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("jane@example.com", encoder.encode("hunter2"))
        assert store.find_by_email_and_encoded_password("jane@example.com", "hunter3") is None

    def test_unknown_email(self, store: MemberStore) -> None:
        assert store.find_by_email_and_encoded_password("nobody@example.com", "hunter2") is None

    def test_clear_text_row(self, store: MemberStore) -> None:
        store.create_member("legacy@example.com", EncodedSecret("hunter2", None, Algorithm.NONE))
        assert store.find_by_email_and_encoded_password("legacy@example.com", "hunter2") is not None

    def test_stored_with_older_policy(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("jane@example.com", encoder.encode("hunter2"))
        encoder.set_policy("sha512", False)
        assert store.find_by_email_and_encoded_password("jane@example.com", "hunter2") is not None

    def test_unknown_algorithm_never_matches(self, store: MemberStore) -> None:
        member = store.create_member("odd@example.com", EncodedSecret("hunter2", None, Algorithm.NONE))
        with store.engine.begin() as conn:
            conn.exec_driver_sql(
                "UPDATE members SET password_encryption = 'whirlpool' WHERE id = ?", (member.id,)
            )
        assert store.find_by_email_and_encoded_password("odd@example.com", "hunter2") is None

    def test_member_without_password_cannot_log_in(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("nopw@example.com", encoder.encode(""))
        assert store.find_by_email_and_encoded_password("nopw@example.com", "") is None


class TestMembers:
    def test_duplicate_email_raises(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("jane@example.com", encoder.encode("a"))
        with pytest.raises(IntegrityError):
            store.create_member("jane@example.com", encoder.encode("b"))

    def test_persisted_secret_round_trips(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        encoded = encoder.encode("hunter2")
        store.create_member("jane@example.com", encoded)
        assert store.get_by_email("jane@example.com").secret == encoded

    def test_update_password(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        member = store.create_member("jane@example.com", encoder.encode("old"))
        assert store.update_password(member.id, encoder.encode("new"))
        assert store.find_by_email_and_encoded_password("jane@example.com", "new") is not None
        assert store.find_by_email_and_encoded_password("jane@example.com", "old") is None

    def test_update_password_missing_member(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        assert store.update_password(999, encoder.encode("x")) is False

    def test_list_clear_text_members(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        store.create_member("hashed@example.com", encoder.encode("a"))
        clear = store.create_member("clear@example.com", EncodedSecret("b", None, Algorithm.NONE))
        store.create_member("empty@example.com", encoder.encode(""))
        assert [m.id for m in store.list_clear_text_members()] == [clear.id]


class TestGroups:
    def test_no_admin_group_initially(self, store: MemberStore) -> None:
        assert store.find_admin_group() is None

    def test_create_admin_group(self, store: MemberStore) -> None:
        group = store.create_admin_group()
        found = store.find_admin_group()
        assert found is not None
        assert found.id == group.id
        assert found.code == ADMIN_GROUP_CODE

    def test_group_without_admin_permission_is_not_admin(self, store: MemberStore) -> None:
        with store.engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO groups (id, title, code) VALUES (7, 'Editors', 'editors')")
            conn.exec_driver_sql("INSERT INTO permissions (group_id, code) VALUES (7, 'CMS_ACCESS')")
        assert store.find_admin_group() is None

    def test_find_first_member_of_group(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        group = store.create_admin_group()
        assert store.find_member_of_group(group) is None
        first = store.create_member("first@example.com", encoder.encode("a"), group)
        second = store.create_member("second@example.com", encoder.encode("b"))
        store.add_member_to_group(second, group)
        assert store.find_member_of_group(group).id == first.id

    def test_create_admin_group_reuses_group_missing_permission(self, store: MemberStore) -> None:
        with store.engine.begin() as conn:
            conn.exec_driver_sql("INSERT INTO groups (id, title, code) VALUES (3, 'Admins', 'administrators')")
        assert store.find_admin_group() is None

        group = store.create_admin_group()

        assert group.id == 3
        assert group.title == "Admins"
        assert store.find_admin_group().id == 3

    def test_add_member_to_group(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        group = store.create_admin_group()
        member = store.create_member("jane@example.com", encoder.encode("a"))
        store.add_member_to_group(member, group)
        assert store.find_member_of_group(group).id == member.id


class TestAtomic:
    def test_rollback_on_error(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        with pytest.raises(RuntimeError):
            with store.atomic():
                store.create_admin_group()
                raise RuntimeError("boom")
        assert store.find_admin_group() is None

    def test_nested_atomic_joins_outer(self, store: MemberStore, encoder: PasswordEncoder) -> None:
        with store.atomic():
            group = store.create_admin_group()
            with store.atomic():
                store.create_member("admin", encoder.encode("pw"), group)
        assert store.find_member_of_group(group).email == "admin"
        assert store.get_by_email("admin") is not None
