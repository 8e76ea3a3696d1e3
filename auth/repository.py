"""
auth/repository.py -- The identity repository contract the verifier depends on.

CredentialVerifier never issues a query itself; it decides *which* comparison
path to take and delegates the lookup to an IdentityRepository. MemberStore
(auth/store.py) is the SQLAlchemy implementation; tests may supply any object
with these methods.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from auth.models import EncodedSecret, Group, Member


class IdentityRepository(Protocol):
    def find_by_email_and_encoded_password(self, email: str, clear_password: str) -> Member | None:
        """Return the member if email exists and clear_password matches its stored secret."""
        ...

    def find_admin_group(self) -> Group | None:
        """Return the first group granted the ADMIN permission."""
        ...

    def create_admin_group(self) -> Group:
        """Grant ADMIN to the administrators group, creating the group if it does not exist."""
        ...

    def find_member_of_group(self, group: Group) -> Member | None:
        ...

    def get_by_email(self, email: str) -> Member | None:
        ...

    def add_member_to_group(self, member: Member, group: Group) -> None:
        ...

    def create_member(
        self,
        username: str,
        encoded_secret: EncodedSecret,
        group: Group | None = None,
        *,
        first_name: str = "",
        surname: str = "",
    ) -> Member:
        ...

    def update_password(self, member_id: int, encoded_secret: EncodedSecret) -> bool:
        ...

    def list_clear_text_members(self) -> list[Member]:
        """Members whose password is stored with algorithm "none"."""
        ...

    def atomic(self) -> AbstractContextManager:
        """Run the enclosed repository calls as one serialized transaction."""
        ...
