"""
auth/models.py -- Domain dataclasses for credential entities.

Pattern: Data class (pure data container, zero logic). The encoder, verifier
and store do the work; these dataclasses only own the shape.

Layer rule: imports only from auth/algorithms.py and core/.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.algorithms import Algorithm
from core.errors import UnsupportedAlgorithmError


@dataclass(frozen=True)
class EncodedSecret:
    """The stored, non-reversible form of a password.

    Self-describing: the algorithm and salt travel with the value, so the
    policy can change over time without invalidating existing credentials.

    algorithm == Algorithm.NONE means no hashing happened:
      - value is the clear text (truncated to 64 chars), salt is None, or
      - value and salt are both None when no password was provided.
    """

    value: str | None
    salt: str | None
    algorithm: Algorithm

    @property
    def is_empty(self) -> bool:
        return self.value is None

    def as_dict(self) -> dict:
        return {"value": self.value, "salt": self.salt, "algorithm": self.algorithm.value}


@dataclass(frozen=True)
class EncodingPolicy:
    """Snapshot of how new secrets are encoded.

    Frozen so a reader always sees a consistent triple; SecurityConfig swaps
    the whole snapshot when the policy changes.
    """

    enabled: bool = True
    algorithm: Algorithm = Algorithm.SHA1
    use_salt: bool = True


@dataclass(frozen=True)
class DefaultAdminCredential:
    """Bootstrap login that exists only in process memory, never in the store."""

    username: str
    password: str

    @property
    def is_set(self) -> bool:
        return bool(self.username) and bool(self.password)


@dataclass
class Group:
    """A group of members. Permissions are granted to groups, not members.

    id is None before the record is written to the database.
    """

    title: str
    code: str
    id: int | None = None


@dataclass
class Member:
    """A stored identity.

    email doubles as the login name -- the bootstrap administrator is created
    with email="admin" so the default-admin override and a real login resolve
    to the same record.

    password / salt / password_encryption are the persisted EncodedSecret.
    password is None for members created without a password.
    """

    email: str
    first_name: str = ""
    surname: str = ""
    password: str | None = None
    salt: str | None = None
    password_encryption: str = Algorithm.NONE.value
    id: int | None = None
    created_at: str | None = None

    @property
    def secret(self) -> EncodedSecret:
        """Rebuild the stored EncodedSecret.

        Raises UnsupportedAlgorithmError for an algorithm name this runtime does
        not know. Falling back to NONE would turn the stored hash into a
        clear-text password.
        """
        algorithm = Algorithm.parse(self.password_encryption)
        if algorithm is None:
            raise UnsupportedAlgorithmError(self.password_encryption)
        return EncodedSecret(value=self.password, salt=self.salt, algorithm=algorithm)

    @property
    def title(self) -> str:
        name = f"{self.first_name} {self.surname}".strip()
        return name or self.email
