"""
auth/store.py -- SQLAlchemy Core persistence layer for members and groups.

Pattern: Repository + Data Mapper. MemberStore implements IdentityRepository;
_row_to_member / _row_to_group are the mappers. The verifier and the CLI never
touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Password comparison happens here, not in SQL: the stored algorithm and salt
  are read first, then PasswordEncoder.verify() re-derives the candidate. A
  "WHERE password = ?" lookup cannot work once passwords are salted.

  Unknown emails still run one verify() against a dummy secret so response
  time does not reveal whether an email exists.

Transactions:
  Each public method runs in its own engine.begin() block unless called inside
  atomic(), in which case it joins that transaction. atomic() also holds a
  process-wide lock so two threads bootstrapping an administrator cannot both
  see "no admin group" and create two.

Layer rule: imports from auth/ and core/ only.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.algorithms import Algorithm
from auth.encoder import PasswordEncoder
from auth.models import EncodedSecret, Group, Member
from core.config import get_settings
from core.errors import UnsupportedAlgorithmError

logger = logging.getLogger("keyward.store")

ADMIN_PERMISSION = "ADMIN"
ADMIN_GROUP_TITLE = "Administrators"
ADMIN_GROUP_CODE = "administrators"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_members = Table(
    "members",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("surname", String(100), nullable=False, server_default=""),
    Column("password", String(64)),  # NULL = no password set
    Column("salt", String(50)),
    Column("password_encryption", String(30), nullable=False, server_default="none"),
    Column("created_at", String(32), nullable=False),
)

_groups = Table(
    "groups",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("code", String(100), nullable=False, unique=True),
)

_permissions = Table(
    "permissions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("group_id", Integer, ForeignKey("groups.id"), nullable=False),
    Column("code", String(50), nullable=False),
    UniqueConstraint("group_id", "code"),
)

_group_members = Table(
    "group_members",
    _metadata,
    Column("group_id", Integer, ForeignKey("groups.id"), primary_key=True),
    Column("member_id", Integer, ForeignKey("members.id"), primary_key=True),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MemberStore:
    """SQLAlchemy implementation of IdentityRepository.

    Usage:
        store = MemberStore(encoder)
        member = store.create_member("jane@example.com", encoder.encode("secret"))
        store.find_by_email_and_encoded_password("jane@example.com", "secret")
        store.close()
    """

    def __init__(self, encoder: PasswordEncoder, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

        self._encoder = encoder
        self._local = threading.local()
        self._atomic_lock = threading.RLock()
        self._dummy_secret = encoder.encode("keyward_timing_dummy")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Serialize the enclosed calls and run them in a single transaction.

        Re-entrant: a nested atomic() joins the outer transaction.
        """
        with self._atomic_lock:
            if getattr(self._local, "conn", None) is not None:
                yield
                return
            with self.engine.begin() as conn:
                self._local.conn = conn
                try:
                    yield
                finally:
                    self._local.conn = None

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        with self.engine.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Member queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Member | None:
        """Look up a member by exact email (case-sensitive). Returns None if not found."""
        with self._connection() as conn:
            row = conn.execute(_members.select().where(_members.c.email == email)).fetchone()
        return _row_to_member(row) if row is not None else None

    def find_by_email_and_encoded_password(self, email: str, clear_password: str) -> Member | None:
        """Return the member when clear_password matches the stored credential.

        Unknown email and wrong password both return None.
        """
        member = self.get_by_email(email)
        if member is None:
            self._encoder.verify(clear_password, self._dummy_secret)
            return None
        try:
            stored = member.secret
        except UnsupportedAlgorithmError:
            logger.warning(
                "Member %s has a password stored with unknown algorithm %r",
                member.id,
                member.password_encryption,
            )
            return None
        if not self._encoder.verify(clear_password, stored):
            return None
        return member

    def create_member(
        self,
        username: str,
        encoded_secret: EncodedSecret,
        group: Group | None = None,
        *,
        first_name: str = "",
        surname: str = "",
    ) -> Member:
        """Insert a member, optionally adding it to group, and return it.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self._connection() as conn:
            result = conn.execute(
                _members.insert().values(
                    email=username,
                    first_name=first_name,
                    surname=surname,
                    password=encoded_secret.value,
                    salt=encoded_secret.salt,
                    password_encryption=encoded_secret.algorithm.value,
                    created_at=_now_iso(),
                )
            )
            member_id = result.inserted_primary_key[0]
            if group is not None:
                conn.execute(_group_members.insert().values(group_id=group.id, member_id=member_id))
            row = conn.execute(_members.select().where(_members.c.id == member_id)).fetchone()
        logger.info("Created member %s", member_id)
        return _row_to_member(row)

    def update_password(self, member_id: int, encoded_secret: EncodedSecret) -> bool:
        """Replace the stored credential. Returns False if member_id was not found."""
        with self._connection() as conn:
            result = conn.execute(
                _members.update()
                .where(_members.c.id == member_id)
                .values(
                    password=encoded_secret.value,
                    salt=encoded_secret.salt,
                    password_encryption=encoded_secret.algorithm.value,
                )
            )
        return result.rowcount > 0

    def list_clear_text_members(self) -> list[Member]:
        with self._connection() as conn:
            rows = conn.execute(
                _members.select()
                .where(
                    (_members.c.password_encryption == Algorithm.NONE.value) & (_members.c.password.is_not(None))
                )
                .order_by(_members.c.id)
            ).fetchall()
        return [_row_to_member(r) for r in rows]

    # ------------------------------------------------------------------
    # Groups and permissions
    # ------------------------------------------------------------------

    def add_member_to_group(self, member: Member, group: Group) -> None:
        with self._connection() as conn:
            conn.execute(_group_members.insert().values(group_id=group.id, member_id=member.id))

    def find_admin_group(self) -> Group | None:
        query = (
            select(_groups)
            .join(_permissions, _permissions.c.group_id == _groups.c.id)
            .where(_permissions.c.code == ADMIN_PERMISSION)
            .order_by(_permissions.c.id)
            .limit(1)
        )
        with self._connection() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_group(row) if row is not None else None

    def create_admin_group(self) -> Group:
        """Grant ADMIN to the "administrators" group, inserting the group if missing.

        Only called when find_admin_group() came back empty, so an existing
        group with the administrators code never holds ADMIN yet.
        """
        with self._connection() as conn:
            row = conn.execute(_groups.select().where(_groups.c.code == ADMIN_GROUP_CODE)).fetchone()
            if row is not None:
                group = _row_to_group(row)
                logger.info("Granting %s to existing group %s", ADMIN_PERMISSION, group.id)
            else:
                result = conn.execute(_groups.insert().values(title=ADMIN_GROUP_TITLE, code=ADMIN_GROUP_CODE))
                group = Group(title=ADMIN_GROUP_TITLE, code=ADMIN_GROUP_CODE, id=result.inserted_primary_key[0])
                logger.info("Created administrators group %s", group.id)
            conn.execute(_permissions.insert().values(group_id=group.id, code=ADMIN_PERMISSION))
        return group

    def find_member_of_group(self, group: Group) -> Member | None:
        query = (
            select(_members)
            .join(_group_members, _group_members.c.member_id == _members.c.id)
            .where(_group_members.c.group_id == group.id)
            .order_by(_members.c.id)
            .limit(1)
        )
        with self._connection() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_member(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_member(row) -> Member:
    return Member(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        surname=row.surname,
        password=row.password,
        salt=row.salt,
        password_encryption=row.password_encryption,
        created_at=row.created_at,
    )


def _row_to_group(row) -> Group:
    return Group(id=row.id, title=row.title, code=row.code)
