"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper. UserStore is the repository (it satisfies
auth.interfaces.UserRepository); _row_to_user is the mapper. Service code
never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Counter columns are bumped in SQL (col = col + 1) so concurrent bumps never
  lose an increment. Column names for increment() come from a fixed
  whitelist, never from callers' input.

Timestamps are stored as ISO 8601 strings (UTC) and mapped back to aware
datetimes.

The RBAC tables (roles, permissions, role_permissions) share this metadata;
auth/rbac.py queries them through the same engine.

Layer rule: no imports from api/ or mail/. core/ is allowed.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Role, User, UserStatus
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

roles = Table(
    "roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
)

permissions = Table(
    "permissions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", String(100), nullable=False, unique=True),  # e.g. "users:read"
    Column("description", Text),
)

role_permissions = Table(
    "role_permissions",
    metadata,
    Column("role_id", Integer, ForeignKey("roles.id"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id"), primary_key=True),
)

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("phone_number", String(32)),
    Column("profile_picture_url", Text),
    Column("password_hash", Text, nullable=False),
    Column("status", String(16), nullable=False, server_default=UserStatus.PENDING.value),
    Column("email_verified_at", String(32)),
    Column("email_verification_hash", String(64), unique=True),  # SHA-256 hex
    Column("user_version", Integer, nullable=False, server_default="0"),
    Column("refresh_token_version", Integer, nullable=False, server_default="0"),
    Column("refresh_token_hash", String(64)),  # SHA-256 hex of the live refresh token
    Column("last_login_at", String(32)),
    Column("role_id", Integer, ForeignKey("roles.id")),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_COUNTERS = {"user_version", "refresh_token_version"}

# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db(fields: dict) -> dict:
    """Convert domain values (datetime, Enum) to their column representation."""
    out = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _user_select():
    return select(users, roles.c.name.label("role_name")).select_from(
        users.outerjoin(roles, users.c.role_id == roles.c.id)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Role rows.

    Usage:
        store = UserStore()
        role = store.find_role_by_name("User")
        user = store.create(User(username="ada", email="ada@example.com", name="Ada",
                                 password_hash=hash_password("secret"), role=role))
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        if db_url is None:
            db_url = get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User lookups
    # ------------------------------------------------------------------

    def find_by_username_for_auth(self, username: str) -> User | None:
        """Exact (case-sensitive) username match including credential columns."""
        return self._fetch_one(users.c.username == username)

    def find_by_id(self, user_id: str) -> User | None:
        return self._fetch_one(users.c.id == user_id)

    def find_by_email(self, email: str) -> User | None:
        """Case-insensitive email match. Used for registration uniqueness."""
        return self._fetch_one(func.lower(users.c.email) == email.lower())

    def find_by_username(self, username: str) -> User | None:
        """Case-insensitive username match. Used for registration uniqueness.

        Login uses find_by_username_for_auth() (exact match) instead, so
        "Ada" and "ada" can never both exist and be confused at login.
        """
        return self._fetch_one(func.lower(users.c.username) == username.lower())

    def find_by_verification_hash(self, digest: str) -> User | None:
        return self._fetch_one(users.c.email_verification_hash == digest)

    def find_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(roles).where(roles.c.name == name)).fetchone()
        return Role(id=row.id, name=row.name) if row is not None else None

    # ------------------------------------------------------------------
    # User writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return the stored record.

        Raises sqlalchemy.exc.IntegrityError if username or email already
        exists. The service checks both first; the constraint is the backstop
        for two registrations racing each other.
        """
        user_id = user.id or uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                users.insert().values(
                    _to_db(
                        {
                            "id": user_id,
                            "username": user.username,
                            "email": user.email,
                            "name": user.name,
                            "phone_number": user.phone_number,
                            "profile_picture_url": user.profile_picture_url,
                            "password_hash": user.password_hash,
                            "status": user.status,
                            "email_verified_at": user.email_verified_at,
                            "email_verification_hash": user.email_verification_hash,
                            "user_version": user.user_version,
                            "refresh_token_version": user.refresh_token_version,
                            "role_id": user.role.id if user.role else None,
                            "created_at": now,
                            "updated_at": now,
                        }
                    )
                )
            )
            conn.commit()
        return self.find_by_id(user_id)

    def update(self, user_id: str, **fields) -> bool:
        """Set columns on one user row. Returns True if a row was updated."""
        if not fields:
            return False
        values = _to_db(fields)
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def increment(self, user_id: str, *counters: str, **fields) -> bool:
        """Add 1 to each named counter and set `fields`, in a single UPDATE.

        Only user_version and refresh_token_version may be incremented.
        Unknown names raise ValueError rather than being ignored.
        """
        unknown = set(counters) - _COUNTERS
        if unknown:
            raise ValueError(f"Unknown counter columns: {unknown!r}")
        values = _to_db(fields)
        for name in counters:
            values[name] = users.c[name] + 1
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch_one(self, clause) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_user_select().where(clause)).fetchone()
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    role = Role(id=row.role_id, name=row.role_name) if row.role_id is not None else None
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        name=row.name,
        phone_number=row.phone_number,
        profile_picture_url=row.profile_picture_url,
        password_hash=row.password_hash,
        status=UserStatus(row.status),
        email_verified_at=_parse_ts(row.email_verified_at),
        email_verification_hash=row.email_verification_hash,
        user_version=row.user_version,
        refresh_token_version=row.refresh_token_version,
        refresh_token_hash=row.refresh_token_hash,
        last_login_at=_parse_ts(row.last_login_at),
        role=role,
        created_at=_parse_ts(row.created_at),
        updated_at=_parse_ts(row.updated_at),
    )
