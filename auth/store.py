"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and RefreshTokenStore are the repositories; _row_to_user /
_row_to_refresh_token are the mappers. The service never touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Schema notes:
  users.name and users.email carry UNIQUE constraints. create_user() and
  update_basic_info() let sqlalchemy.exc.IntegrityError propagate; the
  service turns it into a single "already taken" conflict without saying
  which column collided.

  refresh_tokens.user_id is a plain integer, not a foreign key. A user row
  can disappear while its tokens remain; SessionService.delete_account()
  removes the tokens first.

  Timestamps are stored as ISO 8601 UTC strings with fixed microsecond
  precision, so lexical order equals chronological order and ORDER BY on
  the column is correct.

Both stores can share one Engine (pass engine=user_store.engine) or each
create their own from a URL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine

from auth.models import RefreshToken, User

logger = logging.getLogger("sessionauth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sessionauth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("is_blocked", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token", String(128), nullable=False, unique=True),
    Column("expiration", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str = _DEFAULT_DB_URL) -> Engine:
    """Create an Engine and make sure both auth tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


def _to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        uid = store.create_user(User(name="alice", email="a@x.com", password_hash=hash_password("...")))
        user = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, engine: Engine | None = None) -> None:
        self.engine: Engine = engine if engine is not None else make_engine(db_url)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the name or email is taken.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    password_hash=user.password_hash,
                    is_blocked=1 if user.is_blocked else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find_by_email(self, email: str) -> User | None:
        """Exact, case-sensitive match. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def name_or_email_taken(self, name: str, email: str) -> tuple[bool, bool]:
        """Return (name_taken, email_taken) in one round trip."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_users.c.name, _users.c.email).where((_users.c.name == name) | (_users.c.email == email))
            ).fetchall()
        return any(r.name == name for r in rows), any(r.email == email for r in rows)

    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        """Returns True if a row was updated, False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(password_hash=password_hash))
            conn.commit()
        return result.rowcount > 0

    def update_basic_info(self, user_id: int, name: str, email: str) -> bool:
        """Change name and email. Raises IntegrityError on a uniqueness clash."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(name=name, email=email))
            conn.commit()
        return result.rowcount > 0

    def set_blocked(self, user_id: int, blocked: bool) -> bool:
        """Administrative toggle. Nothing in SessionService calls this."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(is_blocked=1 if blocked else 0)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted.

        Refresh tokens are not touched here -- callers delete them first.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


class RefreshTokenStore:
    """Repository for RefreshToken rows.

    Expiration is stored and used for ordering (find_newest) but not filtered
    on in find(); see DESIGN.md.
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, engine: Engine | None = None) -> None:
        self.engine: Engine = engine if engine is not None else make_engine(db_url)

    def count_for_user(self, user_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_refresh_tokens).where(_refresh_tokens.c.user_id == user_id)
            ).scalar()
        return result or 0

    def create(self, token: RefreshToken) -> int:
        """Insert a refresh token row and return its ID.

        Raises IntegrityError if the token value already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.insert().values(
                    user_id=token.user_id,
                    token=token.token,
                    expiration=_to_iso(token.expiration),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find(self, token: str, user_id: int) -> RefreshToken | None:
        """Look up a token that belongs to user_id. Both must match."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(
                    (_refresh_tokens.c.token == token) & (_refresh_tokens.c.user_id == user_id)
                )
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def find_newest(self, user_id: int) -> RefreshToken | None:
        """Return the token with the latest expiration (earliest insert on ties)."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.expiration.desc(), _refresh_tokens.c.id.asc())
                .limit(1)
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def delete_for_user(self, user_id: int) -> int:
        """Delete every token of user_id. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        is_blocked=bool(row.is_blocked),
        created_at=row.created_at,
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expiration=datetime.fromisoformat(row.expiration),
    )
