"""SQLite-backed persistence for users and citizen profiles."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.pool import QueuePool

from .config import DEFAULT_POOL_SIZE, DEFAULT_STORE_TIMEOUT
from .errors import ConflictError, StoreTimeoutError, UnexpectedError
from .models import CitizenProfile, ProfileFields, Role, User

logger = logging.getLogger("healthbridge.database")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'citizen'
            CHECK (role IN ('citizen', 'administrator')),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS citizens (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        dob TEXT,
        phone TEXT,
        address TEXT,
        gender TEXT,
        created_at TEXT NOT NULL
    )
    """,
)


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _is_lock_timeout(exc: sa_exc.OperationalError) -> bool:
    message = str(exc.orig).lower()
    return "locked" in message or "busy" in message


def _build_engine(path: Path, *, pool_size: int, timeout: float) -> Engine:
    """Create a bounded SQLite engine.

    At most ``pool_size`` connections are checked out at once. Callers block
    while the pool is exhausted for up to ``timeout`` seconds; each connection
    also waits at most ``timeout`` seconds on a locked database file.
    """

    if pool_size < 1:
        raise ValueError("Pool size must be at least 1")

    engine = create_engine(
        f"sqlite:///{path}",
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=timeout,
        connect_args={"timeout": timeout, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    return engine


class Database:
    """Credential store holding user accounts and citizen profiles."""

    def __init__(
        self,
        path: Path,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_STORE_TIMEOUT,
    ) -> None:
        _ensure_directory(path)
        self._path = path
        self._engine = _build_engine(path, pool_size=pool_size, timeout=timeout)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        """Check out a pooled connection and run the block as one transaction.

        Driver errors are translated here: pool exhaustion and lock waits
        become :class:`StoreTimeoutError`, a duplicate ``users.email`` becomes
        :class:`ConflictError` and anything else :class:`UnexpectedError`.
        """

        try:
            with self._engine.begin() as conn:
                yield conn
        except sa_exc.TimeoutError as exc:
            raise StoreTimeoutError("Timed out waiting for a database connection") from exc
        except sa_exc.IntegrityError as exc:
            if "users.email" in str(exc.orig):
                raise ConflictError() from exc
            raise UnexpectedError("Database constraint violated") from exc
        except sa_exc.OperationalError as exc:
            if _is_lock_timeout(exc):
                raise StoreTimeoutError("Timed out waiting for a database lock") from exc
            raise UnexpectedError("Database operation failed") from exc
        except sa_exc.SQLAlchemyError as exc:
            raise UnexpectedError("Database operation failed") from exc

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(text(statement))
        logger.debug("Schema ensured at %s", self._path)

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def email_exists(self, email: str) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                text("SELECT 1 FROM users WHERE email = :email"),
                {"email": email},
            ).first()
        return row is not None

    def create_citizen(
        self,
        name: str,
        email: str,
        password_hash: str,
        profile: ProfileFields,
    ) -> User:
        """Insert a citizen and their profile atomically.

        Both rows are written in one transaction; if the profile insert fails
        the user row is rolled back with it.
        """

        created_at = _current_timestamp()
        fields = profile.normalised()
        with self._transaction() as conn:
            user_id = self._insert_user(conn, name, email, password_hash, Role.CITIZEN, created_at)
            conn.execute(
                text(
                    """
                    INSERT INTO citizens (user_id, dob, phone, address, gender, created_at)
                    VALUES (:user_id, :dob, :phone, :address, :gender, :created_at)
                    """
                ),
                {
                    "user_id": user_id,
                    "dob": fields.dob,
                    "phone": fields.phone,
                    "address": fields.address,
                    "gender": fields.gender,
                    "created_at": _serialize_datetime(created_at),
                },
            )

        return User(id=user_id, name=name, email=email, role=Role.CITIZEN, created_at=created_at)

    def create_user(self, name: str, email: str, password_hash: str, role: Role) -> User:
        """Insert an account without a citizen profile."""

        created_at = _current_timestamp()
        with self._transaction() as conn:
            user_id = self._insert_user(conn, name, email, password_hash, role, created_at)
        return User(id=user_id, name=name, email=email, role=role, created_at=created_at)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute(
                text("SELECT id, name, email, role, created_at FROM users WHERE id = :id"),
                {"id": user_id},
            ).mappings().first()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_credentials(self, email: str) -> Optional[Tuple[User, str]]:
        """Return the user and stored password verifier for ``email``."""

        with self._transaction() as conn:
            row = conn.execute(
                text(
                    "SELECT id, name, email, role, created_at, password_hash "
                    "FROM users WHERE email = :email"
                ),
                {"email": email},
            ).mappings().first()
        if row is None:
            return None
        return self._row_to_user(row), str(row["password_hash"])

    def list_users(self) -> List[User]:
        with self._transaction() as conn:
            rows = conn.execute(
                text("SELECT id, name, email, role, created_at FROM users ORDER BY id")
            ).mappings().all()
        return [self._row_to_user(row) for row in rows]

    # ------------------------------------------------------------------
    # Citizen profiles
    # ------------------------------------------------------------------
    def get_citizen_profile(self, user_id: int) -> Optional[CitizenProfile]:
        with self._transaction() as conn:
            row = conn.execute(
                text("SELECT * FROM citizens WHERE user_id = :user_id"),
                {"user_id": user_id},
            ).mappings().first()
        if row is None:
            return None
        return self._row_to_profile(row)

    def list_citizen_profiles(self) -> List[CitizenProfile]:
        with self._transaction() as conn:
            rows = conn.execute(text("SELECT * FROM citizens ORDER BY user_id")).mappings().all()
        return [self._row_to_profile(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _insert_user(
        self,
        conn: Connection,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        created_at: datetime,
    ) -> int:
        result = conn.execute(
            text(
                """
                INSERT INTO users (name, email, password_hash, role, created_at)
                VALUES (:name, :email, :password_hash, :role, :created_at)
                """
            ),
            {
                "name": name,
                "email": email,
                "password_hash": password_hash,
                "role": role.value,
                "created_at": _serialize_datetime(created_at),
            },
        )
        return int(result.lastrowid)

    def _row_to_user(self, row: RowMapping) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            role=Role(row["role"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_profile(self, row: RowMapping) -> CitizenProfile:
        return CitizenProfile(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            dob=row["dob"],
            phone=row["phone"],
            address=row["address"],
            gender=row["gender"],
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database"]
