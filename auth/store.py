"""
auth/store.py -- SQLAlchemy Core persistence layer for users and their README
drafts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
and _row_to_draft are the mappers. Route and service code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  github_access_token is encrypted inside this module on every write that sets
  it (create_user, update_github_identity). Callers pass the plaintext token
  they just received from GitHub; the plaintext never reaches the database.
  get_github_token() is the only read path that decrypts.

  get_by_id() leaves the ciphertext column out of the SELECT unless asked for
  it, so the user object attached to requests never carries it.

  UNIQUE(github_id) tolerates multiple NULLs in SQLite, which is what records
  created before GitHub ids were stored need.

  Every draft query filters on owner_id, so one user can never read, overwrite
  or delete another user's draft for the same repository.

DB path: auth/readivine_auth.db unless DATABASE_URL is set.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.crypto import TokenCipher
from auth.models import ReadmeDraft, User
from core.config import get_settings
from core.errors import InternalError

logger = logging.getLogger("readivine.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("github_id", String(32), unique=True),  # NULL for pre-migration records
    Column("username", String(255), nullable=False, unique=True),  # stored lowercase
    Column("email", String(320), nullable=False, unique=True),
    Column("avatar_url", Text),
    Column("github_access_token", Text),  # Fernet ciphertext
    Column("refresh_token", Text),  # most recently issued refresh token, NULL after logout
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_readmes = Table(
    "readmes",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("repo_full_name", String(200), nullable=False, index=True),  # "owner/name"
    Column("content", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("owner_id", "repo_full_name", name="uq_owner_repo"),
)

# Everything except the encrypted token -- the default projection.
_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "github_access_token"]


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers proceed without blocking during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        uid = store.create_user(User(username="alice", email="alice@example.com", github_id="42"), "gho_...")
        user = store.get_by_id(uid)
        store.close()
    """

    def __init__(self, db_url: str | None = None, cipher: TokenCipher | None = None) -> None:
        settings = get_settings()
        db_url = db_url or settings.database_url
        self.cipher = cipher or TokenCipher(settings.crypto_secret_key)
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        """Return the number of user rows. Used by the health check as a DB probe."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def get_by_id(self, user_id: int, include_token: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found.

        The encrypted GitHub token is only selected when include_token is True.
        """
        columns = list(_users.c) if include_token else _PUBLIC_COLUMNS
        with self.engine.connect() as conn:
            row = conn.execute(select(*columns).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_github_id_or_email(self, github_id: str, email: str) -> User | None:
        """Return the user linked to github_id, else the one registered with email.

        Both can match different rows when an account changed its GitHub email;
        the GitHub id is the stable identifier, so it wins.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(*_PUBLIC_COLUMNS).where((_users.c.github_id == github_id) | (_users.c.email == email))
            ).fetchall()
        if not rows:
            return None
        for row in rows:
            if row.github_id == github_id:
                return _row_to_user(row)
        return _row_to_user(rows[0])

    def get_github_token(self, user_id: int) -> str | None:
        """Return the decrypted GitHub access token for user_id.

        Call this only where an authenticated GitHub request is being built.
        Raises InternalError if the stored ciphertext cannot be decrypted.
        """
        with self.engine.connect() as conn:
            ciphertext = conn.execute(
                select(_users.c.github_access_token).where(_users.c.id == user_id)
            ).scalar()
        return self.cipher.decrypt(ciphertext)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User, github_token: str | None = None) -> int:
        """Insert a new user and return its assigned database ID.

        github_token is the plaintext provider token; it is encrypted here.
        Raises sqlalchemy.exc.IntegrityError on a duplicate username, email
        or github_id.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    github_id=user.github_id,
                    username=user.username.strip().lower(),
                    email=user.email.strip(),
                    avatar_url=user.avatar_url,
                    github_access_token=self.cipher.encrypt(github_token),
                    refresh_token=user.refresh_token,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_github_identity(
        self,
        user_id: int,
        github_id: str,
        avatar_url: str | None,
        github_token: str | None,
    ) -> bool:
        """Refresh the GitHub link on every login. github_token is encrypted here.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    github_id=github_id,
                    avatar_url=avatar_url,
                    github_access_token=self.cipher.encrypt(github_token),
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def set_refresh_token(self, user_id: int, refresh_token: str | None) -> bool:
        """Store (or with None, clear) the user's current refresh token.

        A single-column UPDATE -- no other field is re-validated or rewritten.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(refresh_token=refresh_token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def clear_refresh_token(self, user_id: int) -> bool:
        return self.set_refresh_token(user_id, None)

    # ------------------------------------------------------------------
    # README drafts
    # ------------------------------------------------------------------

    def get_readme_draft(self, owner_id: int, repo_full_name: str) -> ReadmeDraft | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_readmes).where(
                    (_readmes.c.owner_id == owner_id) & (_readmes.c.repo_full_name == repo_full_name)
                )
            ).fetchone()
        return _row_to_draft(row) if row is not None else None

    def save_readme_draft(self, owner_id: int, repo_full_name: str, content: str) -> ReadmeDraft:
        """Create or replace the owner's draft for repo_full_name and return it."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _readmes.update()
                .where((_readmes.c.owner_id == owner_id) & (_readmes.c.repo_full_name == repo_full_name))
                .values(content=content, updated_at=now)
            )
            if result.rowcount == 0:
                conn.execute(
                    _readmes.insert().values(
                        owner_id=owner_id,
                        repo_full_name=repo_full_name,
                        content=content,
                        created_at=now,
                        updated_at=now,
                    )
                )
                logger.info("Created README draft (user_id=%s, repo=%s)", owner_id, repo_full_name)
            conn.commit()
        draft = self.get_readme_draft(owner_id, repo_full_name)
        if draft is None:
            raise InternalError("README draft disappeared while saving.")
        return draft

    def delete_readme_draft(self, owner_id: int, repo_full_name: str) -> bool:
        """Returns True if a draft was deleted, False if there was none."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _readmes.delete().where(
                    (_readmes.c.owner_id == owner_id) & (_readmes.c.repo_full_name == repo_full_name)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def repos_with_drafts(self, owner_id: int, repo_full_names: list[str]) -> list[str]:
        """Return the subset of repo_full_names the owner has a draft for."""
        if not repo_full_names:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_readmes.c.repo_full_name)
                .where((_readmes.c.owner_id == owner_id) & (_readmes.c.repo_full_name.in_(repo_full_names)))
                .order_by(_readmes.c.repo_full_name)
            ).fetchall()
        return [row.repo_full_name for row in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # github_access_token is absent from rows selected with _PUBLIC_COLUMNS.
    return User(
        id=row.id,
        github_id=row.github_id,
        username=row.username,
        email=row.email,
        avatar_url=row.avatar_url,
        github_access_token=getattr(row, "github_access_token", None),
        refresh_token=row.refresh_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_draft(row) -> ReadmeDraft:
    return ReadmeDraft(
        id=row.id,
        owner_id=row.owner_id,
        repo_full_name=row.repo_full_name,
        content=row.content,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
