from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from filesys_db.errors import (
    AlreadyExistsError,
    BackendError,
    DatabaseBusyError,
    InvalidArgumentError,
    InvalidEncodingError,
    MoveFailedError,
    NotFoundError,
)
from filesys_db.retry_policy import with_retry
from filesys_db.settings import FsSettings
from filesys_db.storage.db import open_connection
from filesys_db.wildcard import LIKE_ESCAPE, pattern_to_like, prefix_to_like

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    path: str
    is_binary: bool
    data: bytes


def _as_bytes(value: object) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _require_paths(source_path: str, dest_path: str) -> None:
    if not source_path or not source_path.strip() or not dest_path or not dest_path.strip():
        raise InvalidArgumentError("Source or destination file path cannot be empty.")
    for path in (source_path, dest_path):
        _require_encodable(path)


def _require_encodable(path: str) -> None:
    try:
        path.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidArgumentError(f"path is not valid UTF-8 text: {path!r}") from exc


def _is_busy(exc: sqlite3.Error) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


@contextmanager
def _backend_errors(action: str) -> Iterator[None]:
    try:
        yield
    except UnicodeEncodeError as exc:
        raise InvalidArgumentError(f"{action}: {exc}") from exc
    except sqlite3.Error as exc:
        if _is_busy(exc):
            raise DatabaseBusyError(f"{action}: {exc}") from exc
        raise BackendError(f"{action}: {exc}") from exc


class PathBlobStore:
    """Files stored as rows of a single ``Files`` table, keyed by path.

    Build one with :meth:`open` (or :func:`open_or_create`) and release it with
    :meth:`close` or a ``with`` block.
    """

    def __init__(self, conn: sqlite3.Connection, location: str) -> None:
        self._conn = conn
        self.location = location
        self._closed = False

    @classmethod
    def open(cls, location: str | Path, settings: FsSettings | None = None) -> PathBlobStore:
        if settings is None:
            conn = open_connection(location)
        else:
            conn = open_connection(
                location,
                journal_mode=settings.fsdb_journal_mode,
                busy_timeout=settings.fsdb_busy_timeout_seconds,
            )
        logger.debug("store ready at %s", location)
        return cls(conn, str(location))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def conn(self) -> sqlite3.Connection:
        if self._closed:
            raise BackendError(f"store at {self.location} is closed")
        return self._conn

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._conn.close()

    def __enter__(self) -> PathBlobStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write_text(self, path: str, content: str) -> None:
        try:
            data = content.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidArgumentError(f"content for {path!r} is not valid UTF-8 text") from exc
        self._upsert(path, is_binary=False, data=data)

    def write_bytes(self, path: str, content: bytes) -> None:
        if not isinstance(content, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError(
                f"content for {path!r} must be bytes-like, not {type(content).__name__}"
            )
        self._upsert(path, is_binary=True, data=bytes(content))

    @with_retry(max_attempts=3)
    def _upsert(self, path: str, *, is_binary: bool, data: bytes) -> None:
        with _backend_errors(f"write {path}"):
            self.conn.execute(
                "INSERT OR REPLACE INTO Files (path, is_binary, data) VALUES (?, ?, ?)",
                (path, int(is_binary), data),
            )

    def read_bytes(self, path: str) -> bytes:
        with _backend_errors(f"read {path}"):
            row = self.conn.execute("SELECT data FROM Files WHERE path = ?", (path,)).fetchone()
        if row is None:
            raise NotFoundError(path)
        return _as_bytes(row[0])

    def read_text(self, path: str) -> str:
        content = self.read_bytes(path)
        if not content:
            return ""
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidEncodingError(path) from exc

    def stat(self, path: str) -> FileRecord:
        with _backend_errors(f"stat {path}"):
            row = self.conn.execute(
                "SELECT path, is_binary, data FROM Files WHERE path = ?",
                (path,),
            ).fetchone()
        if row is None:
            raise NotFoundError(path)
        return FileRecord(path=row[0], is_binary=bool(row[1]), data=_as_bytes(row[2]))

    def exists(self, path: str) -> bool:
        with _backend_errors(f"exists {path}"):
            return self._exists(path)

    def _exists(self, path: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM Files WHERE path = ? LIMIT 1", (path,)).fetchone()
        return row is not None

    def list(self, dir_prefix: str = "", pattern: str = "*") -> list[str]:
        """Paths starting with ``dir_prefix`` that match ``pattern``.

        ``*`` matches any run of characters, ``?`` and ``.`` match exactly one.
        A pattern with neither ``*`` nor ``?`` matches any path containing it.
        Matching is unanchored and ASCII case-insensitive; order is unspecified.
        """
        with _backend_errors(f"list {dir_prefix!r} {pattern!r}"):
            rows = self.conn.execute(
                f"SELECT path FROM Files "
                f"WHERE path LIKE ? ESCAPE '{LIKE_ESCAPE}' AND path LIKE ? ESCAPE '{LIKE_ESCAPE}'",
                (prefix_to_like(dir_prefix), pattern_to_like(pattern)),
            ).fetchall()
        return [row[0] for row in rows]

    @with_retry(max_attempts=3)
    def copy(self, source_path: str, dest_path: str) -> None:
        _require_paths(source_path, dest_path)
        with _backend_errors(f"copy {source_path} -> {dest_path}"):
            if not self._exists(source_path):
                raise NotFoundError(source_path)
            if self._exists(dest_path):
                raise AlreadyExistsError(dest_path)
            try:
                cursor = self.conn.execute(
                    "INSERT INTO Files (path, is_binary, data) "
                    "SELECT ?, is_binary, data FROM Files WHERE path = ?",
                    (dest_path, source_path),
                )
            except sqlite3.IntegrityError as exc:
                raise AlreadyExistsError(dest_path) from exc
        if cursor.rowcount == 0:
            raise NotFoundError(source_path)
        logger.debug("copied %s -> %s", source_path, dest_path)

    @with_retry(max_attempts=3)
    def move(self, source_path: str, dest_path: str, overwrite: bool = False) -> None:
        """Rename ``source_path`` to ``dest_path`` in a single transaction.

        Existence checks run inside the transaction; ``NotFoundError`` and
        ``AlreadyExistsError`` propagate after the rollback. Any other failure
        once the transaction is open is rolled back and re-raised as
        :class:`MoveFailedError`. A failing ``BEGIN IMMEDIATE`` opens nothing
        and surfaces as :class:`BackendError` (or ``DatabaseBusyError``).
        """
        _require_paths(source_path, dest_path)
        conn = self.conn
        with _backend_errors(f"move {source_path} -> {dest_path}"):
            conn.execute("BEGIN IMMEDIATE")

        try:
            dest_exists = self._rename_in_transaction(source_path, dest_path, overwrite)
        except (NotFoundError, AlreadyExistsError):
            self._rollback()
            raise
        except Exception as exc:
            self._rollback()
            logger.warning("move %s -> %s rolled back: %s", source_path, dest_path, exc)
            raise MoveFailedError(source_path, dest_path, exc) from exc
        except BaseException:
            self._rollback()
            raise

        logger.debug(
            "moved %s -> %s%s",
            source_path,
            dest_path,
            " (overwrote destination)" if dest_exists else "",
        )

    def _rename_in_transaction(self, source_path: str, dest_path: str, overwrite: bool) -> bool:
        conn = self._conn
        if not self._exists(source_path):
            raise NotFoundError(source_path)
        dest_exists = self._exists(dest_path)
        if dest_exists and not overwrite:
            raise AlreadyExistsError(dest_path)

        if source_path == dest_path:
            conn.execute("ROLLBACK")
            return False

        if dest_exists:
            conn.execute("DELETE FROM Files WHERE path = ?", (dest_path,))
        cursor = conn.execute(
            "UPDATE Files SET path = ? WHERE path = ?",
            (dest_path, source_path),
        )
        if cursor.rowcount != 1:
            raise BackendError(f"rename of {source_path} matched {cursor.rowcount} rows")
        conn.execute("COMMIT")
        return dest_exists

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    @with_retry(max_attempts=3)
    def delete(self, path: str) -> bool:
        with _backend_errors(f"delete {path}"):
            cursor = self.conn.execute("DELETE FROM Files WHERE path = ?", (path,))
        if cursor.rowcount == 0:
            logger.info("No file found with the path: %s", path)
            return False
        return True


def open_or_create(location: str | Path, settings: FsSettings | None = None) -> PathBlobStore:
    return PathBlobStore.open(location, settings)
