import logging
import sqlite3
from pathlib import Path

from filesys_db.errors import BackendError, InvalidArgumentError

logger = logging.getLogger(__name__)

MEMORY_LOCATION = ":memory:"
JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS Files (
    path TEXT PRIMARY KEY,
    is_binary INTEGER NOT NULL DEFAULT 0,
    data BLOB
);

CREATE INDEX IF NOT EXISTS idx_files_path ON Files (path);
"""


def open_connection(
    location: str | Path,
    *,
    journal_mode: str = "WAL",
    busy_timeout: float = 5.0,
) -> sqlite3.Connection:
    """Open the database at ``location`` and make sure the schema exists.

    The connection is returned in autocommit mode; callers that need several
    statements to land together issue ``BEGIN``/``COMMIT`` themselves.
    """
    if journal_mode.upper() not in JOURNAL_MODES:
        raise InvalidArgumentError(f"unsupported journal mode: {journal_mode}")

    target = str(location)
    if target != MEMORY_LOCATION:
        Path(target).expanduser().parent.mkdir(parents=True, exist_ok=True)
        target = str(Path(target).expanduser())

    try:
        conn = sqlite3.connect(target, timeout=busy_timeout, isolation_level=None)
    except sqlite3.Error as exc:
        raise BackendError(f"cannot open database at {location}: {exc}") from exc

    try:
        row = conn.execute(f"PRAGMA journal_mode = {journal_mode};").fetchone()
        conn.executescript(SCHEMA_SQL)
    except sqlite3.Error as exc:
        conn.close()
        raise BackendError(f"cannot initialize database at {location}: {exc}") from exc

    logger.debug("opened %s journal_mode=%s", target, row[0] if row else None)
    return conn
