"""Database initialization and key/value record storage."""
import json
import os
import sqlite3
from datetime import datetime
from pathlib import Path

DATA_DIR = Path(os.environ.get("SPELLING_BEE_DATA", Path.home() / ".spelling_bee"))
DEFAULT_DB_PATH = os.environ.get("SPELLING_BEE_DB", str(DATA_DIR / "spelling.db"))

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    collection TEXT NOT NULL,
    key TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (collection, key)
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating the records table if it doesn't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def get_record(db_path: str, collection: str, key: str) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT data FROM records WHERE collection = ? AND key = ?", (collection, key)
    ).fetchone()
    conn.close()
    return json.loads(row["data"]) if row else None


def put_record(db_path: str, collection: str, key: str, record: dict) -> None:
    """Replace the whole record stored under (collection, key)."""
    conn = get_connection(db_path)
    write_record(conn, collection, key, record)
    conn.commit()
    conn.close()


def write_record(conn: sqlite3.Connection, collection: str, key: str, record: dict) -> None:
    """Upsert on an open connection, leaving the commit to the caller."""
    data = json.dumps(record)
    now = datetime.now().isoformat()
    conn.execute(
        "INSERT INTO records (collection, key, data, updated_at) VALUES (?, ?, ?, ?) "
        "ON CONFLICT(collection, key) DO UPDATE SET data=?, updated_at=?",
        (collection, key, data, now, data, now),
    )


def delete_record(db_path: str, collection: str, key: str) -> None:
    conn = get_connection(db_path)
    conn.execute("DELETE FROM records WHERE collection = ? AND key = ?", (collection, key))
    conn.commit()
    conn.close()


def list_keys(db_path: str, collection: str, prefix: str = "") -> list[str]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT key FROM records WHERE collection = ? AND key LIKE ? ESCAPE '\\' ORDER BY key",
        (collection, prefix.replace("%", r"\%").replace("_", r"\_") + "%"),
    ).fetchall()
    conn.close()
    return [row["key"] for row in rows]
