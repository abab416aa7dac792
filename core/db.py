"""SQLite event store for the agent-visualizer ingestion server."""

import os
import sqlite3
import json

PLUGIN_ROOT = os.environ.get('CLAUDE_PLUGIN_ROOT') or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

MAX_QUERY_LIMIT = 1000


def get_db_path(explicit_path=None):
    """Return the database path.

    Priority: explicit path > CLAUDE_VISUALIZER_DB env var > data/visualizer.db
    under the plugin root.
    """
    if explicit_path:
        return explicit_path
    if os.environ.get('CLAUDE_VISUALIZER_DB'):
        return os.environ['CLAUDE_VISUALIZER_DB']
    return os.path.join(PLUGIN_ROOT, 'data', 'visualizer.db')


def _get_connection(db_path=None):
    """Create a new database connection with WAL mode enabled."""
    path = get_db_path(db_path)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path=None):
    """Create tables and indexes if they don't exist."""
    conn = _get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                session_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                payload_json TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_session_id ON events(session_id);
            CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);
            CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
        """)
        conn.commit()
    finally:
        conn.close()


def insert_event(event, db_path=None):
    """Store a validated event dict. A repeated id is ignored.

    Returns True if a new row was written.
    """
    conn = _get_connection(db_path)
    try:
        cursor = conn.execute(
            """INSERT OR IGNORE INTO events
               (id, type, session_id, timestamp, payload_json)
               VALUES (?, ?, ?, ?, ?)""",
            (
                event['id'],
                event['type'],
                event['session_id'],
                event['timestamp'],
                json.dumps(event),
            )
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def get_events(session_id=None, event_type=None, limit=100, offset=0, db_path=None):
    """Return stored events in chronological order, with optional filters."""
    conn = _get_connection(db_path)
    try:
        conditions = []
        params = []
        if session_id:
            conditions.append("session_id = ?")
            params.append(session_id)
        if event_type:
            conditions.append("type = ?")
            params.append(event_type)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        params.extend([min(limit, MAX_QUERY_LIMIT), offset])

        rows = conn.execute(
            f"SELECT payload_json FROM events{where} ORDER BY timestamp ASC LIMIT ? OFFSET ?",
            params
        ).fetchall()
        return [json.loads(row['payload_json']) for row in rows]
    finally:
        conn.close()


def get_event_by_id(event_id, db_path=None):
    """Return a single event, or None."""
    conn = _get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT payload_json FROM events WHERE id = ?", (event_id,)
        ).fetchone()
        return json.loads(row['payload_json']) if row else None
    finally:
        conn.close()


def get_sessions(db_path=None):
    """Return one row per session with its event count and time range."""
    conn = _get_connection(db_path)
    try:
        rows = conn.execute(
            """SELECT session_id,
                      COUNT(*) AS event_count,
                      MIN(timestamp) AS first_event,
                      MAX(timestamp) AS last_event
               FROM events
               GROUP BY session_id
               ORDER BY last_event DESC"""
        ).fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()


def get_event_count(db_path=None):
    conn = _get_connection(db_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
    finally:
        conn.close()
