"""
Database connection and migration management for filter presets.
"""

import glob
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..constants import DEFAULT_PRESET_DB_PATH, PRESET_DB_ENV_VAR

logger = logging.getLogger(__name__)


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """Explicit path, then the environment, then the per-user default."""
    return os.path.abspath(db_path or os.environ.get(PRESET_DB_ENV_VAR) or DEFAULT_PRESET_DB_PATH)


class MigrationManager:
    """Applies pending .sql migrations in filename order."""

    def __init__(self, db_path: str, migrations_dir: str):
        self.db_path = db_path
        self.migrations_dir = migrations_dir

    def _create_migrations_table(self, conn: sqlite3.Connection):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT NOT NULL UNIQUE,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()

    def _get_executed_migrations(self, conn: sqlite3.Connection) -> set[str]:
        cursor = conn.execute("SELECT filename FROM migrations")
        return {row[0] for row in cursor.fetchall()}

    def _execute_migration(self, conn: sqlite3.Connection, migration_file: str) -> None:
        migration_name = os.path.basename(migration_file)
        logger.info(f"Executing migration: {migration_name}")

        try:
            with open(migration_file, encoding="utf-8") as f:
                conn.executescript(f.read())

            conn.execute("INSERT INTO migrations (filename) VALUES (?)", (migration_name,))
            conn.commit()

        except Exception as e:
            conn.rollback()
            logger.exception(f"Failed to execute migration {migration_name}: {e}")
            raise

    def run_migrations(self) -> list[str]:
        """Run all pending migrations and return their filenames."""
        executed_now = []

        conn = sqlite3.connect(self.db_path)
        try:
            self._create_migrations_table(conn)
            executed = self._get_executed_migrations(conn)

            for migration_file in sorted(glob.glob(os.path.join(self.migrations_dir, "*.sql"))):
                migration_name = os.path.basename(migration_file)
                if migration_name not in executed:
                    self._execute_migration(conn, migration_file)
                    executed_now.append(migration_name)
        finally:
            conn.close()

        return executed_now


class PresetDatabase:
    """Read access and connection handling for the preset database."""

    _instances: dict[str, "PresetDatabase"] = {}
    _lock = threading.Lock()

    def __new__(cls, db_path: Optional[str] = None):
        """One instance per database file."""
        resolved = resolve_db_path(db_path)

        with cls._lock:
            if resolved not in cls._instances:
                cls._instances[resolved] = super().__new__(cls)
            return cls._instances[resolved]

    def __init__(self, db_path: Optional[str] = None):
        if hasattr(self, "_initialized"):
            return

        self.db_path = resolve_db_path(db_path)
        self.migrations_dir = os.path.join(os.path.dirname(__file__), "migrations")

        os.makedirs(os.path.dirname(self.db_path), exist_ok=True)

        self._initialize_database()
        self._initialized = True

    def _initialize_database(self):
        logger.info(f"Initializing preset database at: {self.db_path}")

        if not os.path.exists(self.db_path):
            Path(self.db_path).touch()

        executed = MigrationManager(self.db_path, self.migrations_dir).run_migrations()

        if executed:
            logger.info(f"Executed {len(executed)} migrations: {', '.join(executed)}")
        else:
            logger.info("Preset database is up to date")

    @contextmanager
    def get_connection(self):
        """Yield a connection with row access by column name and foreign keys on."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            logger.exception(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def get_preset_by_id(self, preset_id: str) -> Optional[dict[str, Any]]:
        """Retrieve an active preset row with its tags."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM filter_presets WHERE id = ? AND is_active = TRUE", (preset_id,)
            ).fetchone()
            if not row:
                return None

            preset_data = dict(row)
            preset_data["tags"] = self._get_preset_tags(conn, preset_id)
            return preset_data

    def get_preset_by_name(self, name: str) -> Optional[dict[str, Any]]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM filter_presets WHERE name = ? AND is_active = TRUE", (name,)
            ).fetchone()
            if not row:
                return None

            preset_data = dict(row)
            preset_data["tags"] = self._get_preset_tags(conn, preset_data["id"])
            return preset_data

    def _get_preset_tags(self, conn: sqlite3.Connection, preset_id: str) -> list[str]:
        cursor = conn.execute("SELECT tag FROM preset_tags WHERE preset_id = ? ORDER BY tag", (preset_id,))
        return [row[0] for row in cursor.fetchall()]

    def search_presets(self, search_term: str = "", tag: str = "", author: str = "") -> list[dict[str, Any]]:
        """Search active presets by name/description text, tag, or author."""
        where_clauses = ["p.is_active = TRUE"]
        params: list[Any] = []

        if search_term:
            where_clauses.append("(p.name LIKE ? OR p.description LIKE ?)")
            search_pattern = f"%{search_term}%"
            params.extend([search_pattern, search_pattern])

        if tag:
            where_clauses.append("EXISTS (SELECT 1 FROM preset_tags pt WHERE pt.preset_id = p.id AND pt.tag = ?)")
            params.append(tag)

        if author:
            where_clauses.append("p.author = ?")
            params.append(author)

        where_clause = " AND ".join(where_clauses)

        query = f"""
            SELECT p.* FROM filter_presets p
            WHERE {where_clause}
            ORDER BY p.name
        """

        with self.get_connection() as conn:
            rows = [dict(row) for row in conn.execute(query, params).fetchall()]
            for row in rows:
                row["tags"] = self._get_preset_tags(conn, row["id"])
            return rows

    def get_health_check(self) -> dict[str, Any]:
        """Database health information."""
        try:
            with self.get_connection() as conn:
                preset_count = conn.execute("SELECT COUNT(*) FROM filter_presets WHERE is_active = TRUE").fetchone()[0]
                tag_count = conn.execute("SELECT COUNT(DISTINCT tag) FROM preset_tags").fetchone()[0]
                metadata = {row[0]: row[1] for row in conn.execute("SELECT key, value FROM metadata").fetchall()}

            return {
                "status": "healthy",
                "database_path": self.db_path,
                "database_size_bytes": os.path.getsize(self.db_path) if os.path.exists(self.db_path) else 0,
                "total_presets": preset_count,
                "distinct_tags": tag_count,
                "metadata": metadata,
                "checked_at": datetime.now().isoformat(),
            }

        except sqlite3.Error as e:
            return {"status": "unhealthy", "error": str(e), "checked_at": datetime.now().isoformat()}
