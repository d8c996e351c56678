"""The SQLite store: one connection per ingest run plus schema migrations.

Migrations are the numbered ``NNN_name.sql`` files under ``migrations/``.
The highest applied number is kept in ``PRAGMA user_version``.  Each file
runs in its own transaction together with the version bump, so a failing
migration leaves the schema at the previous version.
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"
MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

_PRAGMAS = (
    "journal_mode = WAL",
    "foreign_keys = ON",
    "synchronous = NORMAL",
    # Concurrent ingest processes queue on the write lock instead of failing
    "busy_timeout = 30000",
)


def migration_version(path: Path) -> int:
    """``002_solo_games.sql`` -> 2"""
    return int(path.name.split("_", 1)[0])


class Database:
    """Owns the connection used by the repository.

    Usage::

        db = Database("data/geostats.db")
        db.initialize()
        repository = IngestRepository(db.conn)
        ...
        db.close()
    """

    def __init__(
        self, db_path: str | Path, migrations_dir: str | Path = MIGRATIONS_DIR
    ) -> None:
        self.db_path = str(db_path)
        self.migrations_dir = Path(migrations_dir)
        self._conn: sqlite3.Connection | None = None

    def initialize(self) -> sqlite3.Connection:
        """Open the database and bring its schema up to date."""
        if self.db_path != MEMORY_DB:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        for pragma in _PRAGMAS:
            self._conn.execute(f"PRAGMA {pragma}")

        applied = self.apply_migrations()
        logger.debug(
            "Opened %s at schema version %d (%d migrations applied)",
            self.db_path, self.schema_version, applied,
        )
        return self._conn

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    @property
    def schema_version(self) -> int:
        return self.conn.execute("PRAGMA user_version").fetchone()[0]

    def pending_migrations(self) -> list[Path]:
        """Migration files newer than the current schema, in order."""
        current = self.schema_version
        files = sorted(self.migrations_dir.glob("*.sql"), key=migration_version)
        return [f for f in files if migration_version(f) > current]

    def apply_migrations(self) -> int:
        """Apply every pending migration and return how many ran."""
        pending = self.pending_migrations()
        for path in pending:
            version = migration_version(path)
            script = path.read_text(encoding="utf-8")
            try:
                self.conn.executescript(
                    f"BEGIN;\n{script}\nPRAGMA user_version = {version};\nCOMMIT;"
                )
            except sqlite3.Error:
                if self.conn.in_transaction:
                    self.conn.rollback()
                logger.error(
                    "Migration %s failed, schema left at version %d",
                    path.name, self.schema_version,
                )
                raise
            logger.info("Applied migration %s", path.name)
        return len(pending)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
