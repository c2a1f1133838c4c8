from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from crop4mkv.models import FileStatus

logger = logging.getLogger(__name__)

GUARD_DB_NAME = "crop4mkv.sqlite3"


class GuardStore:
    """Remembers which files were already handled across runs.

    Concurrent pipelines share one store; every check-and-set runs under a
    lock inside a single transaction.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self.db = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.db.execute("PRAGMA journal_mode = WAL;")
        with self.db:
            self.db.execute(
                """
                CREATE TABLE IF NOT EXISTS processed_files (
                    file_path TEXT PRIMARY KEY NOT NULL,
                    processed INTEGER NOT NULL
                )
                """
            )
        logger.debug("Opened guard store at %s", self.db_path)

    def __enter__(self) -> GuardStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def file_processed(self, path: str | Path) -> bool:
        """Return True for files already marked processed or errored.

        Unknown files are registered as not processed.
        """

        key = str(path)
        with self._lock, self.db:
            row = self.db.execute(
                "SELECT processed FROM processed_files WHERE file_path = ?",
                (key,),
            ).fetchone()
            if row is None:
                self._upsert(key, FileStatus.NOT_PROCESSED)
                return False
        return FileStatus(row[0]) in (FileStatus.PROCESSED, FileStatus.ERRORED)

    def status(self, path: str | Path) -> FileStatus | None:
        with self._lock:
            row = self.db.execute(
                "SELECT processed FROM processed_files WHERE file_path = ?",
                (str(path),),
            ).fetchone()
        return FileStatus(row[0]) if row is not None else None

    def set_processed(self, path: str | Path) -> None:
        with self._lock, self.db:
            self._upsert(str(path), FileStatus.PROCESSED)

    def set_error(self, path: str | Path) -> None:
        with self._lock, self.db:
            self._upsert(str(path), FileStatus.ERRORED)

    def close(self) -> None:
        with self._lock:
            self.db.close()

    def _upsert(self, key: str, status: FileStatus) -> None:
        self.db.execute(
            """
            INSERT INTO processed_files (file_path, processed)
            VALUES (?, ?)
            ON CONFLICT(file_path) DO UPDATE SET processed = excluded.processed
            """,
            (key, int(status)),
        )
