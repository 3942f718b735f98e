"""Database operations for tracked job applications."""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional, Tuple

from .config import DATABASE_FILE
from .exceptions import JobNotFoundError, PersistenceError
from .models import JobRecord, Status


class JobDatabase:
    """Handles all database operations for job records.

    Every statement runs under one lock so the connection can be shared by the
    pipeline workers, and create-or-update is atomic per store.
    """

    def __init__(
        self, conn: Optional[sqlite3.Connection] = None, database_file: str = DATABASE_FILE
    ):
        """Initialize database connection and create tables if needed.

        Args:
            conn: Optional SQLite connection object. If not provided, creates a new
                connection. Injected connections must allow use from other threads.
            database_file: Path to database file (used only if conn is not provided).
        """
        self.database_file = database_file
        if conn is not None:
            self.conn = conn
            self.owns_connection = False
        else:
            self.conn = sqlite3.connect(database_file, check_same_thread=False)
            self.owns_connection = True
        self._lock = threading.RLock()
        self.cursor = self.conn.cursor()
        self.initialize_db()

    def initialize_db(self):
        """Create the jobs and status history tables."""
        with self._lock:
            self.cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    status TEXT NOT NULL,
                    last_updated DATETIME
                )
            """
            )
            self.cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS status_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id INTEGER,
                    old_status TEXT,
                    new_status TEXT,
                    timestamp DATETIME
                )
            """
            )
            self.conn.commit()
        logging.info("Database initialized successfully")

    @staticmethod
    def _row_to_record(row: tuple) -> JobRecord:
        job_id, name, status = row
        return JobRecord(id=job_id, name=name, status=Status(status))

    def find_by_name(self, name: str) -> Optional[JobRecord]:
        """Return the job with the given name, if any."""
        with self._lock:
            self.cursor.execute("SELECT id, name, status FROM jobs WHERE name = ?", (name,))
            row = self.cursor.fetchone()
        return self._row_to_record(row) if row else None

    def save(self, record: JobRecord) -> JobRecord:
        """Insert a new record or overwrite an existing one by id.

        Returns:
            The saved record with its id set.
        """
        current_time = datetime.now().isoformat()
        with self._lock:
            try:
                if record.id is None:
                    self.cursor.execute(
                        "INSERT INTO jobs (name, status, last_updated) VALUES (?, ?, ?)",
                        (record.name, record.status.value, current_time),
                    )
                    saved = JobRecord(id=self.cursor.lastrowid, name=record.name, status=record.status)
                    self._record_history(saved.id, None, saved.status, current_time)
                else:
                    self.cursor.execute("SELECT status FROM jobs WHERE id = ?", (record.id,))
                    row = self.cursor.fetchone()
                    if row is None:
                        raise JobNotFoundError(f"Job with ID {record.id} not found")
                    self.cursor.execute(
                        "UPDATE jobs SET name = ?, status = ?, last_updated = ? WHERE id = ?",
                        (record.name, record.status.value, current_time, record.id),
                    )
                    saved = JobRecord(id=record.id, name=record.name, status=record.status)
                    self._record_history(saved.id, Status(row[0]), saved.status, current_time)
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"Failed to save job '{record.name}': {e}") from e
        return saved

    def create_or_update(self, name: str, status: Status) -> Tuple[JobRecord, bool]:
        """Set the status of the job with this name, creating it if needed.

        The lookup and the write happen under the store lock, so concurrent
        calls for one name leave a single record carrying the last status.

        Returns:
            Tuple of (saved record, created) where created is False for an update.
        """
        with self._lock:
            existing = self.find_by_name(name)
            if existing is not None:
                existing.status = status
                saved = self.save(existing)
                logging.info(f"Updated existing job: {name} to status: {status.value}")
                return saved, False

            saved = self.save(JobRecord(id=None, name=name, status=status))
            logging.info(f"Created new job: {name} with status: {status.value}")
            return saved, True

    def _record_history(
        self, job_id: int, old_status: Optional[Status], new_status: Status, timestamp: str
    ):
        self.cursor.execute(
            """
            INSERT INTO status_history (job_id, old_status, new_status, timestamp)
            VALUES (?, ?, ?, ?)
        """,
            (job_id, old_status.value if old_status else None, new_status.value, timestamp),
        )

    def get_job(self, job_id: int) -> JobRecord:
        """Return the job with the given id.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        with self._lock:
            self.cursor.execute("SELECT id, name, status FROM jobs WHERE id = ?", (job_id,))
            row = self.cursor.fetchone()
        if row is None:
            raise JobNotFoundError(f"Job with ID {job_id} not found")
        return self._row_to_record(row)

    def get_all_jobs(self) -> List[JobRecord]:
        """Return every job ordered by id."""
        with self._lock:
            self.cursor.execute("SELECT id, name, status FROM jobs ORDER BY id ASC")
            rows = self.cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_status_history(self, job_id: int) -> List[Tuple[Optional[str], str]]:
        """Return (old_status, new_status) pairs for a job, oldest first."""
        with self._lock:
            self.cursor.execute(
                "SELECT old_status, new_status FROM status_history WHERE job_id = ? ORDER BY id ASC",
                (job_id,),
            )
            return self.cursor.fetchall()

    def update_job_status(self, job_id: int, status: Status) -> JobRecord:
        """Overwrite the status of an existing job.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        with self._lock:
            job = self.get_job(job_id)
            job.status = status
            return self.save(job)

    def delete_job(self, job_id: int):
        """Delete one job and its status history.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        with self._lock:
            self.cursor.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            if self.cursor.rowcount == 0:
                self.conn.rollback()
                raise JobNotFoundError(f"Cannot delete: Job with ID {job_id} not found")
            self.cursor.execute("DELETE FROM status_history WHERE job_id = ?", (job_id,))
            self.conn.commit()
        logging.info(f"Deleted job {job_id}")

    def delete_all_jobs(self):
        """Delete every job and all status history."""
        with self._lock:
            self.cursor.execute("DELETE FROM jobs")
            self.cursor.execute("DELETE FROM status_history")
            self.conn.commit()
        logging.info("Deleted all jobs")

    def close(self):
        """Close the database connection."""
        if self.owns_connection:
            self.conn.close()
            logging.info("Database connection closed")
        else:
            logging.debug("Skipping close - connection not owned by this instance")
