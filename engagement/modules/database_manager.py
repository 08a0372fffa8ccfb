"""
Database Manager Module - Tutoring Center Engagement Core

SQLite storage for delivery records, so a report run interrupted at the end
of one day resumes the next day without re-notifying anyone. One row is kept
per (recipient, report kind); writing a record replaces the previous one.
"""

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Optional


class MemoryDeliveryStore:
    """Delivery records kept in a dictionary."""

    def __init__(self):
        self._records: Dict[tuple, datetime] = {}
        self._lock = threading.Lock()

    def get(self, recipient_id: str, report_kind: str) -> Optional[datetime]:
        with self._lock:
            return self._records.get((recipient_id, report_kind))

    def set(self, recipient_id: str, report_kind: str, delivered_at: datetime) -> None:
        with self._lock:
            self._records[(recipient_id, report_kind)] = delivered_at

    def all_records(self) -> Dict[tuple, datetime]:
        with self._lock:
            return dict(self._records)


class DeliveryRecordStore:
    """
    SQLite-backed delivery records with thread-local connections.
    """

    def __init__(self, db_path):
        """
        Initialize the store with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding this thread's connection.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """Create the delivery_records table. Safe to call repeatedly."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS delivery_records (
                    recipient_id VARCHAR(64) NOT NULL,
                    report_kind VARCHAR(32) NOT NULL,
                    delivered_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (recipient_id, report_kind)
                )
            """)
            conn.commit()

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return rows as dictionaries.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if fetch_all:
                return [dict(row) for row in cursor.fetchall()]
            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_update(self, query, params=None):
        """Execute an INSERT/UPDATE/DELETE and return the affected row count."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())
            conn.commit()
            return cursor.rowcount

    def get(self, recipient_id: str, report_kind: str) -> Optional[datetime]:
        row = self.execute_query(
            "SELECT delivered_at FROM delivery_records WHERE recipient_id = ? AND report_kind = ?",
            (recipient_id, report_kind),
            fetch_all=False
        )
        return datetime.fromisoformat(row['delivered_at']) if row else None

    def set(self, recipient_id: str, report_kind: str, delivered_at: datetime) -> None:
        self.execute_update(
            """INSERT OR REPLACE INTO delivery_records (recipient_id, report_kind, delivered_at)
               VALUES (?, ?, ?)""",
            (recipient_id, report_kind, delivered_at.isoformat())
        )

    def all_records(self) -> Dict[tuple, datetime]:
        rows = self.execute_query("SELECT recipient_id, report_kind, delivered_at FROM delivery_records")
        return {
            (row['recipient_id'], row['report_kind']): datetime.fromisoformat(row['delivered_at'])
            for row in rows
        }

    def close_all_connections(self):
        """Close this thread's connection."""
        if hasattr(self._local, 'connection'):
            self._local.connection.close()
            del self._local.connection
