"""SQLite storage for user facts."""

import sqlite3
from datetime import datetime
from pathlib import Path

from ..models import Fact, FactCategory, FactSource


class MemoryStore:
    """Persistent storage for facts using SQLite.

    Facts are keyed by id; saving an existing id replaces the row.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the facts table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS facts (
                id               TEXT PRIMARY KEY,
                category         TEXT NOT NULL,
                content          TEXT NOT NULL,
                confidence       REAL NOT NULL DEFAULT 0.8,
                source           TEXT NOT NULL DEFAULT 'manual',
                conversation_id  TEXT,
                verified         INTEGER NOT NULL DEFAULT 0,
                created_at       TEXT NOT NULL,
                updated_at       TEXT NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_category ON facts(category)")
        conn.commit()

    def save_fact(self, fact: Fact) -> Fact:
        """Insert or replace a fact.

        Args:
            fact: The fact to save.

        Returns:
            The saved fact.
        """
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO facts (
                id, category, content, confidence, source,
                conversation_id, verified, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                category = excluded.category,
                content = excluded.content,
                confidence = excluded.confidence,
                source = excluded.source,
                conversation_id = excluded.conversation_id,
                verified = excluded.verified,
                updated_at = excluded.updated_at
            """,
            (
                fact.id,
                fact.category.value,
                fact.content,
                fact.confidence,
                fact.source.value,
                fact.conversation_id,
                int(fact.verified),
                fact.created_at.isoformat(),
                fact.updated_at.isoformat(),
            ),
        )
        conn.commit()
        return fact

    def get_all(self) -> list[Fact]:
        """Get all facts from the database.

        Returns:
            List of all stored facts, oldest first.
        """
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM facts ORDER BY created_at, rowid")
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def get(self, fact_id: str) -> Fact | None:
        """Get a fact by id, None if it doesn't exist."""
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM facts WHERE id = ?", (fact_id,))
        row = cursor.fetchone()
        return self._row_to_fact(row) if row else None

    def get_by_category(self, category: FactCategory) -> list[Fact]:
        """Get facts filtered by category.

        Args:
            category: The category to filter by.

        Returns:
            List of facts in the given category.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM facts WHERE category = ? ORDER BY created_at, rowid",
            (category.value,),
        )
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def delete(self, fact_id: str) -> bool:
        """Delete a fact by its id.

        Args:
            fact_id: The id of the fact to delete.

        Returns:
            True if a fact was deleted, False otherwise.
        """
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM facts WHERE id = ?", (fact_id,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_fact(self, row: sqlite3.Row) -> Fact:
        """Convert a database row to a Fact."""
        return Fact(
            id=row["id"],
            category=FactCategory(row["category"]),
            content=row["content"],
            confidence=row["confidence"],
            source=FactSource(row["source"]),
            conversation_id=row["conversation_id"],
            verified=bool(row["verified"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
