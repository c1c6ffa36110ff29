"""
Local persistence for the Family Menu Planner.

Keeps the application snapshot (credential, settings, menu, recipes, shopping
list, budget and leftovers) as a single JSON row in an SQLite database.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "familyMenuState"


class SnapshotDatabase:
    """Interface for the snapshot database."""

    def __init__(self, db_dir: str = "data"):
        """
        Initialize the snapshot database.

        Args:
            db_dir: Directory containing the database file
        """
        self.db_dir = Path(db_dir)
        self.db_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_dir / "family_menu.db"

        self._init_database()

    def _init_database(self):
        """Initialize the database schema."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_snapshots (
                    key TEXT PRIMARY KEY,
                    snapshot_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def save_snapshot(self, snapshot: Snapshot):
        """
        Save the application snapshot, replacing any previous one.

        Args:
            snapshot: Snapshot to persist
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO app_snapshots (key, snapshot_json, updated_at)
                VALUES (?, ?, ?)
                """,
                (SNAPSHOT_KEY, json.dumps(snapshot.to_dict()), datetime.now().isoformat()),
            )
            conn.commit()

        logger.debug("Saved application snapshot")

    def load_snapshot(self) -> Optional[Snapshot]:
        """
        Load the stored snapshot.

        Returns:
            Snapshot or None if nothing has been saved yet
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                "SELECT snapshot_json FROM app_snapshots WHERE key = ?",
                (SNAPSHOT_KEY,),
            )
            row = cursor.fetchone()

        if not row:
            return None
        return Snapshot.from_dict(json.loads(row["snapshot_json"]))

    def clear_snapshot(self):
        """Remove the stored snapshot."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM app_snapshots WHERE key = ?", (SNAPSHOT_KEY,))
            conn.commit()

        logger.info("Cleared stored application snapshot")
