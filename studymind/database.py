"""SQLite database layer for StudyMind."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from studymind.config import MapSettings, get_db_path
from studymind.model import MindMapTree

logger = logging.getLogger(__name__)


@dataclass
class SavedMap:
    """A persisted mind map."""
    id: int = 0
    title: str = "Untitled Map"
    created_at: str = ""
    modified_at: str = ""
    settings: MapSettings = field(default_factory=MapSettings)
    tree: MindMapTree = field(default_factory=MindMapTree.empty)

    def matches(self, query: str) -> bool:
        """True if the title or any concept contains `query`."""
        needle = (query or "").strip().casefold()
        if not needle:
            return True
        return needle in self.title.casefold() or bool(self.tree.search(needle))


class Database:
    """Database manager for StudyMind."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()
        cursor.executescript("""
            -- Maps table
            CREATE TABLE IF NOT EXISTS maps (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                settings JSON,
                tree JSON
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );
        """)
        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _row_to_map(self, row: sqlite3.Row) -> SavedMap:
        return SavedMap(
            id=row["id"],
            title=row["title"],
            created_at=row["created_at"],
            modified_at=row["modified_at"],
            settings=MapSettings.from_json(row["settings"]),
            tree=MindMapTree.from_json(row["tree"]),
        )

    # ==================== Map Operations ====================

    def create_map(self, title: str = "Untitled Map",
                   tree: Optional[MindMapTree] = None,
                   settings: Optional[MapSettings] = None) -> SavedMap:
        """Store a new mind map."""
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        tree = tree or MindMapTree.empty()
        settings = settings or MapSettings(
            layout_mode=self.get_setting("default_layout_mode", MapSettings().layout_mode)
        )

        cursor.execute(
            "INSERT INTO maps (title, created_at, modified_at, settings, tree) VALUES (?, ?, ?, ?, ?)",
            (title, now, now, settings.to_json(), tree.to_json())
        )
        self.conn.commit()
        logger.debug("Created map %d (%s)", cursor.lastrowid, title)

        return SavedMap(
            id=cursor.lastrowid,
            title=title,
            created_at=now,
            modified_at=now,
            settings=settings,
            tree=tree,
        )

    def get_map(self, map_id: int) -> Optional[SavedMap]:
        """Get a mind map by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM maps WHERE id = ?", (map_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_map(row)

    def get_all_maps(self) -> List[SavedMap]:
        """Get all mind maps, most recently modified first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM maps ORDER BY modified_at DESC, id DESC")
        return [self._row_to_map(row) for row in cursor.fetchall()]

    def update_map(self, saved: SavedMap):
        """Write back title, settings and tree of a mind map."""
        cursor = self.conn.cursor()
        now = datetime.now().isoformat()
        cursor.execute(
            "UPDATE maps SET title = ?, modified_at = ?, settings = ?, tree = ? WHERE id = ?",
            (saved.title, now, saved.settings.to_json(), saved.tree.to_json(), saved.id)
        )
        self.conn.commit()
        saved.modified_at = now

    def delete_map(self, map_id: int):
        """Delete a mind map."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM maps WHERE id = ?", (map_id,))
        self.conn.commit()

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()
