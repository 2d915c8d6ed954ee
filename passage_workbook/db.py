from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from passage_workbook.models import PassageResult, StoredMaterial

SCHEMA = """
CREATE TABLE IF NOT EXISTS materials (
    doc_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    results_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_materials_created ON materials (created_at);
"""


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Materials ─────────────────────────────────────────────────────────

    def save_material(self, title: str, results: list[PassageResult]) -> str:
        """Store a generated bundle under a new document id and return the id."""
        doc_id = uuid.uuid4().hex
        self.conn.execute(
            "INSERT INTO materials (doc_id, title, created_at, results_json) "
            "VALUES (?, ?, ?, ?)",
            (
                doc_id,
                title,
                datetime.now(timezone.utc).isoformat(),
                json.dumps([r.to_dict() for r in results], ensure_ascii=False),
            ),
        )
        self.conn.commit()
        return doc_id

    def list_materials(self) -> list[StoredMaterial]:
        """All stored materials, newest first."""
        rows = self.conn.execute(
            "SELECT * FROM materials ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [self._row_to_material(r) for r in rows]

    def get_material(self, doc_id: str) -> StoredMaterial | None:
        row = self.conn.execute(
            "SELECT * FROM materials WHERE doc_id = ?", (doc_id,)
        ).fetchone()
        return self._row_to_material(row) if row else None

    def delete_material(self, doc_id: str) -> bool:
        cur = self.conn.execute("DELETE FROM materials WHERE doc_id = ?", (doc_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def get_material_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM materials").fetchone()
        return row[0]

    @staticmethod
    def _row_to_material(row: sqlite3.Row) -> StoredMaterial:
        return StoredMaterial(
            doc_id=row["doc_id"],
            title=row["title"],
            created_at=row["created_at"],
            results=[PassageResult.from_dict(r) for r in json.loads(row["results_json"])],
        )
