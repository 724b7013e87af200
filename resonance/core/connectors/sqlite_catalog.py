"""
SQLiteCatalog - SQLite-backed catalog store and listening history.

Used by the CLI and local worker runs. Blocking sqlite3 calls run in the
default executor via asyncio.to_thread so the event loop never blocks; a
cancelled call interrupts its statement.

Schema:
    tracks        - metadata, embedding (JSON), audio_features (JSON)
    track_tags    - (track_id, kind, value) with kind in genre/mood/tag
    listening_history - (user_id, track_id, played_at ISO-8601 UTC)
    queue_items   - (user_id, track_id, position)
"""

import asyncio
import contextlib
import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Collection, Dict, Iterable, List, Optional, Set

import numpy as np

from resonance.common.logging import get_logger
from resonance.core.errors import StoreUnavailableError
from resonance.core.models import AcousticFeatures, TrackFeatureRecord, TrackMetadata
from resonance.core.ranking import DEFAULT_MOOD_WEIGHT, acoustic_similarity, cosine_similarities, top_ids

logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    artist_name TEXT,
    album_title TEXT,
    duration_ms INTEGER,
    file_path TEXT,
    format TEXT,
    embedding TEXT,
    audio_features TEXT
);
CREATE TABLE IF NOT EXISTS track_tags (
    track_id TEXT NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
    kind TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (track_id, kind, value)
);
CREATE INDEX IF NOT EXISTS idx_track_tags_value ON track_tags(kind, value);
CREATE TABLE IF NOT EXISTS listening_history (
    user_id TEXT NOT NULL,
    track_id TEXT NOT NULL,
    played_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_user ON listening_history(user_id, played_at);
CREATE TABLE IF NOT EXISTS queue_items (
    user_id TEXT NOT NULL,
    track_id TEXT NOT NULL,
    position INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_queue_user ON queue_items(user_id, position);
"""

_TAG_KINDS = (("genre", "genres"), ("mood", "moods"), ("tag", "tags"))

_BATCH_SIZE = 500


class SQLiteCatalog:
    """
    SQLite implementation of CatalogStore and ListeningHistoryProvider.

    Opens a short-lived connection per call so worker threads never share one.
    """

    def __init__(self, db_path: str = "data/catalog.db"):
        """
        Initialize SQLite catalog.

        Args:
            db_path: Path to SQLite database file (created with schema if missing).
                ":memory:" does not work since every call opens a new connection.
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._run_sync(lambda conn: conn.executescript(_SCHEMA))

    # ============== Plumbing ==============

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _run_sync(self, fn, on_connect: Optional[Callable[[sqlite3.Connection], None]] = None):
        try:
            conn = self._connect()
            try:
                if on_connect is not None:
                    on_connect(conn)
                result = fn(conn)
                conn.commit()
                return result
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreUnavailableError(
                "Catalog query failed", data={"db_path": self.db_path}, cause=e
            ) from e

    async def _run(self, fn):
        """
        Run fn(conn) in a worker thread.

        When the awaiting task is cancelled (query timeout) the statement still
        executing in the thread is interrupted, so it stops instead of running
        to completion unobserved.
        """
        opened: List[sqlite3.Connection] = []
        try:
            return await asyncio.to_thread(self._run_sync, fn, opened.append)
        except asyncio.CancelledError:
            for conn in opened:
                # ProgrammingError: already closed, the statement finished
                with contextlib.suppress(sqlite3.ProgrammingError):
                    conn.interrupt()
            logger.debug("Catalog query cancelled", data={"db_path": self.db_path})
            raise

    # ============== Writes (ingest, fixtures) ==============

    def upsert_track(self, record: TrackFeatureRecord, metadata: Optional[TrackMetadata] = None) -> None:
        """Replace a track's features (and optionally metadata) wholesale."""
        meta = metadata or TrackMetadata(track_id=record.track_id, title="")

        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO tracks (id, title, artist_name, album_title, duration_ms,
                                    file_path, format, embedding, audio_features)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    artist_name = excluded.artist_name,
                    album_title = excluded.album_title,
                    duration_ms = excluded.duration_ms,
                    file_path = excluded.file_path,
                    format = excluded.format,
                    embedding = excluded.embedding,
                    audio_features = excluded.audio_features
                """,
                (
                    record.track_id,
                    meta.title,
                    meta.artist_name,
                    meta.album_title,
                    meta.duration_ms,
                    meta.file_path,
                    meta.format,
                    json.dumps(list(record.embedding)) if record.embedding is not None else None,
                    json.dumps(record.acoustic.to_dict()) if not record.acoustic.is_empty else None,
                ),
            )
            conn.execute("DELETE FROM track_tags WHERE track_id = ?", (record.track_id,))
            rows = [
                (record.track_id, kind, value)
                for kind, attr in _TAG_KINDS
                for value in sorted(getattr(record, attr))
            ]
            conn.executemany(
                "INSERT INTO track_tags (track_id, kind, value) VALUES (?, ?, ?)", rows
            )

        self._run_sync(_write)

    def record_play(self, user_id: str, track_id: str, played_at: Optional[datetime] = None) -> None:
        played = (played_at or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat()
        self._run_sync(lambda conn: conn.execute(
            "INSERT INTO listening_history (user_id, track_id, played_at) VALUES (?, ?, ?)",
            (user_id, track_id, played),
        ))

    def set_queue(self, user_id: str, track_ids: Iterable[str]) -> None:
        rows = [(user_id, tid, pos) for pos, tid in enumerate(track_ids)]

        def _write(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM queue_items WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT INTO queue_items (user_id, track_id, position) VALUES (?, ?, ?)", rows
            )

        self._run_sync(_write)

    # ============== CatalogStore ==============

    async def get_features(self, track_ids: Collection[str]) -> Dict[str, TrackFeatureRecord]:
        ids = list(dict.fromkeys(track_ids))
        if not ids:
            return {}

        def _read(conn: sqlite3.Connection) -> Dict[str, TrackFeatureRecord]:
            marks = ",".join("?" * len(ids))
            tracks = conn.execute(
                f"SELECT id, embedding, audio_features FROM tracks WHERE id IN ({marks})", ids
            ).fetchall()
            tags: Dict[str, Dict[str, List[str]]] = {}
            for row in conn.execute(
                f"SELECT track_id, kind, value FROM track_tags WHERE track_id IN ({marks})", ids
            ):
                tags.setdefault(row["track_id"], {}).setdefault(row["kind"], []).append(row["value"])

            records = {}
            for row in tracks:
                track_tags = tags.get(row["id"], {})
                records[row["id"]] = TrackFeatureRecord.build(
                    track_id=row["id"],
                    embedding=json.loads(row["embedding"]) if row["embedding"] else None,
                    acoustic=json.loads(row["audio_features"]) if row["audio_features"] else None,
                    genres=track_tags.get("genre", []),
                    moods=track_tags.get("mood", []),
                    tags=track_tags.get("tag", []),
                )
            return records

        return await self._run(_read)

    async def candidate_ids(self, track_id: str, signal: str, pool_size: int) -> List[str]:
        """
        The `pool_size` most relevant tracks for one signal, reference excluded.

        semantic and acoustic rows are scored in batches with the same metrics the
        engine uses; categorical rows are ranked by weighted shared tags.
        """
        if signal == "semantic":
            return await self._run(lambda conn: self._rank_semantic(conn, track_id, pool_size))
        if signal == "acoustic":
            return await self._run(lambda conn: self._rank_acoustic(conn, track_id, pool_size))
        if signal == "categorical":
            sql = (
                "SELECT other.track_id AS id, "
                "SUM(CASE WHEN other.kind = 'mood' THEN ? ELSE 1.0 END) AS shared "
                "FROM track_tags AS ref "
                "JOIN track_tags AS other ON other.kind = ref.kind AND other.value = ref.value "
                "WHERE ref.track_id = ? AND other.track_id != ref.track_id "
                "GROUP BY other.track_id ORDER BY shared DESC, id LIMIT ?"
            )
            params = (DEFAULT_MOOD_WEIGHT, track_id, pool_size)
            return await self._run(lambda conn: [row["id"] for row in conn.execute(sql, params)])
        raise ValueError(f"Unknown similarity signal: {signal}")

    @staticmethod
    def _rank_semantic(conn: sqlite3.Connection, track_id: str, pool_size: int) -> List[str]:
        row = conn.execute("SELECT embedding FROM tracks WHERE id = ?", (track_id,)).fetchone()
        reference = json.loads(row["embedding"]) if row is not None and row["embedding"] else None
        if not reference:
            return []
        reference_vector = np.asarray(reference, dtype=np.float64)

        scores: Dict[str, float] = {}
        # Mismatched embeddings stay in the pool so the engine fails closed on them
        mismatched: List[str] = []
        cursor = conn.execute(
            "SELECT id, embedding FROM tracks WHERE embedding IS NOT NULL AND id != ?", (track_id,)
        )
        for batch in iter(lambda: cursor.fetchmany(_BATCH_SIZE), []):
            ids, vectors = [], []
            for candidate in batch:
                vector = json.loads(candidate["embedding"])
                if not vector:
                    continue
                if len(vector) != len(reference):
                    mismatched.append(candidate["id"])
                    continue
                ids.append(candidate["id"])
                vectors.append(vector)
            if ids:
                sims = cosine_similarities(reference_vector, np.asarray(vectors, dtype=np.float64))
                scores.update(zip(ids, sims.tolist()))

        mismatched = sorted(mismatched)[:pool_size]
        return mismatched + top_ids(scores, pool_size - len(mismatched))

    @staticmethod
    def _rank_acoustic(conn: sqlite3.Connection, track_id: str, pool_size: int) -> List[str]:
        row = conn.execute("SELECT audio_features FROM tracks WHERE id = ?", (track_id,)).fetchone()
        if row is None or not row["audio_features"]:
            return []
        reference = AcousticFeatures.from_dict(json.loads(row["audio_features"]))

        scores: Dict[str, float] = {}
        cursor = conn.execute(
            "SELECT id, audio_features FROM tracks "
            "WHERE json_extract(audio_features, '$.energy') IS NOT NULL AND id != ?",
            (track_id,),
        )
        for batch in iter(lambda: cursor.fetchmany(_BATCH_SIZE), []):
            for candidate in batch:
                features = AcousticFeatures.from_dict(json.loads(candidate["audio_features"]))
                scores[candidate["id"]] = acoustic_similarity(reference, features)
        return top_ids(scores, pool_size)

    async def get_metadata(self, track_ids: Collection[str]) -> Dict[str, TrackMetadata]:
        ids = list(dict.fromkeys(track_ids))
        if not ids:
            return {}

        def _read(conn: sqlite3.Connection) -> Dict[str, TrackMetadata]:
            marks = ",".join("?" * len(ids))
            rows = conn.execute(
                "SELECT id, title, artist_name, album_title, duration_ms, file_path, format "
                f"FROM tracks WHERE id IN ({marks})",
                ids,
            ).fetchall()
            return {
                row["id"]: TrackMetadata(
                    track_id=row["id"],
                    title=row["title"],
                    artist_name=row["artist_name"],
                    album_title=row["album_title"],
                    duration_ms=row["duration_ms"],
                    file_path=row["file_path"],
                    format=row["format"],
                )
                for row in rows
            }

        return await self._run(_read)

    # ============== ListeningHistoryProvider ==============

    async def history_track_ids(self, user_id: str, limit: int) -> List[str]:
        sql = (
            "SELECT track_id, MAX(played_at) AS last_played FROM listening_history "
            "WHERE user_id = ? GROUP BY track_id ORDER BY last_played DESC, track_id LIMIT ?"
        )
        return await self._run(
            lambda conn: [row["track_id"] for row in conn.execute(sql, (user_id, limit))]
        )

    async def recently_played(self, user_id: str, within: timedelta) -> Set[str]:
        cutoff = (datetime.now(timezone.utc) - within).isoformat()
        sql = "SELECT DISTINCT track_id FROM listening_history WHERE user_id = ? AND played_at >= ?"
        return await self._run(
            lambda conn: {row["track_id"] for row in conn.execute(sql, (user_id, cutoff))}
        )

    async def queued_track_ids(self, user_id: str) -> List[str]:
        sql = "SELECT track_id FROM queue_items WHERE user_id = ? ORDER BY position ASC"
        return await self._run(
            lambda conn: [row["track_id"] for row in conn.execute(sql, (user_id,))]
        )
