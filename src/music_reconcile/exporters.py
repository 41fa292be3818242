from __future__ import annotations

import csv
import sqlite3
from pathlib import Path
from typing import Optional

from .models import ComparisonResult, ConflictRecord, MatchResult, MovePlan

CONFLICT_COLUMNS = [
    "Artist",
    "Album",
    "Title",
    "Offline Format",
    "Offline Bitrate",
    "Plex Format",
    "Plex Bitrate",
    "Status",
    "Recommendation",
]

MATCH_COLUMNS = [
    "file_path",
    "category",
    "confidence",
    "original_artist",
    "original_album",
    "original_title",
    "matched_artist",
    "matched_album",
    "matched_title",
    "recording_id",
    "reason",
]

PLAN_COLUMNS = [
    "bucket",
    "action",
    "source_path",
    "destination_path",
    "replaced_path",
    "reason",
]


def _bitrate(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def conflict_row(record: ConflictRecord) -> list[str]:
    remote = record.remote
    return [
        record.local.artist,
        record.local.album,
        record.local.title,
        record.local.format,
        _bitrate(record.local.bitrate_kbps),
        remote.format if remote else "",
        _bitrate(remote.bitrate_kbps) if remote else "",
        record.category.value,
        record.recommendation.value,
    ]


def export_conflicts_csv(path: Path, conflicts: list[ConflictRecord]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CONFLICT_COLUMNS)
        for record in conflicts:
            writer.writerow(conflict_row(record))


def export_match_results_csv(path: Path, results: list[MatchResult]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=MATCH_COLUMNS)
        writer.writeheader()
        for r in results:
            meta = r.original_metadata
            candidate = r.candidate
            writer.writerow(
                {
                    "file_path": str(r.file.file_path),
                    "category": r.category.value,
                    "confidence": r.confidence,
                    "original_artist": meta.artist,
                    "original_album": meta.album,
                    "original_title": meta.title,
                    "matched_artist": candidate.artist if candidate else "",
                    "matched_album": candidate.album if candidate else "",
                    "matched_title": candidate.title if candidate else "",
                    "recording_id": candidate.recording_id if candidate else "",
                    "reason": r.reason,
                }
            )


def export_plan_csv(path: Path, plan: MovePlan) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    buckets = [
        ("new_files", plan.new_files),
        ("upgrades", plan.upgrades),
        ("downgrades", plan.downgrades),
        ("same_quality", plan.same_quality),
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=PLAN_COLUMNS)
        writer.writeheader()
        for bucket, operations in buckets:
            for op in operations:
                writer.writerow(
                    {
                        "bucket": bucket,
                        "action": op.action.value,
                        "source_path": str(op.source_path),
                        "destination_path": str(op.destination_path),
                        "replaced_path": "" if op.replaced_path is None else str(op.replaced_path),
                        "reason": op.reason,
                    }
                )


def export_sqlite(path: Path, comparison: ComparisonResult) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute("DROP TABLE IF EXISTS conflicts")
        cur.execute("DROP TABLE IF EXISTS comparison_summary")

        cur.execute(
            """
            CREATE TABLE conflicts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                artist TEXT NOT NULL,
                album TEXT NOT NULL,
                title TEXT NOT NULL,
                offline_format TEXT,
                offline_bitrate_kbps INTEGER,
                remote_format TEXT,
                remote_bitrate_kbps INTEGER,
                status TEXT NOT NULL,
                recommendation TEXT NOT NULL,
                match_type TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE comparison_summary (
                category TEXT PRIMARY KEY,
                track_count INTEGER NOT NULL
            )
            """
        )

        cur.executemany(
            """
            INSERT INTO conflicts (
                artist, album, title, offline_format, offline_bitrate_kbps,
                remote_format, remote_bitrate_kbps, status, recommendation, match_type
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    c.local.artist,
                    c.local.album,
                    c.local.title,
                    c.local.format,
                    c.local.bitrate_kbps,
                    c.remote.format if c.remote else None,
                    c.remote.bitrate_kbps if c.remote else None,
                    c.category.value,
                    c.recommendation.value,
                    c.match_type,
                )
                for c in comparison.conflicts
            ],
        )
        cur.executemany(
            "INSERT INTO comparison_summary VALUES (?, ?)",
            sorted(comparison.counts().items()),
        )

        conn.commit()
    finally:
        conn.close()
