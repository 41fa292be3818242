import csv
import json
import sqlite3

import pytest

from music_reconcile.comparator import compare_libraries
from music_reconcile.errors import InputError
from music_reconcile.exporters import (
    CONFLICT_COLUMNS,
    export_conflicts_csv,
    export_match_results_csv,
    export_plan_csv,
    export_sqlite,
)
from music_reconcile.models import MatchCategory
from music_reconcile.planner import plan_moves, preview_renames
from music_reconcile.snapshot import load_remote_snapshot


def _read_rows(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_conflict_report_columns_and_row(tmp_path, track):
    result = compare_libraries([track(fmt="flac")], [track(artist="artist a", title="song 1", fmt="mp3", bitrate=320)])
    report = tmp_path / "reports" / "conflicts.csv"

    export_conflicts_csv(report, result.conflicts)

    rows = _read_rows(report)
    assert rows[0] == [
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
    assert rows[0] == CONFLICT_COLUMNS
    assert rows[1] == ["Artist A", "Album X", "Song 1", "flac", "", "mp3", "320", "QUALITY_UPGRADE", "REPLACE"]


def test_match_results_csv(tmp_path, matched, candidate):
    results = [
        matched(tmp_path / "a.flac", candidate=candidate(recording_id="mbid-1")),
        matched(tmp_path / "b.flac", MatchCategory.NO_MATCH, confidence=0),
    ]
    path = tmp_path / "matches.csv"

    export_match_results_csv(path, results)

    with path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["category"] == "auto_approve"
    assert rows[0]["recording_id"] == "mbid-1"
    assert rows[1]["category"] == "no_match"
    assert rows[1]["matched_title"] == ""


def test_plan_csv_lists_every_bucket(tmp_path, matched, candidate, track):
    previews = preview_renames(
        [
            matched(tmp_path / "a.flac", candidate=candidate(title="Song 1")),
            matched(tmp_path / "b.flac", candidate=candidate(title="Song 2"), fmt="mp3", bitrate=128),
        ],
        tmp_path / "staging",
    )
    plan = plan_moves(previews, tmp_path / "live", [track(title="Song 2", fmt="flac")])
    path = tmp_path / "plan.csv"

    export_plan_csv(path, plan)

    with path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [(r["bucket"], r["action"]) for r in rows] == [("new_files", "ADD"), ("downgrades", "SKIP")]
    assert rows[1]["reason"] == "quality downgrade"


def test_sqlite_export(tmp_path, track):
    result = compare_libraries(
        [track(fmt="flac"), track(title="New")],
        [track(fmt="mp3", bitrate=320)],
    )
    db_path = tmp_path / "comparison.db"

    export_sqlite(db_path, result)

    conn = sqlite3.connect(db_path)
    try:
        conflicts = conn.execute("SELECT status, recommendation, match_type FROM conflicts").fetchall()
        summary = dict(conn.execute("SELECT category, track_count FROM comparison_summary").fetchall())
    finally:
        conn.close()
    assert conflicts == [("QUALITY_UPGRADE", "REPLACE", "exact")]
    assert summary["SAFE_TO_ADD"] == 1
    assert summary["QUALITY_UPGRADE"] == 1


def test_load_csv_snapshot(tmp_path):
    path = tmp_path / "plex.csv"
    path.write_text(
        "artist,album,title,codec,bitrate_kbps,path\n"
        "Artist A,Album X,Song 1,MP3,320,/library/a.mp3\n"
        "Artist B,,Song 2,flac,,\n",
        encoding="utf-8",
    )

    tracks = load_remote_snapshot(path)

    assert tracks[0].format == "mp3"
    assert tracks[0].bitrate_kbps == 320
    assert str(tracks[0].path) == "/library/a.mp3"
    assert tracks[1].album == "Unknown"
    assert tracks[1].bitrate_kbps is None
    assert tracks[1].path is None


def test_load_json_snapshot_accepts_bitrate_alias(tmp_path):
    path = tmp_path / "plex.json"
    path.write_text(json.dumps({"tracks": [{"artist": "A", "album": "B", "title": "C", "codec": "aac", "bitrate": 256}]}))

    tracks = load_remote_snapshot(path)

    assert tracks[0].bitrate_kbps == 256
    assert tracks[0].format == "aac"


def test_snapshot_errors(tmp_path):
    with pytest.raises(InputError):
        load_remote_snapshot(tmp_path / "missing.csv")

    bad = tmp_path / "bad.csv"
    bad.write_text("name,codec\nx,mp3\n", encoding="utf-8")
    with pytest.raises(InputError):
        load_remote_snapshot(bad)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(InputError):
        load_remote_snapshot(broken)


@pytest.mark.parametrize("payload", ['["Artist A - Song 1"]', '{"tracks": [{"artist": "A", "title": "B"}, 3]}', '"tracks"'])
def test_json_snapshot_with_wrong_shape(tmp_path, payload):
    path = tmp_path / "plex.json"
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(InputError):
        load_remote_snapshot(path)
