import csv
from pathlib import Path

import pytest

from music_reconcile import cli
from music_reconcile.cli import main
from music_reconcile.models import Candidate


@pytest.fixture
def library(tmp_path, make_file):
    root = tmp_path / "offline"
    make_file(root / "Artist A" / "Album X" / "Song 1.flac")
    make_file(root / "Artist A" / "Album X" / "New Song.flac")
    remote = tmp_path / "remote.csv"
    remote.write_text(
        "artist,album,title,codec,bitrate_kbps\nArtist A,Album X,Song 1,mp3,320\n",
        encoding="utf-8",
    )
    return root, remote


def test_compare_writes_conflict_report(tmp_path, library, capsys):
    root, remote = library
    output = tmp_path / "out"

    main(["--output-dir", str(output), "compare", str(root), "--remote", str(remote), "--export", "both"])

    out = capsys.readouterr().out
    assert "[compare] SAFE_TO_ADD: 1" in out
    assert "[compare] QUALITY_UPGRADE: 1" in out
    with (output / "conflict_report.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert len(rows) == 2
    assert rows[1][0:3] == ["Artist A", "Album X", "Song 1"]
    assert rows[1][-2:] == ["QUALITY_UPGRADE", "REPLACE"]
    assert (output / "comparison.db").is_file()


def test_missing_snapshot_exits(tmp_path, library):
    root, _ = library

    with pytest.raises(SystemExit):
        main(["--output-dir", str(tmp_path / "out"), "compare", str(root), "--remote", str(tmp_path / "nope.csv")])


def test_organize_dry_run_apply_and_rollback(tmp_path, library, capsys):
    root, _ = library
    live = tmp_path / "live"
    output = tmp_path / "out"
    source = root / "Artist A" / "Album X" / "Song 1.flac"
    target = live / "Artist A" / "Album X" / "Song 1.flac"

    main(["--output-dir", str(output), "organize", str(root), "--live-root", str(live)])
    assert "dry-run mode enabled" in capsys.readouterr().out
    assert not live.exists()
    assert (output / "move_plan.csv").is_file()

    main(["--output-dir", str(output), "organize", str(root), "--live-root", str(live), "--move", "--apply"])
    assert target.is_file()
    assert not source.exists()
    assert (output / "last_journal.json").is_file()

    main(["--output-dir", str(output), "rollback"])
    out = capsys.readouterr().out
    assert "[rollback] restored: 2" in out
    assert source.is_file()
    assert not target.exists()
    assert not (output / "last_journal.json").exists()


def test_rollback_without_history(tmp_path, capsys):
    main(["--output-dir", str(tmp_path / "out"), "rollback"])

    assert "No operation history to rollback" in capsys.readouterr().out


@pytest.fixture
def musicbrainz(monkeypatch):
    def _install(candidates_by_title):
        class _Search:
            def __init__(self, **options):
                self.options = options

            def __call__(self, artist, album, title):
                return list(candidates_by_title.get(title, []))

        monkeypatch.setattr(cli, "MusicBrainzSearch", _Search)

    return _install


@pytest.fixture
def untagged(tmp_path, make_file):
    root = tmp_path / "incoming"
    make_file(root / "Artist A" / "Album X" / "Song One.flac")
    make_file(root / "Artist A" / "Album X" / "Song Two.flac")
    return root


CANDIDATES = {
    "Song One": [Candidate(artist="Artist A", title="Song One", album="Album X", track_number=3)],
    "Song Two": [Candidate(artist="Artist A", title="Song Twoo", album="Album X", track_number=4)],
}
THRESHOLDS = ["--auto-approve-threshold", "100", "--review-threshold", "50"]


def test_match_preview_changes_nothing(tmp_path, untagged, musicbrainz, capsys):
    musicbrainz(CANDIDATES)
    output = tmp_path / "out"

    main(["--output-dir", str(output), "match", str(untagged), *THRESHOLDS])

    out = capsys.readouterr().out
    assert "[preview] auto_approve: 1" in out
    assert "[preview] review: 1" in out
    assert "dry-run mode enabled" in out
    assert (untagged / "Artist A" / "Album X" / "Song One.flac").is_file()
    assert (output / "match_results.csv").is_file()
    assert not (output / "last_journal.json").exists()


def test_match_apply_renames_then_plan_uses_real_locations(tmp_path, untagged, musicbrainz, make_file):
    musicbrainz(CANDIDATES)
    output = tmp_path / "out"
    staged = tmp_path / "staged"
    make_file(staged / "Artist A" / "Album X" / "03 - Song One.flac", "already here")

    main(
        [
            "--output-dir", str(output),
            "match", str(untagged), *THRESHOLDS,
            "--base-path", str(staged),
            "--apply-renames",
            "--live-root", str(tmp_path / "live"),
        ]
    )

    renamed = staged / "Artist A" / "Album X" / "03 - Song One (1).flac"
    assert renamed.is_file()
    assert not (untagged / "Artist A" / "Album X" / "Song One.flac").exists()
    # review matches are not renamed without --include-review
    assert (untagged / "Artist A" / "Album X" / "Song Two.flac").is_file()
    assert not (staged / "Artist A" / "Album X" / "04 - Song Twoo.flac").exists()

    with (output / "move_plan.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [Path(r["source_path"]).name for r in rows] == ["03 - Song One (1).flac", "Song Two.flac"]
    assert all(Path(r["source_path"]).is_file() for r in rows)
    assert [Path(r["destination_path"]).name for r in rows] == ["03 - Song One.flac", "04 - Song Twoo.flac"]

    main(["--output-dir", str(output), "rollback"])
    assert (untagged / "Artist A" / "Album X" / "Song One.flac").is_file()
    assert (staged / "Artist A" / "Album X" / "03 - Song One.flac").read_text() == "already here"


def test_empty_rename_batch_replaces_previous_journal(tmp_path, untagged, musicbrainz, capsys):
    musicbrainz({})
    output = tmp_path / "out"
    output.mkdir()
    stale = untagged / "Artist A" / "Album X" / "Song One.flac"
    (output / "last_journal.json").write_text(
        f'[{{"source_path": "{tmp_path / "elsewhere.flac"}", "destination_path": "{stale}", "transfer": "move"}}]',
        encoding="utf-8",
    )

    main(["--output-dir", str(output), "match", str(untagged), "--apply-renames"])
    main(["--output-dir", str(output), "rollback"])

    assert "No operation history to rollback" in capsys.readouterr().out
    assert stale.is_file()
    assert not (tmp_path / "elsewhere.flac").exists()
