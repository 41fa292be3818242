import threading
from pathlib import Path

from music_reconcile.metadata import parse_track_number, parse_year
from music_reconcile.metrics import summarize
from music_reconcile.scanner import folder_names, scan_music


def test_folder_names():
    assert folder_names(Path("Artist A/Album X/01 - Song.flac")) == ("Artist A", "Album X")
    assert folder_names(Path("Artist A/Song.flac")) == ("Artist A", "")
    assert folder_names(Path("Song.flac")) == ("", "")


def test_parse_helpers():
    assert parse_track_number("03/12") == 3
    assert parse_track_number((7, 10)) == 7
    assert parse_track_number("0") is None
    assert parse_track_number("side A") is None
    assert parse_year("1999-04-01") == "1999"
    assert parse_year("n/a") == ""


def test_untagged_files_fall_back_to_folders_and_stem(tmp_path, make_file):
    make_file(tmp_path / "Artist A" / "Album X" / "02 - Song 2.flac")
    make_file(tmp_path / "Artist A" / "Album X" / "cover.jpg")
    make_file(tmp_path / "Artist A" / "Album X" / "._02 - Song 2.flac")

    result = scan_music(tmp_path)

    assert len(result.files) == 1
    scanned = result.files[0]
    assert scanned.descriptor.artist == "Artist A"
    assert scanned.descriptor.album == "Album X"
    assert scanned.descriptor.title == "02 - Song 2"
    assert scanned.descriptor.format == "flac"
    assert scanned.descriptor.bitrate_kbps is None
    assert scanned.relative_path == str(Path("Artist A/Album X/02 - Song 2.flac"))
    assert scanned.size_bytes == len("audio")


def test_scan_reports_progress_and_metrics(tmp_path, make_file):
    make_file(tmp_path / "A" / "One" / "a.mp3", "x" * 10)
    make_file(tmp_path / "A" / "Two" / "b.flac", "x" * 30)
    seen = []

    result = scan_music(tmp_path, progress_callback=lambda current, total: seen.append((current, total)))

    assert seen == [(0, 2), (1, 2), (2, 2)]
    metrics = summarize(result.files)
    assert metrics.total_tracks == 2
    assert metrics.unique_artists == 1
    assert metrics.unique_albums == 2
    assert metrics.format_percent() == {"flac": 75.0, "mp3": 25.0}


def test_scan_stops_when_cancelled(tmp_path, make_file):
    make_file(tmp_path / "a.mp3")
    cancel = threading.Event()
    cancel.set()

    result = scan_music(tmp_path, cancel_event=cancel)

    assert result.files == []
    assert result.warnings == ["scan cancelled after 0 of 1 files"]
