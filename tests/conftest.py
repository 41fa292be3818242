from pathlib import Path

import pytest

from music_reconcile.models import Candidate, MatchCategory, MatchResult, ScannedFile, TrackDescriptor


@pytest.fixture
def track():
    def _track(artist="Artist A", album="Album X", title="Song 1", fmt="flac", bitrate=None, path=None):
        return TrackDescriptor(artist=artist, album=album, title=title, format=fmt, bitrate_kbps=bitrate, path=path)

    return _track


@pytest.fixture
def scanned(track):
    def _scanned(file_path, **kwargs):
        track_number = kwargs.pop("track_number", None)
        return ScannedFile(file_path=Path(file_path), descriptor=track(**kwargs), track_number=track_number)

    return _scanned


@pytest.fixture
def matched(scanned):
    def _matched(file_path, category=MatchCategory.AUTO_APPROVE, candidate=None, confidence=95, **kwargs):
        return MatchResult(
            file=scanned(file_path, **kwargs),
            category=category,
            candidate=candidate,
            confidence=confidence,
        )

    return _matched


@pytest.fixture
def candidate():
    def _candidate(artist="Artist A", title="Song 1", album="Album X", **kwargs):
        return Candidate(artist=artist, title=title, album=album, **kwargs)

    return _candidate


def write_file(path: Path, content: str = "audio") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def make_file():
    return write_file
