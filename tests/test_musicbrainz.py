import musicbrainzngs
import pytest

from music_reconcile.errors import SearchError
from music_reconcile.musicbrainz import MusicBrainzSearch, candidate_from_recording

RECORDINGS = {
    "recording-list": [
        {
            "id": "rec-low",
            "title": "Song 1 (Live)",
            "ext:score": "60",
            "artist-credit-phrase": "Artist A",
            "release-list": [{"title": "Live Album", "date": "2001-05-01"}],
        },
        {
            "id": "rec-high",
            "title": "Song 1",
            "ext:score": "100",
            "artist-credit-phrase": "Artist A",
            "release-list": [
                {
                    "title": "Album X",
                    "date": "1999",
                    "medium-list": [{"track-list": [{"number": "4"}]}],
                }
            ],
        },
    ]
}


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def fake_search(**kwargs):
        recorded.append(kwargs)
        return RECORDINGS

    monkeypatch.setattr(musicbrainzngs, "set_useragent", lambda *args: None)
    monkeypatch.setattr(musicbrainzngs, "search_recordings", fake_search)
    return recorded


def _search():
    return MusicBrainzSearch("music-reconcile", "0.1.0", "test@example.com", sleep_seconds=0)


def test_candidates_sorted_by_provider_score(calls):
    candidates = _search()("Artist A", "Album X", "Song 1")

    assert [c.recording_id for c in candidates] == ["rec-high", "rec-low"]
    best = candidates[0]
    assert best.album == "Album X"
    assert best.year == "1999"
    assert best.track_number == 4
    assert best.provider_confidence == 100
    assert calls == [{"limit": 5, "recording": "Song 1", "artist": "Artist A", "release": "Album X"}]


def test_unknown_fields_are_left_out_and_queries_cached(calls):
    search = _search()

    search("Unknown", None, "Song 1")
    search("Unknown", None, "Song 1")

    assert calls == [{"limit": 5, "recording": "Song 1"}]


def test_service_errors_become_search_errors(monkeypatch):
    def broken(**kwargs):
        raise musicbrainzngs.MusicBrainzError("rate limited")

    monkeypatch.setattr(musicbrainzngs, "set_useragent", lambda *args: None)
    monkeypatch.setattr(musicbrainzngs, "search_recordings", broken)

    with pytest.raises(SearchError):
        _search()("Artist A", None, "Song 1")


def test_candidate_without_release():
    candidate = candidate_from_recording({"title": "Solo", "artist-credit-phrase": "X", "ext:score": "bad"})

    assert candidate.album == ""
    assert candidate.track_number is None
    assert candidate.provider_confidence == 0
