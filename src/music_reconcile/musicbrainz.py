from __future__ import annotations

import time
from typing import Optional

import musicbrainzngs

from .errors import SearchError
from .metadata import parse_track_number, parse_year
from .models import UNKNOWN, Candidate


def _result_score(item: dict) -> int:
    score = item.get("ext:score", "0")
    try:
        return int(score)
    except (TypeError, ValueError):
        return 0


def _first_release(recording: dict) -> dict:
    releases = recording.get("release-list", [])
    return releases[0] if releases else {}


def _release_track_number(release: dict) -> Optional[int]:
    for medium in release.get("medium-list", []):
        for track in medium.get("track-list", []):
            number = parse_track_number(track.get("number"))
            if number is not None:
                return number
    return None


def candidate_from_recording(recording: dict) -> Candidate:
    release = _first_release(recording)
    return Candidate(
        artist=str(recording.get("artist-credit-phrase", "")).strip(),
        title=str(recording.get("title", "")).strip(),
        album=str(release.get("title", "")).strip(),
        year=parse_year(str(release.get("date", "") or recording.get("first-release-date", ""))),
        track_number=_release_track_number(release),
        recording_id=str(recording.get("id", "")),
        provider_confidence=_result_score(recording),
    )


class MusicBrainzSearch:
    """Recording search against the public MusicBrainz web service.

    Instances are callables with the signature the matcher expects. Each
    distinct query hits the network once; the answer is cached for the
    lifetime of the instance. A failed query raises ``SearchError``.
    """

    def __init__(
        self,
        app_name: str,
        app_version: str,
        app_contact: str,
        limit: int = 5,
        sleep_seconds: float = 1.1,
        verbose: bool = False,
    ) -> None:
        musicbrainzngs.set_useragent(app_name, app_version, app_contact)
        self.limit = limit
        self.sleep_seconds = sleep_seconds
        self.verbose = verbose
        self._cache: dict[tuple[str, str, str], list[Candidate]] = {}

    def __call__(self, artist: str, album: Optional[str], title: Optional[str]) -> list[Candidate]:
        key = ((artist or "").lower(), (album or "").lower(), (title or "").lower())
        if key in self._cache:
            return list(self._cache[key])

        fields = {}
        if title:
            fields["recording"] = title
        if artist and artist != UNKNOWN:
            fields["artist"] = artist
        if album and album != UNKNOWN:
            fields["release"] = album
        if not fields:
            return []

        if self.verbose:
            print(f"[musicbrainz] searching: {artist} - {album} - {title}")
        try:
            response = musicbrainzngs.search_recordings(limit=self.limit, **fields)
        except musicbrainzngs.MusicBrainzError as exc:
            raise SearchError(f"MusicBrainz query failed for {artist} - {title}: {exc}") from exc
        finally:
            if self.sleep_seconds:
                time.sleep(self.sleep_seconds)

        recordings = sorted(response.get("recording-list", []), key=_result_score, reverse=True)
        candidates = [candidate_from_recording(r) for r in recordings]
        self._cache[key] = candidates
        return list(candidates)
