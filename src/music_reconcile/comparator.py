from __future__ import annotations

import threading
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from . import fingerprint, progress, quality
from .models import (
    Action,
    ComparisonResult,
    ConflictCategory,
    ConflictRecord,
    Quality,
    TrackDescriptor,
)
from .progress import ProgressCallback

STAGE = "compare"


class RemoteIndex:
    """Lookup of remote tracks keyed by normalized (artist, title)."""

    def __init__(self, remote_tracks: Iterable[TrackDescriptor]) -> None:
        self._by_key: dict[tuple[str, str], list[TrackDescriptor]] = defaultdict(list)
        self._by_artist: dict[str, list[TrackDescriptor]] = defaultdict(list)
        for track in remote_tracks:
            key = fingerprint.identity_key(track)
            self._by_key[key].append(track)
            self._by_artist[key[0]].append(track)

    def __len__(self) -> int:
        return sum(len(tracks) for tracks in self._by_key.values())

    def find(
        self,
        local: TrackDescriptor,
        fuzzy_threshold: Optional[int] = None,
    ) -> tuple[Optional[TrackDescriptor], Optional[str]]:
        hits = self._by_key.get(fingerprint.identity_key(local), [])
        if hits:
            return _prefer_album(local, hits), "exact"

        if fuzzy_threshold is None:
            return None, None

        # Near-miss titles by the same artist; artists are never fuzzed.
        artist_key = fingerprint.normalize_artist(local.artist)
        title_key = fingerprint.normalize_title(local.title)
        best: Optional[TrackDescriptor] = None
        best_score = -1
        for track in self._by_artist.get(artist_key, []):
            title_score = fingerprint.similarity(title_key, fingerprint.normalize_title(track.title))
            if title_score >= fuzzy_threshold and title_score > best_score:
                best = track
                best_score = title_score
        if best is None:
            return None, None
        return best, "fuzzy"


def _prefer_album(local: TrackDescriptor, hits: Sequence[TrackDescriptor]) -> TrackDescriptor:
    for track in hits:
        if fingerprint.same_album(local, track):
            return track
    return hits[0]


def classify(local: TrackDescriptor, remote: Optional[TrackDescriptor]) -> tuple[ConflictCategory, Action]:
    if remote is None:
        return ConflictCategory.SAFE_TO_ADD, Action.ADD
    verdict = quality.compare(local, remote)
    if verdict == Quality.A_BETTER:
        return ConflictCategory.QUALITY_UPGRADE, Action.REPLACE
    if verdict == Quality.B_BETTER:
        return ConflictCategory.QUALITY_DOWNGRADE, Action.SKIP
    return ConflictCategory.SAME_QUALITY_DUPLICATE, Action.SKIP


def compare_libraries(
    offline_tracks: Sequence[TrackDescriptor],
    remote_tracks: Iterable[TrackDescriptor] | RemoteIndex,
    fuzzy_threshold: Optional[int] = None,
    verbose: bool = False,
    progress_callback: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> ComparisonResult:
    """Classify every offline track against a remote library snapshot.

    SAFE_TO_ADD tracks are only counted; the other categories are itemized
    in ``conflicts``.
    """
    index = remote_tracks if isinstance(remote_tracks, RemoteIndex) else RemoteIndex(remote_tracks)
    total = len(offline_tracks)
    result = ComparisonResult(total=total)

    for idx, local in enumerate(offline_tracks, start=1):
        if progress.cancelled(cancel_event):
            result.cancelled = True
            break

        remote, match_type = index.find(local, fuzzy_threshold=fuzzy_threshold)
        category, recommendation = classify(local, remote)

        if category == ConflictCategory.SAFE_TO_ADD:
            result.safe_to_add += 1
        else:
            if category == ConflictCategory.QUALITY_UPGRADE:
                result.quality_upgrades += 1
            elif category == ConflictCategory.QUALITY_DOWNGRADE:
                result.quality_downgrades += 1
            else:
                result.same_quality_duplicates += 1
            if match_type == "exact":
                result.exact_matches += 1
            else:
                result.fuzzy_matches += 1
            result.conflicts.append(
                ConflictRecord(
                    local=local,
                    remote=remote,
                    category=category,
                    recommendation=recommendation,
                    match_type=match_type,
                )
            )

        if verbose:
            print(f"[compare] {local.artist} - {local.title}: {category.value}")
        result.processed = idx
        progress.report(progress_callback, STAGE, idx, total, current_file=f"{local.artist} - {local.title}")

    progress.complete(progress_callback, STAGE, result.processed, total, result.counts())
    return result
