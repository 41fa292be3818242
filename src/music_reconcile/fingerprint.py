from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

from .models import UNKNOWN, TrackDescriptor

PUNCTUATION = re.compile(r"[^\w\s]")
WHITESPACE = re.compile(r"\s+")
TRAILING_QUALIFIER = re.compile(r"\s*(\([^)]*\)|\[[^\]]*\])\s*$")


def normalize_text(value: str) -> str:
    value = PUNCTUATION.sub("", (value or "").lower())
    return WHITESPACE.sub(" ", value).strip()


def strip_qualifiers(value: str) -> str:
    """Drop trailing "(Remastered)" / "[Live]" style suffixes, repeatedly."""
    cleaned = (value or "").strip()
    while True:
        next_cleaned = TRAILING_QUALIFIER.sub("", cleaned).strip()
        if next_cleaned == cleaned or not next_cleaned:
            return cleaned
        cleaned = next_cleaned


def normalize_title(value: str) -> str:
    return normalize_text(strip_qualifiers(value))


def normalize_artist(value: str) -> str:
    return normalize_text(value)


def identity_key(track: TrackDescriptor) -> tuple[str, str]:
    return normalize_artist(track.artist), normalize_title(track.title)


def matches(local: TrackDescriptor, remote: TrackDescriptor) -> bool:
    """Return True when both descriptors name the same recording.

    Artist and title must be equal after normalization. Album never
    rejects a pair; it is only used to choose among several hits.
    """
    return identity_key(local) == identity_key(remote)


def same_album(local: TrackDescriptor, remote: TrackDescriptor) -> bool:
    return normalize_text(local.album) == normalize_text(remote.album)


def similarity(a: str, b: str) -> int:
    return round(Levenshtein.normalized_similarity(a, b) * 100)


def score(local: TrackDescriptor, candidate: TrackDescriptor) -> int:
    """Similarity of two descriptors on a 0-100 scale.

    Average of the artist, title and album similarities. Album only takes
    part when both sides know it.
    """
    parts = [
        similarity(normalize_artist(local.artist), normalize_artist(candidate.artist)),
        similarity(normalize_title(local.title), normalize_title(candidate.title)),
    ]
    if local.album != UNKNOWN and candidate.album != UNKNOWN:
        parts.append(similarity(normalize_text(local.album), normalize_text(candidate.album)))
    return round(sum(parts) / len(parts))
