from __future__ import annotations

from .models import Quality, TrackDescriptor

LOSSLESS_FORMATS = {
    "flac",
    "alac",
    "ape",
    "wav",
    "aiff",
    "aif",
    "wv",
    "pcm",
    "dsf",
    "dff",
}
LOSSY_FORMATS = {
    "mp3",
    "aac",
    "m4a",
    "ogg",
    "vorbis",
    "opus",
    "wma",
    "mp2",
}

TIER_UNKNOWN = 0
TIER_LOSSY = 1
TIER_LOSSLESS = 2


def format_tier(fmt: str) -> int:
    fmt = (fmt or "").strip().lower().lstrip(".")
    if fmt in LOSSLESS_FORMATS:
        return TIER_LOSSLESS
    if fmt in LOSSY_FORMATS:
        return TIER_LOSSY
    return TIER_UNKNOWN


def quality_rank(track: TrackDescriptor) -> tuple[int, int]:
    # Missing bitrate sorts below any known bitrate in the same tier.
    bitrate = track.bitrate_kbps if track.bitrate_kbps is not None else -1
    return format_tier(track.format), bitrate


def compare(a: TrackDescriptor, b: TrackDescriptor) -> Quality:
    rank_a = quality_rank(a)
    rank_b = quality_rank(b)
    if rank_a > rank_b:
        return Quality.A_BETTER
    if rank_b > rank_a:
        return Quality.B_BETTER
    return Quality.SAME_QUALITY
