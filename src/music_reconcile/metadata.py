from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from mutagen import File

AUDIO_EXTENSIONS = {
    ".mp3",
    ".flac",
    ".wav",
    ".m4a",
    ".aac",
    ".ogg",
    ".opus",
    ".wma",
    ".aiff",
    ".alac",
    ".ape",
    ".wv",
}

LEADING_DIGITS = re.compile(r"^\s*(\d+)")


def is_audio_file(path: Path) -> bool:
    # macOS AppleDouble sidecar files (._*) are metadata blobs, not audio.
    if path.name.startswith("._"):
        return False
    return path.is_file() and path.suffix.lower() in AUDIO_EXTENSIONS


def _first(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        if not value:
            return ""
        return str(value[0]).strip()
    return str(value).strip()


def _tag_value(tags: object, *keys: str) -> str:
    if tags is None:
        return ""

    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError, TypeError):
            value = None
        if value:
            return _first(value)

    return ""


def parse_track_number(value: object) -> Optional[int]:
    """``"3"``, ``"03/12"`` and ``(3, 12)`` all give 3; anything else gives None."""
    if isinstance(value, tuple):
        value = value[0] if value else None
    found = LEADING_DIGITS.match(str(value or ""))
    if not found:
        return None
    number = int(found.group(1))
    return number if number > 0 else None


def parse_year(value: str) -> str:
    value = (value or "").strip()
    if len(value) >= 4 and value[:4].isdigit():
        return value[:4]
    return ""


def _empty_info(path: Path) -> dict[str, object]:
    return {
        "artist": "",
        "album": "",
        "title": path.stem,
        "track_number": None,
        "year": "",
        "codec": path.suffix.lower().lstrip("."),
        "bitrate_kbps": None,
    }


def read_audio_info(path: Path) -> dict[str, object]:
    try:
        audio = File(path, easy=True)
    except Exception:
        return _empty_info(path)
    if audio is None:
        return _empty_info(path)

    info = getattr(audio, "info", None)
    bitrate = getattr(info, "bitrate", None)
    bitrate_kbps = int(bitrate / 1000) if isinstance(bitrate, (int, float)) and bitrate > 0 else None
    codec = path.suffix.lower().lstrip(".")
    if codec == "m4a" and "alac" in str(getattr(info, "codec", "")).lower():
        codec = "alac"

    tags = getattr(audio, "tags", None)

    artist = _tag_value(tags, "artist", "albumartist", "ARTIST", "TPE1", "©ART")
    album = _tag_value(tags, "album", "ALBUM", "TALB", "©alb")
    title = _tag_value(tags, "title", "TITLE", "TIT2", "©nam")
    track_number = _tag_value(tags, "tracknumber", "TRACKNUMBER", "TRCK", "trkn")
    year = _tag_value(tags, "date", "year", "DATE", "TDRC", "©day")

    return {
        "artist": artist,
        "album": album,
        "title": title or path.stem,
        "track_number": parse_track_number(track_number),
        "year": parse_year(year),
        "codec": codec,
        "bitrate_kbps": bitrate_kbps,
    }
