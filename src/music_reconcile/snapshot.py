from __future__ import annotations

import csv
import json
from pathlib import Path

from .errors import InputError
from .models import TrackDescriptor


def _descriptor(row: dict) -> TrackDescriptor:
    bitrate = row.get("bitrate_kbps")
    if bitrate in (None, ""):
        bitrate = row.get("bitrate")
    path = row.get("path") or None
    return TrackDescriptor(
        artist=row.get("artist", ""),
        album=row.get("album", ""),
        title=row.get("title", ""),
        format=row.get("codec") or row.get("format") or "",
        bitrate_kbps=bitrate,
        path=Path(path) if path else None,
    )


def load_remote_snapshot(path: Path) -> list[TrackDescriptor]:
    """Read a library snapshot exported as CSV or JSON.

    Rows carry ``artist``, ``album``, ``title``, ``codec`` and
    ``bitrate_kbps`` (``format`` and ``bitrate`` are accepted too) and an
    optional ``path`` of the file inside the library.
    """
    if not path.is_file():
        raise InputError(f"remote snapshot not found: {path}")

    if path.suffix.lower() == ".json":
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise InputError(f"remote snapshot is not valid JSON: {path}: {exc}") from exc
        if isinstance(rows, dict):
            rows = rows.get("tracks", [])
        if not isinstance(rows, list):
            raise InputError(f"remote snapshot must hold a list of tracks: {path}")
        if not all(isinstance(row, dict) for row in rows):
            raise InputError(f"remote snapshot tracks must be JSON objects: {path}")
        return [_descriptor(row) for row in rows]

    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = {"artist", "title"} - set(reader.fieldnames or [])
        if missing:
            raise InputError(f"remote snapshot is missing columns {sorted(missing)}: {path}")
        return [_descriptor(row) for row in reader]
