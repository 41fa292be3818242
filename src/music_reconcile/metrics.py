from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from .models import ScannedFile


@dataclass
class LibraryMetrics:
    total_tracks: int = 0
    total_size_bytes: int = 0
    unique_artists: int = 0
    unique_albums: int = 0
    format_bytes: dict[str, int] = field(default_factory=dict)

    def format_percent(self) -> dict[str, float]:
        if not self.total_size_bytes:
            return {fmt: 0.0 for fmt in sorted(self.format_bytes)}
        return {
            fmt: round(size / self.total_size_bytes * 100.0, 2)
            for fmt, size in sorted(self.format_bytes.items())
        }


def summarize(files: list[ScannedFile]) -> LibraryMetrics:
    sizes = Counter()
    for f in files:
        sizes[f.descriptor.format or "unknown"] += f.size_bytes
    return LibraryMetrics(
        total_tracks=len(files),
        total_size_bytes=sum(sizes.values()),
        unique_artists=len({f.descriptor.artist for f in files}),
        unique_albums=len({(f.descriptor.artist, f.descriptor.album) for f in files}),
        format_bytes=dict(sizes),
    )


def human_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.2f} MB"
