from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable

from .metadata import is_audio_file, read_audio_info
from .models import ScannedFile, ScanResult, TrackDescriptor


def folder_names(relative_path: Path) -> tuple[str, str]:
    """Artist and album folder names for ``Artist/Album/track`` layouts."""
    parents = relative_path.parts[:-1]
    if len(parents) >= 2:
        return parents[-2], parents[-1]
    if len(parents) == 1:
        return parents[0], ""
    return "", ""


def scan_music(
    root: Path,
    verbose: bool = False,
    progress_callback: Callable[[int, int], None] | None = None,
    cancel_event: threading.Event | None = None,
) -> ScanResult:
    files: list[ScannedFile] = []
    warnings: list[str] = []
    candidates: list[Path] = []

    def _on_walk_error(err: OSError) -> None:
        target = getattr(err, "filename", None) or str(root)
        warnings.append(f"walk error: {target}: {err.strerror or str(err)}")
        if verbose:
            print(f"[scan-warning] walk error: {target}: {err.strerror or str(err)}")

    for dirpath, _, filenames in os.walk(root, onerror=_on_walk_error):
        base = Path(dirpath)
        for name in sorted(filenames):
            path = base / name
            try:
                if is_audio_file(path):
                    candidates.append(path)
            except OSError as exc:
                warnings.append(f"file skipped: {path}: {exc}")
                if verbose:
                    print(f"[scan-warning] file skipped: {path}: {exc}")

    total = len(candidates)
    if progress_callback:
        progress_callback(0, total)

    for idx, path in enumerate(candidates, start=1):
        if cancel_event is not None and cancel_event.is_set():
            warnings.append(f"scan cancelled after {idx - 1} of {total} files")
            break
        try:
            relative = path.relative_to(root)
            if verbose:
                print(f"[scan] {relative}")

            size_bytes = path.stat().st_size
            info = read_audio_info(path)
            folder_artist, folder_album = folder_names(relative)

            descriptor = TrackDescriptor(
                artist=str(info["artist"]) or folder_artist,
                album=str(info["album"]) or folder_album,
                title=str(info["title"]) or path.stem,
                format=str(info["codec"]),
                bitrate_kbps=info["bitrate_kbps"],
            )
            files.append(
                ScannedFile(
                    file_path=path,
                    descriptor=descriptor,
                    relative_path=str(relative),
                    size_bytes=size_bytes,
                    folder_artist=folder_artist,
                    folder_album=folder_album,
                    track_number=info["track_number"],
                    year=str(info["year"]),
                )
            )
        except OSError as exc:
            warnings.append(f"file skipped: {path}: {exc}")
            if verbose:
                print(f"[scan-warning] file skipped: {path}: {exc}")
        finally:
            if progress_callback:
                progress_callback(idx, total)

    return ScanResult(files=files, warnings=warnings)
