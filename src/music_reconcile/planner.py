from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from . import quality
from .comparator import RemoteIndex
from .errors import InputError
from .models import (
    UNKNOWN,
    Action,
    MatchCategory,
    MatchResult,
    MovePlan,
    MovePlanOperation,
    Quality,
    RenamePreview,
    RenamePreviewSet,
    ScannedFile,
    TrackDescriptor,
)

INVALID_CHARS = re.compile(r"[<>:\"/\\|?*\x00-\x1F]")
WHITESPACE = re.compile(r"\s+")
FEATURING = re.compile(r"\s+(?:feat\.?|ft\.|featuring)\s+.*$", re.IGNORECASE)
BRACKETED_FEATURING = re.compile(r"\s*[(\[]\s*(?:feat\.?|ft\.?|featuring)\s[^)\]]*[)\]]", re.IGNORECASE)
LEADING_TRACK_NUMBER = re.compile(r"^(\d{1,3})\s*[-.\s]")
TRACK_WORD_NUMBER = re.compile(r"track\s*(\d{1,3})", re.IGNORECASE)
TRANSFERS = {"copy", "move"}

RENAMEABLE = {MatchCategory.AUTO_APPROVE, MatchCategory.REVIEW}
PASS_THROUGH_SKIPPED = {MatchCategory.SKIPPED, MatchCategory.ERROR, MatchCategory.NO_MATCH}


def sanitize_name(value: str) -> str:
    value = INVALID_CHARS.sub("_", value or "")
    value = WHITESPACE.sub(" ", value).strip().rstrip(".").strip()
    return value if value else UNKNOWN


def primary_artist(artist: str) -> str:
    stripped = BRACKETED_FEATURING.sub("", artist or "")
    stripped = FEATURING.sub("", stripped).strip()
    return stripped if stripped else artist


def track_number_from_filename(file_name: str) -> Optional[int]:
    stem = Path(file_name).stem
    for found in (LEADING_TRACK_NUMBER.match(stem), TRACK_WORD_NUMBER.search(stem)):
        if found:
            number = int(found.group(1))
            if 0 < number < 100:
                return number
    return None


def relative_target(descriptor: TrackDescriptor, extension: str, track_number: Optional[int]) -> Path:
    """``{artist}/{album}/{NN} - {title}{ext}``, the number omitted when unknown."""
    title = sanitize_name(descriptor.title)
    file_name = f"{track_number:02d} - {title}{extension}" if track_number else f"{title}{extension}"
    return Path(sanitize_name(primary_artist(descriptor.artist))) / sanitize_name(descriptor.album) / file_name


def resolved_descriptor(match: MatchResult) -> TrackDescriptor:
    original = match.file.descriptor
    candidate = match.candidate
    return TrackDescriptor(
        artist=(candidate.artist if candidate and candidate.artist else original.artist),
        album=(candidate.album if candidate and candidate.album else original.album),
        title=(candidate.title if candidate and candidate.title else original.title),
        format=original.format,
        bitrate_kbps=original.bitrate_kbps,
    )


def resolved_track_number(match: MatchResult) -> Optional[int]:
    number = track_number_from_filename(match.file.file_name)
    if number is None:
        number = match.file.track_number
    if number is None and match.candidate is not None:
        number = match.candidate.track_number
    return number


def preview_rename(match: MatchResult, base_path: Path) -> RenamePreview:
    descriptor = resolved_descriptor(match)
    relative = relative_target(descriptor, match.file.file_path.suffix, resolved_track_number(match))
    return RenamePreview(
        match=match,
        original_path=match.file.file_path,
        proposed_path=Path(base_path) / relative,
        relative_path=relative,
        descriptor=descriptor,
    )


def preview_renames(results: Iterable[MatchResult], base_path: Path | str | None) -> RenamePreviewSet:
    """Propose canonical paths for auto_approve and review matches.

    Manual, skipped, error and no_match results are passed through without
    a proposal.
    """
    if not base_path:
        raise InputError("a base path is required to preview renames")
    base_path = Path(base_path)
    previews = RenamePreviewSet(base_path=base_path)
    for result in results:
        if result.category in RENAMEABLE:
            preview = preview_rename(result, base_path)
            if result.category == MatchCategory.AUTO_APPROVE:
                previews.auto_approve.append(preview)
            else:
                previews.review.append(preview)
        elif result.category in PASS_THROUGH_SKIPPED:
            previews.skipped.append(result)
        else:
            previews.manual.append(result)
    return previews


def rename_operations(previews: RenamePreviewSet, include_review: bool = False) -> list[MovePlanOperation]:
    selected = previews.auto_approve + (previews.review if include_review else [])
    return [
        MovePlanOperation(
            source_path=p.original_path,
            destination_path=p.proposed_path,
            action=Action.ADD,
            transfer="move",
            descriptor=p.descriptor,
        )
        for p in selected
        if p.changed
    ]


def _existing_file(remote: TrackDescriptor, destination: Path) -> Optional[Path]:
    if remote.path is not None and remote.path.exists():
        return remote.path
    if destination.exists():
        return destination
    return None


def _plan(
    entries: Iterable[tuple[Path, Path, TrackDescriptor]],
    live_root: Path | str | None,
    remote_tracks: Iterable[TrackDescriptor] | RemoteIndex | None,
    transfer: str,
    force: bool,
) -> MovePlan:
    if not live_root:
        raise InputError("a live library root is required to plan moves")
    if transfer not in TRANSFERS:
        raise InputError(f"unknown transfer mode: {transfer!r} (expected copy or move)")

    live_root = Path(live_root)
    if isinstance(remote_tracks, RemoteIndex):
        index = remote_tracks
    else:
        index = RemoteIndex(remote_tracks or [])
    plan = MovePlan(live_root=live_root, transfer=transfer, force=force)

    for source, relative, descriptor in entries:
        destination = live_root / relative
        remote, _ = index.find(descriptor)
        operation = MovePlanOperation(
            source_path=source,
            destination_path=destination,
            action=Action.ADD,
            transfer=transfer,
            descriptor=descriptor,
            remote_match=remote,
        )
        if remote is None:
            plan.new_files.append(operation)
            continue

        operation.replaced_path = _existing_file(remote, destination)
        verdict = quality.compare(descriptor, remote)
        if verdict == Quality.A_BETTER:
            operation.action = Action.REPLACE
            plan.upgrades.append(operation)
        elif verdict == Quality.B_BETTER:
            operation.action = Action.REPLACE if force else Action.SKIP
            operation.reason = "quality downgrade"
            plan.downgrades.append(operation)
        else:
            operation.action = Action.REPLACE if force else Action.SKIP
            operation.reason = "same quality already in library"
            plan.same_quality.append(operation)

    return plan


def _source_path(
    preview: RenamePreview,
    renamed: bool,
    renamed_paths: Optional[Mapping[Path, Path]],
) -> Path:
    if renamed_paths is not None:
        return renamed_paths.get(preview.original_path, preview.original_path)
    return preview.proposed_path if renamed else preview.original_path


def plan_moves(
    previews: Sequence[RenamePreview] | RenamePreviewSet,
    live_root: Path | str | None,
    remote_tracks: Iterable[TrackDescriptor] | RemoteIndex | None = None,
    transfer: str = "copy",
    force: bool = False,
    renamed: bool = True,
    renamed_paths: Optional[Mapping[Path, Path]] = None,
) -> MovePlan:
    """Plan copying renamed files into the live library.

    With ``renamed`` the files are expected at their proposed paths.
    ``renamed_paths`` maps original paths to where a rename batch actually
    left them; previews missing from it are still at their original path.
    Only existence checks touch the file system.
    """
    if isinstance(previews, RenamePreviewSet):
        previews = previews.auto_approve + previews.review
    entries = (
        (_source_path(p, renamed, renamed_paths), p.relative_path, p.descriptor)
        for p in previews
    )
    return _plan(entries, live_root, remote_tracks, transfer, force)


def plan_moves_from_scan(
    files: Sequence[ScannedFile],
    live_root: Path | str | None,
    remote_tracks: Iterable[TrackDescriptor] | RemoteIndex | None = None,
    transfer: str = "copy",
    force: bool = False,
) -> MovePlan:
    """Plan moves for files already laid out as they should appear in the live library."""
    entries = (
        (f.file_path, Path(f.relative_path) if f.relative_path else Path(f.file_name), f.descriptor)
        for f in files
    )
    return _plan(entries, live_root, remote_tracks, transfer, force)
