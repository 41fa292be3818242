from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

UNKNOWN = "Unknown"


def _clean_text(value: object) -> str:
    text = "" if value is None else str(value).strip()
    if not text or text.lower() in {"unknown", "unknown artist", "unknown album"}:
        return UNKNOWN
    return text


def _clean_bitrate(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        bitrate = int(float(value))
    except (TypeError, ValueError):
        return None
    return bitrate if bitrate > 0 else None


class Quality(str, Enum):
    SAME_QUALITY = "SAME_QUALITY"
    A_BETTER = "A_BETTER"
    B_BETTER = "B_BETTER"


class ConflictCategory(str, Enum):
    SAFE_TO_ADD = "SAFE_TO_ADD"
    QUALITY_UPGRADE = "QUALITY_UPGRADE"
    QUALITY_DOWNGRADE = "QUALITY_DOWNGRADE"
    SAME_QUALITY_DUPLICATE = "SAME_QUALITY_DUPLICATE"


class Action(str, Enum):
    ADD = "ADD"
    REPLACE = "REPLACE"
    SKIP = "SKIP"


class MatchCategory(str, Enum):
    AUTO_APPROVE = "auto_approve"
    REVIEW = "review"
    MANUAL = "manual"
    SKIPPED = "skipped"
    ERROR = "error"
    NO_MATCH = "no_match"


class BatchState(str, Enum):
    PLANNED = "PLANNED"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"


@dataclass
class TrackDescriptor:
    """Artist/album/title plus quality info for one recording.

    Blank text fields become the ``"Unknown"`` sentinel, ``format`` is
    lowercased without a leading dot and a non-positive or unparsable
    bitrate means unknown.
    """

    artist: str
    album: str
    title: str
    format: str = ""
    bitrate_kbps: Optional[int] = None
    path: Optional[Path] = None

    def __post_init__(self) -> None:
        self.artist = _clean_text(self.artist)
        self.album = _clean_text(self.album)
        self.title = _clean_text(self.title)
        self.format = str(self.format or "").strip().lower().lstrip(".")
        self.bitrate_kbps = _clean_bitrate(self.bitrate_kbps)
        if self.path is not None and not isinstance(self.path, Path):
            self.path = Path(self.path)


@dataclass
class ScannedFile:
    file_path: Path
    descriptor: TrackDescriptor
    relative_path: str = ""
    size_bytes: int = 0
    folder_artist: str = ""
    folder_album: str = ""
    track_number: Optional[int] = None
    year: str = ""

    @property
    def file_name(self) -> str:
        return self.file_path.name


@dataclass
class ScanResult:
    files: list[ScannedFile]
    warnings: list[str]


@dataclass
class ConflictRecord:
    local: TrackDescriptor
    remote: Optional[TrackDescriptor]
    category: ConflictCategory
    recommendation: Action
    match_type: Optional[str] = None


@dataclass
class ComparisonResult:
    total: int
    processed: int = 0
    safe_to_add: int = 0
    quality_upgrades: int = 0
    quality_downgrades: int = 0
    same_quality_duplicates: int = 0
    exact_matches: int = 0
    fuzzy_matches: int = 0
    conflicts: list[ConflictRecord] = field(default_factory=list)
    cancelled: bool = False

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    def counts(self) -> dict[str, int]:
        return {
            ConflictCategory.SAFE_TO_ADD.value: self.safe_to_add,
            ConflictCategory.QUALITY_UPGRADE.value: self.quality_upgrades,
            ConflictCategory.QUALITY_DOWNGRADE.value: self.quality_downgrades,
            ConflictCategory.SAME_QUALITY_DUPLICATE.value: self.same_quality_duplicates,
        }


@dataclass
class Candidate:
    """One result returned by a canonical-metadata search."""

    artist: str
    title: str
    album: str = ""
    year: str = ""
    track_number: Optional[int] = None
    recording_id: str = ""
    provider_confidence: Optional[int] = None

    def descriptor(self) -> TrackDescriptor:
        return TrackDescriptor(artist=self.artist, album=self.album, title=self.title)


@dataclass
class MatchResult:
    file: ScannedFile
    category: MatchCategory
    candidate: Optional[Candidate] = None
    confidence: int = 0
    reason: str = ""

    @property
    def original_metadata(self) -> TrackDescriptor:
        return self.file.descriptor


@dataclass
class MatchBatchResult:
    results: list[MatchResult]
    total: int
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def remaining(self) -> int:
        return self.total - self.processed


@dataclass
class RenamePreview:
    match: MatchResult
    original_path: Path
    proposed_path: Path
    relative_path: Path
    descriptor: TrackDescriptor

    @property
    def changed(self) -> bool:
        return self.original_path != self.proposed_path


@dataclass
class RenamePreviewSet:
    base_path: Path
    auto_approve: list[RenamePreview] = field(default_factory=list)
    review: list[RenamePreview] = field(default_factory=list)
    manual: list[MatchResult] = field(default_factory=list)
    skipped: list[MatchResult] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total_files": len(self.auto_approve) + len(self.review) + len(self.manual) + len(self.skipped),
            "auto_approve": len(self.auto_approve),
            "review": len(self.review),
            "manual": len(self.manual),
            "skipped": len(self.skipped),
            "unchanged": sum(1 for p in self.auto_approve + self.review if not p.changed),
        }


@dataclass
class MovePlanOperation:
    source_path: Path
    destination_path: Path
    action: Action
    reason: str = ""
    transfer: str = "copy"
    descriptor: Optional[TrackDescriptor] = None
    remote_match: Optional[TrackDescriptor] = None
    replaced_path: Optional[Path] = None


@dataclass
class MovePlan:
    live_root: Path
    transfer: str = "copy"
    force: bool = False
    new_files: list[MovePlanOperation] = field(default_factory=list)
    upgrades: list[MovePlanOperation] = field(default_factory=list)
    downgrades: list[MovePlanOperation] = field(default_factory=list)
    same_quality: list[MovePlanOperation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def executable(self) -> list[MovePlanOperation]:
        operations = self.new_files + self.upgrades
        if self.force:
            operations += [op for op in self.downgrades + self.same_quality if op.action != Action.SKIP]
        return operations

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.new_files) + len(self.upgrades) + len(self.downgrades) + len(self.same_quality),
            "new_files": len(self.new_files),
            "upgrades": len(self.upgrades),
            "downgrades": len(self.downgrades),
            "same_quality": len(self.same_quality),
            "executable": len(self.executable()),
        }


@dataclass
class OperationResult:
    source_path: Path
    destination_path: Path
    action: Action
    status: str
    message: str = ""


@dataclass
class JournalEntry:
    source_path: Optional[Path]
    destination_path: Optional[Path]
    transfer: str = "move"
    deleted_path: Optional[Path] = None

    @property
    def reversible(self) -> bool:
        return self.deleted_path is None


@dataclass
class ExecutionSummary:
    state: BatchState
    dry_run: bool
    total: int
    results: list[OperationResult] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def applied(self) -> dict[Path, Path]:
        """Source to final destination for every operation that was carried out."""
        if self.dry_run:
            return {}
        return {
            r.source_path: r.destination_path
            for r in self.results
            if r.status in {"success", "success_with_suffix"}
        }

    def stats(self) -> dict[str, int]:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class RollbackSummary:
    restored: int = 0
    failed: int = 0
    permanently_deleted: int = 0
    messages: list[str] = field(default_factory=list)


@dataclass
class ProgressEvent:
    kind: str
    stage: str
    processed: int = 0
    total: int = 0
    current_file: Optional[str] = None
    status: str = ""
    stats: Optional[dict[str, int]] = None
    message: str = ""

    @property
    def progress(self) -> int:
        if self.total <= 0:
            return 100
        return max(0, min(100, int(self.processed * 100 / self.total)))
