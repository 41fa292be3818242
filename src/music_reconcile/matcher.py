from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from . import fingerprint, progress
from .errors import InputError
from .models import UNKNOWN, Candidate, MatchBatchResult, MatchCategory, MatchResult, ScannedFile
from .progress import ProgressCallback

STAGE = "match"

SearchFunction = Callable[[str, Optional[str], Optional[str]], Sequence[Candidate]]


@dataclass
class MatchThresholds:
    auto_approve: int = 90
    review: int = 70

    def __post_init__(self) -> None:
        if not 0 < self.review <= self.auto_approve <= 100:
            raise InputError(
                f"invalid thresholds: need 0 < review ({self.review}) <= auto_approve ({self.auto_approve}) <= 100"
            )

    def categorize(self, confidence: int) -> MatchCategory:
        if confidence >= self.auto_approve:
            return MatchCategory.AUTO_APPROVE
        if confidence >= self.review:
            return MatchCategory.REVIEW
        if confidence > 0:
            return MatchCategory.MANUAL
        return MatchCategory.NO_MATCH


def select_candidate(file: ScannedFile, candidates: Sequence[Candidate]) -> tuple[Optional[Candidate], int]:
    """Highest scoring candidate; the earliest one wins a tie."""
    best: Optional[Candidate] = None
    best_score = -1
    for candidate in candidates:
        candidate_score = fingerprint.score(file.descriptor, candidate.descriptor())
        if candidate_score > best_score:
            best = candidate
            best_score = candidate_score
    return best, max(best_score, 0)


def match_file(
    file: ScannedFile,
    search: SearchFunction,
    thresholds: MatchThresholds | None = None,
) -> MatchResult:
    thresholds = thresholds or MatchThresholds()
    meta = file.descriptor

    if meta.title == UNKNOWN:
        return MatchResult(file=file, category=MatchCategory.SKIPPED, reason="Missing title metadata")

    try:
        candidates = list(
            search(
                meta.artist,
                None if meta.album == UNKNOWN else meta.album,
                meta.title,
            )
        )
    except Exception as exc:
        return MatchResult(file=file, category=MatchCategory.ERROR, reason=f"search failed: {exc}")

    if not candidates:
        return MatchResult(file=file, category=MatchCategory.NO_MATCH, reason="No candidates returned")

    candidate, confidence = select_candidate(file, candidates)
    category = thresholds.categorize(confidence)
    if category == MatchCategory.NO_MATCH:
        return MatchResult(file=file, category=category, confidence=0, reason="No candidate resembles the file")

    reason = ""
    if category == MatchCategory.MANUAL:
        reason = f"Best candidate only {confidence}% similar"
    return MatchResult(file=file, category=category, candidate=candidate, confidence=confidence, reason=reason)


def match_files(
    files: Sequence[ScannedFile],
    search: SearchFunction,
    thresholds: MatchThresholds | None = None,
    verbose: bool = False,
    progress_callback: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> MatchBatchResult:
    thresholds = thresholds or MatchThresholds()
    total = len(files)
    batch = MatchBatchResult(results=[], total=total)

    for idx, file in enumerate(files, start=1):
        if progress.cancelled(cancel_event):
            batch.cancelled = True
            break

        result = match_file(file, search, thresholds)
        batch.results.append(result)

        if result.category == MatchCategory.ERROR:
            batch.warnings.append(f"match error: {file.file_path}: {result.reason}")
        if verbose:
            print(f"[match] {file.file_path}: {result.category.value} ({result.confidence}%)")
        progress.report(
            progress_callback, STAGE, idx, total, current_file=file.file_path, status=result.category.value
        )

    progress.complete(progress_callback, STAGE, batch.processed, total, match_statistics(batch.results, thresholds))
    return batch


def match_statistics(results: Sequence[MatchResult], thresholds: MatchThresholds | None = None) -> dict[str, int]:
    thresholds = thresholds or MatchThresholds()
    counts = Counter(r.category for r in results)
    matched = [
        r for r in results
        if r.category in {MatchCategory.AUTO_APPROVE, MatchCategory.REVIEW, MatchCategory.MANUAL}
    ]
    stats = {"total": len(results), "matched": len(matched)}
    for category in MatchCategory:
        stats[category.value] = counts.get(category, 0)
    stats["high_confidence"] = sum(1 for r in matched if r.confidence >= thresholds.auto_approve)
    stats["medium_confidence"] = sum(
        1 for r in matched if thresholds.review <= r.confidence < thresholds.auto_approve
    )
    stats["low_confidence"] = sum(1 for r in matched if r.confidence < thresholds.review)
    return stats
