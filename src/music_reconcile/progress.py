from __future__ import annotations

import threading
from typing import Callable, Optional

from .models import ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]


def report(
    callback: Optional[ProgressCallback],
    stage: str,
    processed: int,
    total: int,
    current_file: object = None,
    status: str = "",
) -> None:
    if callback:
        callback(
            ProgressEvent(
                kind="progress",
                stage=stage,
                processed=processed,
                total=total,
                current_file=None if current_file is None else str(current_file),
                status=status,
            )
        )


def complete(
    callback: Optional[ProgressCallback],
    stage: str,
    processed: int,
    total: int,
    stats: dict[str, int],
) -> None:
    if callback:
        callback(ProgressEvent(kind="complete", stage=stage, processed=processed, total=total, stats=stats))


def fail(callback: Optional[ProgressCallback], stage: str, message: str) -> None:
    if callback:
        callback(ProgressEvent(kind="error", stage=stage, message=message))


def cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()
