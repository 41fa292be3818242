from __future__ import annotations

import json
import os
import shutil
import threading
from pathlib import Path
from typing import Optional, Sequence

from . import progress
from .errors import InputError
from .models import (
    Action,
    BatchState,
    ExecutionSummary,
    JournalEntry,
    MovePlan,
    MovePlanOperation,
    OperationResult,
    RollbackSummary,
)
from .planner import TRANSFERS
from .progress import ProgressCallback

STAGE = "execute"
ROLLBACK_STAGE = "rollback"


def non_colliding_path(path: Path) -> Path:
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    parent = path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem} ({counter}){suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def transfer_file(source: Path, destination: Path, transfer: str) -> Path:
    if not source.exists():
        raise FileNotFoundError(f"source file does not exist: {source}")
    destination.parent.mkdir(parents=True, exist_ok=True)
    final_destination = non_colliding_path(destination)
    if transfer == "move":
        shutil.move(str(source), str(final_destination))
    else:
        shutil.copy2(source, final_destination)
    return final_destination


def prune_empty_dirs(directory: Path, stop_at: Path) -> None:
    """Remove ``directory`` and empty parents, never ``stop_at`` or anything above it."""
    stop_at = stop_at.resolve()
    current = directory.resolve()
    while current != stop_at and stop_at in current.parents:
        try:
            next(current.iterdir())
            return
        except StopIteration:
            current.rmdir()
            current = current.parent
        except OSError:
            return


class RollbackJournal:
    """Ordered record of the operations applied by one execution batch."""

    def __init__(self, entries: Optional[list[JournalEntry]] = None) -> None:
        self.entries: list[JournalEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self.entries)

    def record(self, entry: JournalEntry) -> None:
        self.entries.append(entry)

    @property
    def reversible_entries(self) -> list[JournalEntry]:
        return [e for e in self.entries if e.reversible]

    def save(self, path: Path) -> None:
        def _str(value: Optional[Path]) -> Optional[str]:
            return None if value is None else str(value)

        payload = [
            {
                "source_path": _str(e.source_path),
                "destination_path": _str(e.destination_path),
                "transfer": e.transfer,
                "deleted_path": _str(e.deleted_path),
            }
            for e in self.entries
        ]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "RollbackJournal":
        def _path(value: Optional[str]) -> Optional[Path]:
            return None if value is None else Path(value)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise InputError(f"rollback journal is not valid JSON: {path}: {exc}") from exc
        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            raise InputError(f"rollback journal must hold a list of entries: {path}")
        return cls(
            [
                JournalEntry(
                    source_path=_path(item.get("source_path")),
                    destination_path=_path(item.get("destination_path")),
                    transfer=item.get("transfer", "move"),
                    deleted_path=_path(item.get("deleted_path")),
                )
                for item in payload
            ]
        )


class MoveExecutor:
    """Runs move plans and keeps the journal of the most recent real batch.

    Only one journal is retained: a new non-dry-run batch replaces it, so
    the previous batch can no longer be rolled back. Calls are serialized
    by an internal lock.
    """

    def __init__(self, journal: Optional[RollbackJournal] = None) -> None:
        self.journal = journal
        self._lock = threading.Lock()

    def execute(
        self,
        plan: MovePlan | Sequence[MovePlanOperation],
        dry_run: bool = True,
        cleanup_root: Optional[Path] = None,
        verbose: bool = False,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExecutionSummary:
        operations = plan.executable() if isinstance(plan, MovePlan) else list(plan)
        unknown = sorted({op.transfer for op in operations} - TRANSFERS)
        if unknown:
            message = f"unknown transfer mode(s): {', '.join(unknown)} (expected copy or move)"
            progress.fail(progress_callback, STAGE, message)
            raise InputError(message)
        with self._lock:
            return self._execute(operations, dry_run, cleanup_root, verbose, progress_callback, cancel_event)

    def _execute(
        self,
        operations: list[MovePlanOperation],
        dry_run: bool,
        cleanup_root: Optional[Path],
        verbose: bool,
        progress_callback: ProgressCallback | None,
        cancel_event: threading.Event | None,
    ) -> ExecutionSummary:
        total = len(operations)
        summary = ExecutionSummary(state=BatchState.PLANNED, dry_run=dry_run, total=total)
        journal = None if dry_run else RollbackJournal()
        if journal is not None:
            self.journal = journal
        source_dirs: set[Path] = set()

        summary.state = BatchState.EXECUTING
        for idx, op in enumerate(operations, start=1):
            if progress.cancelled(cancel_event):
                summary.cancelled = True
                break

            if op.action == Action.SKIP:
                summary.skipped += 1
                summary.results.append(
                    OperationResult(op.source_path, op.destination_path, op.action, "skipped", op.reason or "skipped")
                )
            elif dry_run:
                self._walk_dry_run(op, summary)
            else:
                self._apply(op, journal, summary, source_dirs)

            result = summary.results[-1]
            if verbose:
                label = "dry-run" if dry_run else result.status
                print(f"[{STAGE}] {label} {op.transfer} {op.source_path} -> {result.destination_path}")
            if verbose and result.status == "error":
                print(f"[{STAGE}-warning] {op.source_path}: {result.message}")
            progress.report(progress_callback, STAGE, idx, total, current_file=op.source_path, status=result.status)

        if cleanup_root is not None and not dry_run:
            for directory in sorted(source_dirs, key=lambda d: len(d.parts), reverse=True):
                prune_empty_dirs(directory, cleanup_root)

        summary.state = BatchState.COMPLETED_WITH_ERRORS if summary.failed else BatchState.COMPLETED
        progress.complete(progress_callback, STAGE, summary.processed, total, summary.stats())
        return summary

    def _walk_dry_run(self, op: MovePlanOperation, summary: ExecutionSummary) -> None:
        if op.source_path.exists():
            summary.succeeded += 1
            message = f"would {op.transfer} to {op.destination_path}"
            if op.action == Action.REPLACE and op.replaced_path is not None:
                message += f" after deleting {op.replaced_path}"
            summary.results.append(
                OperationResult(op.source_path, op.destination_path, op.action, "success_dry_run", message)
            )
        else:
            summary.failed += 1
            summary.results.append(
                OperationResult(
                    op.source_path,
                    op.destination_path,
                    op.action,
                    "error",
                    f"source file does not exist: {op.source_path}",
                )
            )

    def _apply(
        self,
        op: MovePlanOperation,
        journal: RollbackJournal,
        summary: ExecutionSummary,
        source_dirs: set[Path],
    ) -> None:
        deleted: Optional[Path] = None
        try:
            if not op.source_path.exists():
                raise FileNotFoundError(f"source file does not exist: {op.source_path}")
            if op.action == Action.REPLACE and op.replaced_path is not None and op.replaced_path.exists():
                os.remove(op.replaced_path)
                deleted = op.replaced_path
            final_destination = transfer_file(op.source_path, op.destination_path, op.transfer)
        except OSError as exc:
            if deleted is not None:
                journal.record(JournalEntry(None, None, op.transfer, deleted_path=deleted))
            summary.failed += 1
            summary.results.append(OperationResult(op.source_path, op.destination_path, op.action, "error", str(exc)))
            return

        journal.record(JournalEntry(op.source_path, final_destination, op.transfer, deleted_path=deleted))
        if op.transfer == "move":
            source_dirs.add(op.source_path.parent)
        summary.succeeded += 1
        status = "success" if final_destination == op.destination_path else "success_with_suffix"
        summary.results.append(OperationResult(op.source_path, final_destination, op.action, status))

    def rollback(
        self,
        verbose: bool = False,
        progress_callback: ProgressCallback | None = None,
    ) -> RollbackSummary:
        """Reverse the most recent batch, newest operation first.

        Files deleted by a REPLACE cannot be brought back and are counted
        as permanently deleted. The journal is cleared afterwards.
        """
        with self._lock:
            summary = RollbackSummary()
            journal = self.journal
            if journal is None or not journal.entries:
                summary.messages.append("No operation history to rollback")
                progress.complete(progress_callback, ROLLBACK_STAGE, 0, 0, _rollback_stats(summary))
                return summary

            total = len(journal.entries)
            for idx, entry in enumerate(reversed(journal.entries), start=1):
                if entry.source_path is not None and entry.destination_path is not None:
                    try:
                        _reverse(entry)
                        summary.restored += 1
                        if verbose:
                            print(f"[{ROLLBACK_STAGE}] restored {entry.source_path}")
                    except OSError as exc:
                        summary.failed += 1
                        summary.messages.append(f"could not restore {entry.source_path}: {exc}")
                if entry.deleted_path is not None:
                    summary.permanently_deleted += 1
                    summary.messages.append(f"permanently deleted, cannot restore: {entry.deleted_path}")
                progress.report(progress_callback, ROLLBACK_STAGE, idx, total, current_file=entry.source_path)

            self.journal = None
            progress.complete(progress_callback, ROLLBACK_STAGE, total, total, _rollback_stats(summary))
            return summary


def _reverse(entry: JournalEntry) -> None:
    if not entry.destination_path.exists():
        raise FileNotFoundError(f"file is no longer at {entry.destination_path}")
    if entry.transfer == "move":
        if entry.source_path.exists():
            raise FileExistsError(f"original location is occupied: {entry.source_path}")
        entry.source_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(entry.destination_path), str(entry.source_path))
    else:
        os.remove(entry.destination_path)


def _rollback_stats(summary: RollbackSummary) -> dict[str, int]:
    return {
        "restored": summary.restored,
        "failed": summary.failed,
        "permanently_deleted": summary.permanently_deleted,
    }
