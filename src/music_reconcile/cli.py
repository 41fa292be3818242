from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Optional

from .comparator import compare_libraries
from .errors import InputError
from .executor import MoveExecutor, RollbackJournal
from .exporters import export_conflicts_csv, export_match_results_csv, export_plan_csv, export_sqlite
from .matcher import MatchThresholds, match_files
from .metrics import human_size, summarize
from .models import ExecutionSummary, ProgressEvent, ScanResult, TrackDescriptor
from .musicbrainz import MusicBrainzSearch
from .planner import plan_moves, plan_moves_from_scan, preview_renames, rename_operations
from .scanner import scan_music
from .snapshot import load_remote_snapshot

APP_NAME = "music-reconcile"
APP_VERSION = "0.1.0"


def _make_progress_printer(stage: str) -> Callable[[int, int], None]:
    is_tty = sys.stdout.isatty()
    last_percent = -1

    def _report(current: int, total: int) -> None:
        nonlocal last_percent
        percent = 100 if total <= 0 else int((current / total) * 100)
        percent = max(0, min(100, percent))

        if is_tty:
            if percent == last_percent and current < total:
                return
            end = "\n" if current >= total else ""
            print(f"\r[{stage}] {percent:3d}% ({current}/{total})", end=end, flush=True)
            last_percent = percent
            return

        should_print = (
            last_percent < 0
            or current >= total
            or percent >= last_percent + 10
        )
        if should_print:
            print(f"[{stage}] {percent:3d}% ({current}/{total})")
            last_percent = percent

    return _report


def _make_event_printer(stage: str) -> Callable[[ProgressEvent], None]:
    report = _make_progress_printer(stage)

    def _on_event(event: ProgressEvent) -> None:
        if event.kind == "progress":
            report(event.processed, event.total)
        elif event.kind == "error":
            print(f"[{stage}] error: {event.message}")

    return _on_event


def _write_warnings(output_dir: Path, stage: str, warnings: list[str]) -> None:
    if not warnings:
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    warnings_path = output_dir / f"{stage}_warnings.log"
    warnings_path.write_text("\n".join(warnings) + "\n", encoding="utf-8")
    print(f"[warn] {stage} warnings: {len(warnings)}")
    print(f"[warn] details written: {warnings_path}")


def _existing_dir(value: str) -> Path:
    path = Path(value).expanduser().resolve()
    if not path.is_dir():
        raise argparse.ArgumentTypeError(f"not a directory: {path}")
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Compare, match, rename and move a local music collection against a live library.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("./output"),
        help="Directory for reports, warnings and the rollback journal",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print per-file details",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Classify local tracks against a remote library snapshot")
    compare.add_argument("root", type=_existing_dir, help="Top-level music directory to scan")
    compare.add_argument("--remote", type=Path, required=True, help="Remote library snapshot (CSV or JSON)")
    compare.add_argument(
        "--export",
        choices=["csv", "sqlite", "both"],
        default="csv",
        help="Export format for the conflict report",
    )
    compare.add_argument(
        "--fuzzy-threshold",
        type=int,
        default=None,
        help="Accept near-miss titles by the same artist at or above this similarity (0-100)",
    )

    match = sub.add_parser("match", help="Match local files against MusicBrainz and preview renames")
    match.add_argument("root", type=_existing_dir, help="Top-level music directory to scan")
    match.add_argument("--base-path", type=Path, default=None, help="Base directory for renamed files (defaults to root)")
    match.add_argument("--auto-approve-threshold", type=int, default=90)
    match.add_argument("--review-threshold", type=int, default=70)
    match.add_argument(
        "--apply-renames",
        action="store_true",
        help="Rename auto-approved files. Without this flag, only a preview is produced.",
    )
    match.add_argument(
        "--include-review",
        action="store_true",
        help="Also rename files whose match needs review",
    )
    match.add_argument("--live-root", type=Path, default=None, help="Also plan moves into this live library root")
    match.add_argument("--remote", type=Path, default=None, help="Remote library snapshot used when planning moves")
    match.add_argument(
        "--musicbrainz-contact",
        type=str,
        default="https://example.com/contact",
        help="Contact URL/email for MusicBrainz user-agent",
    )
    match.add_argument(
        "--musicbrainz-sleep-seconds",
        type=float,
        default=1.1,
        help="Delay between MusicBrainz requests to stay within public rate limits",
    )
    match.add_argument("--musicbrainz-limit", type=int, default=5, help="Candidates requested per query")

    organize = sub.add_parser("organize", help="Move organized files into the live library")
    organize.add_argument("root", type=_existing_dir, help="Directory laid out as Artist/Album/track")
    organize.add_argument("--live-root", type=Path, required=True, help="Live library root")
    organize.add_argument("--remote", type=Path, default=None, help="Remote library snapshot (CSV or JSON)")
    organize.add_argument("--move", action="store_true", help="Move files instead of copying them")
    organize.add_argument(
        "--force",
        action="store_true",
        help="Also replace library tracks of equal or better quality",
    )
    organize.add_argument(
        "--apply",
        action="store_true",
        help="Apply file operations. Without this flag, organize runs in dry-run mode.",
    )
    organize.add_argument("--journal", type=Path, default=None, help="Where to save the rollback journal")

    rollback = sub.add_parser("rollback", help="Undo the last applied organize or rename batch")
    rollback.add_argument("--journal", type=Path, default=None, help="Journal written by the last batch")

    return parser


def _scan(root: Path, verbose: bool, output_dir: Path) -> ScanResult:
    print(f"[start] scanning: {root}")
    scan_result = scan_music(root, verbose=verbose, progress_callback=_make_progress_printer("scan"))
    metrics = summarize(scan_result.files)
    print(f"[scan] tracks found: {metrics.total_tracks}")
    print(f"[scan] total size: {human_size(metrics.total_size_bytes)}")
    print(f"[scan] unique artists: {metrics.unique_artists}")
    print(f"[scan] unique albums: {metrics.unique_albums}")
    percent = metrics.format_percent()
    if percent:
        print("[scan] format distribution (% by size):")
        for fmt in percent:
            print(f"  - {fmt}: {percent[fmt]}% ({human_size(metrics.format_bytes.get(fmt, 0))})")
    _write_warnings(output_dir, "scan", scan_result.warnings)
    return scan_result


def _load_remote(path: Optional[Path]) -> list[TrackDescriptor]:
    if path is None:
        return []
    remote = load_remote_snapshot(path.expanduser().resolve())
    print(f"[remote] tracks in snapshot: {len(remote)}")
    return remote


def _journal_path(args: argparse.Namespace, output_dir: Path) -> Path:
    return (args.journal or output_dir / "last_journal.json").expanduser().resolve()


def _print_execution(stage: str, summary: ExecutionSummary) -> None:
    print(f"[{stage}] state: {summary.state.value}")
    print(f"[{stage}] succeeded: {summary.succeeded}")
    print(f"[{stage}] failed: {summary.failed}")
    print(f"[{stage}] skipped: {summary.skipped}")


def _run_compare(args: argparse.Namespace, output_dir: Path) -> None:
    scan_result = _scan(args.root, args.verbose, output_dir)
    remote = _load_remote(args.remote)
    comparison = compare_libraries(
        [f.descriptor for f in scan_result.files],
        remote,
        fuzzy_threshold=args.fuzzy_threshold,
        verbose=args.verbose,
        progress_callback=_make_event_printer("compare"),
    )
    for category, count in comparison.counts().items():
        print(f"[compare] {category}: {count}")
    print(f"[compare] exact matches: {comparison.exact_matches}, fuzzy matches: {comparison.fuzzy_matches}")

    if args.export in {"csv", "both"}:
        report_path = output_dir / "conflict_report.csv"
        export_conflicts_csv(report_path, comparison.conflicts)
        print(f"[write] conflict report: {report_path}")
    if args.export in {"sqlite", "both"}:
        db_path = output_dir / "comparison.db"
        export_sqlite(db_path, comparison)
        print(f"[write] SQLite comparison: {db_path}")


def _run_match(args: argparse.Namespace, output_dir: Path) -> None:
    thresholds = MatchThresholds(auto_approve=args.auto_approve_threshold, review=args.review_threshold)
    base_path = (args.base_path or args.root).expanduser().resolve()
    scan_result = _scan(args.root, args.verbose, output_dir)

    search = MusicBrainzSearch(
        app_name=APP_NAME,
        app_version=APP_VERSION,
        app_contact=args.musicbrainz_contact,
        limit=args.musicbrainz_limit,
        sleep_seconds=args.musicbrainz_sleep_seconds,
        verbose=args.verbose,
    )
    batch = match_files(
        scan_result.files,
        search,
        thresholds=thresholds,
        verbose=args.verbose,
        progress_callback=_make_event_printer("match"),
    )
    matches_path = output_dir / "match_results.csv"
    export_match_results_csv(matches_path, batch.results)
    print(f"[write] match results: {matches_path}")
    _write_warnings(output_dir, "match", batch.warnings)

    previews = preview_renames(batch.results, base_path)
    for name, count in previews.summary.items():
        print(f"[preview] {name}: {count}")
    if args.verbose:
        for preview in previews.auto_approve + previews.review:
            if preview.changed:
                print(f"[preview] {preview.original_path} -> {preview.proposed_path}")

    renamed_paths = None
    if args.apply_renames:
        executor = MoveExecutor()
        summary = executor.execute(
            rename_operations(previews, include_review=args.include_review),
            dry_run=False,
            cleanup_root=base_path,
            verbose=args.verbose,
            progress_callback=_make_event_printer("rename"),
        )
        _print_execution("rename", summary)
        journal_path = output_dir / "last_journal.json"
        executor.journal.save(journal_path)
        print(f"[write] rollback journal: {journal_path}")
        renamed_paths = summary.applied
    else:
        print("[preview] dry-run mode enabled (pass --apply-renames to rename)")

    if args.live_root is not None:
        plan = plan_moves(
            previews,
            args.live_root.expanduser().resolve(),
            _load_remote(args.remote),
            renamed=False,
            renamed_paths=renamed_paths,
        )
        for name, count in plan.summary.items():
            print(f"[plan] {name}: {count}")
        plan_path = output_dir / "move_plan.csv"
        export_plan_csv(plan_path, plan)
        print(f"[write] move plan: {plan_path}")


def _run_organize(args: argparse.Namespace, output_dir: Path) -> None:
    live_root = args.live_root.expanduser().resolve()
    scan_result = _scan(args.root, args.verbose, output_dir)
    plan = plan_moves_from_scan(
        scan_result.files,
        live_root,
        _load_remote(args.remote),
        transfer="move" if args.move else "copy",
        force=args.force,
    )
    for name, count in plan.summary.items():
        print(f"[plan] {name}: {count}")
    plan_path = output_dir / "move_plan.csv"
    export_plan_csv(plan_path, plan)
    print(f"[write] move plan: {plan_path}")

    print(f"[organize] live root: {live_root}")
    if not args.apply:
        print("[organize] dry-run mode enabled (pass --apply to execute)")
    executor = MoveExecutor()
    summary = executor.execute(
        plan,
        dry_run=not args.apply,
        cleanup_root=args.root if args.move else None,
        verbose=args.verbose,
        progress_callback=_make_event_printer("organize"),
    )
    _print_execution("organize", summary)
    _write_warnings(
        output_dir,
        "organize",
        [f"{r.source_path}: {r.message}" for r in summary.results if r.status == "error"],
    )
    if args.apply and executor.journal is not None:
        journal_path = _journal_path(args, output_dir)
        executor.journal.save(journal_path)
        print(f"[write] rollback journal: {journal_path}")


def _run_rollback(args: argparse.Namespace, output_dir: Path) -> None:
    journal_path = _journal_path(args, output_dir)
    journal = RollbackJournal.load(journal_path) if journal_path.is_file() else None
    executor = MoveExecutor(journal)
    summary = executor.rollback(verbose=args.verbose, progress_callback=_make_event_printer("rollback"))
    print(f"[rollback] restored: {summary.restored}")
    print(f"[rollback] failed: {summary.failed}")
    print(f"[rollback] permanently deleted: {summary.permanently_deleted}")
    for message in summary.messages:
        print(f"[rollback] {message}")
    if journal is not None:
        journal_path.unlink()


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    output_dir: Path = args.output_dir.expanduser().resolve()

    commands = {
        "compare": _run_compare,
        "match": _run_match,
        "organize": _run_organize,
        "rollback": _run_rollback,
    }
    try:
        commands[args.command](args, output_dir)
    except InputError as exc:
        raise SystemExit(str(exc))


if __name__ == "__main__":
    main()
