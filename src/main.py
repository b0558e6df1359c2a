# src/main.py — v1
"""CLI entry point: review, diff and tree commands.

Usage:
    reviewpipe review <paths...> --analyzer module:function [options]
    reviewpipe diff <diff-file> --analyzer module:function [options]
    reviewpipe tree <paths...> [--exclude DIR ...]

The analyzer is any importable callable taking a file path (or, for
``diff``, a DiffChunk). Coroutine functions are awaited directly; plain
functions run in a worker thread.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

from reviewpipe.config.settings import ConfigurationError, Settings, load_settings
from reviewpipe.logging.logger import setup_logging
from reviewpipe.processing.models import ProcessingOptions
from reviewpipe.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILURES

    try:
        settings = load_settings(**_settings_overrides(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="reviewpipe",
        description=f"reviewpipe v{__version__}: run a per-file analyzer over many files",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- review ---
    p_review = subparsers.add_parser(
        "review", help="Run an analyzer over files and directories",
    )
    p_review.add_argument("paths", nargs="+", type=Path, help="Files or directories")
    p_review.add_argument(
        "--analyzer", required=True,
        help="Analyzer as module:function",
    )
    p_review.add_argument(
        "--group-by", choices=["directory", "file_type", "none"], default=None,
        help="Process files group by group",
    )
    p_review.add_argument(
        "--sort", dest="group_sort", choices=["alphabetical", "file_count", "depth"],
        default=None, help="Group order (default: alphabetical)",
    )
    p_review.add_argument(
        "--include", action="append", default=None,
        help="Only process this group (repeatable)",
    )
    p_review.add_argument(
        "--exclude", action="append", default=None,
        help="Skip this group (repeatable)",
    )
    p_review.add_argument(
        "--concurrency", type=int, default=None,
        help="Process files concurrently with this many in flight",
    )
    p_review.add_argument(
        "--strict", action="store_true",
        help="Stop after the first file that fails",
    )
    p_review.add_argument(
        "--max-errors", type=int, default=None,
        help="Stop after this many failed files",
    )
    p_review.add_argument(
        "--timeout", type=float, default=None,
        help="Per-attempt analysis timeout in seconds",
    )
    p_review.add_argument(
        "--progress", choices=["auto", "interactive", "plain", "minimal", "silent"],
        default=None, help="Progress display style",
    )
    p_review.add_argument(
        "--tree", action="store_true",
        help="Print the directory tree before processing",
    )
    p_review.set_defaults(func=_cmd_review)

    # --- diff ---
    p_diff = subparsers.add_parser(
        "diff", help="Analyze one large diff in chunks",
    )
    p_diff.add_argument("diff_file", type=Path, help="Unified diff file")
    p_diff.add_argument(
        "--analyzer", required=True,
        help="Chunk analyzer as module:function",
    )
    p_diff.add_argument(
        "--chunk-lines", type=int, default=None,
        help="Maximum lines per chunk",
    )
    p_diff.add_argument(
        "--concurrency", type=int, default=None,
        help="Chunks processed at once",
    )
    p_diff.set_defaults(func=_cmd_diff)

    # --- tree ---
    p_tree = subparsers.add_parser(
        "tree", help="Print the directory tree of the given paths",
    )
    p_tree.add_argument("paths", nargs="+", type=Path, help="Files or directories")
    p_tree.add_argument(
        "--exclude", action="append", default=None,
        help="Directory to leave out (repeatable)",
    )
    p_tree.add_argument(
        "--no-files", action="store_true",
        help="Show directories only",
    )
    p_tree.set_defaults(func=_cmd_tree)

    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map CLI flags onto Settings fields; unset flags keep .env values."""
    overrides: dict[str, Any] = {}
    if getattr(args, "group_by", None):
        overrides["group_by"] = args.group_by
    if getattr(args, "group_sort", None):
        overrides["group_sort"] = args.group_sort
    if getattr(args, "include", None):
        overrides["include_directories"] = ",".join(args.include)
    if getattr(args, "exclude", None):
        overrides["exclude_directories"] = ",".join(args.exclude)
    if getattr(args, "strict", False):
        overrides["continue_on_error"] = False
    if getattr(args, "max_errors", None) is not None:
        overrides["max_errors"] = args.max_errors
    if getattr(args, "timeout", None) is not None:
        overrides["analysis_timeout_s"] = args.timeout
    if getattr(args, "progress", None):
        overrides["progress_style"] = args.progress
    if getattr(args, "chunk_lines", None) is not None:
        overrides["diff_chunk_lines"] = args.chunk_lines

    concurrency = getattr(args, "concurrency", None)
    if concurrency is not None:
        if args.command == "diff":
            overrides["diff_concurrency"] = concurrency
        else:
            overrides["max_concurrency"] = concurrency
            overrides["processing_mode"] = "concurrent" if concurrency > 1 else "sequential"
    return overrides


def review_options(
    args: argparse.Namespace, settings: Settings, file_count: int = 0,
) -> ProcessingOptions:
    """Processing options for a review, with the mode chosen per command type.

    Directory and file reviews run sequentially unless concurrency was
    requested; --strict or --concurrency 1 always forces sequential order.
    """
    from reviewpipe.processing.mode_selector import ProcessingModeSelector

    command = "directory" if any(Path(p).is_dir() for p in args.paths) else "files"
    mode = ProcessingModeSelector.determine(
        command,
        file_count=file_count,
        force_sequential=bool(args.strict) or args.concurrency == 1,
        force_parallel=settings.processing_mode == "concurrent",
    )
    return settings.processing_options().model_copy(update={"mode": mode})


async def _cmd_review(args: argparse.Namespace, settings: Settings) -> int:
    """Run the analyzer over every collected file."""
    from reviewpipe.grouping.grouper import FileGrouper, render_tree
    from reviewpipe.processing.orchestrator import ProcessingOrchestrator
    from reviewpipe.progress.guard import RenderErrorGuard
    from reviewpipe.progress.memory import MemoryMonitor
    from reviewpipe.progress.renderers import create_fallback_renderer, select_renderer
    from reviewpipe.progress.terminal import TerminalCapabilities
    from reviewpipe.retry.circuit_breaker import CircuitBreaker
    from reviewpipe.retry.policy import RetryPolicy

    analyze = load_analyzer(args.analyzer)
    files = collect_files(args.paths)
    if not files:
        logger.error("No files found under %s", ", ".join(str(p) for p in args.paths))
        return EXIT_FAILURES

    renderer = RenderErrorGuard(
        select_renderer(
            TerminalCapabilities.detect(sys.stdout),
            style=settings.progress_style,
            config=settings.progress_config(),
        ),
        fallback=create_fallback_renderer(
            settings.progress_fallback, path_max_length=settings.path_truncation_length,
        ),
        max_errors=settings.progress_max_render_errors,
    )
    breaker = None
    if settings.circuit_breaker_enabled:
        breaker = CircuitBreaker(
            threshold=settings.circuit_breaker_threshold,
            name="analysis",
            reset_timeout_s=settings.circuit_breaker_reset_timeout_s,
        )
    grouper = FileGrouper(base_dir=Path.cwd())
    orchestrator: ProcessingOrchestrator[Any] = ProcessingOrchestrator(
        options=review_options(args, settings, file_count=len(files)),
        retry_policy=RetryPolicy(settings.retry_config()),
        circuit_breaker=breaker,
        renderer=renderer,
        memory_monitor=MemoryMonitor(
            thresholds=settings.memory_thresholds(),
            gc_enabled=settings.memory_gc_enabled,
        ),
        grouper=grouper,
    )

    if settings.group_by == "none":
        report = await orchestrator.run(files, analyze)
        print(f"\nReview complete ({report.run_id}):")
    else:
        grouping = settings.grouping_options()
        grouped = await orchestrator.run_grouped(files, analyze, grouping=grouping)
        if (args.tree or grouping.show_tree) and grouped.plan.tree is not None:
            print("\n".join(render_tree(grouped.plan.tree)))
        print(f"\nReview complete ({grouped.run_id}):")
        for group in grouped.groups:
            print(
                f"  [{group.name}] {group.summary.total_files} files, "
                f"{group.summary.failed_files} failed"
            )
        if grouped.excluded_directories:
            print(f"  Excluded:     {', '.join(grouped.excluded_directories)}")
        report = grouped

    summary = report.summary
    print(f"  Files:        {summary.total_files}")
    print(f"  Succeeded:    {summary.successful_files}")
    print(f"  Warnings:     {summary.warning_files}")
    print(f"  Failed:       {summary.failed_files}")
    if report.skipped_files:
        print(f"  Skipped:      {len(report.skipped_files)}")
    if report.aborted:
        print(f"  Stopped:      {report.abort_reason}")
    for result in report.results:
        if result.error is not None:
            print(f"  ERROR {result.file}: {result.error_message}")

    return EXIT_FAILURES if report.has_errors or report.aborted else EXIT_OK


async def _cmd_diff(args: argparse.Namespace, settings: Settings) -> int:
    """Chunk a diff file, analyse the chunks and print the merged result."""
    from reviewpipe.diff.chunker import DiffChunker
    from reviewpipe.retry.policy import RetryPolicy

    diff_file: Path = args.diff_file
    if not diff_file.is_file():
        logger.error("File not found: %s", diff_file)
        return EXIT_FAILURES

    analyze = load_analyzer(args.analyzer)
    chunker = DiffChunker(settings.diff_config(), retry_policy=RetryPolicy(settings.retry_config()))
    text = diff_file.read_text(encoding="utf-8", errors="replace")

    def on_progress(processed: int, total: int) -> None:
        logger.info("Processed %d/%d chunks", processed, total)

    merged = await chunker.process_diff(str(diff_file), text, analyze, on_progress=on_progress)

    print(f"\nDiff analysis complete: {diff_file}")
    print(f"  Chunks:       {merged.total_chunks}")
    print(f"  Failed:       {merged.failed_chunks}")
    print(f"  Issues:       {len(merged.issues)}")
    print(f"  Suggestions:  {len(merged.suggestions)}")
    for key, value in sorted(merged.metrics.items()):
        print(f"  {key}: {value}")
    for error in merged.errors:
        print(f"  ERROR: {error}")
    return EXIT_FAILURES if merged.has_errors else EXIT_OK


async def _cmd_tree(args: argparse.Namespace, settings: Settings) -> int:
    """Print the directory tree of the collected files."""
    from reviewpipe.grouping.grouper import FileGrouper, directory_stats, render_tree
    from reviewpipe.grouping.models import GroupingOptions

    files = collect_files(args.paths)
    if not files:
        logger.error("No files found under %s", ", ".join(str(p) for p in args.paths))
        return EXIT_FAILURES

    grouper = FileGrouper(base_dir=Path.cwd())
    plan = grouper.plan(files, GroupingOptions(
        group_by="directory", exclude=settings.exclude_directories_list,
    ))
    if plan.tree is not None:
        print("\n".join(render_tree(plan.tree, show_files=not args.no_files)))
    if plan.directory_groups:
        summary = directory_stats(plan.directory_groups)
        print(
            f"\n{summary.total_files} files in {summary.total_directories} directories "
            f"(max depth {summary.max_depth})"
        )
    if plan.excluded_groups:
        print(f"Excluded: {', '.join(plan.excluded_groups)}")
    return EXIT_OK


def collect_files(paths: list[Path]) -> list[str]:
    """Expand directories recursively; hidden entries are skipped."""
    files: list[str] = []
    seen: set[str] = set()
    for path in paths:
        if path.is_dir():
            candidates = sorted(
                p for p in path.rglob("*")
                if p.is_file() and not any(part.startswith(".") for part in p.relative_to(path).parts)
            )
        elif path.is_file():
            candidates = [path]
        else:
            logger.warning("Path not found: %s", path)
            continue
        for candidate in candidates:
            key = candidate.as_posix()
            if key not in seen:
                seen.add(key)
                files.append(key)
    return files


def load_analyzer(target: str) -> Callable[[Any], Awaitable[Any]]:
    """Import 'module:function' and return it as an async callable.

    Raises:
        ConfigurationError: If the target is malformed or cannot be imported.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Analyzer must be given as module:function, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import analyzer module {module_name!r}: {exc}") from exc
    fn = getattr(module, attr, None)
    if fn is None or not callable(fn):
        raise ConfigurationError(f"{module_name!r} has no callable {attr!r}")

    if inspect.iscoroutinefunction(fn):
        return fn

    async def run_in_thread(arg: Any) -> Any:
        return await asyncio.to_thread(fn, arg)

    return run_in_thread


if __name__ == "__main__":
    sys.exit(main())
