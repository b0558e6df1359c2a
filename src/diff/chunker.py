# src/diff/chunker.py — v1
"""Streaming diff chunker: split a large diff, analyse chunks, merge results.

Chunking walks the diff line by line. A new chunk starts when the current
one has reached the line cap, when adding the line would exceed the byte
cap, or when the line looks like a structural boundary (declaration,
brace-only line, comment start, hunk header). A split only happens when the
current chunk is non-empty, so chunks are never empty and together cover
every line exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from reviewpipe.concurrency.gate import ConcurrencyGate
from reviewpipe.diff.models import (
    ChangeType,
    ChunkResult,
    DiffChunk,
    DiffChunkerConfig,
    DiffStats,
    MergedAnalysis,
)
from reviewpipe.retry.policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChunkAnalyzer = Callable[[DiffChunk], Awaitable[T]]
ProgressCallback = Callable[[int, int], None]

# Optional leading diff marker, then the structural token
_DECLARATION = re.compile(
    r"^[+\- ]?\s*(?:export\s+)?(?:async\s+)?"
    r"(?:def|class|function|interface|type|const|let|var|func|fn|struct|impl)\s"
)
_BRACE_ONLY = re.compile(r"^[+\- ]?\s*[{}]\s*$")
_COMMENT_START = re.compile(r"^[+\- ]?\s*(?:/\*|//|#)")
_HUNK_HEADER = re.compile(r"^@@ ")


def is_chunk_boundary(line: str) -> bool:
    """True if line is a natural place to start a new chunk."""
    return bool(
        _HUNK_HEADER.match(line)
        or _DECLARATION.match(line)
        or _BRACE_ONLY.match(line)
        or _COMMENT_START.match(line)
    )


def _change_type(lines: Sequence[str]) -> ChangeType:
    added = any(l.startswith("+") and not l.startswith("+++") for l in lines)
    deleted = any(l.startswith("-") and not l.startswith("---") for l in lines)
    if added and not deleted:
        return "added"
    if deleted and not added:
        return "deleted"
    return "modified"


def _get(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


class DiffChunker:
    """Split, analyse and merge large diffs under a concurrency cap.

    Args:
        config: Chunk limits and default concurrency.
        retry_policy: When given, each chunk analysis runs under it.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        config: DiffChunkerConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or DiffChunkerConfig()
        self._retry = retry_policy
        self._clock = clock

    @property
    def config(self) -> DiffChunkerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    def chunk(
        self,
        file_path: str,
        diff_text: str,
        max_lines: int | None = None,
        max_bytes: int | None = None,
    ) -> list[DiffChunk]:
        """Split diff_text into contiguous chunks covering lines 1..L."""
        line_cap = max_lines or self._config.chunk_lines
        byte_cap = max_bytes or self._config.max_chunk_bytes
        lines = diff_text.splitlines()
        if not lines:
            return []

        spans: list[tuple[int, int, int]] = []  # (start index, end index exclusive, bytes)
        start = 0
        size = 0
        for i, line in enumerate(lines):
            line_bytes = len(line.encode("utf-8"))
            current = i - start
            split = current > 0 and (
                current >= line_cap
                or size + line_bytes > byte_cap
                or is_chunk_boundary(line)
            )
            if split:
                spans.append((start, i, size))
                start, size = i, 0
            size += line_bytes
        spans.append((start, len(lines), size))

        ids = [f"chunk_{n:03d}" for n in range(len(spans))]
        chunks: list[DiffChunk] = []
        for n, (lo, hi, byte_size) in enumerate(spans):
            body = lines[lo:hi]
            ctx_lo = max(0, lo - self._config.context_lines)
            ctx_hi = min(len(lines), hi + self._config.context_lines)
            chunks.append(DiffChunk(
                id=ids[n],
                position=n,
                preceding_chunk_id=ids[n - 1] if n > 0 else None,
                following_chunk_id=ids[n + 1] if n + 1 < len(ids) else None,
                file_path=file_path,
                start_line=lo + 1,
                end_line=hi,
                content="\n".join(body),
                change_type=_change_type(body),
                context="\n".join(lines[ctx_lo:ctx_hi]),
                byte_size=byte_size,
            ))

        logger.debug(
            "Split %s (%d lines) into %d chunks (cap %d lines / %d bytes)",
            file_path, len(lines), len(chunks), line_cap, byte_cap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process(
        self,
        chunks: Sequence[DiffChunk],
        analyze: ChunkAnalyzer[T],
        concurrency: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[ChunkResult[T]]:
        """Analyse chunks through a ConcurrencyGate; results in chunk order.

        A failing chunk is recorded and never blocks the others.
        """
        if not chunks:
            return []
        gate = ConcurrencyGate(concurrency or self._config.concurrency, name="diff-chunks")
        results: list[ChunkResult[T] | None] = [None] * len(chunks)
        processed = 0

        async def worker(index: int, chunk: DiffChunk) -> None:
            nonlocal processed
            async with gate:
                results[index] = await self._analyse_chunk(chunk, analyze)
            processed += 1
            if on_progress is not None:
                try:
                    on_progress(processed, len(chunks))
                except Exception:
                    logger.warning("Diff progress callback failed", exc_info=True)

        await asyncio.gather(*(worker(i, c) for i, c in enumerate(chunks)))
        done = [r for r in results if r is not None]
        failed = sum(1 for r in done if not r.success)
        logger.info(
            "Processed %d chunks of %s (%d failed)", len(done), chunks[0].file_path, failed,
        )
        return done

    async def _analyse_chunk(self, chunk: DiffChunk, analyze: ChunkAnalyzer[T]) -> ChunkResult[T]:
        started = self._clock()
        if self._retry is not None:
            outcome = await self._retry.run(
                lambda: analyze(chunk), name=f"chunk {chunk.id}", file_path=chunk.file_path,
            )
            elapsed = (self._clock() - started) * 1000
            if outcome.success:
                return ChunkResult(chunk=chunk, processing_time_ms=elapsed, analysis=outcome.value)
            logger.warning("Chunk %s of %s failed: %s", chunk.id, chunk.file_path, outcome.error)
            return ChunkResult(chunk=chunk, processing_time_ms=elapsed, error=outcome.error)

        try:
            analysis = await analyze(chunk)
        except Exception as exc:
            logger.warning("Chunk %s of %s failed: %s", chunk.id, chunk.file_path, exc)
            return ChunkResult(
                chunk=chunk, processing_time_ms=(self._clock() - started) * 1000, error=exc,
            )
        return ChunkResult(
            chunk=chunk, processing_time_ms=(self._clock() - started) * 1000, analysis=analysis,
        )

    # ------------------------------------------------------------------
    # Merging and statistics
    # ------------------------------------------------------------------

    @staticmethod
    def merge(results: Sequence[ChunkResult[Any]], file_path: str | None = None) -> MergedAnalysis:
        """Combine chunk analyses.

        Issues are concatenated, suggestions concatenated without duplicates
        (first occurrence wins), metrics shallow-merged with later chunks
        overriding earlier keys.
        """
        path = file_path or (results[0].chunk.file_path if results else "")
        merged = MergedAnalysis(
            file_path=path,
            total_chunks=len(results),
            total_processing_time_ms=sum(r.processing_time_ms for r in results),
        )
        for result in results:
            if result.error is not None:
                merged.failed_chunks += 1
                merged.errors.append(result.error)
                continue
            merged.successful_chunks += 1
            analysis = result.analysis
            if analysis is None:
                continue
            merged.issues.extend(_get(analysis, "issues") or [])
            for suggestion in _get(analysis, "suggestions") or []:
                if suggestion not in merged.suggestions:
                    merged.suggestions.append(suggestion)
            metrics = _get(analysis, "metrics")
            if metrics:
                merged.metrics.update(metrics)
        return merged

    @staticmethod
    def stats(results: Sequence[ChunkResult[Any]]) -> DiffStats:
        """Chunk counts, average chunk size in characters, timings and throughput."""
        if not results:
            return DiffStats()
        total_time = sum(r.processing_time_ms for r in results)
        successful = sum(1 for r in results if r.success)
        return DiffStats(
            total_chunks=len(results),
            successful_chunks=successful,
            failed_chunks=len(results) - successful,
            average_chunk_size=sum(len(r.chunk.content) for r in results) / len(results),
            total_processing_time_ms=total_time,
            average_processing_time_ms=total_time / len(results),
            throughput_per_second=(len(results) * 1000 / total_time) if total_time > 0 else 0.0,
        )

    async def process_diff(
        self,
        file_path: str,
        diff_text: str,
        analyze: ChunkAnalyzer[T],
        on_progress: ProgressCallback | None = None,
    ) -> MergedAnalysis:
        """Chunk, process and merge one diff."""
        logger.info("Starting streaming diff processing for %s", file_path)
        chunks = self.chunk(file_path, diff_text)
        if not chunks:
            logger.debug("No chunks found in diff for %s", file_path)
            return MergedAnalysis(file_path=file_path)
        results = await self.process(chunks, analyze, on_progress=on_progress)
        return self.merge(results, file_path=file_path)
