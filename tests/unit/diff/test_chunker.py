# tests/unit/diff/test_chunker.py — v1
"""Tests for diff/chunker.py — chunking, processing, merging, stats."""

from __future__ import annotations

import asyncio

import pytest

from reviewpipe.core.errors import ConfigurationError
from reviewpipe.diff.chunker import DiffChunker, is_chunk_boundary
from reviewpipe.diff.models import ChunkResult, DiffChunk, DiffChunkerConfig
from reviewpipe.retry.policy import RetryConfig, RetryPolicy


def _plain_diff(n: int) -> str:
    return "\n".join(f"+value {i}" for i in range(1, n + 1))


def _chunk(n: int = 0, content: str = "+x") -> DiffChunk:
    return DiffChunk(
        id=f"chunk_{n:03d}", position=n, file_path="f.py",
        start_line=n + 1, end_line=n + 1, content=content,
    )


# --- Config ---


class TestDiffChunkerConfig:
    def test_defaults(self):
        config = DiffChunkerConfig()
        assert config.chunk_lines == 100
        assert config.max_chunk_bytes == 51200
        assert config.concurrency == 3

    @pytest.mark.parametrize("field", ["chunk_lines", "max_chunk_bytes", "concurrency"])
    def test_limits_positive(self, field):
        with pytest.raises(ConfigurationError):
            DiffChunkerConfig(**{field: 0})


# --- Boundaries ---


class TestBoundaries:
    @pytest.mark.parametrize("line", [
        "@@ -1,4 +1,5 @@",
        "+def handler(event):",
        "-class Service:",
        " export async function load() {",
        "+}",
        "+  // comment",
        "# heading",
    ])
    def test_boundaries(self, line):
        assert is_chunk_boundary(line)

    @pytest.mark.parametrize("line", ["+value = 1", " return x", "-defined = True"])
    def test_not_boundaries(self, line):
        assert not is_chunk_boundary(line)


# --- Chunking ---


class TestChunk:
    def test_empty_diff(self):
        assert DiffChunker().chunk("f.py", "") == []

    def test_line_cap(self):
        chunks = DiffChunker(DiffChunkerConfig(chunk_lines=100)).chunk("f.py", _plain_diff(250))
        assert len(chunks) == 3
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 100), (101, 200), (201, 250)]

    def test_coverage_without_gaps(self):
        chunks = DiffChunker(DiffChunkerConfig(chunk_lines=7)).chunk("f.py", _plain_diff(50))
        assert chunks[0].start_line == 1
        assert chunks[-1].end_line == 50
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start_line == prev.end_line + 1
        assert sum(c.line_count for c in chunks) == 50

    def test_override_caps(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(10), max_lines=4)
        assert [c.line_count for c in chunks] == [4, 4, 2]

    def test_splits_on_boundary(self):
        diff = "\n".join(["+x = 1", "+y = 2", "+def foo():", "+    return 1"])
        chunks = DiffChunker().chunk("f.py", diff)
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 2), (3, 4)]
        assert chunks[1].content.startswith("+def foo")

    def test_leading_boundary_does_not_split(self):
        chunks = DiffChunker().chunk("f.py", "+def foo():\n+    pass")
        assert len(chunks) == 1

    def test_byte_cap(self):
        diff = "\n".join("+" + "a" * 9 for _ in range(5))
        chunks = DiffChunker().chunk("f.py", diff, max_bytes=25)
        assert [c.line_count for c in chunks] == [2, 2, 1]
        assert all(c.byte_size <= 25 for c in chunks)

    def test_oversized_line_gets_own_chunk(self):
        diff = "+short\n+" + "b" * 100 + "\n+short"
        chunks = DiffChunker().chunk("f.py", diff, max_bytes=20)
        assert [c.line_count for c in chunks] == [1, 1, 1]

    def test_ids_and_links(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(5), max_lines=2)
        assert [c.id for c in chunks] == ["chunk_000", "chunk_001", "chunk_002"]
        assert chunks[0].preceding_chunk_id is None
        assert chunks[0].following_chunk_id == "chunk_001"
        assert chunks[1].preceding_chunk_id == "chunk_000"
        assert chunks[2].following_chunk_id is None
        assert [c.position for c in chunks] == [0, 1, 2]

    def test_context_lines(self):
        diff = "\n".join(["+l1", "+l2", "+l3", "+l4"])
        chunker = DiffChunker(DiffChunkerConfig(chunk_lines=2, context_lines=1))
        first, second = chunker.chunk("f.py", diff)
        assert first.context == "+l1\n+l2\n+l3"
        assert second.context == "+l2\n+l3\n+l4"

    def test_change_types(self):
        diff = "\n".join(["+a1", "+a2", "-d1", "-d2", "+m1", "-m2", " c1", " c2"])
        chunks = DiffChunker().chunk("f.py", diff, max_lines=2)
        assert [c.change_type for c in chunks] == ["added", "deleted", "modified", "modified"]


# --- Processing ---


class TestProcess:
    @pytest.mark.asyncio
    async def test_results_in_chunk_order(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(6), max_lines=1)
        progress = []

        async def analyze(chunk: DiffChunk) -> str:
            await asyncio.sleep(0.001 * (6 - chunk.position))
            return chunk.id

        results = await DiffChunker().process(
            chunks, analyze, concurrency=3, on_progress=lambda done, total: progress.append((done, total)),
        )
        assert [r.analysis for r in results] == [c.id for c in chunks]
        assert progress[-1] == (6, 6)
        assert [p[0] for p in progress] == [1, 2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(9), max_lines=1)
        in_flight = 0
        peak = 0

        async def analyze(chunk: DiffChunk) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await DiffChunker(DiffChunkerConfig(concurrency=2)).process(chunks, analyze)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_failed_chunk_does_not_block_others(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(3), max_lines=1)

        async def analyze(chunk: DiffChunk) -> dict:
            if chunk.id == "chunk_001":
                raise ValueError("invalid chunk")
            return {"issues": [chunk.id]}

        results = await DiffChunker().process(chunks, analyze)
        assert [r.success for r in results] == [True, False, True]
        assert isinstance(results[1].error, ValueError)

    @pytest.mark.asyncio
    async def test_callback_failure_ignored(self):
        chunks = DiffChunker().chunk("f.py", _plain_diff(2), max_lines=1)

        async def analyze(chunk: DiffChunk) -> int:
            return chunk.position

        def broken(done: int, total: int) -> None:
            raise RuntimeError("callback broke")

        results = await DiffChunker().process(chunks, analyze, on_progress=broken)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_retry_policy_applied(self, recording_sleep):
        attempts = {"n": 0}

        async def flaky(chunk: DiffChunk) -> str:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise ConnectionError("connection reset")
            return "ok"

        policy = RetryPolicy(RetryConfig(max_attempts=2, base_delay_ms=5, jitter_ms=0), sleep=recording_sleep)
        results = await DiffChunker(retry_policy=policy).process([_chunk()], flaky)
        assert results[0].analysis == "ok"
        assert recording_sleep.delays_ms == [5]

    @pytest.mark.asyncio
    async def test_empty(self):
        async def analyze(chunk: DiffChunk) -> None:
            return None

        assert await DiffChunker().process([], analyze) == []


# --- Merging and stats ---


class TestMerge:
    def test_merge(self):
        results = [
            ChunkResult(chunk=_chunk(0), processing_time_ms=10, analysis={
                "issues": ["i1"], "suggestions": ["s1", "s2"], "metrics": {"a": 1, "b": 1},
            }),
            ChunkResult(chunk=_chunk(1), processing_time_ms=20, error=ValueError("bad")),
            ChunkResult(chunk=_chunk(2), processing_time_ms=30, analysis={
                "issues": ["i2"], "suggestions": ["s2", "s3"], "metrics": {"b": 2},
            }),
        ]
        merged = DiffChunker.merge(results)
        assert merged.file_path == "f.py"
        assert merged.total_chunks == 3
        assert merged.successful_chunks == 2
        assert merged.failed_chunks == 1
        assert merged.issues == ["i1", "i2"]
        assert merged.suggestions == ["s1", "s2", "s3"]
        assert merged.metrics == {"a": 1, "b": 2}
        assert merged.total_processing_time_ms == 60
        assert merged.has_errors

    def test_merge_attribute_analysis(self):
        class Analysis:
            issues = ["x"]
            suggestions = None
            metrics = None

        merged = DiffChunker.merge([ChunkResult(chunk=_chunk(), processing_time_ms=1, analysis=Analysis())])
        assert merged.issues == ["x"]
        assert merged.suggestions == []

    def test_stats(self):
        results = [
            ChunkResult(chunk=_chunk(0, "+abcd"), processing_time_ms=100, analysis={}),
            ChunkResult(chunk=_chunk(1, "+ab"), processing_time_ms=300, error=ValueError("x")),
        ]
        stats = DiffChunker.stats(results)
        assert stats.total_chunks == 2
        assert stats.successful_chunks == 1
        assert stats.failed_chunks == 1
        assert stats.average_chunk_size == 4
        assert stats.average_processing_time_ms == 200
        assert stats.throughput_per_second == pytest.approx(5.0)

    def test_stats_empty(self):
        assert DiffChunker.stats([]).total_chunks == 0


class TestProcessDiff:
    @pytest.mark.asyncio
    async def test_end_to_end(self):
        async def analyze(chunk: DiffChunk) -> dict:
            return {"issues": [f"{chunk.id}:{chunk.line_count}"]}

        chunker = DiffChunker(DiffChunkerConfig(chunk_lines=2))
        merged = await chunker.process_diff("f.py", _plain_diff(5), analyze)
        assert merged.issues == ["chunk_000:2", "chunk_001:2", "chunk_002:1"]
        assert merged.successful_chunks == 3

    @pytest.mark.asyncio
    async def test_empty_diff(self):
        async def analyze(chunk: DiffChunk) -> None:
            return None

        merged = await DiffChunker().process_diff("f.py", "", analyze)
        assert merged.file_path == "f.py"
        assert merged.total_chunks == 0
