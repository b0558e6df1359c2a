# src/diff/models.py — v1
"""Diff chunking models: chunks, per-chunk results, merged analysis, stats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

from reviewpipe.core.errors import ConfigurationError

T = TypeVar("T")

ChangeType = Literal["added", "modified", "deleted"]


class DiffChunkerConfig(BaseModel):
    """Chunking and processing limits."""

    chunk_lines: int = 100
    max_chunk_bytes: int = 50 * 1024
    context_lines: int = 3
    concurrency: int = 3

    @field_validator("chunk_lines", "max_chunk_bytes", "concurrency")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ConfigurationError(f"Diff chunker limits must be >= 1, got {v}")
        return v

    @field_validator("context_lines")
    @classmethod
    def validate_context(cls, v: int) -> int:
        if v < 0:
            raise ConfigurationError(f"context_lines must be >= 0, got {v}")
        return v


class DiffChunk(BaseModel):
    """Contiguous span of diff lines; line numbers are 1-based and inclusive."""

    model_config = ConfigDict(frozen=True)

    # --- Identity ---
    id: str
    position: int
    preceding_chunk_id: str | None = None
    following_chunk_id: str | None = None

    # --- Content ---
    file_path: str
    start_line: int
    end_line: int
    content: str
    change_type: ChangeType = "modified"
    context: str = ""
    byte_size: int = 0

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class ChunkResult(Generic[T]):
    """Outcome of analysing one chunk."""

    chunk: DiffChunk
    processing_time_ms: float
    analysis: T | None = None
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class MergedAnalysis:
    """Combined analysis of all chunks of one diff.

    Failed chunks are excluded from issues, suggestions and metrics and
    contribute only to errors.
    """

    file_path: str
    total_chunks: int = 0
    successful_chunks: int = 0
    failed_chunks: int = 0
    total_processing_time_ms: float = 0.0
    issues: list[Any] = field(default_factory=list)
    suggestions: list[Any] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    errors: list[BaseException] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class DiffStats(BaseModel):
    """Processing statistics for a set of chunk results."""

    total_chunks: int = 0
    successful_chunks: int = 0
    failed_chunks: int = 0
    average_chunk_size: float = 0.0
    total_processing_time_ms: float = 0.0
    average_processing_time_ms: float = 0.0
    throughput_per_second: float = 0.0
