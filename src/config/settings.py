# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for processing, retry, grouping, progress, memory,
diff and logging settings. Builders turn the flat settings into the typed
option objects consumed by each component.
"""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reviewpipe.core.errors import ConfigurationError
from reviewpipe.diff.models import DiffChunkerConfig
from reviewpipe.grouping.models import GroupingOptions
from reviewpipe.processing.models import ProcessingMode, ProcessingOptions
from reviewpipe.progress.memory import MemoryThresholds
from reviewpipe.progress.models import ProgressBarConfig
from reviewpipe.retry.policy import RetryConfig

__all__ = ["ConfigurationError", "Settings", "load_settings"]


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Processing ===
    processing_mode: Literal["sequential", "concurrent"] = "sequential"
    max_concurrency: int = 4
    continue_on_error: bool = True
    max_errors: int | None = None
    analysis_timeout_s: float | None = None

    # === Retry ===
    retry_max_attempts: int = 3
    retry_base_delay_ms: float = 1000.0
    retry_max_delay_ms: float = 30000.0
    retry_backoff_multiplier: float = 2.0
    retry_jitter_ms: float = 100.0

    # === Circuit breaker ===
    circuit_breaker_enabled: bool = False
    circuit_breaker_threshold: int = 5
    circuit_breaker_reset_timeout_s: float | None = None

    # === Grouping ===
    group_by: Literal["directory", "file_type", "none"] = "none"
    group_sort: Literal["alphabetical", "file_count", "depth"] = "alphabetical"
    include_directories: str = ""
    exclude_directories: str = ""
    include_empty_groups: bool = False
    show_directory_tree: bool = False

    # === Progress display ===
    progress_style: Literal["auto", "interactive", "plain", "minimal", "silent"] = "auto"
    progress_update_interval_ms: float = 100.0
    progress_bar_width: int = 30
    progress_max_render_errors: int = 3
    progress_fallback: Literal["plain", "minimal", "ci", "silent"] = "plain"
    path_truncation_length: int = 40

    # === Memory ===
    memory_warning_mb: float = 500.0
    memory_critical_mb: float = 750.0
    memory_maximum_mb: float = 1024.0
    memory_gc_enabled: bool = True

    # === Diff streaming ===
    diff_chunk_lines: int = 100
    diff_chunk_max_bytes: int = 50 * 1024
    diff_context_lines: int = 3
    diff_concurrency: int = 3

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: str | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator(
        "max_concurrency",
        "retry_max_attempts",
        "circuit_breaker_threshold",
        "progress_max_render_errors",
        "diff_chunk_lines",
        "diff_chunk_max_bytes",
        "diff_concurrency",
    )
    @classmethod
    def validate_positive_int(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ConfigurationError(f"{info.field_name} must be >= 1, got {v}")
        return v

    @field_validator(
        "retry_base_delay_ms",
        "retry_max_delay_ms",
        "retry_backoff_multiplier",
        "memory_warning_mb",
        "memory_critical_mb",
        "memory_maximum_mb",
    )
    @classmethod
    def validate_positive_float(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ConfigurationError(f"{info.field_name} must be > 0, got {v}")
        return v

    @field_validator("retry_jitter_ms", "progress_update_interval_ms", "diff_context_lines", "log_retention")
    @classmethod
    def validate_non_negative(cls, v: float, info) -> float:  # noqa: N805
        if v < 0:
            raise ConfigurationError(f"{info.field_name} must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.retry_base_delay_ms > self.retry_max_delay_ms:
            errors.append("RETRY_BASE_DELAY_MS must be <= RETRY_MAX_DELAY_MS")

        if not self.memory_warning_mb <= self.memory_critical_mb <= self.memory_maximum_mb:
            errors.append(
                "Memory thresholds must satisfy WARNING <= CRITICAL <= MAXIMUM"
            )

        overlap = set(self.include_directories_list) & set(self.exclude_directories_list)
        if overlap:
            errors.append(
                "Directories both included and excluded: " + ", ".join(sorted(overlap))
            )

        if self.max_errors is not None and self.max_errors < 1:
            errors.append("MAX_ERRORS must be >= 1 when set")

        if self.analysis_timeout_s is not None and self.analysis_timeout_s <= 0:
            errors.append("ANALYSIS_TIMEOUT_S must be > 0 when set")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def include_directories_list(self) -> list[str]:
        """Parse comma-separated include directories."""
        return [d.strip() for d in self.include_directories.split(",") if d.strip()]

    @property
    def exclude_directories_list(self) -> list[str]:
        """Parse comma-separated exclude directories."""
        return [d.strip() for d in self.exclude_directories.split(",") if d.strip()]

    # --- Builders ---

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
            backoff_multiplier=self.retry_backoff_multiplier,
            jitter_ms=self.retry_jitter_ms,
        )

    def processing_options(self) -> ProcessingOptions:
        return ProcessingOptions(
            mode=ProcessingMode(self.processing_mode),
            max_concurrency=self.max_concurrency,
            continue_on_error=self.continue_on_error,
            max_errors=self.max_errors,
            analysis_timeout_s=self.analysis_timeout_s,
        )

    def grouping_options(self) -> GroupingOptions:
        return GroupingOptions(
            group_by=self.group_by,
            sort=self.group_sort,
            include=self.include_directories_list,
            exclude=self.exclude_directories_list,
            include_empty_groups=self.include_empty_groups,
            show_tree=self.show_directory_tree,
        )

    def progress_config(self) -> ProgressBarConfig:
        return ProgressBarConfig(
            width=self.progress_bar_width,
            update_interval_ms=self.progress_update_interval_ms,
            path_max_length=self.path_truncation_length,
        )

    def memory_thresholds(self) -> MemoryThresholds:
        return MemoryThresholds(
            warning_mb=self.memory_warning_mb,
            critical_mb=self.memory_critical_mb,
            maximum_mb=self.memory_maximum_mb,
        )

    def diff_config(self) -> DiffChunkerConfig:
        return DiffChunkerConfig(
            chunk_lines=self.diff_chunk_lines,
            max_chunk_bytes=self.diff_chunk_max_bytes,
            context_lines=self.diff_context_lines,
            concurrency=self.diff_concurrency,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
