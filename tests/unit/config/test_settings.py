# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — typed Settings, validation, builders."""

from __future__ import annotations

import pytest

from reviewpipe.config.settings import ConfigurationError, Settings, load_settings
from reviewpipe.processing.models import ProcessingMode


class TestSettingsDefaults:
    def test_default_processing(self):
        s = Settings(_env_file=None)
        assert s.processing_mode == "sequential"
        assert s.max_concurrency == 4
        assert s.continue_on_error is True
        assert s.max_errors is None

    def test_default_retry(self):
        s = Settings(_env_file=None)
        assert s.retry_max_attempts == 3
        assert s.retry_base_delay_ms == 1000.0
        assert s.retry_max_delay_ms == 30000.0
        assert s.retry_backoff_multiplier == 2.0
        assert s.retry_jitter_ms == 100.0

    def test_default_progress(self):
        s = Settings(_env_file=None)
        assert s.progress_style == "auto"
        assert s.progress_update_interval_ms == 100.0
        assert s.progress_max_render_errors == 3
        assert s.path_truncation_length == 40

    def test_default_circuit_breaker_disabled(self):
        s = Settings(_env_file=None)
        assert s.circuit_breaker_enabled is False
        assert s.circuit_breaker_threshold == 5


class TestSettingsValidation:
    def test_base_delay_above_max(self):
        with pytest.raises(ConfigurationError, match="RETRY_BASE_DELAY_MS"):
            Settings(_env_file=None, retry_base_delay_ms=5000, retry_max_delay_ms=1000)

    def test_memory_thresholds_order(self):
        with pytest.raises(ConfigurationError, match="Memory thresholds"):
            Settings(_env_file=None, memory_warning_mb=900, memory_critical_mb=800)

    def test_include_exclude_overlap(self):
        with pytest.raises(ConfigurationError, match="src"):
            Settings(_env_file=None, include_directories="src,lib", exclude_directories="src")

    def test_max_errors_positive(self):
        with pytest.raises(ConfigurationError, match="MAX_ERRORS"):
            Settings(_env_file=None, max_errors=0)

    def test_timeout_positive(self):
        with pytest.raises(ConfigurationError, match="ANALYSIS_TIMEOUT_S"):
            Settings(_env_file=None, analysis_timeout_s=0)

    @pytest.mark.parametrize("field", ["max_concurrency", "retry_max_attempts", "diff_chunk_lines"])
    def test_positive_ints(self, field):
        with pytest.raises(ConfigurationError, match=field):
            Settings(_env_file=None, **{field: 0})

    def test_negative_jitter(self):
        with pytest.raises(ConfigurationError, match="retry_jitter_ms"):
            Settings(_env_file=None, retry_jitter_ms=-1)


class TestSettingsHelpers:
    def test_directory_lists(self):
        s = Settings(_env_file=None, include_directories=" src , lib,", exclude_directories="")
        assert s.include_directories_list == ["src", "lib"]
        assert s.exclude_directories_list == []

    def test_retry_config(self):
        cfg = Settings(_env_file=None, retry_max_attempts=5, retry_jitter_ms=0).retry_config()
        assert cfg.max_attempts == 5
        assert cfg.jitter_ms == 0

    def test_processing_options(self):
        opts = Settings(
            _env_file=None, processing_mode="concurrent", max_concurrency=8, continue_on_error=False,
        ).processing_options()
        assert opts.mode == ProcessingMode.CONCURRENT
        assert opts.max_concurrency == 8
        assert opts.continue_on_error is False

    def test_grouping_options(self):
        opts = Settings(
            _env_file=None, group_by="directory", group_sort="depth", exclude_directories="vendor",
        ).grouping_options()
        assert opts.group_by == "directory"
        assert opts.sort == "depth"
        assert opts.exclude == ["vendor"]
        assert opts.include_empty_groups is False

    def test_include_empty_groups(self):
        opts = Settings(_env_file=None, include_empty_groups=True).grouping_options()
        assert opts.include_empty_groups is True

    def test_other_builders(self):
        s = Settings(_env_file=None, path_truncation_length=60, diff_chunk_lines=50)
        assert s.progress_config().path_max_length == 60
        assert s.memory_thresholds().maximum_mb == 1024.0
        assert s.diff_config().chunk_lines == 50


class TestLoadSettings:
    def test_overrides(self):
        s = load_settings(_env_file=None, max_concurrency=2)
        assert s.max_concurrency == 2

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("EXCLUDE_DIRECTORIES", "node_modules,dist")
        s = load_settings(_env_file=None)
        assert s.retry_max_attempts == 7
        assert s.exclude_directories_list == ["node_modules", "dist"]

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("LOG_LEVEL=DEBUG\nGROUP_BY=file_type\n", encoding="utf-8")
        s = Settings(_env_file=str(env))
        assert s.log_level == "DEBUG"
        assert s.group_by == "file_type"
