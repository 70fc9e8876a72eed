"""
Tests for ExtractorConfig defaults, validation and environment loading.
"""

import pytest

from docsend_extractor.config import ExtractorConfig


class TestDefaults:

    def test_limits(self):
        config = ExtractorConfig()
        assert config.max_concurrent_jobs == 5
        assert config.retention_seconds == 1800
        assert config.image_batch_size == 10
        assert config.max_probe_pages == 500
        assert config.image_timeout_s == 30
        assert config.email_wait_ms == 10_000
        assert config.passcode_wait_ms == 10_000
        assert config.headless is True

    @pytest.mark.parametrize("field", [
        "max_concurrent_jobs", "image_batch_size", "max_probe_pages",
    ])
    def test_rejects_zero(self, field):
        with pytest.raises(ValueError):
            ExtractorConfig(**{field: 0})

    def test_rejects_tiny_chunks(self):
        with pytest.raises(ValueError):
            ExtractorConfig(stream_chunk_size=1)


class TestFromEnv:

    @pytest.fixture
    def dotenv(self, tmp_path):
        return tmp_path / ".env"

    def test_overrides(self, dotenv, monkeypatch):
        monkeypatch.setenv("DOCSEND_MAX_CONCURRENT_JOBS", "2")
        monkeypatch.setenv("DOCSEND_RETENTION_SECONDS", "60.5")
        monkeypatch.setenv("DOCSEND_HEADLESS", "false")
        monkeypatch.setenv("DOCSEND_CHROMIUM_PATH", "/opt/chromium")
        config = ExtractorConfig.from_env(str(dotenv))
        assert config.max_concurrent_jobs == 2
        assert config.retention_seconds == 60.5
        assert config.headless is False
        assert config.executable_path == "/opt/chromium"

    def test_bad_values_fall_back(self, dotenv, monkeypatch):
        monkeypatch.setenv("DOCSEND_IMAGE_BATCH_SIZE", "ten")
        monkeypatch.setenv("DOCSEND_IMAGE_TIMEOUT_S", "slow")
        config = ExtractorConfig.from_env(str(dotenv))
        assert config.image_batch_size == 10
        assert config.image_timeout_s == 30

    def test_dotenv_file(self, dotenv, monkeypatch):
        # registered so the value loaded from the file is removed afterwards
        monkeypatch.setenv("DOCSEND_MAX_PROBE_PAGES", "0")
        monkeypatch.delenv("DOCSEND_MAX_PROBE_PAGES")
        dotenv.write_text("DOCSEND_MAX_PROBE_PAGES=42\n")
        config = ExtractorConfig.from_env(str(dotenv))
        assert config.max_probe_pages == 42

    def test_environment_wins_over_dotenv(self, dotenv, monkeypatch):
        monkeypatch.setenv("DOCSEND_IMAGE_BATCH_SIZE", "4")
        dotenv.write_text("DOCSEND_IMAGE_BATCH_SIZE=7\n")
        assert ExtractorConfig.from_env(str(dotenv)).image_batch_size == 4
