"""Tests for configuration loading."""

from unittest.mock import patch

from worldpulse_ingest import config


class TestGenAIConfig:
    """Test get_genai_config()."""

    def test_reads_key_from_environment(self, monkeypatch) -> None:
        """GEMINI_API_KEY is used when set."""
        monkeypatch.setenv("GEMINI_API_KEY", "direct_key")
        monkeypatch.delenv("GEMINI_MODEL", raising=False)

        result = config.get_genai_config()

        assert result.api_key == "direct_key"
        assert result.model == config.DEFAULT_MODEL

    def test_falls_back_to_secrets_manager(self, monkeypatch) -> None:
        """The key is read from Secrets Manager when not in the environment."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_SECRET_NAME", "worldpulse/gemini")

        with patch.object(config, "_get_secret", return_value="secret_key") as mock_secret:
            result = config.get_genai_config()

        mock_secret.assert_called_once_with("worldpulse/gemini")
        assert result.api_key == "secret_key"


class TestSchedulerConfig:
    """Test get_scheduler_config()."""

    def test_defaults(self, monkeypatch) -> None:
        """Scheduler settings fall back to the module defaults."""
        for name in (
            "WORLDPULSE_BATCH_SIZE",
            "WORLDPULSE_MIN_INTERVAL_SECONDS",
            "WORLDPULSE_MAX_RETRIES",
            "WORLDPULSE_INITIAL_BACKOFF_SECONDS",
        ):
            monkeypatch.delenv(name, raising=False)

        result = config.get_scheduler_config()

        assert result.batch_size == config.BATCH_SIZE
        assert result.min_interval_seconds == config.MIN_REQUEST_INTERVAL_SECONDS
        assert result.max_retries == 2
        assert result.initial_backoff_seconds == 15

    def test_overrides(self, monkeypatch) -> None:
        """Scheduler settings are read from the environment."""
        monkeypatch.setenv("WORLDPULSE_BATCH_SIZE", "3")
        monkeypatch.setenv("WORLDPULSE_MIN_INTERVAL_SECONDS", "0")

        result = config.get_scheduler_config()

        assert result.batch_size == 3
        assert result.min_interval_seconds == 0.0
