"""Tests for settings loading and startup initialization."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from adas_scrub import startup
from adas_scrub.config import AssistSettings, ScrubSettings, load_settings


class TestScrubSettings:
    def test_defaults(self):
        settings = ScrubSettings()
        assert settings.max_estimate_chars == 500_000
        assert settings.vocabulary_path is None
        assert settings.classifier.report_threshold == 5
        assert settings.assist.enabled is True
        assert settings.assist.report_confidence_threshold == 0.8
        assert settings.learning.store_dir is None
        assert settings.learning.min_confidence_weight == 0.2

    @pytest.mark.parametrize("path", ["vocab.yaml", "vocab.YML"])
    def test_yaml_vocabulary_accepted(self, path):
        assert ScrubSettings(vocabulary_path=path).vocabulary_path == Path(path)

    def test_non_yaml_vocabulary_rejected(self):
        with pytest.raises(ValidationError, match="must be a YAML file"):
            ScrubSettings(vocabulary_path="vocab.json")

    def test_prompt_floor(self):
        with pytest.raises(ValidationError):
            AssistSettings(max_prompt_chars=500)


class TestResolveModel:
    def test_explicit(self, monkeypatch):
        monkeypatch.setenv("ADAS_SCRUB_ASSIST_MODEL", "from-env")
        assert AssistSettings(model="explicit").resolve_model() == "explicit"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("ADAS_SCRUB_ASSIST_MODEL", "from-env")
        assert AssistSettings().resolve_model() == "from-env"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("ADAS_SCRUB_ASSIST_MODEL", raising=False)
        assert AssistSettings().resolve_model() == "gpt-4.1-mini"


class TestLoadSettings:
    def test_no_path_no_env(self):
        assert load_settings() == ScrubSettings()

    def test_missing_file(self, tmp_path):
        assert load_settings(tmp_path / "absent.yaml") == ScrubSettings()

    def test_yaml_file(self, tmp_path):
        config = tmp_path / "adas_scrub.yaml"
        config.write_text(
            "max_estimate_chars: 1000\n"
            "assist:\n  enabled: false\n  model: estimate-deploy\n"
            "learning:\n  store_dir: data/learning\n",
            encoding="utf-8",
        )

        settings = load_settings(config)

        assert settings.max_estimate_chars == 1000
        assert settings.assist.enabled is False
        assert settings.assist.model == "estimate-deploy"
        assert settings.learning.store_dir == Path("data/learning")

    def test_env_var_path(self, tmp_path, monkeypatch):
        config = tmp_path / "env.yaml"
        config.write_text("classifier:\n  report_threshold: 9\n", encoding="utf-8")
        monkeypatch.setenv("ADAS_SCRUB_CONFIG", str(config))

        assert load_settings().classifier.report_threshold == 9

    def test_empty_file_warns(self, tmp_path, caplog):
        config = tmp_path / "empty.yaml"
        config.write_text("", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="adas_scrub.config.settings"):
            assert load_settings(config) == ScrubSettings()
        assert "Empty scrub config" in caplog.text

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("assist: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_settings(config)

    def test_invalid_values(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("assist:\n  timeout_seconds: 0\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid scrub config"):
            load_settings(config)


class TestStartup:
    def test_idempotent(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = startup.ensure_initialized()
        assert startup.ensure_initialized() is first

    def test_config_path_reloads(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = startup.ensure_initialized()
        config = tmp_path / "adas_scrub.yaml"
        config.write_text("max_estimate_chars: 42\n", encoding="utf-8")

        second = startup.ensure_initialized(config)

        assert second is not first
        assert second.settings.max_estimate_chars == 42

    def test_env_file_loaded(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("ADAS_SCRUB_ASSIST_MODEL=dotenv-model\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ADAS_SCRUB_ASSIST_MODEL", "placeholder")
        monkeypatch.delenv("ADAS_SCRUB_ASSIST_MODEL")

        state = startup.ensure_initialized()

        assert state.project_root == tmp_path
        assert state.env_loaded is True
        assert state.settings.assist.resolve_model() == "dotenv-model"

    def test_reset(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = startup.ensure_initialized()
        startup.reset()
        assert startup.ensure_initialized() is not first
