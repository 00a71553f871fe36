"""
Unit tests for configuration loading and credential checks.
"""
import pytest
import pydantic

from config import load_pipeline_config, load_settings, require_credentials
from utils.errors import MissingCredentialsError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SCRIPTCUT_OUTPUT_DIR", "SCRIPTCUT_IMAGE_CONCURRENCY", "SCRIPTCUT_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:

    def test_bundled_defaults(self):
        settings = load_settings()
        assert settings.image_concurrency == 1
        assert settings.video_poll_interval_sec == 5
        assert settings.video_model == "minimax/video-01"
        assert settings.avg_seconds_per_segment == 6

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pipeline:\n  output_dir: /data/out\n  image_concurrency: 4\n", encoding="utf-8")
        settings = load_settings(str(path))
        assert settings.output_dir == "/data/out"
        assert settings.image_concurrency == 4

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_pipeline_config(str(tmp_path / "nope.yaml")) == {}
        assert load_settings(str(tmp_path / "nope.yaml")).output_dir == "outputs"

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCRIPTCUT_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("SCRIPTCUT_IMAGE_CONCURRENCY", "3")
        settings = load_settings()
        assert settings.output_dir == str(tmp_path)
        assert settings.image_concurrency == 3

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("SCRIPTCUT_IMAGE_CONCURRENCY", "0")
        with pytest.raises(pydantic.ValidationError):
            load_settings()


class TestCredentials:

    def test_missing_keys_are_listed(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
        monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
        with pytest.raises(MissingCredentialsError) as exc_info:
            require_credentials()
        assert exc_info.value.missing == ["ELEVENLABS_API_KEY", "REPLICATE_API_TOKEN"]

    def test_all_present(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "ELEVENLABS_API_KEY", "REPLICATE_API_TOKEN"):
            monkeypatch.setenv(name, "x")
        require_credentials()
