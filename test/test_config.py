import logging

import pytest
from pydantic import ValidationError

from graphscript.config import DEFAULT_LOG_FORMAT, Settings, configure_logging, get_settings

ENV_NAMES = (
    "GRAPHSCRIPT_LOG_LEVEL",
    "GRAPHSCRIPT_LOG_FORMAT",
    "GRAPHSCRIPT_STRICT",
    "GRAPHSCRIPT_OUT_DIR",
    "GRAPHSCRIPT_HOST",
    "GRAPHSCRIPT_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's own .env out of the defaults
    monkeypatch.chdir(tmp_path)


class TestSettings:

    def test_defaults(self):
        assert get_settings() == Settings()
        assert Settings().log_format == DEFAULT_LOG_FORMAT
        assert Settings().port == 3001
        assert Settings().strict is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GRAPHSCRIPT_LOG_LEVEL", "debug")
        monkeypatch.setenv("GRAPHSCRIPT_STRICT", "Yes")
        monkeypatch.setenv("GRAPHSCRIPT_OUT_DIR", "build/scripts")
        monkeypatch.setenv("GRAPHSCRIPT_PORT", "8080")
        settings = get_settings()
        assert settings.log_level == "DEBUG"
        assert settings.strict is True
        assert settings.out_dir == "build/scripts"
        assert settings.port == 8080

    def test_empty_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("GRAPHSCRIPT_PORT", "")
        assert get_settings().port == 3001

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("GRAPHSCRIPT_HOST=127.0.0.1\nGRAPHSCRIPT_PORT=9000\n", encoding="utf-8")
        settings = get_settings(str(env_file))
        assert settings.host == "127.0.0.1"
        assert settings.port == 9000

    def test_dotenv_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("GRAPHSCRIPT_OUT_DIR=dist\n", encoding="utf-8")
        assert get_settings().out_dir == "dist"

    def test_environment_beats_env_file(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("GRAPHSCRIPT_OUT_DIR=dist\n", encoding="utf-8")
        monkeypatch.setenv("GRAPHSCRIPT_OUT_DIR", "elsewhere")
        assert get_settings().out_dir == "elsewhere"

    def test_bad_port(self, monkeypatch):
        monkeypatch.setenv("GRAPHSCRIPT_PORT", "eighty")
        with pytest.raises(ValidationError, match="port"):
            get_settings()

    def test_settings_are_frozen(self):
        with pytest.raises(ValidationError):
            Settings().port = 1

    def test_configure_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        configure_logging(Settings(log_level="warning"))
        assert calls == [{"level": "WARNING", "format": DEFAULT_LOG_FORMAT}]
