"""Tests for firemock.config -- configuration validation and env loading."""

from __future__ import annotations

import pytest

from firemock.config import MockConfig


class TestMockConfigValidation:
    def test_defaults_are_valid(self) -> None:
        config = MockConfig()
        assert config.root_path == "Mock://"
        assert config.auto_flush is False
        assert config.auto_id_length == 20
        assert config.stream_timeout == 5.0

    def test_empty_root_path(self) -> None:
        with pytest.raises(ValueError, match="root_path"):
            MockConfig(root_path="")

    def test_negative_auto_flush_delay(self) -> None:
        with pytest.raises(ValueError, match="auto_flush"):
            MockConfig(auto_flush=-0.5)

    def test_auto_id_length_bounds(self) -> None:
        with pytest.raises(ValueError, match="auto_id_length must be 1-100"):
            MockConfig(auto_id_length=0)
        with pytest.raises(ValueError, match="auto_id_length must be 1-100"):
            MockConfig(auto_id_length=101)

    def test_stream_timeout_positive(self) -> None:
        with pytest.raises(ValueError, match="stream_timeout"):
            MockConfig(stream_timeout=0)

    def test_frozen(self) -> None:
        config = MockConfig()
        with pytest.raises(AttributeError):
            config.auto_flush = True  # type: ignore[misc]

    def test_multiple_validation_errors(self) -> None:
        with pytest.raises(ValueError) as exc_info:
            MockConfig(auto_id_length=0, stream_timeout=-1)
        assert "auto_id_length" in str(exc_info.value)
        assert "stream_timeout" in str(exc_info.value)


class TestMockConfigFromEnv:
    def test_defaults_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in (
            "FIREMOCK_ROOT_PATH",
            "FIREMOCK_AUTO_FLUSH",
            "FIREMOCK_AUTO_ID_LENGTH",
            "FIREMOCK_STREAM_TIMEOUT",
        ):
            monkeypatch.delenv(key, raising=False)
        assert MockConfig.from_env() == MockConfig()

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("YES", True), ("false", False), ("0", False), ("0.25", 0.25)],
    )
    def test_auto_flush_from_env(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool | float
    ) -> None:
        monkeypatch.setenv("FIREMOCK_AUTO_FLUSH", raw)
        assert MockConfig.from_env().auto_flush == expected

    def test_invalid_auto_flush_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREMOCK_AUTO_FLUSH", "soon")
        with pytest.raises(ValueError, match="FIREMOCK_AUTO_FLUSH"):
            MockConfig.from_env()

    def test_reads_auto_id_length(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREMOCK_AUTO_ID_LENGTH", "12")
        assert MockConfig.from_env().auto_id_length == 12

    def test_invalid_integer_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREMOCK_AUTO_ID_LENGTH", "abc")
        with pytest.raises(ValueError, match="FIREMOCK_AUTO_ID_LENGTH"):
            MockConfig.from_env()

    def test_invalid_float_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREMOCK_STREAM_TIMEOUT", "later")
        with pytest.raises(ValueError, match="FIREMOCK_STREAM_TIMEOUT"):
            MockConfig.from_env()

    def test_overrides_take_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FIREMOCK_ROOT_PATH", "Env://")
        assert MockConfig.from_env(root_path="Override://").root_path == "Override://"

    def test_none_overrides_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FIREMOCK_AUTO_ID_LENGTH", raising=False)
        assert MockConfig.from_env(auto_id_length=None).auto_id_length == 20
