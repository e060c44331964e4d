"""Tests for merchstudio.core.config and merchstudio.core.settings_store.

Tests cover:
- Default values for the process settings.
- Environment variable overrides via the MERCHSTUDIO_ prefix.
- Automatic directory creation on initialisation.
- Pydantic validation constraints.
- ``config.json`` loading, merging and masking.
- Error kinds and payloads.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from merchstudio.core.config import StudioConfig
from merchstudio.core.exceptions import (
    ConfigurationError,
    DesignValidationError,
    NotFoundError,
    ProviderError,
    StorageError,
    StudioError,
)
from merchstudio.core.settings_store import ApiSettings, SettingsStore


def make_config(temp_dir: Path, **overrides) -> StudioConfig:
    return StudioConfig(
        data_dir=temp_dir / "data",
        assets_dir=temp_dir / "assets",
        _env_file=None,
        **overrides,
    )


class TestConfigDefaults:
    def test_defaults(self, monkeypatch, temp_dir):
        for name in ("REQUEST_TIMEOUT", "SERVER_PORT", "ASSETS_URL_PREFIX", "LOG_LEVEL"):
            monkeypatch.delenv(f"MERCHSTUDIO_{name}", raising=False)
        cfg = make_config(temp_dir)
        assert cfg.request_timeout == 180.0
        assert cfg.server_port == 7860
        assert cfg.assets_url_prefix == "/generated_tshirts"
        assert cfg.openai_image_quality == "high"
        assert cfg.openai_output_format == "png"
        assert cfg.log_level == "INFO"

    def test_file_locations(self, test_config: StudioConfig):
        assert test_config.settings_file.name == "config.json"
        assert test_config.products_file.name == "merch_products.json"
        assert test_config.orders_file.name == "orders.json"
        assert test_config.ideas_file.name == "tshirt_ideas.json"
        assert test_config.settings_file.parent == test_config.data_dir
        assert test_config.edits_dir == test_config.data_dir / "edit_designs"

    def test_directories_created(self, temp_dir):
        cfg = make_config(temp_dir)
        assert cfg.data_dir.is_dir()
        assert cfg.assets_dir.is_dir()


class TestConfigEnvironment:
    def test_env_override(self, monkeypatch, temp_dir):
        monkeypatch.setenv("MERCHSTUDIO_REQUEST_TIMEOUT", "30")
        monkeypatch.setenv("MERCHSTUDIO_SERVER_PORT", "8080")
        cfg = make_config(temp_dir)
        assert cfg.request_timeout == 30.0
        assert cfg.server_port == 8080


class TestConfigValidation:
    def test_port_range(self, temp_dir):
        with pytest.raises(ValidationError):
            make_config(temp_dir, server_port=80)

    def test_timeout_positive(self, temp_dir):
        with pytest.raises(ValidationError):
            make_config(temp_dir, request_timeout=0)

    def test_output_format_literal(self, temp_dir):
        with pytest.raises(ValidationError):
            make_config(temp_dir, openai_output_format="gif")


class TestSettingsStore:
    def test_missing_file_gives_defaults(self, test_config):
        settings = SettingsStore(test_config).load()
        assert settings == ApiSettings()
        assert settings.openai_model == "gpt-image-1"
        assert settings.gemini_model == "gemini-2.5-flash-image"

    def test_blank_model_falls_back_to_default(self, test_config):
        test_config.settings_file.write_text(
            json.dumps({"openai_model": "", "openai_api_key": "sk"}), encoding="utf-8"
        )
        settings = SettingsStore(test_config).load()
        assert settings.openai_model == "gpt-image-1"
        assert settings.openai_api_key == "sk"

    def test_update_preserves_unknown_keys(self, test_config):
        test_config.settings_file.write_text(
            json.dumps({"custom": "keep-me", "gemini_api_key": "old"}), encoding="utf-8"
        )
        store = SettingsStore(test_config)
        store.update({"gemini_api_key": "  new-key  ", "unrelated_field": "x"})

        raw = json.loads(test_config.settings_file.read_text(encoding="utf-8"))
        assert raw["custom"] == "keep-me"
        assert raw["gemini_api_key"] == "new-key"
        assert "unrelated_field" not in raw

    def test_masked_values_do_not_overwrite(self, test_config):
        store = SettingsStore(test_config)
        store.update({"openai_api_key": "sk-secret-1234"})
        masked = store.load().masked()
        assert masked["openai_api_key"] == "****1234"
        assert masked["openai_api_key_set"] is True
        assert masked["gemini_api_key_set"] is False

        store.update({"openai_api_key": masked["openai_api_key"]})
        assert store.load().openai_api_key == "sk-secret-1234"

    def test_invalid_json_gives_defaults(self, test_config):
        test_config.settings_file.write_text("{oops", encoding="utf-8")
        assert SettingsStore(test_config).load() == ApiSettings()


class TestErrorPayloads:
    @pytest.mark.parametrize(
        ("error_class", "kind", "status"),
        [
            (DesignValidationError, "validation", 400),
            (ConfigurationError, "configuration", 503),
            (ProviderError, "provider", 502),
            (StorageError, "storage", 500),
            (NotFoundError, "not_found", 404),
        ],
    )
    def test_kind_and_status(self, error_class, kind, status):
        error = error_class("Something went wrong.")
        assert isinstance(error, StudioError)
        assert error.status_code == status
        assert error.to_payload() == {
            "success": False,
            "error": "Something went wrong.",
            "kind": kind,
        }
