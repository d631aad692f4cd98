"""Tests für Konfiguration (Schema, Defaults, YAML-Manager, Umgebungsvariablen)."""

from datetime import date
from pathlib import Path

import pytest

from config.defaults import (
    STATUS_LABELS,
    STATUS_SHORT,
    default_app_config,
    default_periods,
    school_year_start,
)
from config.manager import ConfigManager
from config.schema import AppConfig, BackendConfig
from models.homework import HomeworkStatus


def _manager(tmp_path: Path) -> ConfigManager:
    mgr = ConfigManager()
    mgr.CONFIG_DIR = tmp_path
    mgr.DEFAULT_CONFIG = tmp_path / "app_config.yaml"
    return mgr


# ─── DEFAULTS ─────────────────────────────────────────────────────────────────

class TestDefaults:
    def test_default_config_is_local_only(self):
        """Ohne URL/Schlüssel: reiner Lokalbetrieb."""
        config = default_app_config()
        assert config.backend.is_configured is False
        assert config.data_dir == "daten"
        assert config.sync.auto_push is True

    @pytest.mark.parametrize("today,expected", [
        (date(2024, 9, 1), 2024),
        (date(2024, 12, 31), 2024),
        (date(2025, 1, 10), 2024),
        (date(2025, 8, 31), 2024),
    ])
    def test_school_year_start(self, today, expected):
        assert school_year_start(today) == expected

    def test_default_periods(self):
        p1, p2, p3 = default_periods(date(2024, 10, 1))
        assert (p1.name, p1.start_date, p1.end_date) == \
            ("Trimester 1", date(2024, 9, 1), date(2024, 12, 31))
        assert (p2.start_date, p2.end_date) == (date(2025, 1, 1), date(2025, 3, 31))
        assert (p3.start_date, p3.end_date) == (date(2025, 4, 1), date(2025, 7, 7))

    def test_status_labels_complete(self):
        for status in HomeworkStatus:
            assert status in STATUS_LABELS
            assert len(STATUS_SHORT[status]) == 1


# ─── SCHEMA ───────────────────────────────────────────────────────────────────

class TestSchema:
    def test_is_configured_needs_both(self):
        assert BackendConfig(url="https://x.supabase.co").is_configured is False
        assert BackendConfig(anon_key="k").is_configured is False
        assert BackendConfig(url="https://x.supabase.co", anon_key="k").is_configured

    def test_base_url_strips_slash(self):
        assert BackendConfig(url="https://x.supabase.co/").base_url == "https://x.supabase.co"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            BackendConfig(timeout_seconds=0)


# ─── MANAGER ──────────────────────────────────────────────────────────────────

class TestConfigManager:
    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Config speichern, laden und validieren (vollständiger Roundtrip)."""
        mgr = _manager(tmp_path)
        config = AppConfig(
            data_dir="meine_daten",
            backend=BackendConfig(url="https://x.supabase.co", anon_key="k",
                                  timeout_seconds=7.5),
        )
        mgr.save(config)
        assert mgr.DEFAULT_CONFIG.exists()
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert "Hausaufgabenheft" in text
        assert "Cloud-Backend" in text

        loaded = mgr.load(mgr.DEFAULT_CONFIG)
        assert loaded == config

    def test_only_used_keys_saved(self, tmp_path: Path):
        """Gespeichert werden nur Schlüssel, die das Programm auch liest."""
        mgr = _manager(tmp_path)
        mgr.save(default_app_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert "locale_name" not in text
        assert set(AppConfig.model_fields) == {"data_dir", "output_dir", "backend", "sync"}

    def test_old_config_with_locale_still_loads(self, tmp_path: Path):
        path = tmp_path / "alt.yaml"
        path.write_text("data_dir: daten\nlocale_name: fr\n", encoding="utf-8")
        assert ConfigManager().load(path).data_dir == "daten"

    def test_first_run_check(self, tmp_path: Path):
        mgr = _manager(tmp_path)
        assert mgr.first_run_check() is True
        mgr.save(default_app_config())
        assert mgr.first_run_check() is False

    def test_load_nonexistent_raises(self, tmp_path: Path):
        """Laden einer nicht-existenten Datei → FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(tmp_path / "not_there.yaml")

    def test_load_invalid_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "kaputt.yaml"
        path.write_text("backend:\n  timeout_seconds: -1\n", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigManager().load(path)

    def test_load_or_default_without_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        config = _manager(tmp_path).load_or_default()
        assert config == default_app_config()

    def test_env_overrides_file(self, tmp_path: Path):
        """SUPABASE_URL / SUPABASE_ANON_KEY haben Vorrang vor der Datei."""
        config = AppConfig(backend=BackendConfig(url="https://alt.supabase.co", anon_key="alt"))
        env = {"SUPABASE_URL": "https://neu.supabase.co", "SUPABASE_ANON_KEY": "neu"}
        result = ConfigManager().apply_env(config, environ=env)
        assert result.backend.url == "https://neu.supabase.co"
        assert result.backend.anon_key == "neu"
        assert config.backend.url == "https://alt.supabase.co"

    def test_env_missing_keeps_local_mode(self, caplog):
        with caplog.at_level("WARNING"):
            result = ConfigManager().apply_env(default_app_config(), environ={})
        assert result.backend.is_configured is False
        assert "Lokalbetrieb" in caplog.text
