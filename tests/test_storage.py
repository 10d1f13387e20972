"""Tests for JSON-backed stores and per-user paths."""

import json
from datetime import datetime, timezone

from core.storage import (
    Settings,
    SettingsStore,
    TrustStore,
    UsageStore,
    cache_dir,
    config_dir,
    skills_dir,
)


class TestPaths:
    """Tests for config and cache locations."""

    def test_home_override(self, isolated_home):
        """SKILLCHAIN_HOME roots config, cache and skills."""
        assert config_dir() == isolated_home
        assert cache_dir() == isolated_home / "cache"
        assert skills_dir() == isolated_home / "skills"
        assert skills_dir().is_dir()

    def test_xdg_fallback(self, tmp_path, monkeypatch):
        """Without the override, XDG directories are used."""
        monkeypatch.delenv("SKILLCHAIN_HOME")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
        assert config_dir() == tmp_path / "cfg" / "skillchain"
        assert cache_dir() == tmp_path / "cache" / "skillchain"


class TestUsageStore:
    """Tests for usage counters."""

    def test_increment_persists(self, tmp_path):
        """Increments are written and read back by a new store."""
        path = tmp_path / "usage_stats.json"
        store = UsageStore(path)
        store.increment("resize")
        store.increment("resize")
        store.increment("blur")

        reloaded = UsageStore(path).all()
        assert reloaded["resize"].count == 2
        assert reloaded["blur"].count == 1
        assert reloaded["resize"].last_used.tzinfo is not None

        raw = json.loads(path.read_text())
        assert raw["resize"]["count"] == 2
        assert datetime.fromisoformat(raw["resize"]["lastUsed"]) <= datetime.now(timezone.utc)

    def test_all_returns_copy(self, tmp_path):
        """Mutating the returned stats does not change the store."""
        store = UsageStore(tmp_path / "u.json")
        store.increment("x")
        store.all()["x"].count = 99
        assert store.all()["x"].count == 1

    def test_unreadable_file_starts_empty(self, tmp_path):
        """A corrupt file is treated as no usage."""
        path = tmp_path / "u.json"
        path.write_text("{broken")
        assert UsageStore(path).all() == {}

    def test_default_path(self, isolated_home):
        """The default file lives in the config dir."""
        UsageStore().increment("x")
        assert (isolated_home / "usage_stats.json").exists()


class TestTrustStore:
    """Tests for trust decisions."""

    def test_grant_and_revoke(self, tmp_path):
        """Granting stores the id; revoking removes the key."""
        path = tmp_path / "trust.json"
        store = TrustStore(path)
        assert not store.is_trusted("net-skill")

        store.set_trusted("net-skill", True)
        assert TrustStore(path).is_trusted("net-skill")
        assert json.loads(path.read_text()) == {"trustedSkills": {"net-skill": True}}

        store.set_trusted("net-skill", False)
        assert not store.is_trusted("net-skill")
        assert json.loads(path.read_text()) == {"trustedSkills": {}}


class TestSettingsStore:
    """Tests for persisted settings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Loading without a file yields defaults."""
        settings = SettingsStore(tmp_path / "s.json").load()
        assert settings == Settings()
        assert settings.naming_pattern == "{name}_{skill}.{ext}"

    def test_round_trip_with_defaults(self, tmp_path):
        """Saved blanks are filled with defaults."""
        store = SettingsStore(tmp_path / "s.json")
        store.save(Settings(output_folder="/exports", naming_pattern="", accent_color=""))

        raw = json.loads((tmp_path / "s.json").read_text())
        assert raw == {
            "outputFolder": "/exports",
            "namingPattern": "{name}_{skill}.{ext}",
            "accentColor": "99,102,241",
        }
        assert store.load().output_folder == "/exports"
