"""
PULSE SIGNAL — Unit Tests for Configuration
Environment overrides reach every settings group.
"""
from pulse_signal.config.settings import (
    AppSettings, DatabaseSettings, LevelSettings, ReplaySettings, SignalSettings,
)
from pulse_signal.engines.signal_combiner import SignalCombiner


class TestEnvironmentOverrides:
    def test_documented_names_are_read(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_THRESHOLD_PRESET", "aggressive")
        monkeypatch.setenv("LEVEL_MODE", "fixed_percent")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///override.db")
        monkeypatch.setenv("REPLAY_INTERVAL", "0.5")
        monkeypatch.setenv("REPLAY_PERSIST", "false")
        monkeypatch.setenv("TRACKER_EXPIRY_HOURS", "2")
        monkeypatch.setenv("BT_INITIAL_CAPITAL", "250000")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = AppSettings()
        assert settings.signals.threshold_preset == "aggressive"
        assert settings.levels.mode == "fixed_percent"
        assert settings.database.db_url == "sqlite:///override.db"
        assert settings.replay.base_interval_seconds == 0.5
        assert settings.replay.persist_signals is False
        assert settings.tracker.expiry_hours == 2.0
        assert settings.backtest.initial_capital == 250000.0
        assert settings.log_level == "DEBUG"

    def test_override_reaches_the_combiner(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_THRESHOLD_PRESET", "aggressive")
        monkeypatch.setenv("SIGNAL_SYNTHETIC_CONFIRMATION", "true")
        combiner = SignalCombiner(AppSettings())
        assert combiner.policy.name == "aggressive"
        assert combiner.confirmation_provider is not None

    def test_json_list_values(self, monkeypatch):
        monkeypatch.setenv("SYMBOLS", '["NIFTY50"]')
        monkeypatch.setenv("LEVEL_TARGET_MULTIPLES", "[1.5, 2.5, 3.5]")
        settings = AppSettings()
        assert settings.symbols == ["NIFTY50"]
        assert settings.levels.target_multiples == [1.5, 2.5, 3.5]

    def test_groups_built_per_instance(self, monkeypatch):
        first = AppSettings()
        monkeypatch.setenv("REPLAY_SPEED", "3")
        second = AppSettings()
        assert first.replay.speed == 1.0
        assert second.replay.speed == 3.0
        assert first.replay is not second.replay


class TestKeywordConstruction:
    def test_field_names_still_accepted(self):
        assert DatabaseSettings(db_url="sqlite:///kw.db").db_url == "sqlite:///kw.db"
        replay = ReplaySettings(base_interval_seconds=0.25, persist_signals=False)
        assert replay.base_interval_seconds == 0.25
        assert replay.persist_signals is False
        assert LevelSettings(mode="fixed_percent").mode == "fixed_percent"

    def test_keywords_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_THRESHOLD_PRESET", "swing")
        assert SignalSettings(threshold_preset="intraday").threshold_preset == "intraday"
        assert SignalSettings().threshold_preset == "swing"

    def test_defaults(self, monkeypatch):
        for name in ("SIGNAL_THRESHOLD_PRESET", "SIGNAL_SYNTHETIC_CONFIRMATION", "DATABASE_URL"):
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings()
        assert settings.signals.threshold_preset == "strict"
        assert settings.signals.synthetic_confirmation is False
        assert settings.database.db_url == "sqlite:///pulse_signal.db"
        assert SignalCombiner(settings).confirmation_provider is None
