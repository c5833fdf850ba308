"""Tests for guild_ledger.config loading, overrides and validation."""

import configparser
import textwrap

import pytest

from guild_ledger.config import (
    EconomyConfig,
    _load_from_ini,
    load_config,
    normalize_reward_amount,
    print_config_summary,
    use_test_storage,
)
from guild_ledger.errors import InvalidArgumentError
from guild_ledger.timeparse import DAY_MS, HOUR_MS


@pytest.mark.unit
def test_defaults():
    cfg = EconomyConfig()

    assert cfg.storage.path == "./storage.json"
    assert cfg.storage.update_countdown_ms == 1000
    assert cfg.rewards.daily_cooldown_ms == DAY_MS
    assert cfg.rewards.work_cooldown_ms == HOUR_MS
    assert cfg.rewards.weekly_cooldown_ms == 7 * DAY_MS
    assert cfg.rewards.daily_amount == 100
    assert cfg.rewards.work_amount == [10, 50]
    assert cfg.rewards.weekly_amount == 1000
    assert cfg.shop.date_locale == "ru"
    assert cfg.shop.selling_item_percent == 75
    assert cfg.startup.attempts == 5
    assert cfg.startup.retry_delay_ms == 3000


@pytest.mark.unit
def test_reward_env_overrides(monkeypatch):
    monkeypatch.setenv("ECONOMY_DAILY_AMOUNT", "250")
    monkeypatch.setenv("ECONOMY_WORK_AMOUNT", "5, 15")
    monkeypatch.setenv("ECONOMY_WEEKLY_AMOUNT", "2000")

    cfg = load_config()

    assert cfg.rewards.daily_amount == 250
    assert cfg.rewards.work_amount == [5, 15]
    assert cfg.rewards.weekly_amount == 2000


@pytest.mark.unit
def test_storage_env_overrides(monkeypatch):
    monkeypatch.setenv("ECONOMY_STORAGE_PATH", "/tmp/eco.json")
    monkeypatch.setenv("ECONOMY_UPDATE_COUNTDOWN_MS", "250")
    monkeypatch.setenv("ECONOMY_DATE_LOCALE", "en-GB")
    monkeypatch.setenv("ECONOMY_LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.storage.path == "/tmp/eco.json"
    assert cfg.storage.update_countdown_ms == 250
    assert cfg.shop.date_locale == "en-GB"
    assert cfg.logging.level == "DEBUG"


@pytest.mark.unit
def test_startup_attempts_env_unbounded(monkeypatch):
    monkeypatch.setenv("ECONOMY_STARTUP_ATTEMPTS", "none")

    assert load_config().startup.attempts is None


@pytest.mark.unit
def test_load_from_ini_sections():
    parser = configparser.ConfigParser()
    parser.read_string(
        textwrap.dedent(
            """
        [storage]
        path = data/eco.json
        [rewards]
        daily_cooldown_ms = 1000
        work_amount = 1, 2
        [shop]
        selling_item_percent = 40
        [startup]
        attempts = infinite
        retry_delay_ms = 10
        [logging]
        format = json
            """
        )
    )
    cfg = EconomyConfig()

    _load_from_ini(parser, cfg)

    assert cfg.storage.path == "data/eco.json"
    assert cfg.rewards.daily_cooldown_ms == 1000
    assert cfg.rewards.work_amount == [1, 2]
    assert cfg.shop.selling_item_percent == 40
    assert cfg.startup.attempts is None
    assert cfg.startup.retry_delay_ms == 10
    assert cfg.logging.format == "json"


class TestFromOptions:
    @pytest.mark.unit
    def test_camel_case_options(self):
        cfg = EconomyConfig.from_options(
            {
                "storagePath": "eco.json",
                "updateCountdown": 500,
                "dailyCooldown": 10,
                "workCooldown": 20,
                "weeklyCooldown": 30,
                "dailyAmount": 1,
                "workAmount": [9, 3],
                "weeklyAmount": [7],
                "dateLocale": "de",
                "sellingItemPercent": 10,
                "errorHandler": {"attempts": None, "time": 100},
            }
        )

        assert cfg.storage.path == "eco.json"
        assert cfg.storage.update_countdown_ms == 500
        assert cfg.rewards.work_amount == [3, 9]
        assert cfg.rewards.weekly_amount == 7
        assert cfg.shop.date_locale == "de"
        assert cfg.startup.attempts is None
        assert cfg.startup.retry_delay_ms == 100

    @pytest.mark.unit
    def test_none_keeps_defaults(self):
        cfg = EconomyConfig.from_options({"dailyAmount": None})

        assert cfg.rewards.daily_amount == 100

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "options",
        [
            {"unknownOption": 1},
            {"dailyCooldown": 0},
            {"dailyCooldown": "24h"},
            {"workAmount": [1, 2, 3]},
            {"workAmount": "10"},
            {"sellingItemPercent": 150},
            {"errorHandler": 5},
            {"errorHandler": {"attempts": 0}},
            {"storagePath": ""},
        ],
    )
    def test_invalid_options(self, options):
        with pytest.raises(InvalidArgumentError):
            EconomyConfig.from_options(options)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [(5, 5), ([5], 5), ((1, 3), [1, 3]), ([3, 1], [1, 3])],
)
def test_normalize_reward_amount(value, expected):
    assert normalize_reward_amount(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", [True, 1.5, [], [1, "2"], None])
def test_normalize_reward_amount_rejects(value):
    with pytest.raises(InvalidArgumentError):
        normalize_reward_amount(value)


@pytest.mark.unit
def test_use_test_storage_restores_path(tmp_path):
    from guild_ledger import config as config_module

    original = config_module.config.storage.path
    with use_test_storage(tmp_path / "eco.json") as path:
        assert config_module.config.storage.path == str(path)

    assert config_module.config.storage.path == original


@pytest.mark.unit
def test_print_config_summary(capsys):
    print_config_summary(EconomyConfig())

    output = capsys.readouterr().out
    assert "ECONOMY CONFIGURATION" in output
    assert "Daily" in output
