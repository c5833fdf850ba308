"""
Economy configuration management.

This module handles loading and accessing engine configuration from multiple
sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/economy.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The
EconomyConfig dataclass provides typed access to all settings. Hosts that
embed the engine usually build their own instance instead, either directly or
from the camelCase option names via ``EconomyConfig.from_options``.

Usage:
    from guild_ledger.config import EconomyConfig, config

    print(config.storage.path)
    cfg = EconomyConfig.from_options({"storagePath": "./eco.json", "dailyAmount": 250})

Environment Variable Mapping:
    ECONOMY_STORAGE_PATH         -> storage.path
    ECONOMY_UPDATE_COUNTDOWN_MS  -> storage.update_countdown_ms
    ECONOMY_DAILY_AMOUNT         -> rewards.daily_amount
    ECONOMY_WORK_AMOUNT          -> rewards.work_amount
    ECONOMY_WEEKLY_AMOUNT        -> rewards.weekly_amount
    ECONOMY_DATE_LOCALE          -> shop.date_locale
    ECONOMY_STARTUP_ATTEMPTS     -> startup.attempts ("none" = unbounded)
    ECONOMY_LOG_LEVEL            -> logging.level
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from guild_ledger.errors import InvalidArgumentError
from guild_ledger.timeparse import DAY_MS, HOUR_MS

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "economy.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "economy.example.ini"

# A reward is either a fixed amount or an inclusive [min, max] range.
RewardAmount = int | list[int]


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class StorageSettings:
    """Storage file configuration."""

    path: str = "./storage.json"
    update_countdown_ms: int = 1000

    @property
    def absolute_path(self) -> Path:
        """Resolve relative paths against the current working directory."""
        return Path(self.path).expanduser().resolve()


@dataclass
class RewardSettings:
    """Cooldown durations (milliseconds) and reward amounts."""

    daily_cooldown_ms: int = DAY_MS
    work_cooldown_ms: int = HOUR_MS
    weekly_cooldown_ms: int = 7 * DAY_MS
    daily_amount: RewardAmount = 100
    work_amount: RewardAmount = field(default_factory=lambda: [10, 50])
    weekly_amount: RewardAmount = 1000


@dataclass
class ShopSettings:
    """Shop configuration."""

    date_locale: str = "ru"
    selling_item_percent: int = 75


@dataclass
class StartupSettings:
    """Initialization retry policy.

    ``attempts`` of ``None`` retries forever.
    """

    attempts: int | None = 5
    retry_delay_ms: int = 3000


@dataclass
class LoggingSettings:
    """Logging configuration (applied by the CLI, never by the library)."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class EconomyConfig:
    """
    Complete engine configuration.

    Aggregates all settings sections.  The module-level ``config`` singleton
    holds the file/env view; engines receive an instance explicitly.
    """

    storage: StorageSettings = field(default_factory=StorageSettings)
    rewards: RewardSettings = field(default_factory=RewardSettings)
    shop: ShopSettings = field(default_factory=ShopSettings)
    startup: StartupSettings = field(default_factory=StartupSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> EconomyConfig:
        """
        Build a configuration from the camelCase option names hosts pass.

        Recognized keys: ``storagePath``, ``updateCountdown``,
        ``dailyCooldown``, ``workCooldown``, ``weeklyCooldown``,
        ``dailyAmount``, ``workAmount``, ``weeklyAmount``, ``dateLocale``,
        ``sellingItemPercent`` and ``errorHandler`` (``{"attempts", "time"}``).
        ``None`` values keep the default.  Unknown keys are rejected.

        Raises:
            InvalidArgumentError: On unknown keys or invalid values.
        """
        options = dict(options or {})
        cfg = cls()

        unknown = set(options) - _OPTION_KEYS
        if unknown:
            raise InvalidArgumentError(f"Unknown economy options: {', '.join(sorted(unknown))}")

        def _take(key: str) -> Any:
            return options.get(key)

        if (value := _take("storagePath")) is not None:
            cfg.storage.path = value
        if (value := _take("updateCountdown")) is not None:
            cfg.storage.update_countdown_ms = value
        if (value := _take("dailyCooldown")) is not None:
            cfg.rewards.daily_cooldown_ms = value
        if (value := _take("workCooldown")) is not None:
            cfg.rewards.work_cooldown_ms = value
        if (value := _take("weeklyCooldown")) is not None:
            cfg.rewards.weekly_cooldown_ms = value
        if (value := _take("dailyAmount")) is not None:
            cfg.rewards.daily_amount = value
        if (value := _take("workAmount")) is not None:
            cfg.rewards.work_amount = value
        if (value := _take("weeklyAmount")) is not None:
            cfg.rewards.weekly_amount = value
        if (value := _take("dateLocale")) is not None:
            cfg.shop.date_locale = value
        if (value := _take("sellingItemPercent")) is not None:
            cfg.shop.selling_item_percent = value

        error_handler = _take("errorHandler")
        if error_handler is not None:
            if not isinstance(error_handler, Mapping):
                raise InvalidArgumentError("options.errorHandler must be a mapping.")
            if "attempts" in error_handler:
                cfg.startup.attempts = error_handler["attempts"]
            if error_handler.get("time") is not None:
                cfg.startup.retry_delay_ms = error_handler["time"]

        return cfg.validate()

    def validate(self) -> EconomyConfig:
        """
        Check every setting and normalize reward amounts in place.

        Returns:
            ``self`` for chaining.

        Raises:
            InvalidArgumentError: On the first invalid setting.
        """
        if not isinstance(self.storage.path, str | Path) or not str(self.storage.path).strip():
            raise InvalidArgumentError(
                f"storage.path must be a non-empty string. Received: {self.storage.path!r}"
            )
        require_positive_int("storage.update_countdown_ms", self.storage.update_countdown_ms)
        require_positive_int("rewards.daily_cooldown_ms", self.rewards.daily_cooldown_ms)
        require_positive_int("rewards.work_cooldown_ms", self.rewards.work_cooldown_ms)
        require_positive_int("rewards.weekly_cooldown_ms", self.rewards.weekly_cooldown_ms)
        self.rewards.daily_amount = normalize_reward_amount(
            self.rewards.daily_amount, "rewards.daily_amount"
        )
        self.rewards.work_amount = normalize_reward_amount(
            self.rewards.work_amount, "rewards.work_amount"
        )
        self.rewards.weekly_amount = normalize_reward_amount(
            self.rewards.weekly_amount, "rewards.weekly_amount"
        )
        if not isinstance(self.shop.date_locale, str):
            raise InvalidArgumentError("shop.date_locale must be a string.")
        validate_percent("shop.selling_item_percent", self.shop.selling_item_percent)
        if self.startup.attempts is not None:
            require_positive_int("startup.attempts", self.startup.attempts)
        _require_non_negative_int("startup.retry_delay_ms", self.startup.retry_delay_ms)
        return self


_OPTION_KEYS = frozenset(
    {
        "storagePath",
        "updateCountdown",
        "dailyCooldown",
        "workCooldown",
        "weeklyCooldown",
        "dailyAmount",
        "workAmount",
        "weeklyAmount",
        "dateLocale",
        "sellingItemPercent",
        "errorHandler",
    }
)


# =============================================================================
# VALUE VALIDATION
# =============================================================================


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_positive_int(name: str, value: Any) -> None:
    if not _is_int(value) or value <= 0:
        raise InvalidArgumentError(f"{name} must be a positive integer. Received: {value!r}")


def _require_non_negative_int(name: str, value: Any) -> None:
    if not _is_int(value) or value < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative integer. Received: {value!r}")


def validate_percent(name: str, value: Any) -> None:
    if not _is_int(value) or not 0 <= value <= 100:
        raise InvalidArgumentError(f"{name} must be an integer in 0..100. Received: {value!r}")


def normalize_reward_amount(value: Any, name: str = "amount") -> RewardAmount:
    """
    Validate a reward specification and return its canonical form.

    - ``int`` stays as-is.
    - ``[n]`` collapses to ``n``.
    - ``[max, min]`` is reordered to ``[min, max]``.
    - Tuples are accepted and returned as lists.

    Raises:
        InvalidArgumentError: For non-integers or lists of more than 2 items.
    """
    if _is_int(value):
        return value
    if isinstance(value, list | tuple):
        items = list(value)
        if not 1 <= len(items) <= 2 or not all(_is_int(item) for item in items):
            raise InvalidArgumentError(
                f"{name} must be an integer or a [min, max] pair of integers. Received: {value!r}"
            )
        if len(items) == 1:
            return items[0]
        return sorted(items)
    raise InvalidArgumentError(
        f"{name} must be an integer or a [min, max] pair of integers. Received: {value!r}"
    )


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_amount(value: str) -> RewardAmount:
    """Parse ``"100"`` or ``"10, 50"`` into a reward specification."""
    parts = [item.strip() for item in value.split(",") if item.strip()]
    try:
        numbers = [int(part) for part in parts]
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid reward amount: {value!r}") from exc
    if len(numbers) == 1:
        return numbers[0]
    return numbers


def _parse_attempts(value: str) -> int | None:
    if value.strip().lower() in ("none", "infinite", "unbounded", ""):
        return None
    return int(value)


def _load_from_ini(parser: configparser.ConfigParser, cfg: EconomyConfig) -> None:
    """Load configuration from parsed INI file into EconomyConfig."""
    # Storage section
    if parser.has_section("storage"):
        if parser.has_option("storage", "path"):
            cfg.storage.path = parser.get("storage", "path")
        if parser.has_option("storage", "update_countdown_ms"):
            cfg.storage.update_countdown_ms = parser.getint("storage", "update_countdown_ms")

    # Rewards section
    if parser.has_section("rewards"):
        for kind in ("daily", "work", "weekly"):
            if parser.has_option("rewards", f"{kind}_cooldown_ms"):
                setattr(
                    cfg.rewards,
                    f"{kind}_cooldown_ms",
                    parser.getint("rewards", f"{kind}_cooldown_ms"),
                )
            if parser.has_option("rewards", f"{kind}_amount"):
                setattr(
                    cfg.rewards,
                    f"{kind}_amount",
                    _parse_amount(parser.get("rewards", f"{kind}_amount")),
                )

    # Shop section
    if parser.has_section("shop"):
        if parser.has_option("shop", "date_locale"):
            cfg.shop.date_locale = parser.get("shop", "date_locale")
        if parser.has_option("shop", "selling_item_percent"):
            cfg.shop.selling_item_percent = parser.getint("shop", "selling_item_percent")

    # Startup section
    if parser.has_section("startup"):
        if parser.has_option("startup", "attempts"):
            cfg.startup.attempts = _parse_attempts(parser.get("startup", "attempts"))
        if parser.has_option("startup", "retry_delay_ms"):
            cfg.startup.retry_delay_ms = parser.getint("startup", "retry_delay_ms")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: EconomyConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_path := os.getenv("ECONOMY_STORAGE_PATH"):
        cfg.storage.path = env_path
    if env_countdown := os.getenv("ECONOMY_UPDATE_COUNTDOWN_MS"):
        cfg.storage.update_countdown_ms = int(env_countdown)

    if env_daily := os.getenv("ECONOMY_DAILY_AMOUNT"):
        cfg.rewards.daily_amount = _parse_amount(env_daily)
    if env_work := os.getenv("ECONOMY_WORK_AMOUNT"):
        cfg.rewards.work_amount = _parse_amount(env_work)
    if env_weekly := os.getenv("ECONOMY_WEEKLY_AMOUNT"):
        cfg.rewards.weekly_amount = _parse_amount(env_weekly)

    if env_locale := os.getenv("ECONOMY_DATE_LOCALE"):
        cfg.shop.date_locale = env_locale

    if (env_attempts := os.getenv("ECONOMY_STARTUP_ATTEMPTS")) is not None:
        cfg.startup.attempts = _parse_attempts(env_attempts)

    if env_log := os.getenv("ECONOMY_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config() -> EconomyConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/economy.ini
        3. config/economy.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        EconomyConfig: Fully populated configuration object.
    """
    cfg = EconomyConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> EconomyConfig:
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton.  Economies that were
    already constructed keep the instance they were given.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status(cfg: EconomyConfig | None = None) -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information, useful for
    debugging and the CLI ``config`` command.
    """
    cfg = cfg or config
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "storage_path": str(cfg.storage.absolute_path),
        "update_countdown_ms": cfg.storage.update_countdown_ms,
        "daily": (cfg.rewards.daily_cooldown_ms, cfg.rewards.daily_amount),
        "work": (cfg.rewards.work_cooldown_ms, cfg.rewards.work_amount),
        "weekly": (cfg.rewards.weekly_cooldown_ms, cfg.rewards.weekly_amount),
        "date_locale": cfg.shop.date_locale,
        "startup_attempts": cfg.startup.attempts,
    }


def print_config_summary(cfg: EconomyConfig | None = None) -> None:
    """Print a summary of the given (or current) configuration to stdout."""
    status = get_config_status(cfg)
    print("\n" + "=" * 60)
    print("ECONOMY CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to economy.ini to customize)")
    print("-" * 60)
    print(f"Storage:     {status['storage_path']}")
    print(f"Health check every {status['update_countdown_ms']} ms")
    for kind in ("daily", "work", "weekly"):
        cooldown, amount = status[kind]
        print(f"{kind.capitalize():<12} cooldown={cooldown} ms amount={amount}")
    print(f"Date locale: {status['date_locale']}")
    attempts = status["startup_attempts"]
    print(f"Startup attempts: {'unbounded' if attempts is None else attempts}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_storage:
    """
    Context manager pointing the module-level config at a temporary file.

    Usage:
        from guild_ledger.config import use_test_storage

        def test_something(tmp_path):
            with use_test_storage(tmp_path / "storage.json"):
                ...

    Args:
        storage_path: Path to the test storage file
    """

    def __init__(self, storage_path: Path | str):
        self.storage_path = Path(storage_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        self.original_path = config.storage.path
        config.storage.path = str(self.storage_path)
        return self.storage_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.original_path is not None:
            config.storage.path = self.original_path
        return None
