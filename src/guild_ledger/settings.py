"""Per-guild overrides of the global reward and shop configuration.

Overrides live in the document under ``<guildID>.settings``.  A present,
truthy override wins over the configured default; removing it falls back to
the configuration again.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from guild_ledger.config import (
    EconomyConfig,
    normalize_reward_amount,
    require_positive_int,
    validate_percent,
)
from guild_ledger.errors import InvalidArgumentError
from guild_ledger.models import SETTINGS_KEY, ensure_guild, require_guild_id
from guild_ledger.storage import RecordStore, delete_path, get_path

logger = logging.getLogger(__name__)


class SettingKey(str, Enum):
    DAILY_COOLDOWN = "dailyCooldown"
    WORK_COOLDOWN = "workCooldown"
    WEEKLY_COOLDOWN = "weeklyCooldown"
    DAILY_AMOUNT = "dailyAmount"
    WORK_AMOUNT = "workAmount"
    WEEKLY_AMOUNT = "weeklyAmount"
    SELLING_ITEM_PERCENT = "sellingItemPercent"

    @classmethod
    def parse(cls, value: SettingKey | str) -> SettingKey:
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise InvalidArgumentError(
                f"setting must be one of: {allowed}. Received: {value!r}"
            ) from None


_COOLDOWNS = {SettingKey.DAILY_COOLDOWN, SettingKey.WORK_COOLDOWN, SettingKey.WEEKLY_COOLDOWN}
_AMOUNTS = {SettingKey.DAILY_AMOUNT, SettingKey.WORK_AMOUNT, SettingKey.WEEKLY_AMOUNT}


def validate_setting(key: SettingKey, value: Any) -> Any:
    """Return the canonical stored form of ``value`` for ``key``."""
    if key in _COOLDOWNS:
        require_positive_int(key.value, value)
        return value
    if key in _AMOUNTS:
        return normalize_reward_amount(value, key.value)
    validate_percent(key.value, value)
    return value


def read_guild_settings(doc: dict[str, Any], guild_id: str) -> dict[str, Any]:
    """Settings mapping of ``guild_id`` in a loaded snapshot (``{}`` if none)."""
    settings = get_path(doc, f"{guild_id}.{SETTINGS_KEY}")
    return settings if isinstance(settings, dict) else {}


def effective_setting(
    doc: dict[str, Any], guild_id: str, key: SettingKey, cfg: EconomyConfig
) -> Any:
    """Guild override when present and truthy, configured default otherwise."""
    override = read_guild_settings(doc, guild_id).get(key.value)
    if override:
        return override
    return _config_default(cfg, key)


def _config_default(cfg: EconomyConfig, key: SettingKey) -> Any:
    return {
        SettingKey.DAILY_COOLDOWN: cfg.rewards.daily_cooldown_ms,
        SettingKey.WORK_COOLDOWN: cfg.rewards.work_cooldown_ms,
        SettingKey.WEEKLY_COOLDOWN: cfg.rewards.weekly_cooldown_ms,
        SettingKey.DAILY_AMOUNT: cfg.rewards.daily_amount,
        SettingKey.WORK_AMOUNT: cfg.rewards.work_amount,
        SettingKey.WEEKLY_AMOUNT: cfg.rewards.weekly_amount,
        SettingKey.SELLING_ITEM_PERCENT: cfg.shop.selling_item_percent,
    }[key]


class GuildSettings:
    """Read and write the ``settings`` mapping of each guild."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def get(self, guild_id: str, key: SettingKey | str | None = None) -> Any:
        """Return one override (``None`` if unset) or the whole mapping."""
        require_guild_id(guild_id)
        settings = read_guild_settings(self._store.load(), guild_id)
        if key is None:
            return dict(settings)
        return settings.get(SettingKey.parse(key).value)

    def set(self, guild_id: str, key: SettingKey | str, value: Any) -> Any:
        """Store an override and return its canonical value."""
        require_guild_id(guild_id)
        setting = SettingKey.parse(key)
        canonical = validate_setting(setting, value)
        with self._store.transaction("settings.set") as doc:
            guild = ensure_guild(doc, guild_id)
            guild.setdefault(SETTINGS_KEY, {})[setting.value] = canonical
        logger.debug("Guild %s setting %s = %r", guild_id, setting.value, canonical)
        return canonical

    def remove(self, guild_id: str, key: SettingKey | str) -> bool:
        """Drop one override; ``False`` when it was not set."""
        require_guild_id(guild_id)
        setting = SettingKey.parse(key)
        with self._store.transaction("settings.remove") as doc:
            removed = delete_path(doc, f"{guild_id}.{SETTINGS_KEY}.{setting.value}")
        return removed

    def reset(self, guild_id: str) -> bool:
        """Drop every override of ``guild_id``; ``False`` when there were none."""
        require_guild_id(guild_id)
        with self._store.transaction("settings.reset") as doc:
            removed = delete_path(doc, f"{guild_id}.{SETTINGS_KEY}")
        return removed
