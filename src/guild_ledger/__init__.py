"""Guild Ledger: a file-backed per-guild, per-member economy engine.

Tracks balances, bank balances, reward cooldowns, inventories, purchase
history and shop catalogs for a chat-bot host, in one JSON document.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from guild_ledger.balance import BalanceLedger
from guild_ledger.config import EconomyConfig
from guild_ledger.economy import Economy
from guild_ledger.errors import (
    CorruptStorageError,
    EconomyError,
    ExternalCollaboratorError,
    InvalidArgumentError,
    NotReadyError,
    StorageError,
    StorageWriteError,
)
from guild_ledger.events import EconomyEvents
from guild_ledger.models import BuyOutcome, BuyStatus, EditableField, ShopItemSpec
from guild_ledger.notifier import EconomyEvent, EventNotifier
from guild_ledger.rewards import ClaimOutcome, CooldownGate, RewardKind
from guild_ledger.settings import GuildSettings, SettingKey
from guild_ledger.shop import ShopEngine
from guild_ledger.storage import RecordStore

try:
    __version__: str = version("guild-ledger")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "BalanceLedger",
    "BuyOutcome",
    "BuyStatus",
    "ClaimOutcome",
    "CooldownGate",
    "CorruptStorageError",
    "Economy",
    "EconomyConfig",
    "EconomyError",
    "EconomyEvent",
    "EconomyEvents",
    "EditableField",
    "EventNotifier",
    "ExternalCollaboratorError",
    "GuildSettings",
    "InvalidArgumentError",
    "NotReadyError",
    "RecordStore",
    "RewardKind",
    "SettingKey",
    "ShopEngine",
    "ShopItemSpec",
    "StorageError",
    "StorageWriteError",
    "__version__",
]
