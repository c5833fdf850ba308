"""Composition root of the economy engine.

:class:`Economy` owns one :class:`~guild_ledger.storage.RecordStore`, one
:class:`~guild_ledger.notifier.EventNotifier` and the components built over
them.  Hosts create one instance per storage file::

    from guild_ledger import Economy, EconomyConfig

    economy = Economy(EconomyConfig.from_options({"storagePath": "./eco.json"}))
    economy.start()
    economy.balance.add(50, "member-1", "guild-1")
    economy.close()

Readiness
---------
Components are only handed out once :meth:`Economy.init` has checked the
storage file.  Until then every component accessor raises
:exc:`~guild_ledger.errors.NotReadyError`.  :meth:`Economy.start` wraps
``init`` in the configured retry policy; after the final failed attempt the
economy is marked ``errored`` and the last exception propagates.
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable
from typing import Any

import guild_ledger.config as config_module
from guild_ledger.balance import BalanceLedger
from guild_ledger.config import EconomyConfig
from guild_ledger.errors import CorruptStorageError, EconomyError, NotReadyError
from guild_ledger.notifier import EventHandler, EventNotifier, Unsubscribe
from guild_ledger.rewards import CooldownGate, RandomSource
from guild_ledger.settings import GuildSettings
from guild_ledger.shop import ShopEngine
from guild_ledger.storage import RecordStore
from guild_ledger.timeparse import Clock

logger = logging.getLogger(__name__)


class Economy:
    """One storage file plus the ledger, rewards, shop and settings over it.

    Args:
        config: Engine configuration.  ``None`` uses a copy of the loaded
            :data:`guild_ledger.config.config` (INI files plus ``ECONOMY_*``
            environment variables).
        notifier: Observer registry; a fresh one is created when omitted.
        rng: Random source for ranged rewards.
        clock: Epoch-millisecond clock for cooldowns and item dates.
        sleep: Used between startup attempts (seconds).
    """

    def __init__(
        self,
        config: EconomyConfig | None = None,
        *,
        notifier: EventNotifier | None = None,
        rng: RandomSource | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or copy.deepcopy(config_module.config)
        self.notifier = notifier or EventNotifier()
        self.ready = False
        self.errored = False
        self.last_error: BaseException | None = None

        self._rng = rng
        self._clock = clock
        self._sleep = sleep
        self._store: RecordStore | None = None
        self._balance: BalanceLedger | None = None
        self._bank: BalanceLedger | None = None
        self._rewards: CooldownGate | None = None
        self._shop: ShopEngine | None = None
        self._settings: GuildSettings | None = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def init(self) -> None:
        """Validate the configuration, check the storage file, build components.

        Raises:
            InvalidArgumentError: Invalid configuration.
            CorruptStorageError: The storage file cannot be parsed.
            StorageError: The storage file cannot be read or created.
        """
        self.config.validate()
        if self._store is not None:
            self._store.stop_watcher()
            self.ready = False
        store = RecordStore(
            self.config.storage.path,
            update_countdown_ms=self.config.storage.update_countdown_ms,
            on_corrupt=self._on_corrupt,
        )
        store.check_health()

        self._store = store
        self._balance = BalanceLedger(store, self.notifier, field="money")
        self._bank = BalanceLedger(store, self.notifier, field="bank")
        self._rewards = CooldownGate(
            store, self.notifier, self.config, rng=self._rng, clock=self._clock
        )
        self._shop = ShopEngine(store, self.notifier, self.config, clock=self._clock)
        self._settings = GuildSettings(store)

        store.start_watcher()
        self.ready = True
        self.errored = False
        logger.info("Economy ready (storage: %s)", store.path)

    def start(self) -> Economy:
        """Run :meth:`init` under the startup retry policy.

        Returns:
            ``self`` once ready.

        Raises:
            EconomyError: The error of the final failed attempt.
        """
        attempts = self.config.startup.attempts
        delay_s = self.config.startup.retry_delay_ms / 1000.0
        attempt = 0
        while True:
            attempt += 1
            try:
                self.init()
                return self
            except EconomyError as exc:
                self.last_error = exc
                limit = "unbounded" if attempts is None else attempts
                logger.error("Failed to start the economy (attempt %d/%s): %s", attempt, limit, exc)
                if attempts is not None and attempt >= attempts:
                    self.errored = True
                    logger.error("Economy startup failed after %d attempts", attempt)
                    raise
            self._sleep(delay_s)

    def close(self) -> None:
        """Stop the storage watcher.  Components become unavailable."""
        if self._store is not None:
            self._store.stop_watcher()
        self.ready = False

    def __enter__(self) -> Economy:
        return self.start()

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _on_corrupt(self, error: CorruptStorageError) -> None:
        self.last_error = error

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    def _require_ready(self) -> None:
        if not self.ready:
            raise NotReadyError()

    @property
    def store(self) -> RecordStore:
        self._require_ready()
        assert self._store is not None
        return self._store

    @property
    def balance(self) -> BalanceLedger:
        self._require_ready()
        assert self._balance is not None
        return self._balance

    @property
    def bank(self) -> BalanceLedger:
        self._require_ready()
        assert self._bank is not None
        return self._bank

    @property
    def rewards(self) -> CooldownGate:
        self._require_ready()
        assert self._rewards is not None
        return self._rewards

    @property
    def shop(self) -> ShopEngine:
        self._require_ready()
        assert self._shop is not None
        return self._shop

    @property
    def settings(self) -> GuildSettings:
        self._require_ready()
        assert self._settings is not None
        return self._settings

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        return self.notifier.on(event_type, handler)

    def once(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        return self.notifier.once(event_type, handler)

    def off(self, event_type: str, handler: EventHandler) -> bool:
        return self.notifier.off(event_type, handler)
