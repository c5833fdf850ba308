"""Cooldown-gated timed rewards (daily, work, weekly).

Each (guild, member, kind) pair is either *locked* or *unlocked*:

- unlocked: no ``<kind>Cooldown`` timestamp, or it is older than the
  effective cooldown duration.
- locked: the last claim happened less than one duration ago.

The state is derived at read time from the stored timestamp and the clock;
nothing is stored when a cooldown expires.  A successful claim is the only
transition, and it credits the balance and stamps the timestamp in the same
store transaction.

Effective durations and amounts come from the guild's ``settings`` overrides
and fall back to :class:`~guild_ledger.config.EconomyConfig`.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from guild_ledger.balance import balance_event_detail
from guild_ledger.config import EconomyConfig, RewardAmount, normalize_reward_amount
from guild_ledger.errors import InvalidArgumentError
from guild_ledger.events import EconomyEvents
from guild_ledger.models import ensure_member, require_guild_id, require_member_id
from guild_ledger.notifier import EventNotifier
from guild_ledger.settings import SettingKey, effective_setting
from guild_ledger.storage import RecordStore, get_path
from guild_ledger.timeparse import Clock, TimeParts, now_ms, parse_duration, pretty_duration

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]


class RewardKind(str, Enum):
    DAILY = "daily"
    WORK = "work"
    WEEKLY = "weekly"

    @classmethod
    def parse(cls, value: RewardKind | str) -> RewardKind:
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgumentError(
                f"kind must be one of: daily, work, weekly. Received: {value!r}"
            ) from None

    @property
    def cooldown_key(self) -> str:
        """Member record field holding the last claim timestamp."""
        return f"{self.value}Cooldown"

    @property
    def default_reason(self) -> str:
        return f"claimed the {self.value} reward"


_COOLDOWN_SETTING = {
    RewardKind.DAILY: SettingKey.DAILY_COOLDOWN,
    RewardKind.WORK: SettingKey.WORK_COOLDOWN,
    RewardKind.WEEKLY: SettingKey.WEEKLY_COOLDOWN,
}
_AMOUNT_SETTING = {
    RewardKind.DAILY: SettingKey.DAILY_AMOUNT,
    RewardKind.WORK: SettingKey.WORK_AMOUNT,
    RewardKind.WEEKLY: SettingKey.WEEKLY_AMOUNT,
}


@dataclass(frozen=True)
class CooldownInfo:
    """Time left until a reward unlocks."""

    time: TimeParts
    pretty: str

    @classmethod
    def from_ms(cls, remaining_ms: int) -> CooldownInfo:
        return cls(time=parse_duration(remaining_ms), pretty=pretty_duration(remaining_ms))

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time.to_dict(), "pretty": self.pretty}


@dataclass(frozen=True)
class ClaimOutcome:
    """Result of a reward claim.

    Attributes:
        type: ``"daily"``, ``"work"``, ``"weekly"`` or ``"receive"``.
        status: ``True`` when the reward was granted.
        cooldown: Time left when locked; ``None`` on success.
        reward: Amount credited; ``None`` when locked.
        default_reward: The effective reward specification (fixed amount or
            ``[min, max]``).
    """

    type: str
    status: bool
    cooldown: CooldownInfo | None
    reward: int | None
    default_reward: RewardAmount

    def __bool__(self) -> bool:
        return self.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": self.status,
            "cooldown": self.cooldown.to_dict() if self.cooldown else None,
            "reward": self.reward,
            "defaultReward": self.default_reward,
        }


def draw_reward(spec: RewardAmount, rng: RandomSource) -> int:
    """Pick the reward for ``spec``: fixed, or uniform over ``[min, max]``."""
    spec = normalize_reward_amount(spec)
    if isinstance(spec, int):
        return spec
    low, high = spec
    return math.floor(rng() * (high - low + 1)) + low


class CooldownGate:
    """Claims timed rewards and reports cooldown state.

    Args:
        store: Record store holding the document.
        notifier: Receives ``balanceAdd`` after each granted reward.
        config: Default durations and amounts.
        rng: Callable returning a float in ``[0, 1)``; ``random.random`` by
            default.
        clock: Callable returning epoch milliseconds.
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: EventNotifier,
        config: EconomyConfig,
        *,
        rng: RandomSource | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._config = config
        self._rng = rng or random.random
        self._clock = clock or now_ms

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(
        self,
        kind: RewardKind | str,
        member_id: str,
        guild_id: str,
        reason: str | None = None,
    ) -> ClaimOutcome:
        """Grant the ``kind`` reward unless it is on cooldown."""
        kind = RewardKind.parse(kind)
        require_member_id(member_id)
        require_guild_id(guild_id)

        balance: int | None = None
        reward: int | None = None
        with self._store.transaction(f"rewards.{kind.value}") as doc:
            now = self._clock()
            duration = effective_setting(doc, guild_id, _COOLDOWN_SETTING[kind], self._config)
            spec = normalize_reward_amount(
                effective_setting(doc, guild_id, _AMOUNT_SETTING[kind], self._config)
            )
            last = get_path(doc, f"{guild_id}.{member_id}.{kind.cooldown_key}")
            remaining = _remaining_ms(duration, last, now)

            if remaining > 0:
                outcome = ClaimOutcome(
                    type=kind.value,
                    status=False,
                    cooldown=CooldownInfo.from_ms(remaining),
                    reward=None,
                    default_reward=spec,
                )
            else:
                reward = draw_reward(spec, self._rng)
                member = ensure_member(doc, guild_id, member_id)
                balance = (member["money"] or 0) + reward
                member["money"] = balance
                member[kind.cooldown_key] = now
                outcome = ClaimOutcome(
                    type=kind.value,
                    status=True,
                    cooldown=None,
                    reward=reward,
                    default_reward=spec,
                )

        if not outcome.status:
            logger.debug(
                "%s reward for %s in %s locked for %s",
                kind.value,
                member_id,
                guild_id,
                outcome.cooldown.pretty if outcome.cooldown else "?",
            )
            return outcome

        logger.debug("%s reward of %s granted to %s in %s", kind.value, reward, member_id, guild_id)
        self._notifier.emit(
            EconomyEvents.BALANCE_ADD,
            balance_event_detail(
                "add", guild_id, member_id, reward, balance, reason or kind.default_reason
            ),
        )
        return outcome

    def daily(self, member_id: str, guild_id: str, reason: str | None = None) -> ClaimOutcome:
        return self.claim(RewardKind.DAILY, member_id, guild_id, reason)

    def work(self, member_id: str, guild_id: str, reason: str | None = None) -> ClaimOutcome:
        return self.claim(RewardKind.WORK, member_id, guild_id, reason)

    def weekly(self, member_id: str, guild_id: str, reason: str | None = None) -> ClaimOutcome:
        return self.claim(RewardKind.WEEKLY, member_id, guild_id, reason)

    def receive(
        self,
        reward: RewardAmount,
        member_id: str,
        guild_id: str,
        reason: str | None = None,
    ) -> ClaimOutcome:
        """Credit a fixed or ranged reward without touching any cooldown."""
        spec = normalize_reward_amount(reward, "reward")
        require_member_id(member_id)
        require_guild_id(guild_id)

        amount = draw_reward(spec, self._rng)
        with self._store.transaction("rewards.receive") as doc:
            member = ensure_member(doc, guild_id, member_id)
            balance = (member["money"] or 0) + amount
            member["money"] = balance

        self._notifier.emit(
            EconomyEvents.BALANCE_ADD,
            balance_event_detail("add", guild_id, member_id, amount, balance, reason),
        )
        return ClaimOutcome(
            type="receive", status=True, cooldown=None, reward=amount, default_reward=spec
        )

    # ------------------------------------------------------------------
    # Cooldown state
    # ------------------------------------------------------------------

    def get_cooldown(self, kind: RewardKind | str, member_id: str, guild_id: str) -> int | None:
        """Epoch milliseconds of the last successful claim, or ``None``."""
        kind = RewardKind.parse(kind)
        require_member_id(member_id)
        require_guild_id(guild_id)
        return get_path(self._store.load(), f"{guild_id}.{member_id}.{kind.cooldown_key}")

    def remaining(self, kind: RewardKind | str, member_id: str, guild_id: str) -> int:
        """Milliseconds until ``kind`` unlocks; ``0`` when claimable."""
        kind = RewardKind.parse(kind)
        require_member_id(member_id)
        require_guild_id(guild_id)
        doc = self._store.load()
        duration = effective_setting(doc, guild_id, _COOLDOWN_SETTING[kind], self._config)
        last = get_path(doc, f"{guild_id}.{member_id}.{kind.cooldown_key}")
        return max(0, _remaining_ms(duration, last, self._clock()))

    def get_cooldowns(self, member_id: str, guild_id: str) -> dict[str, CooldownInfo | None]:
        """Lock state of every kind; ``None`` marks an unlocked reward."""
        result: dict[str, CooldownInfo | None] = {}
        for kind in RewardKind:
            left = self.remaining(kind, member_id, guild_id)
            result[kind.value] = CooldownInfo.from_ms(left) if left > 0 else None
        return result


def _remaining_ms(duration: int, last: Any, now: int) -> int:
    if last is None:
        return 0
    return duration - (now - last)
