"""Balance ledger for the ``money`` and ``bank`` fields of member records.

One :class:`BalanceLedger` instance serves one field.  The economy builds two
of them (``economy.balance`` and ``economy.bank``) over the same store and
notifier; they differ only in the field they touch and the event names they
emit.

No floor is enforced: balances may go negative.  Business rules such as
"cannot spend more than you have" belong to the host.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from guild_ledger.events import EconomyEvents
from guild_ledger.models import (
    LeaderboardEntry,
    ensure_member,
    member_ids,
    require_amount,
    require_guild_id,
    require_member_id,
)
from guild_ledger.notifier import EventNotifier
from guild_ledger.storage import RecordStore, get_path

logger = logging.getLogger(__name__)

BalanceField = Literal["money", "bank"]
Operation = Literal["set", "add", "subtract"]

_EVENTS: dict[BalanceField, dict[Operation, str]] = {
    "money": {
        "set": EconomyEvents.BALANCE_SET,
        "add": EconomyEvents.BALANCE_ADD,
        "subtract": EconomyEvents.BALANCE_SUBTRACT,
    },
    "bank": {
        "set": EconomyEvents.BANK_SET,
        "add": EconomyEvents.BANK_ADD,
        "subtract": EconomyEvents.BANK_SUBTRACT,
    },
}


def apply_operation(current: int, operation: Operation, amount: int) -> int:
    if operation == "set":
        return amount
    if operation == "add":
        return current + amount
    return current - amount


def balance_event_detail(
    operation: Operation,
    guild_id: str,
    member_id: str,
    amount: int,
    balance: int,
    reason: str | None,
) -> dict[str, Any]:
    """Payload shared by every balance and bank event."""
    return {
        "type": operation,
        "guildID": guild_id,
        "memberID": member_id,
        "amount": amount,
        "balance": balance,
        "reason": reason,
    }


class BalanceLedger:
    """Set, add to, subtract from, and rank one balance field.

    Args:
        store: Record store holding the document.
        notifier: Receives one event per committed mutation.
        field: ``"money"`` for the wallet balance, ``"bank"`` for the bank.
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: EventNotifier,
        *,
        field: BalanceField = "money",
    ) -> None:
        if field not in _EVENTS:
            raise ValueError(f"Unknown balance field: {field!r}")
        self._store = store
        self._notifier = notifier
        self._field: BalanceField = field

    @property
    def field(self) -> BalanceField:
        return self._field

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, member_id: str, guild_id: str) -> int:
        """Current value of the field; ``0`` for unknown members."""
        require_member_id(member_id)
        require_guild_id(guild_id)
        value = get_path(self._store.load(), f"{guild_id}.{member_id}.{self._field}")
        return value or 0

    def leaderboard(self, guild_id: str) -> list[LeaderboardEntry]:
        """Members of ``guild_id`` ordered by the field, highest first.

        Ties keep document order.  A guild without members yields ``[]``.
        """
        require_guild_id(guild_id)
        guild = self._store.load().get(guild_id)
        if not isinstance(guild, dict):
            return []

        rows = [(member_id, guild[member_id].get(self._field) or 0) for member_id in member_ids(guild)]
        rows.sort(key=lambda row: row[1], reverse=True)
        return [
            LeaderboardEntry(index=position, member_id=member_id, amount=amount)
            for position, (member_id, amount) in enumerate(rows, start=1)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(
        self, amount: int, member_id: str, guild_id: str, reason: str | None = None
    ) -> int:
        """Replace the field with ``amount``; returns the new value."""
        return self._mutate("set", amount, member_id, guild_id, reason)

    def add(
        self, amount: int, member_id: str, guild_id: str, reason: str | None = None
    ) -> int:
        """Add ``amount`` to the field; returns the new value."""
        return self._mutate("add", amount, member_id, guild_id, reason)

    def subtract(
        self, amount: int, member_id: str, guild_id: str, reason: str | None = None
    ) -> int:
        """Subtract ``amount`` from the field; returns the new value."""
        return self._mutate("subtract", amount, member_id, guild_id, reason)

    def _mutate(
        self,
        operation: Operation,
        amount: int,
        member_id: str,
        guild_id: str,
        reason: str | None,
    ) -> int:
        require_amount(amount)
        require_member_id(member_id)
        require_guild_id(guild_id)

        with self._store.transaction(f"{self._field}.{operation}") as doc:
            member = ensure_member(doc, guild_id, member_id)
            balance = apply_operation(member[self._field] or 0, operation, amount)
            member[self._field] = balance

        logger.debug(
            "%s %s %s for %s in %s -> %s", self._field, operation, amount, member_id, guild_id, balance
        )
        self._notifier.emit(
            _EVENTS[self._field][operation],
            balance_event_detail(operation, guild_id, member_id, amount, balance, reason),
        )
        return balance
