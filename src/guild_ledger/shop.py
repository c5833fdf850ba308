"""Shop engine: guild catalogs, member inventories and purchase history.

Every mutation below is one :meth:`RecordStore.transaction`: the catalog,
the inventory, the history and the balance change together in a single write,
and the notifier hears about it only after that write committed.

Item lookup
-----------
Items are addressed by id or by name.  An ``int`` (or a string of digits) is
tried as an id first; when no id matches, the earliest item whose
``itemName`` equals the reference wins.  Duplicate names therefore always
resolve to the oldest entry.

Role grants
-----------
``use_item`` removes the inventory item first and only then calls the
host's ``grant_role(guild_id, member_id, role)`` capability.  A failing grant
is logged as :exc:`~guild_ledger.errors.ExternalCollaboratorError`; the
item stays consumed.
"""

from __future__ import annotations

import builtins
import logging
import math
from collections.abc import Callable
from typing import Any

from guild_ledger.balance import balance_event_detail
from guild_ledger.config import EconomyConfig
from guild_ledger.errors import ExternalCollaboratorError
from guild_ledger.events import EconomyEvents
from guild_ledger.models import (
    HISTORY_COUNTER_KEY,
    INVENTORY_COUNTER_KEY,
    SHOP_COUNTER_KEY,
    SHOP_KEY,
    BuyOutcome,
    BuyStatus,
    EditableField,
    HistoryItem,
    InventoryItem,
    ShopItem,
    ShopItemSpec,
    coerce_field_value,
    ensure_guild,
    ensure_member,
    find_index,
    next_id,
    require_guild_id,
    require_item_ref,
    require_member_id,
)
from guild_ledger.notifier import EventNotifier
from guild_ledger.settings import SettingKey, effective_setting
from guild_ledger.storage import RecordStore, get_path
from guild_ledger.timeparse import Clock, format_timestamp, now_ms

logger = logging.getLogger(__name__)

RoleGranter = Callable[[str, str, str], bool]

BUY_REASON = "received the item from the shop"
SELL_REASON = "sold the item to the shop"


def _catalog(guild: dict[str, Any]) -> builtins.list[dict[str, Any]]:
    shop = guild.get(SHOP_KEY)
    if not isinstance(shop, builtins.list):
        shop = []
        guild[SHOP_KEY] = shop
    return shop


class ShopEngine:
    """Catalog, purchase, use and resale of items within guilds.

    Args:
        store: Record store holding the document.
        notifier: Receives shop and balance events after each commit.
        config: Supplies the date locale and the default selling percent.
        clock: Callable returning epoch milliseconds, used for item dates.
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: EventNotifier,
        config: EconomyConfig,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._config = config
        self._clock = clock or now_ms

    def _date(self) -> str:
        return format_timestamp(self._clock(), self._config.shop.date_locale)

    # =========================================================================
    # CATALOG
    # =========================================================================

    def add_item(self, guild_id: str, spec: ShopItemSpec | dict[str, Any]) -> ShopItem:
        """Validate ``spec`` and append it to the guild's catalog.

        Raises:
            InvalidArgumentError: If ``spec`` is missing fields or has wrong types.
        """
        require_guild_id(guild_id)
        parsed = ShopItemSpec.parse(spec)

        with self._store.transaction("shop.add_item") as doc:
            guild = ensure_guild(doc, guild_id)
            shop = _catalog(guild)
            item = ShopItem(
                id=next_id(guild, SHOP_COUNTER_KEY, shop),
                item_name=parsed.item_name,
                price=parsed.price,
                message=parsed.message,
                description=parsed.description,
                max_amount=parsed.max_amount,
                role=parsed.role,
                date=self._date(),
            )
            shop.append(item.to_dict())

        logger.debug("Added item %s (%r) to shop of %s", item.id, item.item_name, guild_id)
        self._notifier.emit(EconomyEvents.SHOP_ADD_ITEM, item.to_dict())
        return item

    def edit_item(
        self,
        item_id: int | str,
        guild_id: str,
        field: EditableField | str,
        value: Any,
    ) -> bool:
        """Change one field of a catalog item; ``False`` if the item is absent."""
        require_item_ref(item_id)
        require_guild_id(guild_id)
        editable = EditableField.parse(field)
        new_value = coerce_field_value(editable, value)

        old_value: Any = None
        found = False
        with self._store.transaction("shop.edit_item") as doc:
            shop = get_path(doc, f"{guild_id}.{SHOP_KEY}") or []
            index = find_index(shop, item_id)
            if index is not None:
                found = True
                old_value = shop[index].get(editable.value)
                shop[index][editable.value] = new_value

        if not found:
            return False

        self._notifier.emit(
            EconomyEvents.SHOP_EDIT_ITEM,
            {
                "itemID": item_id,
                "guildID": guild_id,
                "changed": editable.value,
                "oldValue": old_value,
                "newValue": new_value,
            },
        )
        return True

    def remove_item(self, item_id: int | str, guild_id: str) -> bool:
        """Remove an item from the catalog.  Other ids are not renumbered."""
        require_item_ref(item_id)
        require_guild_id(guild_id)

        removed: dict[str, Any] | None = None
        with self._store.transaction("shop.remove_item") as doc:
            shop = get_path(doc, f"{guild_id}.{SHOP_KEY}") or []
            index = find_index(shop, item_id)
            if index is not None:
                removed = shop.pop(index)

        if removed is None:
            return False
        self._notifier.emit(EconomyEvents.SHOP_REMOVE_ITEM, ShopItem.from_dict(removed).to_dict())
        return True

    def clear(self, guild_id: str) -> bool:
        """Empty the catalog.  Returns (and emits) ``False`` if already empty."""
        require_guild_id(guild_id)

        with self._store.transaction("shop.clear") as doc:
            shop = get_path(doc, f"{guild_id}.{SHOP_KEY}")
            had_items = bool(shop)
            if had_items:
                doc[guild_id][SHOP_KEY] = []

        self._notifier.emit(EconomyEvents.SHOP_CLEAR, had_items)
        return had_items

    def list(self, guild_id: str) -> builtins.list[ShopItem]:
        """The guild's catalog in insertion order."""
        require_guild_id(guild_id)
        shop = get_path(self._store.load(), f"{guild_id}.{SHOP_KEY}") or []
        return [ShopItem.from_dict(item) for item in shop]

    def search_item(self, item_id: int | str, guild_id: str) -> ShopItem | None:
        """Look up one catalog item; ``None`` when absent."""
        require_item_ref(item_id)
        require_guild_id(guild_id)
        shop = get_path(self._store.load(), f"{guild_id}.{SHOP_KEY}") or []
        index = find_index(shop, item_id)
        return ShopItem.from_dict(shop[index]) if index is not None else None

    # =========================================================================
    # PURCHASES
    # =========================================================================

    def buy(
        self,
        item_id: int | str,
        member_id: str,
        guild_id: str,
        reason: str | None = None,
    ) -> BuyOutcome:
        """Buy a catalog item for ``member_id``.

        One write appends the inventory item, appends the history entry and
        debits the price.  The balance may go negative.

        Returns:
            ``BuyOutcome`` with ``SUCCESS`` and the new inventory item,
            ``NOT_FOUND``, or ``MAX_AMOUNT_REACHED`` (nothing changed).
        """
        require_item_ref(item_id)
        require_member_id(member_id)
        require_guild_id(guild_id)

        bought: InventoryItem | None = None
        balance: int = 0
        with self._store.transaction("shop.buy") as doc:
            shop = get_path(doc, f"{guild_id}.{SHOP_KEY}") or []
            index = find_index(shop, item_id)
            if index is None:
                return BuyOutcome(BuyStatus.NOT_FOUND)
            item = ShopItem.from_dict(shop[index])

            held = get_path(doc, f"{guild_id}.{member_id}.inventory") or []
            if item.max_amount:
                copies = sum(1 for entry in held if entry.get("itemName") == item.item_name)
                if copies >= item.max_amount:
                    return BuyOutcome(BuyStatus.MAX_AMOUNT_REACHED)

            member = ensure_member(doc, guild_id, member_id)
            date = self._date()
            bought = InventoryItem(
                id=next_id(member, INVENTORY_COUNTER_KEY, member["inventory"]),
                item_name=item.item_name,
                price=item.price,
                message=item.message,
                description=item.description,
                role=item.role,
                max_amount=item.max_amount,
                date=date,
            )
            member["inventory"].append(bought.to_dict())
            member["history"].append(
                HistoryItem(
                    id=next_id(member, HISTORY_COUNTER_KEY, member["history"]),
                    member_id=member_id,
                    guild_id=guild_id,
                    item_name=item.item_name,
                    price=item.price,
                    role=item.role,
                    max_amount=item.max_amount,
                    date=date,
                ).to_dict()
            )
            balance = (member["money"] or 0) - item.price
            member["money"] = balance

        logger.debug("%s in %s bought %r for %s", member_id, guild_id, bought.item_name, bought.price)
        self._notifier.emit(EconomyEvents.SHOP_ITEM_BUY, bought.to_dict())
        self._notifier.emit(
            EconomyEvents.BALANCE_SUBTRACT,
            balance_event_detail(
                "subtract", guild_id, member_id, bought.price, balance, reason or BUY_REASON
            ),
        )
        return BuyOutcome(BuyStatus.SUCCESS, bought)

    # =========================================================================
    # INVENTORY
    # =========================================================================

    def inventory(self, member_id: str, guild_id: str) -> builtins.list[InventoryItem]:
        require_member_id(member_id)
        require_guild_id(guild_id)
        items = get_path(self._store.load(), f"{guild_id}.{member_id}.inventory") or []
        return [InventoryItem.from_dict(item) for item in items]

    def inventory_item(
        self, item_id: int | str, member_id: str, guild_id: str
    ) -> InventoryItem | None:
        """One item of a member's inventory; ``None`` when absent."""
        require_item_ref(item_id)
        require_member_id(member_id)
        require_guild_id(guild_id)
        items = get_path(self._store.load(), f"{guild_id}.{member_id}.inventory") or []
        index = find_index(items, item_id)
        return InventoryItem.from_dict(items[index]) if index is not None else None

    def history(self, member_id: str, guild_id: str) -> builtins.list[HistoryItem]:
        require_member_id(member_id)
        require_guild_id(guild_id)
        items = get_path(self._store.load(), f"{guild_id}.{member_id}.history") or []
        return [HistoryItem.from_dict(item) for item in items]

    def use_item(
        self,
        item_id: int | str,
        member_id: str,
        guild_id: str,
        grant_role: RoleGranter | None = None,
    ) -> str | None:
        """Consume an inventory item and return its message.

        Args:
            grant_role: Host capability called as
                ``grant_role(guild_id, member_id, role)`` after the removal
                has been written, only for items that carry a role.

        Returns:
            The item's message, or ``None`` if the member does not hold it.
        """
        require_item_ref(item_id)
        require_member_id(member_id)
        require_guild_id(guild_id)

        used: InventoryItem | None = None
        with self._store.transaction("shop.use_item") as doc:
            items = get_path(doc, f"{guild_id}.{member_id}.inventory") or []
            index = find_index(items, item_id)
            if index is not None:
                used = InventoryItem.from_dict(items.pop(index))

        if used is None:
            return None

        self._notifier.emit(EconomyEvents.SHOP_ITEM_USE, used.to_dict())
        if used.role:
            self._grant_role(grant_role, guild_id, member_id, used.role)
        return used.message

    def _grant_role(
        self, grant_role: RoleGranter | None, guild_id: str, member_id: str, role: str
    ) -> None:
        if grant_role is None:
            logger.warning(
                "Item with role %s used by %s in %s but no role granter was given",
                role,
                member_id,
                guild_id,
            )
            return
        try:
            granted = grant_role(guild_id, member_id, role)
        except Exception as exc:
            error = ExternalCollaboratorError(f"Granting role {role} to {member_id} raised: {exc}")
            logger.error("%s", error, exc_info=True)
            return
        if not granted:
            error = ExternalCollaboratorError(f"Granting role {role} to {member_id} failed")
            logger.error("%s", error)

    def remove_inventory_item(self, item_id: int | str, member_id: str, guild_id: str) -> bool:
        """Drop an inventory item without using or selling it."""
        require_item_ref(item_id)
        require_member_id(member_id)
        require_guild_id(guild_id)

        with self._store.transaction("shop.remove_inventory_item") as doc:
            items = get_path(doc, f"{guild_id}.{member_id}.inventory") or []
            index = find_index(items, item_id)
            if index is not None:
                items.pop(index)
        return index is not None

    def sell(
        self,
        item_id: int | str,
        member_id: str,
        guild_id: str,
        reason: str | None = None,
    ) -> int | None:
        """Sell an inventory item back for a percentage of its price.

        The selling price is ``floor(price * percent / 100)`` where
        ``percent`` is the guild's ``sellingItemPercent`` override or the
        configured default.

        Returns:
            The amount credited, or ``None`` if the member does not hold it.
        """
        require_item_ref(item_id)
        require_member_id(member_id)
        require_guild_id(guild_id)

        sold: InventoryItem | None = None
        selling_price = 0
        balance: int = 0
        with self._store.transaction("shop.sell") as doc:
            items = get_path(doc, f"{guild_id}.{member_id}.inventory") or []
            index = find_index(items, item_id)
            if index is None:
                return None
            percent = effective_setting(
                doc, guild_id, SettingKey.SELLING_ITEM_PERCENT, self._config
            )
            sold = InventoryItem.from_dict(items.pop(index))
            selling_price = math.floor(sold.price * percent / 100)
            member = ensure_member(doc, guild_id, member_id)
            balance = (member["money"] or 0) + selling_price
            member["money"] = balance

        self._notifier.emit(
            EconomyEvents.SHOP_ITEM_SELL,
            {
                "guildID": guild_id,
                "memberID": member_id,
                "item": sold.to_dict(),
                "sellingPrice": selling_price,
            },
        )
        self._notifier.emit(
            EconomyEvents.BALANCE_ADD,
            balance_event_detail(
                "add", guild_id, member_id, selling_price, balance, reason or SELL_REASON
            ),
        )
        return selling_price

    def clear_inventory(self, member_id: str, guild_id: str) -> bool:
        """Empty the member's inventory, keeping every other field."""
        return self._clear_member_list("inventory", member_id, guild_id)

    def clear_history(self, member_id: str, guild_id: str) -> bool:
        """Empty the member's purchase history, keeping every other field."""
        return self._clear_member_list("history", member_id, guild_id)

    def _clear_member_list(self, key: str, member_id: str, guild_id: str) -> bool:
        require_member_id(member_id)
        require_guild_id(guild_id)
        with self._store.transaction(f"shop.clear_{key}") as doc:
            member = ensure_member(doc, guild_id, member_id)
            member[key] = []
        return True

