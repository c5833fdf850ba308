"""Record types for the stored economy document.

The JSON document uses the camelCase keys hosts already read
(``itemName``, ``maxAmount``, ``dailyCooldown``...).  The dataclasses below
are the Python view of those records: ``from_dict`` fills absent fields with
their defaults, ``to_dict`` produces the exact stored shape.

Shop item input coming from a host is validated by the pydantic model
:class:`ShopItemSpec` before anything touches the document.

Id assignment:
    Shop, inventory and history ids come from counters stored beside each
    collection (``shopCounter`` on the guild, ``inventoryCounter`` and
    ``historyCounter`` on the member).  A document written without counters
    is seeded from the highest id already present, so an id held by a
    surviving record is never issued again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from guild_ledger.errors import InvalidArgumentError

DEFAULT_ITEM_MESSAGE = "You have used this item!"
DEFAULT_ITEM_DESCRIPTION = "Very mysterious item."

# Keys of a guild record that are not member ids.
SHOP_KEY = "shop"
SETTINGS_KEY = "settings"
SHOP_COUNTER_KEY = "shopCounter"
RESERVED_GUILD_KEYS = frozenset({SHOP_KEY, SETTINGS_KEY, SHOP_COUNTER_KEY})

INVENTORY_COUNTER_KEY = "inventoryCounter"
HISTORY_COUNTER_KEY = "historyCounter"


# ============================================================================
# ARGUMENT CHECKS
# ============================================================================


def is_whole_amount(value: Any) -> bool:
    """True for ints; ``bool`` and floats are not amounts."""
    return isinstance(value, int) and not isinstance(value, bool)


def require_amount(amount: Any, name: str = "amount") -> int:
    if not is_whole_amount(amount):
        raise InvalidArgumentError(f"{name} must be an integer. Received: {amount!r}")
    return amount


def require_guild_id(guild_id: Any) -> str:
    if not isinstance(guild_id, str) or not guild_id.strip():
        raise InvalidArgumentError(f"guild_id must be a non-empty string. Received: {guild_id!r}")
    if "." in guild_id:
        raise InvalidArgumentError(f"guild_id must not contain '.'. Received: {guild_id!r}")
    return guild_id


def require_member_id(member_id: Any) -> str:
    if not isinstance(member_id, str) or not member_id.strip():
        raise InvalidArgumentError(
            f"member_id must be a non-empty string. Received: {member_id!r}"
        )
    if "." in member_id or member_id in RESERVED_GUILD_KEYS:
        raise InvalidArgumentError(f"member_id is not a valid member key: {member_id!r}")
    return member_id


def require_item_ref(item_id: Any) -> int | str:
    """Item references are ids (int or digit string) or item names."""
    if isinstance(item_id, bool) or not isinstance(item_id, int | str):
        raise InvalidArgumentError(f"item_id must be an id or a name. Received: {item_id!r}")
    if isinstance(item_id, str) and not item_id.strip():
        raise InvalidArgumentError("item_id must not be empty.")
    return item_id


# ============================================================================
# STORED RECORDS
# ============================================================================


@dataclass(frozen=True)
class ShopItem:
    """One entry of a guild's catalog."""

    id: int
    item_name: str
    price: int
    message: str = DEFAULT_ITEM_MESSAGE
    description: str = DEFAULT_ITEM_DESCRIPTION
    max_amount: int | None = None
    role: str | None = None
    date: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShopItem:
        return cls(
            id=data.get("id", 0),
            item_name=data.get("itemName", ""),
            price=data.get("price", 0),
            message=data.get("message", DEFAULT_ITEM_MESSAGE),
            description=data.get("description", DEFAULT_ITEM_DESCRIPTION),
            max_amount=data.get("maxAmount"),
            role=data.get("role"),
            date=data.get("date", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "itemName": self.item_name,
            "price": self.price,
            "message": self.message,
            "description": self.description,
            "maxAmount": self.max_amount,
            "role": self.role,
            "date": self.date,
        }


@dataclass(frozen=True)
class InventoryItem:
    """A purchased copy of a shop item held by a member.

    Every field except ``id`` and ``date`` is copied from the shop item at
    purchase time; later catalog edits do not reach items already bought.
    """

    id: int
    item_name: str
    price: int
    message: str = DEFAULT_ITEM_MESSAGE
    description: str = DEFAULT_ITEM_DESCRIPTION
    role: str | None = None
    max_amount: int | None = None
    date: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InventoryItem:
        return cls(
            id=data.get("id", 0),
            item_name=data.get("itemName", ""),
            price=data.get("price", 0),
            message=data.get("message", DEFAULT_ITEM_MESSAGE),
            description=data.get("description", DEFAULT_ITEM_DESCRIPTION),
            role=data.get("role"),
            max_amount=data.get("maxAmount"),
            date=data.get("date", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "itemName": self.item_name,
            "price": self.price,
            "message": self.message,
            "description": self.description,
            "role": self.role,
            "maxAmount": self.max_amount,
            "date": self.date,
        }


@dataclass(frozen=True)
class HistoryItem:
    """Purchase log entry."""

    id: int
    member_id: str
    guild_id: str
    item_name: str
    price: int
    role: str | None = None
    max_amount: int | None = None
    date: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryItem:
        return cls(
            id=data.get("id", 0),
            member_id=data.get("memberID", ""),
            guild_id=data.get("guildID", ""),
            item_name=data.get("itemName", ""),
            price=data.get("price", 0),
            role=data.get("role"),
            max_amount=data.get("maxAmount"),
            date=data.get("date", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "memberID": self.member_id,
            "guildID": self.guild_id,
            "itemName": self.item_name,
            "price": self.price,
            "role": self.role,
            "maxAmount": self.max_amount,
            "date": self.date,
        }


@dataclass
class MemberRecord:
    """Read-only view of one member's record with defaults applied."""

    money: int = 0
    bank: int = 0
    daily_cooldown: int | None = None
    work_cooldown: int | None = None
    weekly_cooldown: int | None = None
    inventory: list[InventoryItem] = field(default_factory=list)
    history: list[HistoryItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MemberRecord:
        data = data if isinstance(data, dict) else {}
        return cls(
            money=data.get("money") or 0,
            bank=data.get("bank") or 0,
            daily_cooldown=data.get("dailyCooldown"),
            work_cooldown=data.get("workCooldown"),
            weekly_cooldown=data.get("weeklyCooldown"),
            inventory=[InventoryItem.from_dict(item) for item in data.get("inventory") or []],
            history=[HistoryItem.from_dict(item) for item in data.get("history") or []],
        )


def _member_defaults() -> dict[str, Any]:
    return {
        "money": 0,
        "bank": 0,
        "dailyCooldown": None,
        "workCooldown": None,
        "weeklyCooldown": None,
        "inventory": [],
        "history": [],
    }


def ensure_guild(doc: dict[str, Any], guild_id: str) -> dict[str, Any]:
    """Return the guild record inside ``doc``, creating it when absent."""
    guild = doc.get(guild_id)
    if not isinstance(guild, dict):
        guild = {}
        doc[guild_id] = guild
    return guild


def ensure_member(doc: dict[str, Any], guild_id: str, member_id: str) -> dict[str, Any]:
    """Return the member record inside ``doc`` with every field present.

    Existing values (including unknown keys) are kept; missing or ``None``
    collection fields are filled with their defaults.
    """
    guild = ensure_guild(doc, guild_id)
    member = guild.get(member_id)
    if not isinstance(member, dict):
        member = {}
        guild[member_id] = member
    for key, default in _member_defaults().items():
        if member.get(key) is None:
            member[key] = default
    return member


def member_ids(guild: dict[str, Any]) -> list[str]:
    """Keys of ``guild`` that hold member records."""
    return [
        key
        for key, value in guild.items()
        if key not in RESERVED_GUILD_KEYS and isinstance(value, dict)
    ]


def next_id(container: dict[str, Any], counter_key: str, items: list[dict[str, Any]]) -> int:
    """Advance and return the id counter stored under ``counter_key``."""
    highest = max(
        (item["id"] for item in items if isinstance(item.get("id"), int)),
        default=0,
    )
    current = container.get(counter_key)
    if not isinstance(current, int) or isinstance(current, bool):
        current = 0
    issued = max(current, highest) + 1
    container[counter_key] = issued
    return issued


def find_index(items: list[dict[str, Any]], ref: int | str) -> int | None:
    """Locate an item by id first, then by the earliest matching name."""
    item_id: int | None = None
    if isinstance(ref, int):
        item_id = ref
    elif ref.isdigit():
        item_id = int(ref)

    if item_id is not None:
        for index, item in enumerate(items):
            if item.get("id") == item_id:
                return index

    name = str(ref)
    for index, item in enumerate(items):
        if item.get("itemName") == name:
            return index
    return None


# ============================================================================
# SHOP INPUT (validated at the boundary)
# ============================================================================


class ShopItemSpec(BaseModel):
    """
    Host-supplied description of a new catalog item.

    Accepts the camelCase keys hosts send (``itemName``, ``maxAmount``) as
    well as the snake_case field names.  Types are strict: ``"50"`` is not a
    price.

    Attributes:
        item_name: Display name, also usable as a lookup key
        price: Purchase price (integer)
        message: Text returned when the item is used
        description: Catalog description
        max_amount: Maximum copies one member may hold (None = unlimited)
        role: Role reference granted when the item is used
    """

    model_config = ConfigDict(strict=True, extra="forbid", populate_by_name=True)

    item_name: str = Field(alias="itemName", min_length=1)
    price: int
    message: str = DEFAULT_ITEM_MESSAGE
    description: str = DEFAULT_ITEM_DESCRIPTION
    max_amount: int | None = Field(default=None, alias="maxAmount", ge=1)
    role: str | None = None

    @classmethod
    def parse(cls, spec: ShopItemSpec | dict[str, Any]) -> ShopItemSpec:
        """Validate ``spec`` and convert pydantic errors to engine errors."""
        if isinstance(spec, cls):
            return spec
        if not isinstance(spec, dict):
            raise InvalidArgumentError(
                f"item spec must be a mapping. Received type: {type(spec).__name__}"
            )
        try:
            return cls.model_validate(spec)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid shop item: {exc}") from exc


class EditableField(str, Enum):
    """Catalog item fields that ``edit_item`` may change."""

    DESCRIPTION = "description"
    PRICE = "price"
    ITEM_NAME = "itemName"
    MESSAGE = "message"
    MAX_AMOUNT = "maxAmount"
    ROLE = "role"

    @classmethod
    def parse(cls, value: EditableField | str) -> EditableField:
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise InvalidArgumentError(
                f"field must be one of: {allowed}. Received: {value!r}"
            ) from None


def _text(field_name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(f"{field_name} must be a non-empty string. Received: {value!r}")
    return value


def _price(field_name: str, value: Any) -> int:
    return require_amount(value, field_name)


def _max_amount(field_name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentError(f"{field_name} must be a positive integer. Received: {value!r}")
    return value


FIELD_COERCERS = {
    EditableField.DESCRIPTION: _text,
    EditableField.PRICE: _price,
    EditableField.ITEM_NAME: _text,
    EditableField.MESSAGE: _text,
    EditableField.MAX_AMOUNT: _max_amount,
    EditableField.ROLE: _text,
}


def coerce_field_value(field_name: EditableField, value: Any) -> Any:
    """Validate ``value`` for ``field_name``; ``None`` is never accepted."""
    if value is None:
        raise InvalidArgumentError(f"value for {field_name.value} must be set.")
    return FIELD_COERCERS[field_name](field_name.value, value)


# ============================================================================
# OPERATION RESULTS
# ============================================================================


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of a guild leaderboard (1-based ``index``)."""

    index: int
    member_id: str
    amount: int

    def to_dict(self, field_name: str = "money") -> dict[str, Any]:
        return {"index": self.index, "userID": self.member_id, field_name: self.amount}


class BuyStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "notFound"
    MAX_AMOUNT_REACHED = "maxAmountReached"


@dataclass(frozen=True)
class BuyOutcome:
    """Result of :meth:`~guild_ledger.shop.ShopEngine.buy`.

    ``item`` is the new inventory item on success and ``None`` otherwise.
    """

    status: BuyStatus
    item: InventoryItem | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is BuyStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.succeeded
