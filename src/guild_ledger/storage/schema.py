"""Shape of the stored economy document.

Every read checks the parsed JSON against these models before any engine
operation sees it.  Only the types of fields that are present are checked:
absent fields are filled with defaults later by :mod:`guild_ledger.models`,
and unknown keys are carried through untouched.

A hand-edited file such as ``{"g1": {"shop": "oops"}}`` therefore fails at
load time as a corrupt document instead of surfacing as a ``TypeError`` in
the middle of a purchase.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from guild_ledger.models import RESERVED_GUILD_KEYS


class _StoredRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class StoredItem(_StoredRecord):
    """Catalog, inventory or history entry."""

    id: StrictInt | None = None
    item_name: StrictStr | None = Field(default=None, alias="itemName")
    price: StrictInt | None = None
    message: StrictStr | None = None
    description: StrictStr | None = None
    max_amount: StrictInt | None = Field(default=None, alias="maxAmount")
    role: StrictStr | None = None
    date: StrictStr | None = None
    member_id: StrictStr | None = Field(default=None, alias="memberID")
    guild_id: StrictStr | None = Field(default=None, alias="guildID")


class StoredMember(_StoredRecord):
    money: StrictInt | None = None
    bank: StrictInt | None = None
    daily_cooldown: StrictInt | None = Field(default=None, alias="dailyCooldown")
    work_cooldown: StrictInt | None = Field(default=None, alias="workCooldown")
    weekly_cooldown: StrictInt | None = Field(default=None, alias="weeklyCooldown")
    inventory: list[StoredItem] | None = None
    history: list[StoredItem] | None = None
    inventory_counter: StrictInt | None = Field(default=None, alias="inventoryCounter")
    history_counter: StrictInt | None = Field(default=None, alias="historyCounter")


class StoredSettings(_StoredRecord):
    daily_cooldown: StrictInt | None = Field(default=None, alias="dailyCooldown")
    work_cooldown: StrictInt | None = Field(default=None, alias="workCooldown")
    weekly_cooldown: StrictInt | None = Field(default=None, alias="weeklyCooldown")
    daily_amount: StrictInt | list[StrictInt] | None = Field(default=None, alias="dailyAmount")
    work_amount: StrictInt | list[StrictInt] | None = Field(default=None, alias="workAmount")
    weekly_amount: StrictInt | list[StrictInt] | None = Field(default=None, alias="weeklyAmount")
    selling_item_percent: StrictInt | None = Field(default=None, alias="sellingItemPercent")


class StoredGuildFields(_StoredRecord):
    """The non-member keys of a guild record."""

    shop: list[StoredItem] | None = None
    settings: StoredSettings | None = None
    shop_counter: StrictInt | None = Field(default=None, alias="shopCounter")


def validate_document(doc: dict[str, Any]) -> None:
    """Check every guild and member record of ``doc``.

    Raises:
        ValueError: Naming the first record with the wrong shape.  pydantic's
            ``ValidationError`` is chained as the cause when it applies.
    """
    for guild_id, guild in doc.items():
        if not isinstance(guild, dict):
            raise ValueError(
                f"guild {guild_id!r} must be an object, found {type(guild).__name__}"
            )
        reserved = {key: guild[key] for key in RESERVED_GUILD_KEYS if key in guild}
        try:
            StoredGuildFields.model_validate(reserved)
        except ValidationError as exc:
            raise ValueError(f"guild {guild_id!r}: {exc}") from exc

        for member_id, member in guild.items():
            if member_id in RESERVED_GUILD_KEYS:
                continue
            try:
                StoredMember.model_validate(member)
            except ValidationError as exc:
                raise ValueError(f"member {guild_id}.{member_id}: {exc}") from exc
