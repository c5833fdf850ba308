"""
Event Type Constants for the Economy Engine

This module defines every notification the engine emits to its host.
Using constants instead of string literals provides:

1. Autocomplete support in IDEs
2. Typo prevention (undefined constant = error)
3. Single source of truth for event names

=============================================================================
NAMING CONVENTION
=============================================================================

Event names are the camelCase names hosts already subscribe to
("balanceAdd", "shopItemBuy", ...).  Every event is emitted AFTER the
mutation it describes has been written to disk: handlers observe facts,
they cannot veto them.

=============================================================================
USAGE
=============================================================================

    from guild_ledger.events import EconomyEvents

    economy.on(EconomyEvents.BALANCE_ADD, handle_balance_add)

=============================================================================
"""


class EconomyEvents:
    """
    All notification types emitted by the engine.

    Organized by domain for easy navigation.
    """

    # =========================================================================
    # BALANCE
    # =========================================================================

    BALANCE_SET = "balanceSet"
    """
    Emitted after a member's balance was replaced.

    Detail: {
        "type": "set",
        "guildID": str,
        "memberID": str,
        "amount": int,
        "balance": int,   # balance after the write
        "reason": str | None
    }
    """

    BALANCE_ADD = "balanceAdd"
    """
    Emitted after money was added to a member's balance (including rewards
    and item sales).

    Detail: same shape as BALANCE_SET with "type": "add"
    """

    BALANCE_SUBTRACT = "balanceSubtract"
    """
    Emitted after money was subtracted from a member's balance (including
    shop purchases).

    Detail: same shape as BALANCE_SET with "type": "subtract"
    """

    # =========================================================================
    # BANK
    # =========================================================================

    BANK_SET = "bankSet"
    """Detail: same shape as BALANCE_SET, describing the bank balance."""

    BANK_ADD = "bankAdd"
    """Detail: same shape as BALANCE_ADD, describing the bank balance."""

    BANK_SUBTRACT = "bankSubtract"
    """Detail: same shape as BALANCE_SUBTRACT, describing the bank balance."""

    # =========================================================================
    # SHOP
    # =========================================================================

    SHOP_ADD_ITEM = "shopAddItem"
    """
    Emitted after an item was added to a guild's catalog.

    Detail: the stored shop item dict
    """

    SHOP_EDIT_ITEM = "shopEditItem"
    """
    Emitted after one field of a catalog item changed.

    Detail: {
        "itemID": int | str,   # identifier the caller used
        "guildID": str,
        "changed": str,        # field name
        "oldValue": Any,
        "newValue": Any
    }
    """

    SHOP_REMOVE_ITEM = "shopRemoveItem"
    """
    Emitted after an item was removed from a guild's catalog.

    Detail: the removed shop item dict
    """

    SHOP_CLEAR = "shopClear"
    """
    Emitted by a catalog clear.

    Detail: bool  # False when the catalog was already empty
    """

    SHOP_ITEM_BUY = "shopItemBuy"
    """
    Emitted after a purchase was committed.

    Detail: the new inventory item dict
    """

    SHOP_ITEM_USE = "shopItemUse"
    """
    Emitted after an inventory item was consumed.

    Detail: the consumed inventory item dict
    """

    SHOP_ITEM_SELL = "shopItemSell"
    """
    Emitted after an inventory item was sold back to the shop.

    Detail: {
        "guildID": str,
        "memberID": str,
        "item": dict,          # the sold inventory item
        "sellingPrice": int
    }
    """


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def is_valid_event_type(event_type: str) -> bool:
    """
    Check if an event type is one the engine emits.

    Args:
        event_type: The event type string to check

    Returns:
        True if this is a standard event type, False otherwise
    """
    return event_type in set(get_all_event_types())


def get_all_event_types() -> list[str]:
    """Return every standard event type, sorted."""
    return sorted(
        [
            value
            for name, value in vars(EconomyEvents).items()
            if isinstance(value, str) and not name.startswith("_")
        ]
    )
