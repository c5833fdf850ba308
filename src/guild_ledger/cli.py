"""
Command-line interface for Guild Ledger.

Provides operator commands for inspecting an economy storage file:
- init: Create the storage file if it does not exist
- check: Run one storage health check
- balance: Show a member's wallet and bank balance
- leaderboard: Rank the members of a guild
- shop: List a guild's catalog
- config: Print the effective configuration

Usage:
    guild-ledger init
    guild-ledger --storage ./eco.json balance GUILD MEMBER
    guild-ledger leaderboard GUILD [--bank] [--limit N]

Environment Variables:
    ECONOMY_STORAGE_PATH: Storage file (default: ./storage.json)
    ECONOMY_LOG_LEVEL: Log level for CLI output (default: INFO)
"""

import argparse
import json
import logging
import sys

from guild_ledger.config import LoggingSettings, config, print_config_summary
from guild_ledger.economy import Economy
from guild_ledger.errors import CorruptStorageError, EconomyError
from guild_ledger.storage import RecordStore

_FORMATS = {
    "simple": "%(levelname)s: %(message)s",
    "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(settings: LoggingSettings) -> None:
    """Attach a stderr handler to the ``guild_ledger`` logger.

    The library itself never configures logging; only this CLI does.
    """
    handler = logging.StreamHandler(sys.stderr)
    if settings.format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(_FORMATS.get(settings.format, _FORMATS["detailed"])))

    package_logger = logging.getLogger("guild_ledger")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(settings.level.upper())


def _open_economy(args: argparse.Namespace) -> Economy:
    """Initialize an economy over the selected storage file (no retries)."""
    if args.storage:
        config.storage.path = args.storage
    economy = Economy(config)
    economy.init()
    return economy


def cmd_init(args: argparse.Namespace) -> int:
    """
    Create the storage file if it is missing.

    Returns:
        0 on success, 1 on error
    """
    try:
        economy = _open_economy(args)
    except EconomyError as e:
        print(f"Error initializing storage: {e}", file=sys.stderr)
        return 1
    try:
        print(f"Storage ready at {economy.store.path}")
        return 0
    finally:
        economy.close()


def cmd_check(args: argparse.Namespace) -> int:
    """
    Run one storage health check.

    Returns:
        0 if the file is healthy, 1 if it is corrupt or unreadable
    """
    path = args.storage or config.storage.path
    store = RecordStore(path, update_countdown_ms=config.storage.update_countdown_ms)
    try:
        store.check_health()
    except CorruptStorageError as e:
        print(f"Storage is corrupt: {e}", file=sys.stderr)
        return 1
    except EconomyError as e:
        print(f"Storage check failed: {e}", file=sys.stderr)
        return 1
    print(f"Storage OK: {store.path}")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Print a member's wallet and bank balance."""
    try:
        economy = _open_economy(args)
        try:
            money = economy.balance.fetch(args.member, args.guild)
            bank = economy.bank.fetch(args.member, args.guild)
        finally:
            economy.close()
    except EconomyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"money: {money}")
    print(f"bank:  {bank}")
    return 0


def cmd_leaderboard(args: argparse.Namespace) -> int:
    """Print the guild leaderboard for money or bank."""
    try:
        economy = _open_economy(args)
        try:
            ledger = economy.bank if args.bank else economy.balance
            entries = ledger.leaderboard(args.guild)
        finally:
            economy.close()
    except EconomyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.limit is not None:
        entries = entries[: args.limit]
    if not entries:
        print("No members found.")
        return 0
    for entry in entries:
        print(f"{entry.index:>3}. {entry.member_id}  {entry.amount}")
    return 0


def cmd_shop(args: argparse.Namespace) -> int:
    """Print a guild's catalog."""
    try:
        economy = _open_economy(args)
        try:
            items = economy.shop.list(args.guild)
        finally:
            economy.close()
    except EconomyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not items:
        print("The shop is empty.")
        return 0
    for item in items:
        limit = f" (max {item.max_amount})" if item.max_amount else ""
        print(f"[{item.id}] {item.item_name} - {item.price}{limit}: {item.description}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    if args.storage:
        config.storage.path = args.storage
    print_config_summary(config)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="guild-ledger",
        description="Guild Ledger - file-backed guild economy engine",
    )
    parser.add_argument(
        "--storage",
        type=str,
        help="Storage file (default: ./storage.json, or ECONOMY_STORAGE_PATH env var)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Create the storage file if missing")
    init_parser.set_defaults(func=cmd_init)

    check_parser = subparsers.add_parser("check", help="Check that the storage file parses")
    check_parser.set_defaults(func=cmd_check)

    balance_parser = subparsers.add_parser("balance", help="Show a member's balances")
    balance_parser.add_argument("guild", help="Guild ID")
    balance_parser.add_argument("member", help="Member ID")
    balance_parser.set_defaults(func=cmd_balance)

    leaderboard_parser = subparsers.add_parser("leaderboard", help="Rank a guild's members")
    leaderboard_parser.add_argument("guild", help="Guild ID")
    leaderboard_parser.add_argument(
        "--bank",
        action="store_true",
        help="Rank by bank balance instead of wallet balance",
    )
    leaderboard_parser.add_argument(
        "--limit",
        "-n",
        type=int,
        help="Show only the first N entries",
    )
    leaderboard_parser.set_defaults(func=cmd_leaderboard)

    shop_parser = subparsers.add_parser("shop", help="List a guild's catalog")
    shop_parser.add_argument("guild", help="Guild ID")
    shop_parser.set_defaults(func=cmd_shop)

    config_parser = subparsers.add_parser("config", help="Print the effective configuration")
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(config.logging)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
