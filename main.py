"""Command-line entry point for the speedwallet key-management core."""

import argparse
import asyncio
import getpass
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from loguru import logger

from speedwallet.config import Settings, get_settings
from speedwallet.crypto.cipher import SecretCipher
from speedwallet.exceptions import WalletError
from speedwallet.persistence import WalletDatabase, WalletEventLogger
from speedwallet.wallet import SecureWalletStore, WalletManager


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru logging."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="DEBUG" if verbose else "INFO",
    )
    logger.add(
        "logs/speedwallet_{time}.log",
        rotation="10 MB",
        retention="7 days",
        level="DEBUG",
    )


def prompt_pin(label: str = "PIN") -> str:
    """Read a PIN without echoing it."""
    return getpass.getpass(f"{label}: ").strip()


# =============================================================================
# Commands
# =============================================================================


async def cmd_init(manager: WalletManager, args: argparse.Namespace) -> None:
    """Create the master wallet, or restore it with --restore."""
    pin = prompt_pin("New PIN")
    if prompt_pin("Confirm PIN") != pin:
        print("PINs do not match", file=sys.stderr)
        return

    if args.restore:
        phrase = getpass.getpass("Recovery phrase: ")
        record = await manager.restore_master_wallet(args.name, phrase, pin)
        print(f"Restored master wallet {record.name}: {record.public_key}")
        return

    created = await manager.create_master_wallet(args.name, pin)
    print(f"Master wallet {created.record.name}: {created.record.public_key}")
    print("\nWrite down your recovery phrase and keep it offline:\n")
    for i, word in enumerate(created.mnemonic.split(), start=1):
        print(f"{i:>2}. {word}")


async def cmd_derive(manager: WalletManager, args: argparse.Namespace) -> None:
    """Derive the next account from the master phrase."""
    record = await manager.create_derived_wallet(args.name, prompt_pin())
    print(f"{record.name} (index {record.account_index}): {record.public_key}")


async def cmd_import(manager: WalletManager, args: argparse.Namespace) -> None:
    """Import a wallet from a recovery phrase."""
    phrase = getpass.getpass("Recovery phrase: ")
    record = await manager.import_wallet(args.name, phrase, prompt_pin())
    print(f"Imported {record.name}: {record.public_key}")


async def cmd_import_key(manager: WalletManager, args: argparse.Namespace) -> None:
    """Import a wallet from a Base58 secret key."""
    secret_key = getpass.getpass("Secret key (Base58): ")
    record = await manager.import_secret_key(args.name, secret_key, prompt_pin())
    print(f"Imported {record.name}: {record.public_key}")


async def cmd_list(manager: WalletManager, args: argparse.Namespace) -> None:
    """List wallets."""
    wallets = await manager.list_wallets()
    if not wallets:
        print("No wallets yet. Run `init` first.")
        return
    for wallet in wallets:
        marker = "*" if wallet.is_active else " "
        role = "master" if wallet.is_master_wallet else (wallet.derivation_path or "imported key")
        print(f"{marker} {wallet.id}  {wallet.name:<20} {wallet.public_key}  [{role}]")


async def cmd_switch(manager: WalletManager, args: argparse.Namespace) -> None:
    """Switch the active wallet."""
    record = await manager.switch_active_wallet(args.wallet_id)
    print(f"Active wallet: {record.name} ({record.public_key})")


async def cmd_delete(manager: WalletManager, args: argparse.Namespace) -> None:
    """Delete a wallet."""
    await manager.delete_wallet(args.wallet_id)
    print(f"Deleted {args.wallet_id}")
    if await manager.get_active_wallet_public_key() is None:
        print("No active wallet. Use `switch` to select one.")


async def cmd_rename(manager: WalletManager, args: argparse.Namespace) -> None:
    """Rename a wallet."""
    record = await manager.rename_wallet(args.wallet_id, args.name)
    print(f"Renamed to {record.name}")


async def cmd_reveal(manager: WalletManager, args: argparse.Namespace) -> None:
    """Show a recovery phrase."""
    print(await manager.unlock_and_reveal_mnemonic(prompt_pin(), args.wallet_id))


async def cmd_change_pin(manager: WalletManager, args: argparse.Namespace) -> None:
    """Change the device PIN."""
    old_pin = prompt_pin("Current PIN")
    new_pin = prompt_pin("New PIN")
    if prompt_pin("Confirm new PIN") != new_pin:
        print("PINs do not match", file=sys.stderr)
        return
    await manager.change_pin(old_pin, new_pin)
    print("PIN changed")


async def cmd_address(manager: WalletManager, args: argparse.Namespace) -> None:
    """Print the active wallet address."""
    address = await manager.get_active_wallet_public_key()
    print(address if address is not None else "No active wallet")


async def cmd_qr(manager: WalletManager, args: argparse.Namespace) -> None:
    """Print a receive QR code for the active wallet."""
    print(await manager.receive_qr(args.address))


COMMANDS: dict[str, Callable[[WalletManager, argparse.Namespace], Awaitable[None]]] = {
    "init": cmd_init,
    "derive": cmd_derive,
    "import": cmd_import,
    "import-key": cmd_import_key,
    "list": cmd_list,
    "switch": cmd_switch,
    "delete": cmd_delete,
    "rename": cmd_rename,
    "reveal": cmd_reveal,
    "change-pin": cmd_change_pin,
    "address": cmd_address,
    "qr": cmd_qr,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="speedwallet - Solana HD wallet key management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, help="Wallet database path (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create the master wallet")
    init.add_argument("name", nargs="?", default="Main Wallet")
    init.add_argument("--restore", action="store_true", help="Restore from an existing phrase")

    for command in ("derive", "import", "import-key"):
        sub.add_parser(command, help=COMMANDS[command].__doc__).add_argument("name")

    sub.add_parser("list", help="List wallets")
    sub.add_parser("switch", help="Switch active wallet").add_argument("wallet_id")
    sub.add_parser("delete", help="Delete a wallet").add_argument("wallet_id")

    rename = sub.add_parser("rename", help="Rename a wallet")
    rename.add_argument("wallet_id")
    rename.add_argument("name")

    reveal = sub.add_parser("reveal", help="Show a recovery phrase")
    reveal.add_argument("wallet_id", nargs="?", default=None)

    sub.add_parser("change-pin", help="Change the device PIN")
    sub.add_parser("address", help="Print the active address")
    sub.add_parser("qr", help="Receive QR code").add_argument("address", nargs="?", default=None)

    return parser.parse_args(argv)


async def main(args: argparse.Namespace, settings: Settings) -> int:
    """Open the wallet store and run one command."""
    db_path = args.db or settings.storage.db_path

    async with WalletDatabase(db_path) as database:
        store = SecureWalletStore(
            database,
            cipher=SecretCipher(settings.kdf),
            policy=settings.policy,
        )
        await store.load()
        manager = WalletManager(
            store,
            event_logger=WalletEventLogger(settings.storage.audit_dir),
            policy=settings.policy,
        )

        try:
            await COMMANDS[args.command](manager, args)
        except WalletError as e:
            logger.debug("{} failed: {!r}", args.command, e)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    # Create logs directory if it doesn't exist
    Path("logs").mkdir(exist_ok=True)

    args = parse_args()
    setup_logging(verbose=args.verbose)
    sys.exit(asyncio.run(main(args, get_settings())))
