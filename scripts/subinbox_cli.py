"""Entry point that logs in, manages aliases and watches the mailbox."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from subinbox.app import MailboxApp
from subinbox.config import Settings, load_settings
from subinbox.exceptions import ConfigurationError
from subinbox.utils import SuffixOptions, isoformat_ms, validate_address

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a local view of a 2925.com mailbox and its aliases.")
    parser.add_argument("--login", metavar="ACCOUNT", help="Log in as ACCOUNT (password is prompted)")
    parser.add_argument("--remember", action="store_true", help="Re-login automatically on next start")
    parser.add_argument("--logout", action="store_true", help="Log out and forget the cached session")
    parser.add_argument("--watch", type=float, metavar="SECONDS", help="Poll the mailbox for SECONDS")
    parser.add_argument("--list-aliases", action="store_true", help="Print known aliases")
    parser.add_argument("--create-alias", action="store_true", help="Create and activate a new alias")
    parser.add_argument("--suffix-length", type=int, help="Fixed alias suffix length (1-20)")
    parser.add_argument("--symbols", action="store_true", help="Allow '_', '-' and '.' in suffixes")
    parser.add_argument("--no-letters", action="store_true", help="Digits only in suffixes")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def suffix_options(args: argparse.Namespace, settings: Settings) -> SuffixOptions:
    defaults = settings.suffix_options
    length = args.suffix_length
    return SuffixOptions(
        include_letters=defaults.include_letters and not args.no_letters,
        include_symbols=defaults.include_symbols or args.symbols,
        use_random_length=length is None and defaults.use_random_length,
        fixed_length=length or defaults.fixed_length,
    )


def print_items(app: MailboxApp) -> None:
    for item in app.items:
        flag = " " if item.is_read else "*"
        via = f" via {item.original_alias}" if item.forwarded else ""
        print(f"{flag} {isoformat_ms(item.timestamp)} {item.sender} -> {item.recipient}{via}: {item.subject}")


async def run(args: argparse.Namespace, settings: Settings) -> int:
    app = MailboxApp.from_settings(settings)
    try:
        await app.start()

        if args.logout:
            await app.logout()
            logging.info("Logged out")
            return 0

        if args.login:
            if not validate_address(args.login, settings.mail_domain):
                raise SystemExit(f"Account must be an alphanumeric address on {settings.mail_domain}")
            secret = getpass.getpass(f"Password for {args.login}: ")
            await app.login(args.login, secret, remember=args.remember)

        if not app.session.is_authenticated:
            logging.error("Not logged in; use --login ACCOUNT")
            return 1

        if args.create_alias:
            alias = await app.create_alias(suffix_options(args, settings))
            print(f"Created {alias.address} ({alias.status.value})")

        if args.list_aliases:
            for alias in app.alias_list:
                print(f"{alias.address}\t{alias.status.value}\t{isoformat_ms(alias.created_at)}")

        if args.watch:
            await asyncio.sleep(args.watch)
            if app.scheduler is not None and app.scheduler.last_error:
                logging.warning("Last refresh failed: %s", app.scheduler.last_error)
            print_items(app)
            logging.info("%d items, %d unread", len(app.items), app.synchronizer.unread_count)
        return 0
    finally:
        await app.close()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        parser.error(str(exc))
    configure_logging(settings.log_level)
    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
