# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import asyncio
import logging
import sys
from argparse import ArgumentParser
from typing import List, Optional

from . import __version__
from .config import Settings, load_settings
from .domains import load_domains
from .errors import CapacityError, ConfigurationError, SourceError
from .notify import notify_webhook
from .orchestrator import Orchestrator, RunSummary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ACCOUNT_FAILED = 1
EXIT_FATAL = 2


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        force=True,
    )


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="gateway-sync",
        description="Sync blocked domains into Cloudflare Zero Trust Gateway lists and rules.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    for name, help_text in (
            ("create-lists", "upload domains as lists and upsert the rule(s)"),
            ("sync", "delete managed rules and lists, then create them again")):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("--blocklist", action="append", default=[], metavar="SOURCE",
                             help="blocklist URL or file (repeatable)")
        command.add_argument("--allowlist", action="append", default=[], metavar="SOURCE",
                             help="allowlist URL or file (repeatable)")

    commands.add_parser("create-rules", help="upsert the rule(s) for the existing managed lists")
    commands.add_parser("delete-rules", help="delete managed rules")
    commands.add_parser("delete-lists", help="delete managed lists")
    commands.add_parser("delete", help="delete managed rules, then managed lists")
    return parser


def _domains(settings: Settings, args) -> List[str]:
    blocklists = settings.blocklist_sources + args.blocklist
    allowlists = settings.allowlist_sources + args.allowlist
    if not blocklists:
        raise SourceError("No blocklist sources given (BLOCKLIST_URLS or --blocklist)")
    return load_domains(blocklists, allowlists)


async def run_command(orchestrator: Orchestrator, command: str,
                      domains: Optional[List[str]] = None) -> List[RunSummary]:
    if command == "create-lists":
        return [await orchestrator.create(domains or [])]
    if command == "create-rules":
        return [await orchestrator.create_rules()]
    if command == "delete-rules":
        return [await orchestrator.delete_rules()]
    if command == "delete-lists":
        return [await orchestrator.delete_lists()]
    if command == "delete":
        return [await orchestrator.delete()]
    if command == "sync":
        # capacity is checked before anything is deleted
        orchestrator.check_capacity(domains or [])
        deleted = await orchestrator.delete()
        created = await orchestrator.create(domains or [],
                                            skip_accounts=[o.account for o in deleted.failed])
        return [deleted, created]
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None, environ=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        settings = load_settings(environ)
        if settings.debug:
            setup_logging(True)
        domains = _domains(settings, args) if args.command in ("create-lists", "sync") else None
        orchestrator = Orchestrator(settings)
        summaries = asyncio.run(run_command(orchestrator, args.command, domains))
    except (ConfigurationError, CapacityError, SourceError) as e:
        logger.error(f"🚫 {e}")
        return EXIT_FATAL

    notify_webhook(settings.webhook_url, "\n".join(summary.message() for summary in summaries))

    if all(summary.ok for summary in summaries):
        logger.info("✅ Script completed successfully!")
        return EXIT_OK
    return EXIT_ACCOUNT_FAILED


if __name__ == "__main__":
    sys.exit(main())
