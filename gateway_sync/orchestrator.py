# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from .client import GatewayClient
from .config import AccountConfig, Settings
from .errors import ConfigurationError, DeletionError, GatewaySyncError
from .expression import DNS_FIELD, SNI_FIELD, build_expression
from .lists import create_lists, delete_managed_lists, get_managed_lists
from .partitioner import ListChunk, check_capacity, partition
from .rules import UpsertAction, delete_rules, upsert_rule

logger = logging.getLogger(__name__)


@dataclass
class AccountOutcome:
    """What happened on one account: counters, or the error that stopped it."""

    account: AccountConfig
    error: Optional[Exception] = None
    skipped: bool = False
    domains: int = 0
    lists_created: int = 0
    lists_deleted: int = 0
    rules_created: int = 0
    rules_updated: int = 0
    rules_deleted: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    action: str
    outcomes: List[AccountOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def succeeded(self) -> List[AccountOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[AccountOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def total(self, counter: str) -> int:
        return sum(getattr(o, counter) for o in self.outcomes)

    def message(self) -> str:
        """Human readable one-liner for the webhook."""
        count = len(self.outcomes)
        span = f"across {count} accounts" if count > 1 else "for 1 account"
        parts = [f"CF Gateway {self.action} finished running {span}"]

        details = []
        for counter, label in (('domains', 'domains'),
                               ('lists_created', 'lists created'),
                               ('lists_deleted', 'lists deleted'),
                               ('rules_created', 'rules created'),
                               ('rules_updated', 'rules updated'),
                               ('rules_deleted', 'rules deleted')):
            value = self.total(counter)
            if value:
                details.append(f"{value:,} {label}")
        if details:
            parts.append(f"({', '.join(details)})")

        if self.failed:
            numbers = ', '.join(str(o.account.account_number) for o in self.failed)
            parts.append(f"- {len(self.failed)} failed (Account {numbers})")
        return ' '.join(parts)


AccountStep = Callable[[object, AccountOutcome], Awaitable[None]]


class Orchestrator:
    """
    Runs create and delete flows over every configured account.

    Accounts are processed one after another. Whatever goes wrong inside one
    account is recorded in its AccountOutcome and the next account still
    runs; only pre-flight checks raise.
    """

    def __init__(self, settings: Settings,
                 client_factory: Optional[Callable[[AccountConfig], object]] = None):
        self.settings = settings
        self.client_factory = client_factory or (lambda account: GatewayClient(account, settings))

    @property
    def accounts(self) -> List[AccountConfig]:
        return self.settings.accounts

    def _preflight(self):
        if not self.accounts:
            raise ConfigurationError("No account configurations provided")

    def check_capacity(self, domains: Sequence[str]):
        """Raise CapacityError now if create(domains) would fail pre-flight."""
        self._preflight()
        check_capacity(len(domains), self.accounts, self.settings.list_item_limit)

    async def _for_each_account(self, action: str, step: AccountStep) -> RunSummary:
        summary = RunSummary(action=action)
        start = time.time()

        if self.settings.multi_account:
            logger.info(f"🎬 Running {action} across {len(self.accounts)} accounts...")

        for account in self.accounts:
            outcome = AccountOutcome(account=account)
            logger.info(f"{'=' * 60}")
            logger.info(f"🧵 {action} for Account {account.account_number}")
            logger.info(f"{'=' * 60}")
            try:
                async with self.client_factory(account) as client:
                    await step(client, outcome)
            except Exception as e:
                outcome.error = e
                logger.error(f"🚫 Error during {action} for Account {account.account_number}: {e}",
                             exc_info=self.settings.debug)
                logger.warning(f"⚠️ Skipping Account {account.account_number} due to error")
            summary.outcomes.append(outcome)

        summary.elapsed = time.time() - start
        self._log_summary(summary)
        return summary

    def _log_summary(self, summary: RunSummary):
        logger.info(f"{'=' * 60}")
        logger.info(f"SUMMARY: {summary.action}")
        logger.info(f"{'=' * 60}")
        logger.info(f"✅ Accounts succeeded: {len(summary.succeeded)}/{len(summary.outcomes)}")
        if summary.failed:
            failed = ', '.join(str(o.account.account_number) for o in summary.failed)
            logger.warning(f"⚠️ Accounts failed: {failed}")
        logger.info(f"⏱️ Total execution time: {summary.elapsed:.1f}s")

    async def _upsert_rules(self, client: GatewayClient, outcome: AccountOutcome, list_ids: Sequence[str]):
        """Write the DNS rule, and the SNI rule when enabled, for list_ids."""
        account = outcome.account
        variants = [("DNS", DNS_FIELD, self.settings.rule_name, ["dns"])]
        if self.settings.block_based_on_sni:
            variants.append(("SNI", SNI_FIELD, self.settings.sni_rule_name, ["l4"]))

        for label, field_path, name, filters in variants:
            expression = build_expression(list_ids, field_path)
            logger.info(f"Creating {label} rule for Account {account.account_number}...")
            result = await upsert_rule(client, expression, name, filters, account,
                                       block_page_enabled=self.settings.block_page_enabled)
            if result.action is UpsertAction.CREATED:
                outcome.rules_created += 1
            else:
                outcome.rules_updated += 1

    async def create(self, domains: Sequence[str],
                     skip_accounts: Iterable[AccountConfig] = ()) -> RunSummary:
        """
        Upload domains as lists on every account and point the rule(s) at them.

        Accounts in skip_accounts still hold managed lists (their delete
        failed); they are recorded as failed and left untouched.
        """
        self._preflight()
        unclean = set(skip_accounts)
        plan: Dict[AccountConfig, List[ListChunk]] = partition(
            domains,
            self.settings.list_item_size,
            self.accounts,
            self.settings.list_item_limit,
        )

        async def step(client: GatewayClient, outcome: AccountOutcome):
            if outcome.account in unclean:
                outcome.skipped = True
                raise GatewaySyncError(f"Managed lists on Account {outcome.account.account_number} "
                                       f"were not fully deleted, not creating new ones")
            chunks = plan[outcome.account]
            if not chunks:
                logger.info(f"No domains assigned to Account {outcome.account.account_number}, skipping.")
                outcome.skipped = True
                return

            outcome.domains = sum(len(chunk) for chunk in chunks)
            logger.info(f"Creating lists for Account {outcome.account.account_number} "
                        f"({outcome.domains:,} domains in {len(chunks)} lists)")
            created = await create_lists(client, chunks, self.settings.list_name_prefix,
                                         self.settings.multi_account)
            outcome.lists_created = len(created)
            await self._upsert_rules(client, outcome, [lst.id for lst in created])

        return await self._for_each_account("create", step)

    async def create_rules(self) -> RunSummary:
        """Point the rule(s) at whatever managed lists each account currently has."""
        self._preflight()

        async def step(client: GatewayClient, outcome: AccountOutcome):
            lists = await get_managed_lists(client, self.settings.list_name_prefix)
            if not lists:
                logger.info(f"No lists found for Account {outcome.account.account_number}, "
                            f"skipping rule creation.")
                outcome.skipped = True
                return
            await self._upsert_rules(client, outcome, [lst.id for lst in lists])

        return await self._for_each_account("rule create", step)

    async def _delete_rules_step(self, client: GatewayClient, outcome: AccountOutcome):
        try:
            outcome.rules_deleted = await delete_rules(client, self.settings.rule_name)
        except DeletionError as e:
            outcome.rules_deleted = e.deleted
            raise

    async def _delete_lists_step(self, client: GatewayClient, outcome: AccountOutcome):
        try:
            outcome.lists_deleted = await delete_managed_lists(client, self.settings.list_name_prefix)
        except DeletionError as e:
            outcome.lists_deleted = e.deleted
            raise

    async def delete_rules(self) -> RunSummary:
        self._preflight()
        return await self._for_each_account("rule delete", self._delete_rules_step)

    async def delete_lists(self) -> RunSummary:
        self._preflight()
        return await self._for_each_account("list delete", self._delete_lists_step)

    async def delete(self) -> RunSummary:
        """Remove managed rules first, then the lists they referenced."""
        self._preflight()

        async def step(client: GatewayClient, outcome: AccountOutcome):
            await self._delete_rules_step(client, outcome)
            await self._delete_lists_step(client, outcome)

        return await self._for_each_account("delete", step)
