# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple

from .config import AccountConfig
from .errors import CapacityError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListChunk:
    """A slice of the domain set destined for one list on one account."""

    account: AccountConfig
    number: int
    domains: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.domains)


def chunker(seq: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    """Split a sequence into chunks of specified size."""
    for i in range(0, len(seq), size):
        yield seq[i:i + size]


def account_capacity(per_account_limit: int) -> int:
    """Domains one account may hold; one slot is kept free as headroom."""
    return per_account_limit - 1


def check_capacity(domain_count: int, accounts: Sequence[AccountConfig], per_account_limit: int):
    """Raise CapacityError when the accounts cannot hold domain_count domains."""
    capacity = account_capacity(per_account_limit)
    required = math.ceil(domain_count / capacity)
    if domain_count > capacity * len(accounts):
        raise CapacityError(
            f"Not enough accounts configured. Need {required} accounts for {domain_count} domains "
            f"({capacity} per account), but only {len(accounts)} accounts are configured.",
            required_accounts=required,
            configured_accounts=len(accounts),
        )


def partition(domains: Sequence[str], per_list_limit: int, accounts: Sequence[AccountConfig],
              per_account_limit: int) -> Dict[AccountConfig, List[ListChunk]]:
    """
    Distribute domains over accounts and cut each account's share into list chunks.

    Accounts are filled in configured order, each up to its capacity, before
    moving on; accounts that receive nothing map to an empty list. The result
    depends only on the order of domains and accounts.
    """
    if not accounts:
        raise ConfigurationError("No account configurations provided")
    if per_list_limit < 1:
        raise ConfigurationError(f"List item size must be at least 1, got {per_list_limit}")
    if per_account_limit < 2:
        raise ConfigurationError(f"List item limit must be at least 2, got {per_account_limit}")

    domains = list(domains)
    check_capacity(len(domains), accounts, per_account_limit)

    capacity = account_capacity(per_account_limit)
    if len(accounts) > 1:
        logger.info(f"🧮 Distributing {len(domains):,} domains across {len(accounts)} accounts "
                    f"({capacity:,} domains per account)")

    result: Dict[AccountConfig, List[ListChunk]] = {}
    start = 0
    for account in accounts:
        share = domains[start:start + capacity]
        start += len(share)
        result[account] = [
            ListChunk(account=account, number=number, domains=tuple(chunk))
            for number, chunk in enumerate(chunker(share, per_list_limit), 1)
        ]
        if share:
            logger.debug(f"Account {account.account_number}: {len(share):,} domains in "
                         f"{len(result[account])} chunk(s)")

    return result
