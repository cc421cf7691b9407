# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .client import GatewayClient
from .config import AccountConfig
from .errors import DeletionError, RemoteCallError
from .partitioner import ListChunk

logger = logging.getLogger(__name__)


@dataclass
class RemoteList:
    """A domain list that exists on the Gateway."""

    id: str
    name: str
    account_id: str

    @classmethod
    def from_api(cls, data: Dict, account_id: str) -> 'RemoteList':
        return cls(id=data['id'], name=data.get('name', ''), account_id=account_id)


def list_name(prefix: str, number: int, account: AccountConfig, multi_account: bool) -> str:
    """e.g. 'CGPS List - Chunk 3' or 'CGPS List - Chunk 3 - Account 2'."""
    name = f"{prefix} - Chunk {number}"
    if multi_account:
        name = f"{name} - Account {account.account_number}"
    return name


async def create_lists(client: GatewayClient, chunks: Sequence[ListChunk], prefix: str,
                       multi_account: bool) -> List[RemoteList]:
    """
    Create one list per chunk, one call at a time.

    Stops at the first failure and re-raises; lists created before it are
    left in place.
    """
    created = []
    remaining = len(chunks)

    for chunk in chunks:
        name = list_name(prefix, chunk.number, chunk.account, multi_account)
        try:
            result = await client.create_list(name, list(chunk.domains))
        except RemoteCallError as e:
            logger.error(f"🚫 Could not create \"{name}\" - {e}")
            raise

        if not result.get('id'):
            raise RemoteCallError(f"Created \"{name}\" but the API returned no list ID")

        created.append(RemoteList(id=result['id'], name=name, account_id=chunk.account.account_id))
        remaining -= 1
        logger.info(f"  🛠️ Created \"{name}\" list - {remaining} left")

    return created


def select_managed_lists(lists: Iterable[Dict], prefix: str) -> List[Dict]:
    """Lists whose name carries the managed-list marker."""
    return [lst for lst in lists if prefix in (lst.get('name') or '')]


async def get_managed_lists(client: GatewayClient, prefix: str) -> List[RemoteList]:
    lists = await client.get_lists()
    return [
        RemoteList.from_api(lst, client.account.account_id)
        for lst in select_managed_lists(lists, prefix)
    ]


async def delete_lists(client: GatewayClient, lists: Sequence[RemoteList]) -> int:
    """Delete lists one by one. A failure stops the run and raises DeletionError."""
    remaining = len(lists)
    deleted = 0

    for lst in lists:
        try:
            await client.delete_list(lst.id)
        except RemoteCallError as e:
            not_deleted = [other.name for other in lists[deleted:]]
            logger.error(f"🚫 Could not delete {lst.name} - {e}")
            raise DeletionError(
                f"Deleted {deleted} of {len(lists)} lists, {len(not_deleted)} not deleted: {e}",
                deleted=deleted,
                remaining=not_deleted,
                status=e.status,
            ) from e

        deleted += 1
        remaining -= 1
        logger.info(f"  🧹 Deleted {lst.name} list - {remaining} left")

    return deleted


async def delete_managed_lists(client: GatewayClient, prefix: str) -> int:
    """Delete every managed list on the client's account. Nothing to delete is a no-op."""
    account_number = client.account.account_number
    lists = await get_managed_lists(client, prefix)

    if not lists:
        logger.info(f"No {prefix} lists found for Account {account_number}")
        return 0

    logger.info(f"🗑️ Deleting {len(lists)} lists for Account {account_number}...")
    return await delete_lists(client, lists)
