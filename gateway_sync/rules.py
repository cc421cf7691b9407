# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .client import GatewayClient
from .config import AccountConfig
from .errors import DeletionError, RemoteCallError

logger = logging.getLogger(__name__)

RULE_DESCRIPTION = (
    "Filter lists created by Cloudflare Gateway Sync. Avoid editing this rule. "
    "Changing the name of this rule will break the sync."
)
BLOCK_REASON = "Blocked by Cloudflare Gateway Sync, check your filter lists if this was a mistake."


class RuleState(Enum):
    ABSENT = "absent"
    PRESENT = "present"


class UpsertAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class RemoteRule:
    """A Gateway rule as last written by the reconciler."""

    id: str
    name: str
    expression: str
    account_id: str
    filters: List[str] = field(default_factory=list)


@dataclass
class UpsertResult:
    rule: RemoteRule
    action: UpsertAction


def build_rule_payload(name: str, expression: str, filters: Sequence[str],
                       block_page_enabled: bool = False) -> Dict:
    """
    Full rule body. The API has no partial update: name and action are
    required on every write, and enabled must always be sent as True or
    the rule is disabled.
    """
    return {
        "name": name,
        "description": RULE_DESCRIPTION,
        "enabled": True,
        "action": "block",
        "rule_settings": {
            "block_page_enabled": block_page_enabled,
            "block_reason": BLOCK_REASON,
        },
        "filters": list(filters),
        "traffic": expression,
    }


async def find_rule(client: GatewayClient, name: str) -> Tuple[RuleState, Optional[Dict]]:
    """Look up a rule by exact name. A failed or empty lookup counts as ABSENT."""
    try:
        rules = await client.get_rules()
    except RemoteCallError as e:
        logger.warning(f"⚠️ Could not fetch rules, treating \"{name}\" as new: {e}")
        return RuleState.ABSENT, None

    if not rules:
        logger.info(f"No existing rules found for account, creating new rule \"{name}\"")
        return RuleState.ABSENT, None

    existing = next((rule for rule in rules if rule.get('name') == name), None)
    if existing is None:
        logger.debug(f"No existing rule named \"{name}\", creating...")
        return RuleState.ABSENT, None

    logger.debug(f"Found \"{name}\" in rules, updating...")
    return RuleState.PRESENT, existing


async def _create(client: GatewayClient, existing: Optional[Dict], payload: Dict) -> Tuple[Dict, UpsertAction]:
    result = await client.create_rule(payload)
    logger.info(f"✍️ Created rule \"{payload['name']}\"")
    return result, UpsertAction.CREATED


async def _update(client: GatewayClient, existing: Optional[Dict], payload: Dict) -> Tuple[Dict, UpsertAction]:
    result = await client.update_rule(existing['id'], payload)
    logger.info(f"✍️ Updated existing rule \"{payload['name']}\"")
    return {**result, 'id': existing['id']}, UpsertAction.UPDATED


_TRANSITIONS = {
    RuleState.ABSENT: _create,
    RuleState.PRESENT: _update,
}


async def upsert_rule(client: GatewayClient, expression: str, name: str, filters: Sequence[str],
                      account: AccountConfig, block_page_enabled: bool = False) -> UpsertResult:
    """
    Update the rule called name if it exists, create it otherwise.

    Repeated calls leave exactly one rule with that name on the account.
    Create and update failures propagate to the caller.
    """
    if not expression:
        raise ValueError(f"Refusing to write rule \"{name}\" with an empty expression")

    payload = build_rule_payload(name, expression, filters, block_page_enabled)
    state, existing = await find_rule(client, name)

    try:
        result, action = await _TRANSITIONS[state](client, existing, payload)
    except RemoteCallError as e:
        logger.error(f"🚫 Error upserting rule \"{name}\" for Account {account.account_number}: {e}")
        raise

    rule = RemoteRule(
        id=result.get('id', ''),
        name=name,
        expression=expression,
        account_id=account.account_id,
        filters=list(filters),
    )
    return UpsertResult(rule=rule, action=action)


def select_managed_rules(rules: Sequence[Dict], name: str) -> List[Dict]:
    """Rules named exactly name, or name followed by a variant suffix."""
    return [rule for rule in rules if (rule.get('name') or '').startswith(name)]


async def delete_rules(client: GatewayClient, name: str) -> int:
    """
    Delete the managed rules on the client's account, one at a time.

    No matching rule is a no-op. A failure keeps the rules already deleted
    and raises DeletionError naming the ones left behind.
    """
    account_number = client.account.account_number
    rules = select_managed_rules(await client.get_rules(), name)

    if not rules:
        logger.info(f"No {name} rules found for Account {account_number}")
        return 0

    deleted = 0
    for rule in rules:
        try:
            await client.delete_rule(rule['id'])
        except RemoteCallError as e:
            not_deleted = [other['name'] for other in rules[deleted:]]
            logger.error(f"🚫 Could not delete rule {rule['name']} - {e}")
            raise DeletionError(
                f"Deleted {deleted} of {len(rules)} rules, {len(not_deleted)} not deleted: {e}",
                deleted=deleted,
                remaining=not_deleted,
                status=e.status,
            ) from e
        deleted += 1
        logger.info(f"  🧹 Deleted rule {rule['name']}")

    return deleted
