# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "https://api.cloudflare.com/client/v4"
DEFAULT_LIST_ITEM_SIZE = 1000
DEFAULT_LIST_ITEM_LIMIT = 300000
DEFAULT_LIST_NAME_PREFIX = "CGPS List"
DEFAULT_RULE_NAME = "CGPS Filter Lists"
SNI_RULE_SUFFIX = " - SNI Based Filtering"

TRUE_VALUES = ('true', '1', 'yes', 'on')


@dataclass(frozen=True)
class AccountConfig:
    """One Cloudflare account and the credential used to reach it."""

    account_id: str
    account_number: int = 1
    api_token: Optional[str] = field(default=None, repr=False)
    api_key: Optional[str] = field(default=None, repr=False)
    account_email: Optional[str] = field(default=None, repr=False)

    def auth_headers(self) -> Dict[str, str]:
        """Headers for this account's credential, token preferred over key+email."""
        if self.api_token:
            return {
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            }
        return {
            "X-Auth-Email": self.account_email or "",
            "X-Auth-Key": self.api_key or "",
            "Content-Type": "application/json",
        }

    def validate(self):
        if not self.account_id:
            raise ConfigurationError(f"Account {self.account_number} has no account ID.")
        if not self.api_token and not (self.api_key and self.account_email):
            raise ConfigurationError(
                f"Account {self.account_number} needs an API token, "
                f"or an API key together with the account email."
            )


@dataclass
class Settings:
    """Everything a run needs, passed explicitly to the orchestrator."""

    accounts: List[AccountConfig]
    api_host: str = DEFAULT_API_HOST
    list_item_size: int = DEFAULT_LIST_ITEM_SIZE
    list_item_limit: int = DEFAULT_LIST_ITEM_LIMIT
    block_based_on_sni: bool = False
    block_page_enabled: bool = False
    debug: bool = False
    webhook_url: Optional[str] = None
    request_timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 5
    api_delay: float = 0.1
    list_name_prefix: str = DEFAULT_LIST_NAME_PREFIX
    rule_name: str = DEFAULT_RULE_NAME
    blocklist_sources: List[str] = field(default_factory=list)
    allowlist_sources: List[str] = field(default_factory=list)

    @property
    def multi_account(self) -> bool:
        return len(self.accounts) > 1

    @property
    def sni_rule_name(self) -> str:
        return f"{self.rule_name}{SNI_RULE_SUFFIX}"


def _env_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_number(environ: Mapping[str, str], name: str, default, cast=int):
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return cast(value.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _env_list(environ: Mapping[str, str], name: str) -> List[str]:
    value = environ.get(name) or ''
    return [item.strip() for item in re.split(r'[,\n]', value) if item.strip()]


def load_accounts(environ: Mapping[str, str]) -> List[AccountConfig]:
    """
    Read account 1 from the unsuffixed variables and accounts 2, 3, ...
    from the _<n> suffixed ones, stopping at the first missing account id.
    """
    accounts = []
    number = 1
    while True:
        suffix = '' if number == 1 else f"_{number}"
        account_id = environ.get(f"CLOUDFLARE_ACCOUNT_ID{suffix}")
        if not account_id:
            break
        account = AccountConfig(
            account_id=account_id.strip(),
            account_number=number,
            api_token=environ.get(f"CLOUDFLARE_API_TOKEN{suffix}") or None,
            api_key=environ.get(f"CLOUDFLARE_API_KEY{suffix}") or None,
            account_email=environ.get(f"CLOUDFLARE_ACCOUNT_EMAIL{suffix}") or None,
        )
        account.validate()
        accounts.append(account)
        number += 1

    if not accounts:
        raise ConfigurationError(
            "The following secrets are required: CLOUDFLARE_API_TOKEN, CLOUDFLARE_ACCOUNT_ID"
        )
    return accounts


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables."""
    if environ is None:
        environ = os.environ

    accounts = load_accounts(environ)
    settings = Settings(
        accounts=accounts,
        api_host=(environ.get('CLOUDFLARE_API_HOST') or DEFAULT_API_HOST).rstrip('/'),
        list_item_size=_env_number(environ, 'CLOUDFLARE_LIST_ITEM_SIZE', DEFAULT_LIST_ITEM_SIZE),
        list_item_limit=_env_number(environ, 'CLOUDFLARE_LIST_ITEM_LIMIT', DEFAULT_LIST_ITEM_LIMIT),
        block_based_on_sni=_env_bool(environ, 'BLOCK_BASED_ON_SNI'),
        block_page_enabled=_env_bool(environ, 'BLOCK_PAGE_ENABLED'),
        debug=_env_bool(environ, 'DEBUG'),
        webhook_url=environ.get('DISCORD_WEBHOOK_URL') or None,
        request_timeout=_env_number(environ, 'REQUEST_TIMEOUT', 30),
        max_retries=_env_number(environ, 'MAX_RETRIES', 3),
        backoff_factor=_env_number(environ, 'BACKOFF_FACTOR', 5, cast=float),
        api_delay=_env_number(environ, 'API_DELAY', 0.1, cast=float),
        blocklist_sources=_env_list(environ, 'BLOCKLIST_URLS'),
        allowlist_sources=_env_list(environ, 'ALLOWLIST_URLS'),
    )

    if settings.list_item_size < 1:
        raise ConfigurationError("CLOUDFLARE_LIST_ITEM_SIZE must be at least 1")
    if settings.list_item_limit < 2:
        raise ConfigurationError("CLOUDFLARE_LIST_ITEM_LIMIT must be at least 2")
    if settings.max_retries < 1:
        raise ConfigurationError("MAX_RETRIES must be at least 1")

    logger.debug(f"Loaded configuration for {len(accounts)} account(s)")
    return settings
