# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import re
from pathlib import Path
from typing import Iterable, List, Set

import requests

from .errors import SourceError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

HOSTS_PREFIX = re.compile(r'^(0\.0\.0\.0|127\.0\.0\.1|::1|::)\s+')
DOMAIN_PATTERN = re.compile(
    r'^([a-z0-9_]+(-+[a-z0-9_]+)*\.)+[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$'
)
COMMENT_PREFIXES = ('#', '!', '[')


def normalize_domain(value: str, is_allowlisting: bool = False) -> str:
    """Strip hosts-file addresses and adblock syntax, leaving the bare domain."""
    value = value.strip()
    if is_allowlisting:
        value = value.replace("@@||", "")
    value = HOSTS_PREFIX.sub("", value)
    value = value.replace("||", "").replace("^$important", "").replace("^", "")
    if value.startswith("*."):
        value = value[2:]
    return value.strip().lower()


def is_valid_domain(domain: str) -> bool:
    """Validate domain format."""
    if not domain or len(domain) > 253:
        return False
    return bool(DOMAIN_PATTERN.match(domain.lower()))


def parse_domains(text: str, is_allowlisting: bool = False) -> List[str]:
    """Domains found in a hosts/adblock/plain list, in file order."""
    domains = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        # inline comments
        line = line.split(' #', 1)[0].strip()
        domain = normalize_domain(line, is_allowlisting)
        if is_valid_domain(domain):
            domains.append(domain)
        else:
            logger.debug(f"Skipping invalid entry: {line}")
    return domains


def read_source(source: str) -> str:
    """Contents of a URL (http/https) or a local file."""
    if source.startswith(('http://', 'https://')):
        try:
            response = requests.get(source, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"🚫 Error fetching from {source}: {e}")
            raise SourceError(f"Could not fetch {source}: {e}") from e
        logger.info(f"🔗 Successfully fetched from {source}")
        return response.text

    try:
        return Path(source).read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"🚫 Error reading {source}: {e}")
        raise SourceError(f"Could not read {source}: {e}") from e


def load_domains(blocklists: Iterable[str], allowlists: Iterable[str] = ()) -> List[str]:
    """
    Ordered, de-duplicated union of all blocklist sources, minus every
    domain that appears in an allowlist source.
    """
    allowed: Set[str] = set()
    for source in allowlists:
        allowed.update(parse_domains(read_source(source), is_allowlisting=True))

    seen: Set[str] = set()
    domains = []
    duplicates = 0
    for source in blocklists:
        for domain in parse_domains(read_source(source)):
            if domain in seen:
                duplicates += 1
                continue
            seen.add(domain)
            if domain not in allowed:
                domains.append(domain)

    logger.info(f"🎯 Target domains: {len(domains):,} "
                f"({duplicates:,} duplicates, {len(seen) - len(domains):,} allowlisted)")
    return domains
