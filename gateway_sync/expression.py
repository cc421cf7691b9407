# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

from typing import Iterable

DNS_FIELD = "dns.domains[*]"
SNI_FIELD = "net.sni.domains[*]"


def build_expression(list_ids: Iterable, field_path: str = DNS_FIELD) -> str:
    """
    Build a wirefilter expression matching field_path against every list.

    No list ids gives an empty string, which is not a valid rule expression
    and must not be submitted.
    """
    return " or ".join(f"any({field_path} in ${list_id})" for list_id in list_ids)
