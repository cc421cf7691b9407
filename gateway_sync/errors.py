# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

from typing import List, Optional


class GatewaySyncError(Exception):
    """Base class for all errors raised by gateway_sync."""


class ConfigurationError(GatewaySyncError):
    """Missing or invalid configuration (credentials, account ids, limits)."""


class CapacityError(GatewaySyncError):
    """More domains than the configured accounts can hold."""

    def __init__(self, message: str, required_accounts: int, configured_accounts: int):
        super().__init__(message)
        self.required_accounts = required_accounts
        self.configured_accounts = configured_accounts


class RemoteCallError(GatewaySyncError):
    """A Gateway API call failed (non-2xx, success=false, bad body or transport error)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DeletionError(RemoteCallError):
    """A sequential delete stopped part way through."""

    def __init__(self, message: str, deleted: int, remaining: List[str],
                 status: Optional[int] = None):
        super().__init__(message, status)
        self.deleted = deleted
        self.remaining = remaining


class SourceError(GatewaySyncError):
    """A domain source could not be read."""
