# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import asyncio
import json
import logging
from typing import Dict, List, Optional

import aiohttp

from .config import AccountConfig, Settings
from .errors import RemoteCallError

logger = logging.getLogger(__name__)

PER_PAGE = 100


class GatewayClient:
    """
    Async client for the Zero Trust Gateway API of a single account.

    Use as an async context manager; the aiohttp session lives for the
    duration of the block and is closed on exit.
    """

    def __init__(self, account: AccountConfig, settings: Settings,
                 session: Optional[aiohttp.ClientSession] = None):
        self.account = account
        self.settings = settings
        self.base_url = f"{settings.api_host}/accounts/{account.account_id}/gateway"
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> 'GatewayClient':
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.account.auth_headers())
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _backoff(self, attempt: int) -> float:
        return self.settings.backoff_factor * (2 ** (attempt - 1))

    def _retry_after(self, value: Optional[str], attempt: int) -> float:
        """Seconds from a Retry-After header; HTTP dates and junk fall back to backoff."""
        try:
            return max(0.0, float(value))
        except (TypeError, ValueError):
            return self._backoff(attempt)

    async def request(self, method: str, path: str, data: Optional[Dict] = None,
                      params: Optional[Dict] = None) -> Dict:
        """Make an API request with retry logic and return the checked JSON body."""
        if self._session is None:
            raise RuntimeError("GatewayClient must be used inside 'async with'")

        url = f"{self.base_url}{path}"
        action = f"{method} {path}"
        retries = self.settings.max_retries
        last_exception = None

        for attempt in range(1, retries + 1):
            try:
                kwargs = {"timeout": aiohttp.ClientTimeout(total=self.settings.request_timeout)}
                if data is not None:
                    kwargs["json"] = data
                if params:
                    kwargs["params"] = params

                async with self._session.request(method, url, **kwargs) as response:
                    if response.status == 429:
                        last_exception = RemoteCallError(f"Rate limited during {action}", status=429)
                        if attempt == retries:
                            logger.error(f"🚫 Rate limited (429) on final attempt for {action}")
                            break
                        retry_after = self._retry_after(response.headers.get('Retry-After'), attempt)
                        logger.warning(f"⚠️ Rate limited (429). Waiting {retry_after}s before retry {attempt}/{retries}...")
                        await asyncio.sleep(retry_after)
                        continue

                    if response.status >= 500 and attempt < retries:
                        sleep_time = self._backoff(attempt)
                        logger.warning(f"⚠️ Server error {response.status}. Retry {attempt}/{retries} in {sleep_time}s...")
                        await asyncio.sleep(sleep_time)
                        continue

                    text = await response.text()
                    body = self._check_response(response.status, text, action,
                                                allow_empty=method == 'DELETE')

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if attempt < retries:
                    sleep_time = self._backoff(attempt)
                    logger.warning(f"⚠️ Request exception: {e!r}. Retry {attempt}/{retries} in {sleep_time}s...")
                    await asyncio.sleep(sleep_time)
                    continue
                logger.error(f"🚫 All retries exhausted for {action}")
                raise RemoteCallError(f"All retries exhausted for {action}: {e!r}") from e

            if self.settings.api_delay:
                await asyncio.sleep(self.settings.api_delay)
            return body

        if isinstance(last_exception, RemoteCallError):
            raise last_exception
        raise RemoteCallError(f"All retries exhausted for {action}")

    def _check_response(self, status: int, text: str, action: str,
                        allow_empty: bool = False) -> Dict:
        """Validate API response and return JSON data."""
        if allow_empty and 200 <= status < 300 and not text.strip():
            # e.g. 204 No Content on DELETE
            return {'success': True, 'result': None}

        try:
            data = json.loads(text) if text else {}
        except ValueError:
            logger.error(f"🚫 Error {action}: {status} - unreadable body")
            raise RemoteCallError(f"API returned a non-JSON body during {action}", status=status)

        if not 200 <= status < 300:
            logger.error(f"🚫 Error {action}: {status} - {text}")
            raise RemoteCallError(f"API error during {action}: {status} - {_first_error(data)}", status=status)

        if not isinstance(data, dict) or not data.get('success', False):
            logger.error(f"🚫 API success false during {action}: {text}")
            raise RemoteCallError(f"API returned success=false during {action}: {_first_error(data)}",
                                  status=status)

        return data

    async def get_all(self, path: str, per_page: int = PER_PAGE) -> List[Dict]:
        """Fetch all items from a paginated endpoint. A null result is an empty list."""
        all_items = []
        page = 1

        while True:
            data = await self.request('GET', path, params={"per_page": per_page, "page": page})

            items = data.get('result') or []
            all_items.extend(items)

            result_info = data.get('result_info') or {}
            total_count = result_info.get('total_count', 0)

            if page * result_info.get('per_page', per_page) >= total_count or not items:
                break

            page += 1

        logger.debug(f"☄️ Fetched {len(all_items)} items from {path} ({page} page(s))")
        return all_items

    async def get_lists(self) -> List[Dict]:
        return await self.get_all("/lists")

    async def create_list(self, name: str, domains: List[str]) -> Dict:
        payload = {
            "name": name,
            "type": "DOMAIN",
            "items": [{"value": domain} for domain in domains],
        }
        data = await self.request('POST', "/lists", payload)
        return data.get('result') or {}

    async def delete_list(self, list_id: str):
        await self.request('DELETE', f"/lists/{list_id}")

    async def get_rules(self) -> List[Dict]:
        return await self.get_all("/rules")

    async def create_rule(self, payload: Dict) -> Dict:
        data = await self.request('POST', "/rules", payload)
        return data.get('result') or {}

    async def update_rule(self, rule_id: str, payload: Dict) -> Dict:
        data = await self.request('PUT', f"/rules/{rule_id}", payload)
        return data.get('result') or {}

    async def delete_rule(self, rule_id: str):
        await self.request('DELETE', f"/rules/{rule_id}")


def _first_error(data) -> str:
    """First error message of a Cloudflare error envelope, if any."""
    if isinstance(data, dict):
        errors = data.get('errors') or []
        if errors and isinstance(errors[0], dict):
            return str(errors[0].get('message', errors[0]))
    return 'unknown error'
