"""In-memory stand-ins for the Gateway API used across the test suite."""

import itertools
from typing import Dict, List, Optional, Tuple

from gateway_sync.config import AccountConfig, Settings
from gateway_sync.errors import RemoteCallError


def make_accounts(count: int) -> List[AccountConfig]:
    return [
        AccountConfig(account_id=f"account-{n}", account_number=n, api_token=f"token-{n}")
        for n in range(1, count + 1)
    ]


def make_settings(accounts: Optional[List[AccountConfig]] = None, **overrides) -> Settings:
    values = dict(
        accounts=accounts if accounts is not None else make_accounts(1),
        list_item_size=1000,
        list_item_limit=300000,
        backoff_factor=0,
        api_delay=0,
    )
    values.update(overrides)
    return Settings(**values)


class FakeGateway:
    """
    One account's lists and rules, with call tracking.

    ``failures`` maps a method name to the number of calls that succeed
    before every further call to it raises RemoteCallError.
    """

    def __init__(self, account: AccountConfig, failures: Optional[Dict[str, int]] = None):
        self.account = account
        self.failures = dict(failures or {})
        self.lists: Dict[str, Dict] = {}
        self.rules: Dict[str, Dict] = {}
        self.calls: List[Tuple] = []
        self._ids = itertools.count(1)
        self._counts: Dict[str, int] = {}
        self.opened = 0

    async def __aenter__(self):
        self.opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def _record(self, method: str, *args):
        self.calls.append((method,) + args)
        self._counts[method] = self._counts.get(method, 0) + 1
        allowed = self.failures.get(method)
        if allowed is not None and self._counts[method] > allowed:
            raise RemoteCallError(f"{method} failed for {self.account.account_id}", status=500)

    def _next_id(self, kind: str) -> str:
        return f"{self.account.account_number}-{kind}-{next(self._ids)}"

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def add_list(self, name: str, domains: Optional[List[str]] = None) -> str:
        list_id = self._next_id("list")
        self.lists[list_id] = {"id": list_id, "name": name, "items": list(domains or [])}
        return list_id

    def add_rule(self, name: str, traffic: str = "", filters: Optional[List[str]] = None) -> str:
        rule_id = self._next_id("rule")
        self.rules[rule_id] = {"id": rule_id, "name": name, "traffic": traffic,
                               "filters": filters or ["dns"], "enabled": True}
        return rule_id

    def rules_named(self, name: str) -> List[Dict]:
        return [rule for rule in self.rules.values() if rule["name"] == name]

    async def get_lists(self) -> List[Dict]:
        self._record("get_lists")
        return [{"id": lst["id"], "name": lst["name"]} for lst in self.lists.values()]

    async def create_list(self, name: str, domains: List[str]) -> Dict:
        self._record("create_list", name, tuple(domains))
        list_id = self.add_list(name, domains)
        return {"id": list_id, "name": name}

    async def delete_list(self, list_id: str):
        self._record("delete_list", list_id)
        del self.lists[list_id]

    async def get_rules(self) -> List[Dict]:
        self._record("get_rules")
        return [dict(rule) for rule in self.rules.values()]

    async def create_rule(self, payload: Dict) -> Dict:
        self._record("create_rule", payload)
        rule_id = self._next_id("rule")
        self.rules[rule_id] = dict(payload, id=rule_id)
        return dict(self.rules[rule_id])

    async def update_rule(self, rule_id: str, payload: Dict) -> Dict:
        self._record("update_rule", rule_id, payload)
        self.rules[rule_id] = dict(payload, id=rule_id)
        return dict(self.rules[rule_id])

    async def delete_rule(self, rule_id: str):
        self._record("delete_rule", rule_id)
        del self.rules[rule_id]


class FakeCloud:
    """Client factory handing out one persistent FakeGateway per account."""

    def __init__(self, failures: Optional[Dict[int, Dict[str, int]]] = None):
        self.failures = failures or {}
        self.gateways: Dict[str, FakeGateway] = {}

    def __call__(self, account: AccountConfig) -> FakeGateway:
        return self.gateway(account)

    def gateway(self, account: AccountConfig) -> FakeGateway:
        if account.account_id not in self.gateways:
            self.gateways[account.account_id] = FakeGateway(
                account, self.failures.get(account.account_number))
        return self.gateways[account.account_id]

    @property
    def total_calls(self) -> int:
        return sum(len(gateway.calls) for gateway in self.gateways.values())
