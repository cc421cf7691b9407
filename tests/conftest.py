"""Shared fixtures for gateway_sync tests."""

import pytest

from tests.fakes import FakeCloud, FakeGateway, make_accounts


@pytest.fixture
def account():
    return make_accounts(1)[0]


@pytest.fixture
def gateway(account):
    return FakeGateway(account)


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest.fixture
def domains():
    return [f"ads{n}.example.com" for n in range(1, 26)]
