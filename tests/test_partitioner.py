"""Tests for domain partitioning across lists and accounts."""

import pytest

from gateway_sync.errors import CapacityError, ConfigurationError
from gateway_sync.partitioner import ListChunk, chunker, partition
from tests.fakes import make_accounts


def _domains(count):
    return [f"d{n}.example.com" for n in range(count)]


def _flatten(plan):
    return [domain for chunks in plan.values() for chunk in chunks for domain in chunk.domains]


class TestChunker:
    def test_splits_in_order(self):
        assert list(chunker([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert list(chunker([], 3)) == []


class TestSingleAccount:
    def test_chunk_count_and_sizes(self):
        accounts = make_accounts(1)
        plan = partition(_domains(2500), 1000, accounts, 300000)

        chunks = plan[accounts[0]]
        assert [len(chunk) for chunk in chunks] == [1000, 1000, 500]
        assert [chunk.number for chunk in chunks] == [1, 2, 3]
        assert all(chunk.account == accounts[0] for chunk in chunks)

    def test_exact_multiple_has_no_empty_chunk(self):
        accounts = make_accounts(1)
        plan = partition(_domains(2000), 1000, accounts, 300000)
        assert [len(chunk) for chunk in plan[accounts[0]]] == [1000, 1000]

    def test_no_domains_gives_no_chunks(self):
        accounts = make_accounts(1)
        assert partition([], 1000, accounts, 300000) == {accounts[0]: []}

    def test_reserved_slot_applies(self):
        accounts = make_accounts(1)
        with pytest.raises(CapacityError):
            partition(_domains(5), 2, accounts, 5)
        plan = partition(_domains(4), 2, accounts, 5)
        assert len(_flatten(plan)) == 4


class TestMultiAccount:
    def test_fills_accounts_in_order(self):
        accounts = make_accounts(3)
        domains = _domains(12)
        plan = partition(domains, 2, accounts, 6)

        assert [len(c) for c in plan[accounts[0]]] == [2, 2, 1]
        assert [len(c) for c in plan[accounts[1]]] == [2, 2, 1]
        assert [len(c) for c in plan[accounts[2]]] == [2]
        assert plan[accounts[0]][0].domains == tuple(domains[0:2])
        assert plan[accounts[1]][0].domains == tuple(domains[5:7])
        assert plan[accounts[2]][0].domains == tuple(domains[10:12])

    def test_numbers_restart_per_account(self):
        accounts = make_accounts(2)
        plan = partition(_domains(8), 2, accounts, 6)
        assert [c.number for c in plan[accounts[1]]] == [1, 2]

    def test_unneeded_accounts_get_nothing(self):
        accounts = make_accounts(3)
        plan = partition(_domains(3), 2, accounts, 6)

        assert list(plan) == accounts
        assert plan[accounts[1]] == []
        assert plan[accounts[2]] == []

    def test_capacity_error(self):
        accounts = make_accounts(3)
        with pytest.raises(CapacityError) as excinfo:
            partition(_domains(16), 2, accounts, 6)

        assert excinfo.value.required_accounts == 4
        assert excinfo.value.configured_accounts == 3
        assert "Need 4 accounts" in str(excinfo.value)
        assert "only 3 accounts are configured" in str(excinfo.value)

    def test_exactly_at_capacity(self):
        accounts = make_accounts(3)
        plan = partition(_domains(15), 2, accounts, 6)
        assert all(sum(len(c) for c in plan[a]) == 5 for a in accounts)


class TestPartitionProperties:
    @pytest.mark.parametrize("count,per_list,accounts,limit", [
        (0, 3, 1, 10),
        (1, 3, 1, 10),
        (9, 3, 1, 10),
        (7, 3, 2, 5),
        (8, 3, 2, 5),
        (25, 4, 4, 8),
        (13, 1, 5, 4),
        (100, 7, 3, 40),
    ])
    def test_completeness_and_bounds(self, count, per_list, accounts, limit):
        domains = _domains(count)
        plan = partition(domains, per_list, make_accounts(accounts), limit)

        assert _flatten(plan) == domains
        for chunks in plan.values():
            assert all(isinstance(chunk, ListChunk) for chunk in chunks)
            assert all(0 < len(chunk) <= per_list for chunk in chunks)
            assert all(len(chunk) == per_list for chunk in chunks[:-1])
            assert sum(len(chunk) for chunk in chunks) <= limit - 1

    def test_deterministic(self):
        accounts = make_accounts(3)
        domains = _domains(40)
        assert partition(domains, 3, accounts, 20) == partition(domains, 3, accounts, 20)

    def test_input_not_mutated(self):
        domains = _domains(10)
        snapshot = list(domains)
        partition(domains, 3, make_accounts(2), 8)
        assert domains == snapshot


class TestInvalidArguments:
    def test_no_accounts(self):
        with pytest.raises(ConfigurationError):
            partition(_domains(3), 2, [], 10)

    def test_zero_list_size(self):
        with pytest.raises(ConfigurationError):
            partition(_domains(3), 0, make_accounts(1), 10)

    def test_account_limit_too_small(self):
        with pytest.raises(ConfigurationError):
            partition(_domains(1), 2, make_accounts(1), 1)
