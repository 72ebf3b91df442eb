"""Unit tests for DefiLlama pool payload parsing."""
from __future__ import annotations

import pytest

from yield_allocator.feeds.parser import parse_pool, parse_pools


def _record(**overrides) -> dict:
    record = {
        "pool": "747c1d2a-c668-4682-b9f9-296708a3dd90",
        "symbol": "STETH",
        "project": "lido",
        "chain": "Ethereum",
        "apy": 3.1,
        "tvlUsd": 12_000_000_000,
    }
    record.update(overrides)
    return record


class TestParsePool:
    def test_valid_record(self) -> None:
        pool = parse_pool(_record())
        assert pool is not None
        assert pool.pool_id == "747c1d2a-c668-4682-b9f9-296708a3dd90"
        assert pool.chain == "Ethereum"
        assert pool.apy == 3.1
        assert pool.tvl_usd == 12_000_000_000

    def test_missing_id_dropped(self) -> None:
        assert parse_pool(_record(pool=None)) is None

    def test_missing_numbers_read_as_zero(self) -> None:
        pool = parse_pool(_record(apy=None, tvlUsd=None))
        assert pool is not None
        assert pool.apy == 0.0
        assert pool.tvl_usd == 0.0

    @pytest.mark.parametrize("bad", ["n/a", float("nan"), float("inf"), True, [1]])
    def test_non_numeric_yield_dropped(self, bad) -> None:
        assert parse_pool(_record(apy=bad)) is None

    def test_numeric_strings_accepted(self) -> None:
        pool = parse_pool(_record(apy="612.5", tvlUsd="1000000"))
        assert pool is not None
        assert pool.apy == 612.5

    def test_non_dict_dropped(self) -> None:
        assert parse_pool("not a record") is None  # type: ignore[arg-type]


class TestParsePools:
    def test_parses_data_list(self) -> None:
        payload = {"status": "success", "data": [_record(pool="a"), _record(pool="b")]}
        assert [p.pool_id for p in parse_pools(payload)] == ["a", "b"]

    def test_skips_bad_records(self) -> None:
        payload = {"data": [_record(pool="a"), _record(pool=""), _record(pool="c", apy="x")]}
        assert [p.pool_id for p in parse_pools(payload)] == ["a"]

    def test_duplicate_ids_first_wins(self) -> None:
        payload = {"data": [_record(pool="a", apy=10), _record(pool="a", apy=99)]}
        pools = parse_pools(payload)
        assert len(pools) == 1
        assert pools[0].apy == 10

    def test_empty_data_list(self) -> None:
        assert parse_pools({"data": []}) == []

    @pytest.mark.parametrize("payload", [None, [], {}, {"data": "nope"}])
    def test_malformed_payload_raises(self, payload) -> None:
        with pytest.raises(ValueError, match="Malformed pool payload"):
            parse_pools(payload)
