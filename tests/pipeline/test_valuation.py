from __future__ import annotations

import asyncio

import pytest

from staking_valuation.adapters import (
    BasePositionSource,
    SnapshotDocument,
    SnapshotEarningsSource,
    SnapshotPositionSource,
    SnapshotPriceSource,
    SnapshotReserveSource,
)
from staking_valuation.cache import PriceCache
from staking_valuation.constants import VaultKind
from staking_valuation.errors import InputValidationError, UpstreamUnavailableError
from staking_valuation.pipeline import (
    PositionValuationPipeline,
    fold_wallet_summary,
    select_vaults,
)
from staking_valuation.pricing import LpFairPriceCalculator

NOW = 1_700_000_000
DAY = 86_400
E18 = 10**18

WALLET = "0x" + "c" * 40
ILV = "0x" + "e" * 40
TOKEN0 = "0x" + "2" * 40
TOKEN1 = "0x" + "3" * 40
LP = "0x" + "1" * 40
ILV_VAULT = "0x" + "d" * 40
LP_VAULT = "0x" + "f" * 40


def snapshot_data(**overrides) -> dict:
    data = {
        "prices": [
            {"token_address": ILV, "usd_price": 50.0},
            {"token_address": TOKEN0, "usd_price": 10.0},
            {"token_address": TOKEN1, "usd_price": 3000.0},
        ],
        "reserves": [
            {
                "lp_address": LP,
                "token0": TOKEN0,
                "token1": TOKEN1,
                "reserve0": {"raw": str(1000 * E18)},
                "reserve1": {"raw": str(500 * E18)},
                "total_supply": {"raw": str(1000 * E18)},
                "block_number": 123,
            }
        ],
        "positions": [
            {
                "wallet": WALLET,
                "vault_address": ILV_VAULT.upper().replace("0X", "0x"),
                "tranches": [
                    {
                        "tranche_id": "1",
                        "deposited_at": NOW - 10 * DAY,
                        "lock_days": 30,
                        "shares": "5",
                        "assets": str(10 * E18),
                    },
                    {
                        "tranche_id": "2",
                        "deposited_at": NOW - 100 * DAY,
                        "lock_days": 0,
                        "shares": "0",
                        "assets": str(E18),
                    },
                ],
            },
            {
                "wallet": WALLET,
                "vault_address": LP_VAULT,
                "tranches": [
                    {
                        "tranche_id": "3",
                        "deposited_at": NOW - DAY,
                        "lock_days": 0,
                        "shares": "2",
                        "assets": str(2 * E18),
                    }
                ],
            },
        ],
        "earnings": {WALLET: 1234},
        "vaults": [
            {
                "address": ILV_VAULT,
                "symbol": "ILV",
                "kind": "single_token",
                "asset_address": ILV,
            },
            {
                "address": LP_VAULT,
                "symbol": "ILV/ETH",
                "kind": "lp_token",
                "lp_address": LP,
                "token0": TOKEN0,
                "token1": TOKEN1,
            },
        ],
    }
    data.update(overrides)
    return data


def build(
    document: SnapshotDocument,
    with_earnings: bool = True,
    strict_amounts: bool = False,
    position_source: BasePositionSource | None = None,
    timeout_seconds: float | None = None,
) -> PositionValuationPipeline:
    calculator = LpFairPriceCalculator(
        reserve_source=SnapshotReserveSource(document),
        price_source=SnapshotPriceSource(document),
        cache=PriceCache(),
    )
    return PositionValuationPipeline(
        calculator=calculator,
        position_source=position_source or SnapshotPositionSource(document),
        earnings_source=SnapshotEarningsSource(document) if with_earnings else None,
        strict_amounts=strict_amounts,
        timeout_seconds=timeout_seconds,
    )


def vaults_of(document: SnapshotDocument):
    return [v.to_config() for v in document.vaults]


@pytest.mark.asyncio
async def test_values_single_token_and_lp_positions():
    document = SnapshotDocument.model_validate(snapshot_data())

    summary = await build(document).value_wallet(WALLET, vaults_of(document), NOW)

    ilv, lp = summary.vaults
    assert ilv.vault_id == "ilv_vault"
    assert ilv.kind is VaultKind.SINGLE_TOKEN
    assert ilv.unit_price_usd == 50.0
    assert ilv.price_method == "snapshot"
    assert ilv.position_count == 1
    assert ilv.total_staked == "10"
    assert ilv.total_staked_raw == str(10 * E18)
    assert ilv.total_staked_usd == pytest.approx(500.0)

    (tranche,) = ilv.tranches
    assert tranche.remaining_lock_days == 20
    assert tranche.unlock_at == NOW + 20 * DAY
    assert tranche.accrual.multiplier_applied == pytest.approx(1 + 30 / 365)
    assert tranche.accrual.earned_units == 43

    assert lp.vault_id == "ilv_eth_vault"
    assert lp.price_method == "geometric"
    assert lp.unit_price_usd == pytest.approx(244.949, rel=1e-5)
    assert lp.total_staked_usd == pytest.approx(489.898, rel=1e-5)
    assert lp.total_earned_units == 9
    assert lp.tranches[0].is_locked is False

    assert summary.portfolio_value_usd == pytest.approx(989.898, rel=1e-5)
    assert summary.total_positions == 2
    assert summary.vaults_with_stakes == 2
    assert summary.total_earned_units == 1234
    assert summary.earned_source == "historical"
    assert summary.valued_at == NOW


@pytest.mark.asyncio
async def test_earned_total_falls_back_to_active_tranches():
    document = SnapshotDocument.model_validate(snapshot_data(earnings={}))

    summary = await build(document).value_wallet(WALLET, vaults_of(document), NOW)

    assert summary.total_earned_units == 43 + 9
    assert summary.earned_source == "active_tranches"


@pytest.mark.asyncio
async def test_earned_total_without_earnings_source():
    document = SnapshotDocument.model_validate(snapshot_data())
    pipeline = build(document, with_earnings=False)

    summary = await pipeline.value_wallet(WALLET, vaults_of(document), NOW)

    assert summary.earned_source == "active_tranches"


@pytest.mark.asyncio
async def test_unpriceable_vault_degrades_to_zero(caplog):
    document = SnapshotDocument.model_validate(snapshot_data(reserves=[]))

    with caplog.at_level("WARNING"):
        summary = await build(document, with_earnings=False).value_wallet(
            WALLET, vaults_of(document), NOW
        )

    ilv, lp = summary.vaults
    assert ilv.total_staked_usd == pytest.approx(500.0)
    assert lp.unit_price_usd == 0.0
    assert lp.price_method == "unavailable"
    assert "No reserves" in lp.price_error
    assert lp.total_staked == "2"
    assert lp.total_staked_usd == 0.0
    assert lp.total_earned_units == 0
    assert summary.portfolio_value_usd == pytest.approx(500.0)
    assert summary.total_earned_units == 43
    assert "Failed to get price for vault ilv_eth_vault" in caplog.text


@pytest.mark.asyncio
async def test_missing_single_token_price_degrades_to_zero():
    data = snapshot_data(prices=[{"token_address": TOKEN0, "usd_price": 10.0}])
    document = SnapshotDocument.model_validate(data)

    summary = await build(document).value_wallet(WALLET, vaults_of(document), NOW)

    assert all(v.unit_price_usd == 0.0 for v in summary.vaults)
    assert all(v.price_error for v in summary.vaults)
    assert summary.portfolio_value_usd == 0.0


@pytest.mark.asyncio
async def test_invalid_wallet_is_rejected():
    document = SnapshotDocument.model_validate(snapshot_data())

    with pytest.raises(InputValidationError, match="Invalid wallet address"):
        await build(document).value_wallet("0xnope", vaults_of(document), NOW)


@pytest.mark.asyncio
async def test_malformed_amount_is_zero_when_lenient_and_rejected_when_strict():
    data = snapshot_data()
    data["positions"][1]["tranches"][0]["assets"] = "12abc"
    document = SnapshotDocument.model_validate(data)

    lenient = await build(document).value_wallet(WALLET, vaults_of(document), NOW)
    assert lenient.vaults[1].total_staked == "0"
    assert lenient.vaults[1].total_staked_usd == 0.0

    with pytest.raises(InputValidationError, match="malformed raw amount"):
        await build(document, strict_amounts=True).value_wallet(
            WALLET, vaults_of(document), NOW
        )


@pytest.mark.asyncio
async def test_oversized_amount_values_only_its_vault_at_zero():
    data = snapshot_data()
    data["positions"][1]["tranches"][0]["assets"] = "9" * 5000
    document = SnapshotDocument.model_validate(data)

    summary = await build(document).value_wallet(WALLET, vaults_of(document), NOW)

    ilv, lp = summary.vaults
    assert ilv.total_staked_usd == pytest.approx(500.0)
    assert lp.total_staked == "0"
    assert lp.total_staked_usd == 0.0
    assert lp.total_earned_units == 0
    assert summary.portfolio_value_usd == pytest.approx(500.0)

    with pytest.raises(InputValidationError, match="malformed raw amount"):
        await build(document, strict_amounts=True).value_wallet(
            WALLET, vaults_of(document), NOW
        )


@pytest.mark.asyncio
async def test_inactive_vaults_are_skipped():
    data = snapshot_data()
    data["vaults"][1]["active"] = False
    document = SnapshotDocument.model_validate(data)

    summary = await build(document).value_wallet(WALLET, vaults_of(document), NOW)

    assert [v.vault_id for v in summary.vaults] == ["ilv_vault"]
    assert summary.total_positions == 1


@pytest.mark.asyncio
async def test_wallet_without_positions_has_empty_vaults():
    document = SnapshotDocument.model_validate(snapshot_data(positions=[]))
    other_wallet = "0x" + "9" * 40

    summary = await build(document, with_earnings=False).value_wallet(
        other_wallet, vaults_of(document), NOW
    )

    assert summary.portfolio_value_usd == 0.0
    assert summary.vaults_with_stakes == 0
    assert all(not v.has_stake for v in summary.vaults)
    assert summary.vaults[0].total_staked == "0"


class FailingPositionSource(BasePositionSource):
    async def fetch_positions(self, wallet, chain):
        raise ConnectionError("indexer offline")


class SlowPositionSource(BasePositionSource):
    async def fetch_positions(self, wallet, chain):
        await asyncio.sleep(0.2)
        return []


@pytest.mark.asyncio
async def test_position_source_failure_is_upstream_error():
    document = SnapshotDocument.model_validate(snapshot_data())
    pipeline = build(document, position_source=FailingPositionSource())

    with pytest.raises(UpstreamUnavailableError, match="indexer offline"):
        await pipeline.value_wallet(WALLET, vaults_of(document), NOW)


@pytest.mark.asyncio
async def test_valuation_raises_timeout():
    document = SnapshotDocument.model_validate(snapshot_data())
    pipeline = build(
        document, position_source=SlowPositionSource(), timeout_seconds=0.05
    )

    with pytest.raises(asyncio.TimeoutError):
        await pipeline.value_wallet(WALLET, vaults_of(document), NOW)


def test_select_vaults_by_id_and_search():
    document = SnapshotDocument.model_validate(snapshot_data())
    vaults = vaults_of(document)

    assert [v.symbol for v in select_vaults(vaults, vault_id="ILV_VAULT")] == ["ILV"]
    assert [v.symbol for v in select_vaults(vaults, search="eth")] == ["ILV/ETH"]
    assert [v.symbol for v in select_vaults(vaults, search="DDDD")] == ["ILV"]
    assert len(select_vaults(vaults)) == 2
    assert select_vaults(vaults, vault_id="missing_vault") == []


def test_fold_of_no_vaults():
    summary = fold_wallet_summary(WALLET, [], NOW)

    assert summary.portfolio_value_usd == 0
    assert summary.total_positions == 0
    assert summary.total_earned_units == 0
    assert summary.earned_source == "active_tranches"
