from __future__ import annotations

import logging

import pytest

from staking_valuation.constants import Chain, VaultKind
from staking_valuation.domain import (
    DepositTranche,
    LpTokenVault,
    SingleTokenVault,
    TokenAmount,
    VaultConfig,
    canonical_address,
)
from staking_valuation.errors import (
    InputValidationError,
    UpstreamUnavailableError,
    ValuationError,
)
from staking_valuation.logger import TRACE, setup_logging
from staking_valuation.validation import validate_address, validate_chain


def vault(symbol: str) -> VaultConfig:
    return VaultConfig(
        address="0x" + "d" * 40,
        chain=Chain.BASE,
        symbol=symbol,
        descriptor=SingleTokenVault(asset_address="0x" + "e" * 40, decimals=18),
    )


@pytest.mark.parametrize(
    "symbol,expected",
    [("ILV", "ilv_vault"), ("ILV/ETH", "ilv_eth_vault"), ("ILV-LP", "ilv_vault")],
)
def test_vault_id(symbol, expected):
    assert vault(symbol).vault_id == expected


def test_vault_kind_follows_descriptor():
    lp = VaultConfig(
        address="0x" + "f" * 40,
        chain=Chain.OBELISK,
        symbol="ILV/ETH",
        descriptor=LpTokenVault(
            lp_address="0x" + "1" * 40,
            token0="0x" + "2" * 40,
            token1="0x" + "3" * 40,
            decimals=18,
        ),
    )

    assert lp.kind is VaultKind.LP_TOKEN
    assert lp.descriptor.priced_address == "0x" + "1" * 40
    assert vault("ILV").kind is VaultKind.SINGLE_TOKEN


def test_token_amount():
    amount = TokenAmount("1500000", 6)

    assert amount.display == "1.5"
    assert not amount.is_zero()
    assert TokenAmount("0", 18).is_zero()


def test_retired_tranche_has_zero_shares():
    live = DepositTranche("1", 0, 30, shares="10", assets="10")
    retired = DepositTranche("2", 0, 30, shares="0", assets="10")

    assert not live.is_retired
    assert retired.is_retired


def test_canonical_address():
    address = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

    assert canonical_address(address) == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    assert canonical_address("0xNOTHEX") == "0xnothex"


@pytest.mark.parametrize(
    "address",
    ["0x" + "a" * 40, "0x" + "A" * 40, "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"],
)
def test_validate_address_accepts_hex(address):
    assert validate_address(address) == address


@pytest.mark.parametrize(
    "address", ["", "0x", "0x" + "a" * 39, "0x" + "a" * 41, "0x" + "g" * 40, None, 42]
)
def test_validate_address_rejects_malformed(address):
    with pytest.raises(InputValidationError, match="Invalid wallet format"):
        validate_address(address, "wallet")


def test_validate_chain():
    assert validate_chain("Base") is Chain.BASE
    assert validate_chain(Chain.OBELISK) is Chain.OBELISK
    with pytest.raises(InputValidationError, match="supported: base, obelisk"):
        validate_chain("ethereum")
    with pytest.raises(InputValidationError):
        validate_chain(None)


def test_error_taxonomy():
    error = UpstreamUnavailableError("0xabc", "timeout")

    assert isinstance(error, ValuationError)
    assert error.entity == "0xabc"
    assert str(error) == "Upstream data unavailable for 0xabc: timeout"
    bare = UpstreamUnavailableError("0xabc")
    assert str(bare) == "Upstream data unavailable for 0xabc"
    assert issubclass(InputValidationError, ValueError)


def test_setup_logging_levels():
    setup_logging("trace")
    assert logging.getLogger().level == TRACE

    setup_logging("DEBUG")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("web3").level == logging.WARNING

    setup_logging("bogus")
    assert logging.getLogger().level == logging.INFO
