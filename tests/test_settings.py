"""Tests for settings configuration loading."""

from __future__ import annotations

from textwrap import dedent

import pytest
from pydantic import ValidationError

from staking_valuation.constants import Chain, VaultKind
from staking_valuation.domain import LpTokenVault, SingleTokenVault
from staking_valuation.settings import EngineSettings, VaultSettings

ILV_VAULT = "0x" + "d" * 40
LP_VAULT = "0x" + "f" * 40
ILV = "0x" + "e" * 40
LP = "0x" + "1" * 40
TOKEN0 = "0x" + "2" * 40
TOKEN1 = "0x" + "3" * 40


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    def _write(body: str):
        path = tmp_path / "config.toml"
        path.write_text(dedent(body).strip())
        monkeypatch.setenv("STAKING_VALUATION_CONFIG", str(path))
        return path

    return _write


def test_loads_vaults_and_rates_from_toml(config_file):
    config_file(
        f"""
        [staking_valuation]
        price_cache_ttl_seconds = 60
        strict_amounts = true

        [staking_valuation.reward_rates]
        single_token = 100
        by_symbol = {{ "ILV/ETH" = 30 }}

        [[staking_valuation.vaults]]
        address = "{ILV_VAULT}"
        symbol = "ILV"
        kind = "single_token"
        asset_address = "{ILV}"

        [[staking_valuation.vaults]]
        address = "{LP_VAULT}"
        chain = "obelisk"
        symbol = "ILV/ETH"
        kind = "lp_token"
        lp_address = "{LP}"
        token0 = "{TOKEN0}"
        token1 = "{TOKEN1}"
        active = false
        """
    )

    settings = EngineSettings()

    assert settings.price_cache_ttl_seconds == 60
    assert settings.strict_amounts is True

    single, lp = settings.vault_configs
    assert isinstance(single.descriptor, SingleTokenVault)
    assert single.chain is Chain.BASE
    assert single.is_active is True
    assert isinstance(lp.descriptor, LpTokenVault)
    assert lp.chain is Chain.OBELISK
    assert lp.kind is VaultKind.LP_TOKEN
    assert lp.is_active is False

    rates = settings.reward_rate_table
    assert rates.rate_for(VaultKind.SINGLE_TOKEN, "ILV") == 100
    assert rates.rate_for(VaultKind.LP_TOKEN, "ILV/ETH") == 30
    assert rates.rate_for(VaultKind.LP_TOKEN, "OTHER/ETH") == 20


def test_top_level_toml_keys_are_accepted(config_file):
    config_file("log_level = \"DEBUG\"\nprice_fetch_max_tries = 2")

    settings = EngineSettings()

    assert settings.log_level == "DEBUG"
    assert settings.price_fetch_max_tries == 2


def test_precedence_cli_over_env_over_file(config_file, monkeypatch):
    config_file(
        """
        price_cache_ttl_seconds = 60
        price_fetch_timeout = 3.0
        log_level = "WARNING"
        """
    )
    monkeypatch.setenv("STAKING_VALUATION_PRICE_CACHE_TTL_SECONDS", "120")
    monkeypatch.setenv("STAKING_VALUATION_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("STAKING_VALUATION_REWARD_RATES__LP_TOKEN", "25")

    settings = EngineSettings(log_level="DEBUG")

    assert settings.log_level == "DEBUG"
    assert settings.price_cache_ttl_seconds == 120
    assert settings.price_fetch_timeout == 3.0
    assert settings.reward_rates.lp_token == 25


def test_secret_in_toml_is_rejected(config_file):
    config_file('coingecko_api_key = "leaked"')

    with pytest.raises(ValueError, match="Security violation"):
        EngineSettings()


def test_secret_from_env_is_redacted(monkeypatch, tmp_path):
    monkeypatch.setenv("STAKING_VALUATION_CONFIG", str(tmp_path / "missing.toml"))
    monkeypatch.setenv("STAKING_VALUATION_COINGECKO_API_KEY", "cg-secret")

    settings = EngineSettings()

    assert settings.coingecko_api_key is not None
    assert settings.coingecko_api_key.get_secret_value() == "cg-secret"
    assert settings.as_safe_dict()["coingecko_api_key"] == "***redacted***"


def test_coingecko_ids_are_lowercased():
    settings = EngineSettings(coingecko_ids={"0x" + "AB" * 20: "illuvium"})

    assert settings.coingecko_ids == {"0x" + "ab" * 20: "illuvium"}


@pytest.mark.parametrize("ttl", [0, -1])
def test_non_positive_cache_ttl_is_rejected(ttl):
    with pytest.raises(ValidationError):
        EngineSettings(price_cache_ttl_seconds=ttl)


def test_duplicate_vaults_are_rejected():
    vault = {
        "address": ILV_VAULT,
        "symbol": "ILV",
        "kind": "single_token",
        "asset_address": ILV,
    }
    duplicate = dict(vault, address=ILV_VAULT.upper().replace("0X", "0x"))

    with pytest.raises(ValidationError, match="Duplicate vault address"):
        EngineSettings(vaults=[vault, duplicate])


@pytest.mark.parametrize(
    "fields,match",
    [
        ({"kind": "single_token"}, "single_token vaults require asset_address"),
        (
            {"kind": "single_token", "asset_address": ILV, "lp_address": LP},
            "single_token vaults do not accept lp_address",
        ),
        (
            {"kind": "lp_token", "lp_address": LP},
            "lp_token vaults require token0, token1",
        ),
        (
            {
                "kind": "lp_token",
                "lp_address": LP,
                "token0": TOKEN0,
                "token1": TOKEN1,
                "asset_address": ILV,
            },
            "lp_token vaults do not accept asset_address",
        ),
        (
            {"kind": "single_token", "asset_address": "0x123"},
            "asset_address is not a valid address",
        ),
        ({"kind": "staked_nft", "asset_address": ILV}, "kind"),
    ],
)
def test_vault_fields_must_match_kind(fields, match):
    with pytest.raises(ValidationError, match=match):
        VaultSettings(address=ILV_VAULT, symbol="ILV", **fields)
