"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    ADDRESS_PATTERN,
    DEFAULT_COINGECKO_API_URL,
    DEFAULT_COINGECKO_IDS,
    DEFAULT_LP_TOKEN_RATE,
    DEFAULT_PRICE_TTL_SECONDS,
    DEFAULT_SINGLE_TOKEN_RATE,
    Chain,
    VaultKind,
)
from .domain import LpTokenVault, SingleTokenVault, VaultConfig
from .rewards import RewardRateTable

load_dotenv()

SECRET_FIELDS = {"coingecko_api_key"}


def _check_address(value: str | None, field_name: str) -> str | None:
    if value is not None and not ADDRESS_PATTERN.match(value):
        raise ValueError(f"{field_name} is not a valid address: {value!r}")
    return value


class RewardRateSettings(BaseModel):
    """Base shard rates (per $1,000 per day)."""

    single_token: float = Field(default=DEFAULT_SINGLE_TOKEN_RATE, ge=0)
    lp_token: float = Field(default=DEFAULT_LP_TOKEN_RATE, ge=0)
    by_symbol: dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    def to_table(self) -> RewardRateTable:
        return RewardRateTable(
            single_token=self.single_token,
            lp_token=self.lp_token,
            by_symbol=dict(self.by_symbol),
        )


class VaultSettings(BaseModel):
    """Vault entry as written in the config file.

    The file format keeps single-asset and LP fields side by side; validation
    enforces that only the fields valid for ``kind`` are present, and
    :meth:`to_config` turns the entry into the typed descriptor.
    """

    address: str
    chain: Chain = Chain.BASE
    symbol: str
    kind: VaultKind
    asset_address: str | None = None
    lp_address: str | None = None
    token0: str | None = None
    token1: str | None = None
    decimals: int = Field(default=18, ge=0)
    active: bool = True

    model_config = ConfigDict(extra="ignore")

    @field_validator("address", "asset_address", "lp_address", "token0", "token1")
    @classmethod
    def validate_address(cls, v: str | None, info: ValidationInfo) -> str | None:
        return _check_address(v, info.field_name or "address")

    @model_validator(mode="after")
    def validate_kind_fields(self) -> "VaultSettings":
        lp_fields = {
            "lp_address": self.lp_address,
            "token0": self.token0,
            "token1": self.token1,
        }
        if self.kind == VaultKind.SINGLE_TOKEN:
            if self.asset_address is None:
                raise ValueError(
                    f"Vault {self.address}: single_token vaults require asset_address"
                )
            present = sorted(name for name, value in lp_fields.items() if value)
            if present:
                raise ValueError(
                    f"Vault {self.address}: single_token vaults do not accept "
                    f"{', '.join(present)}"
                )
        else:
            missing = sorted(name for name, value in lp_fields.items() if not value)
            if missing:
                raise ValueError(
                    f"Vault {self.address}: lp_token vaults require {', '.join(missing)}"
                )
            if self.asset_address is not None:
                raise ValueError(
                    f"Vault {self.address}: lp_token vaults do not accept asset_address"
                )
        return self

    def to_config(self) -> VaultConfig:
        if self.kind == VaultKind.SINGLE_TOKEN:
            assert self.asset_address is not None
            descriptor: SingleTokenVault | LpTokenVault = SingleTokenVault(
                asset_address=self.asset_address, decimals=self.decimals
            )
        else:
            assert self.lp_address and self.token0 and self.token1
            descriptor = LpTokenVault(
                lp_address=self.lp_address,
                token0=self.token0,
                token1=self.token1,
                decimals=self.decimals,
            )
        return VaultConfig(
            address=self.address,
            chain=self.chain,
            symbol=self.symbol,
            descriptor=descriptor,
            is_active=self.active,
        )


class EngineSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with STAKING_VALUATION_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- logging ---
    log_level: str = "INFO"

    # --- pricing ---
    price_cache_ttl_seconds: float = Field(
        default=DEFAULT_PRICE_TTL_SECONDS,
        gt=0,
        description="TTL for cached token and LP prices (seconds).",
    )
    strict_amounts: bool = Field(
        default=False,
        description="Reject malformed raw amounts instead of valuing them at zero.",
    )
    global_timeout_seconds: float | None = Field(
        default=None,
        description="Upper bound for one wallet valuation; unset or <= 0 disables it.",
    )

    # --- price feed ---
    coingecko_api_url: str = DEFAULT_COINGECKO_API_URL
    coingecko_api_key: SecretStr | None = None
    coingecko_ids: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_COINGECKO_IDS)
    )
    price_fetch_max_tries: int = Field(default=5, ge=1)
    price_fetch_timeout: float = Field(default=10.0, gt=0)

    # --- rewards ---
    reward_rates: RewardRateSettings = Field(default_factory=RewardRateSettings)

    # --- vaults (usually from config file) ---
    vaults: list[VaultSettings] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="STAKING_VALUATION_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("coingecko_api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("coingecko_ids", mode="after")
    @classmethod
    def lowercase_coingecko_ids(cls, v: dict[str, str]) -> dict[str, str]:
        return {address.lower(): coin_id for address, coin_id in v.items()}

    @model_validator(mode="after")
    def validate_unique_vaults(self) -> "EngineSettings":
        seen: set[str] = set()
        for vault in self.vaults:
            key = vault.address.lower()
            if key in seen:
                raise ValueError(f"Duplicate vault address in config: {vault.address}")
            seen.add(key)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("STAKING_VALUATION_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("staking-valuation.toml")
                    user_config = (
                        Path.home() / ".config" / "staking-valuation" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [staking_valuation]
                body = data.get("staking_valuation", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.coingecko_api_key:
            data["coingecko_api_key"] = "***redacted***"
        return data

    @property
    def vault_configs(self) -> list[VaultConfig]:
        return [vault.to_config() for vault in self.vaults]

    @property
    def reward_rate_table(self) -> RewardRateTable:
        return self.reward_rates.to_table()
