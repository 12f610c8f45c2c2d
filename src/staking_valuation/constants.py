from __future__ import annotations

import re
from enum import Enum


class Chain(str, Enum):
    BASE = "base"
    OBELISK = "obelisk"


class VaultKind(str, Enum):
    SINGLE_TOKEN = "single_token"
    LP_TOKEN = "lp_token"


ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

SECONDS_PER_DAY = 86_400

# Lock multiplier: 1x at no lock, linear up to 2x at one year.
MAX_LOCK_DAYS = 365
MIN_LOCK_MULTIPLIER = 1.0
MAX_LOCK_MULTIPLIER = 2.0

# Reward rates are quoted in shards per $1,000 staked per day.
USD_PER_RATE_UNIT = 1000
DEFAULT_SINGLE_TOKEN_RATE = 80.0
DEFAULT_LP_TOKEN_RATE = 20.0

DEFAULT_PRICE_TTL_SECONDS = 300
LP_TOKEN_DECIMALS = 18

# Cache namespaces
TOKEN_PRICE_NAMESPACE = "token"
LP_PRICE_NAMESPACE = "lp"

DEFAULT_COINGECKO_API_URL = "https://api.coingecko.com/api/v3"

# address (lowercase) -> CoinGecko id
DEFAULT_COINGECKO_IDS: dict[str, str] = {
    "0x767fe9edc9e0df98e07454847909b5e959d7ca0e": "illuvium",  # ILV
    "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": "ethereum",  # WETH
    "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "usd-coin",  # USDC
    "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599": "wrapped-bitcoin",  # WBTC
    "0xdac17f958d2ee523a2206206994597c13d831ec7": "tether",  # USDT
    "0x6b175474e89094c44da98b954eedeac495271d0f": "dai",  # DAI
    "0x4200000000000000000000000000000000000006": "ethereum",  # WETH on Base
    "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913": "usd-coin",  # USDC on Base
}
