from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

import backoff
import requests

from ..constants import Chain
from ..domain import TokenPrice
from ..settings import EngineSettings
from .base import BasePriceSource

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class CoinGeckoPriceSource(BasePriceSource):
    """USD prices from the CoinGecko ``/simple/price`` endpoint.

    Tokens are looked up by CoinGecko id through the address map in settings;
    the same id may back several addresses (e.g. WETH on different chains).
    """

    def __init__(self, config: EngineSettings):
        self.config = config
        self.api_base_url = config.coingecko_api_url.rstrip("/")
        self.coin_ids = dict(config.coingecko_ids)
        self.timeout = config.price_fetch_timeout
        self.max_tries = config.price_fetch_max_tries

    @property
    def source_name(self) -> str:
        return "coingecko"

    def get_coin_id(self, token_address: str) -> str | None:
        return self.coin_ids.get(token_address.lower())

    def _request_price(self, coin_id: str) -> dict:
        params: dict[str, str] = {
            "ids": coin_id,
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        headers: dict[str, str] = {}
        if self.config.coingecko_api_key:
            headers["x-cg-pro-api-key"] = self.config.coingecko_api_key.get_secret_value()

        url = f"{self.api_base_url}/simple/price"
        logger.debug("Calling %s for %s", url, coin_id)

        @backoff.on_exception(
            backoff.expo,
            requests.exceptions.RequestException,
            max_tries=self.max_tries,
            giveup=lambda e: (
                isinstance(e, requests.exceptions.HTTPError)
                and e.response is not None
                and e.response.status_code not in RETRYABLE_STATUS_CODES
            ),
            jitter=backoff.full_jitter,
        )
        def _get() -> requests.Response:
            response = requests.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            return response

        response = _get()
        try:
            data = response.json()
        except json.JSONDecodeError:
            raise ValueError("Invalid JSON from CoinGecko API")

        if not isinstance(data, dict):
            raise ValueError(f"Invalid response structure: {data}")
        return data

    async def fetch_token_price(self, token_address: str, chain: Chain) -> TokenPrice:
        """Fetch the USD price of ``token_address``.

        Raises:
            ValueError: If the token has no CoinGecko id or the payload is malformed
            requests.exceptions.RequestException: If the request keeps failing
        """
        coin_id = self.get_coin_id(token_address)
        if coin_id is None:
            raise ValueError(f"Token not supported by CoinGecko source: {token_address}")

        data = await asyncio.to_thread(self._request_price, coin_id)

        price_data = data.get(coin_id)
        if not isinstance(price_data, dict) or "usd" not in price_data:
            raise ValueError(f"No price data returned for {coin_id}")

        try:
            usd_price = Decimal(str(price_data["usd"]))
        except InvalidOperation as e:
            raise ValueError(f"Invalid price value: {price_data['usd']}") from e
        if not usd_price.is_finite() or usd_price < 0:
            raise ValueError(f"Invalid price value: {price_data['usd']}")

        change = price_data.get("usd_24h_change")

        return TokenPrice(
            token_address=token_address.lower(),
            chain=chain,
            usd_price=float(usd_price),
            source=self.source_name,
            observed_at=datetime.now(timezone.utc),
            is_stale=False,
            change_24h=float(change) if change is not None else None,
        )
