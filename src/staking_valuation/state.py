"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .cache import PriceCache
from .settings import EngineSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed to the CLI commands to avoid global state and enable testing.
    The price cache lives here so every component built from one state
    shares the same TTL policy.
    """

    settings: EngineSettings
    logger: logging.Logger
    cache: PriceCache = field(init=False)

    def __post_init__(self) -> None:
        self.cache = PriceCache(default_ttl_seconds=self.settings.price_cache_ttl_seconds)
