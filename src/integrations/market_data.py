"""
src/integrations/market_data.py — Price snapshots for portfolio symbols.

Crypto quotes come from the public CoinGecko simple-price endpoint, keyed by
the lower-cased symbol (CoinGecko coin id, e.g. "bitcoin"). Equity pricing is
not wired to a provider: `fetch_equity_quote` always returns None and the
Investment agent skips those symbols.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class MarketQuote:
    symbol: str
    asset_type: str          # crypto | us_stock
    current_price: float
    change_24h: float        # percent
    volume: float = 0.0
    market_cap: float | None = None
    fetched_at: datetime | None = None


async def fetch_crypto_quote(symbol: str, config: Settings | None = None) -> MarketQuote | None:
    """Fetch USD price, 24h change and market cap for one coin.

    Returns None when CoinGecko does not know the id. Raises httpx.HTTPError on
    transport failure or a non-2xx response.
    """
    cfg = config or default_settings
    coin_id = symbol.lower()
    params = {
        "ids": coin_id,
        "vs_currencies": "usd",
        "include_24hr_change": "true",
        "include_market_cap": "true",
    }
    async with httpx.AsyncClient(timeout=cfg.http_timeout_seconds) as client:
        resp = await client.get(f"{cfg.coingecko_base_url.rstrip('/')}/simple/price", params=params)
        resp.raise_for_status()
        data = resp.json() or {}

    row = data.get(coin_id)
    if not row:
        logger.info("CoinGecko has no price for %s", symbol)
        return None

    return MarketQuote(
        symbol=symbol,
        asset_type="crypto",
        current_price=float(row.get("usd") or 0.0),
        change_24h=float(row.get("usd_24h_change") or 0.0),
        market_cap=float(row["usd_market_cap"]) if row.get("usd_market_cap") else None,
        fetched_at=datetime.now(timezone.utc),
    )


async def fetch_equity_quote(symbol: str, config: Settings | None = None) -> MarketQuote | None:
    """US equities need a paid data provider; none is configured."""
    logger.info("US stock pricing for %s is not configured, skipping", symbol)
    return None


async def fetch_quote(symbol: str, asset_type: str, config: Settings | None = None) -> MarketQuote | None:
    """Dispatch on asset type."""
    if asset_type == "crypto":
        return await fetch_crypto_quote(symbol, config)
    if asset_type == "us_stock":
        return await fetch_equity_quote(symbol, config)
    raise ValueError(f"Unsupported asset type: {asset_type}")
