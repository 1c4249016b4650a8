from __future__ import annotations
import re
from typing import List, Optional

from ..cache import TTL_CRYPTO, cached_get
from ..context import ExecutionContext
from ..schemas import CoinMarket, validate_list
from .http import get_json

MARKETS_URL = "https://api.coingecko.com/api/v3/coins/markets"

# well-known symbol -> CoinGecko id
CRYPTO_IDS = {
    "BTC": "bitcoin", "ETH": "ethereum", "SOL": "solana", "ADA": "cardano",
    "DOT": "polkadot", "DOGE": "dogecoin", "SHIB": "shiba-inu", "AVAX": "avalanche-2",
    "MATIC": "matic-network", "LINK": "chainlink", "UNI": "uniswap", "ATOM": "cosmos",
    "XRP": "ripple", "LTC": "litecoin", "BNB": "binancecoin", "NEAR": "near",
    "ALGO": "algorand", "XLM": "stellar", "OP": "optimism", "ARB": "arbitrum",
}

_TOP_RE = re.compile(r"^top\s*(\d+)?$", re.IGNORECASE)


def parse_crypto_symbols(arg: str) -> Optional[List[str]]:
    """Split "BTC,ETH" or "btc eth" into symbols. Returns None for "top N" queries."""
    arg = arg.strip()
    if not arg or _TOP_RE.match(arg):
        return None
    return [s for s in re.split(r"[,\s]+", arg) if s]


def top_count(arg: str, default: int = 10) -> int:
    m = _TOP_RE.match(arg.strip())
    if m and m.group(1):
        return max(1, min(int(m.group(1)), 100))
    return default


def coin_id(symbol: str) -> str:
    return CRYPTO_IDS.get(symbol.upper(), symbol.lower())


def _price(p: float) -> str:
    if p >= 1:
        return f"${p:.2f}"
    if p >= 0.01:
        return f"${p:.4f}"
    return f"${p:.8f}"


def format_crypto_prices(coins: List[CoinMarket]) -> str:
    out: List[str] = [f"# Crypto Market ({len(coins)} coins)", ""]
    for c in coins:
        change = c.price_change_percentage_24h or 0.0
        arrow = "📈" if change >= 0 else "📉"
        out.append(f"## {c.name} ({c.symbol}) {arrow}")
        out.append(f"**Price:** {_price(c.current_price)} ({change:+.2f}%)")
        out.append(f"- **Change%:** {change:+.2f}")
        if c.high_24h is not None and c.low_24h is not None:
            out.append(f"- **24h High/Low:** {_price(c.high_24h)} / {_price(c.low_24h)}")
        if c.market_cap is not None:
            rank = f" (#{c.market_cap_rank})" if c.market_cap_rank else ""
            out.append(f"- **Market Cap:** ${c.market_cap / 1_000_000:,.0f}M{rank}")
        out.append("")
    return "\n".join(out)


def crypto(ctx: ExecutionContext, arg: str, _arg2: str, input: str) -> str:
    """crypto "BTC,ETH" | crypto "top 10" - spot prices from CoinGecko."""
    query = (arg or input or "top 10").strip()
    symbols = parse_crypto_symbols(query)
    params = {"vs_currency": "usd", "order": "market_cap_desc", "price_change_percentage": "24h"}
    if symbols is None:
        params.update({"per_page": top_count(query), "page": 1})
        key = f"top:{params['per_page']}"
    else:
        ids = [coin_id(s) for s in symbols]
        params["ids"] = ",".join(ids)
        key = params["ids"]

    def fetch() -> str:
        coins = validate_list(CoinMarket, get_json(ctx, MARKETS_URL, params), "coingecko")
        if not coins:
            raise ValueError(f"no prices found for {query!r}")
        return format_crypto_prices(coins)

    return cached_get(ctx.cache, "crypto", key, TTL_CRYPTO, fetch)
