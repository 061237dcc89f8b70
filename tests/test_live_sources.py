"""
tests/test_live_sources.py — Live checks against the real model API and public feeds.

═══════════════════════════════════════════════════════════
SETUP
═══════════════════════════════════════════════════════════

Model tests need ANTHROPIC_API_KEY in .env.test (or .env).
Public-API tests (HackerNews, CoinGecko) need ALPHA_LIVE_NETWORK=1.

Run:
    pytest tests/test_live_sources.py -v -s

NOTE: each model test sends one short request (~300 tokens).
═══════════════════════════════════════════════════════════
"""

import pytest

from config import Settings
from src.agents.replies import ArticleClassification, SignalRecommendation
from src.integrations.market_data import fetch_crypto_quote
from src.integrations.news_sources import HackerNewsSource
from src.services.llm_service import LLMClient
from src.utils.json_parser import parse_reply

pytestmark = pytest.mark.live


# ─────────────────────────────────────────────────────────────────────────────
# Model
# ─────────────────────────────────────────────────────────────────────────────

class TestModelLive:

    @pytest.fixture(autouse=True)
    def _check_keys(self, require_anthropic):
        pass

    @pytest.fixture
    def llm(self):
        return LLMClient(Settings())

    @pytest.mark.asyncio
    async def test_classification_reply_parses(self, llm):
        raw = await llm.invoke(
            [
                {"role": "system", "content": "Classify the article for a reader interested in AI and investing."},
                {"role": "user", "content": "Title: OpenAI releases a new reasoning model\nSource: HackerNews"},
            ],
            output_schema=ArticleClassification,
        )
        result = parse_reply(raw, ArticleClassification)
        print(f"\n  category={result.category} score={result.relevance_score}")
        assert 0.0 <= result.relevance_score <= 1.0

    @pytest.mark.asyncio
    async def test_signal_reply_parses(self, llm):
        raw = await llm.invoke(
            [
                {"role": "system", "content": "You are an investment analyst."},
                {"role": "user", "content": "Asset: bitcoin (crypto)\nCurrent price: $65000\n24h change: 3.20%"},
            ],
            output_schema=SignalRecommendation,
        )
        result = parse_reply(raw, SignalRecommendation)
        print(f"\n  signal={result.signal} confidence={result.confidence}")
        assert result.signal in ("buy", "sell", "hold", "watch")


# ─────────────────────────────────────────────────────────────────────────────
# Public feeds
# ─────────────────────────────────────────────────────────────────────────────

class TestPublicApisLive:

    @pytest.fixture(autouse=True)
    def _check_network(self, require_network):
        pass

    @pytest.mark.asyncio
    async def test_hackernews_top_stories(self):
        items = await HackerNewsSource(Settings(hackernews_top_stories=5)).fetch()
        print(f"\n  {len(items)} stories")
        assert all(i.url.startswith("http") for i in items)

    @pytest.mark.asyncio
    async def test_coingecko_bitcoin(self):
        quote = await fetch_crypto_quote("bitcoin", Settings())
        assert quote is not None
        assert quote.current_price > 0
