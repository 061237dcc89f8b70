"""
tests/test_news_sources.py — Feed parsing, HackerNews / Product Hunt / CoinGecko over a mocked transport.
"""

import json
import xml.etree.ElementTree as ET

import httpx
import pytest

from src.integrations.market_data import fetch_crypto_quote, fetch_equity_quote, fetch_quote
from src.integrations.news_sources import (
    HackerNewsSource,
    ProductHuntSource,
    RssFeedSource,
    parse_feed,
)

RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Blog</title>
  <item>
    <title>First post</title>
    <link>https://blog.example/1</link>
    <description>Hello</description>
    <pubDate>Sun, 02 Jun 2024 08:00:00 GMT</pubDate>
  </item>
  <item><title>No link</title></item>
</channel></rss>
"""

ATOM = """<?xml version="1.0"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom blog</title>
  <entry>
    <title>Atom entry</title>
    <link rel="alternate" href="https://atom.example/a"/>
    <summary>Short</summary>
    <updated>2024-06-01T10:00:00Z</updated>
  </entry>
</feed>
"""


# ═════════════════════════════════════════════
# RSS / ATOM PARSING
# ═════════════════════════════════════════════

class TestParseFeed:
    def test_rss_items(self):
        items = parse_feed(RSS, source="Blog")
        assert len(items) == 1
        assert items[0].title == "First post"
        assert items[0].url == "https://blog.example/1"
        assert items[0].description == "Hello"
        assert items[0].published_at.year == 2024

    def test_atom_entries(self):
        items = parse_feed(ATOM, source="Atom blog")
        assert len(items) == 1
        assert items[0].url == "https://atom.example/a"
        assert items[0].published_at.isoformat() == "2024-06-01T10:00:00+00:00"

    def test_malformed_xml_raises(self):
        with pytest.raises(ET.ParseError):
            parse_feed("<rss><channel>", source="Broken")

    @pytest.mark.asyncio
    async def test_rss_source_fetches_and_parses(self, test_settings, mock_http):
        mock_http(lambda request: httpx.Response(200, text=RSS))
        items = await RssFeedSource("Blog", "https://blog.example/feed", test_settings).fetch()
        assert [i.source for i in items] == ["Blog"]


# ═════════════════════════════════════════════
# HACKERNEWS
# ═════════════════════════════════════════════

class TestHackerNews:
    @pytest.mark.asyncio
    async def test_skips_stories_without_url(self, test_settings, mock_http):
        stories = {
            "1": {"id": 1, "title": "Show HN: a thing", "url": "https://thing.example", "time": 1717315200},
            "2": {"id": 2, "title": "Ask HN: no link"},
        }

        def handler(request):
            path = request.url.path
            if path.endswith("/topstories.json"):
                return httpx.Response(200, json=[1, 2])
            story_id = path.rsplit("/", 1)[-1].removesuffix(".json")
            return httpx.Response(200, json=stories[story_id])

        mock_http(handler)
        items = await HackerNewsSource(test_settings).fetch()

        assert [i.title for i in items] == ["Show HN: a thing"]
        assert items[0].source == "HackerNews"
        assert items[0].published_at is not None

    @pytest.mark.asyncio
    async def test_top_stories_limit(self, test_settings, mock_http):
        requests = mock_http(
            lambda request: httpx.Response(200, json=list(range(100)))
            if request.url.path.endswith("/topstories.json")
            else httpx.Response(200, json={"title": "t", "url": "https://x.example"})
        )
        config = test_settings.model_copy(update={"hackernews_top_stories": 3})

        items = await HackerNewsSource(config).fetch()

        assert len(items) == 3
        assert len(requests) == 4

    @pytest.mark.asyncio
    async def test_top_stories_failure_raises(self, test_settings, mock_http):
        mock_http(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await HackerNewsSource(test_settings).fetch()


# ═════════════════════════════════════════════
# PRODUCT HUNT
# ═════════════════════════════════════════════

class TestProductHunt:
    @pytest.mark.asyncio
    async def test_without_key_returns_empty_and_sends_nothing(self, test_settings, mock_http):
        requests = mock_http(lambda request: httpx.Response(200))
        assert await ProductHuntSource(test_settings).fetch() == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_graphql_posts(self, test_settings, mock_http):
        body = {
            "data": {
                "posts": {
                    "edges": [
                        {"node": {"name": "Notely", "tagline": "Notes, fast", "url": "https://ph.example/notely",
                                  "createdAt": "2024-06-02T07:00:00Z", "thumbnail": {"url": "https://img.example/n.png"}}},
                        {"node": {"name": "", "url": "https://ph.example/empty"}},
                    ]
                }
            }
        }
        requests = mock_http(lambda request: httpx.Response(200, json=body))
        config = test_settings.model_copy(update={"product_hunt_api_key": "ph-token"})

        items = await ProductHuntSource(config).fetch()

        assert [i.title for i in items] == ["Notely"]
        assert items[0].description == "Notes, fast"
        assert items[0].image_url == "https://img.example/n.png"
        assert requests[0].headers["Authorization"] == "Bearer ph-token"
        assert "posts" in json.loads(requests[0].content)["query"]


# ═════════════════════════════════════════════
# MARKET DATA
# ═════════════════════════════════════════════

class TestMarketData:
    @pytest.mark.asyncio
    async def test_crypto_quote(self, test_settings, mock_http):
        requests = mock_http(
            lambda request: httpx.Response(
                200,
                json={"bitcoin": {"usd": 67000.5, "usd_24h_change": -1.25, "usd_market_cap": 1.3e12}},
            )
        )
        quote = await fetch_crypto_quote("Bitcoin", test_settings)

        assert quote.symbol == "Bitcoin"
        assert quote.asset_type == "crypto"
        assert quote.current_price == 67000.5
        assert quote.change_24h == -1.25
        assert quote.market_cap == 1.3e12
        assert requests[0].url.params["ids"] == "bitcoin"

    @pytest.mark.asyncio
    async def test_unknown_coin_returns_none(self, test_settings, mock_http):
        mock_http(lambda request: httpx.Response(200, json={}))
        assert await fetch_crypto_quote("notacoin", test_settings) is None

    @pytest.mark.asyncio
    async def test_equities_not_priced(self, test_settings):
        assert await fetch_equity_quote("AAPL", test_settings) is None
        assert await fetch_quote("AAPL", "us_stock", test_settings) is None

    @pytest.mark.asyncio
    async def test_unknown_asset_type_raises(self, test_settings):
        with pytest.raises(ValueError):
            await fetch_quote("GOLD", "commodity", test_settings)
