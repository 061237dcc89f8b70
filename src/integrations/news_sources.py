"""
src/integrations/news_sources.py — Feeds polled by the Information agent.

Every source exposes the same shape:

    source.name          -> "HackerNews"
    await source.fetch() -> list[NewsItem]

A source raises on transport / HTTP errors so the agent can count the failure;
an unconfigured source (Product Hunt without a token) returns [] instead.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_ATOM = "{http://www.w3.org/2005/Atom}"
_MAX_FEED_ITEMS = 20


@dataclass
class NewsItem:
    """One fetched story, before classification."""

    title: str
    url: str
    source: str
    description: str | None = None
    content: str | None = None
    image_url: str | None = None
    published_at: datetime | None = None


# ─────────────────────────────────────────────
# HackerNews
# ─────────────────────────────────────────────

class HackerNewsSource:
    """Public Firebase API: top story ids, then one request per story."""

    name = "HackerNews"

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings

    async def fetch(self) -> list[NewsItem]:
        base = self._config.hackernews_base_url.rstrip("/")
        items: list[NewsItem] = []
        async with httpx.AsyncClient(timeout=self._config.http_timeout_seconds) as client:
            resp = await client.get(f"{base}/topstories.json")
            resp.raise_for_status()
            story_ids = resp.json() or []

            for story_id in story_ids[: self._config.hackernews_top_stories]:
                try:
                    story_resp = await client.get(f"{base}/item/{story_id}.json")
                    story_resp.raise_for_status()
                    story = story_resp.json() or {}
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("HackerNews story %s fetch failed: %s", story_id, exc)
                    continue

                # Ask HN / polls have no outbound url
                if not story.get("title") or not story.get("url"):
                    continue

                published = None
                if isinstance(story.get("time"), (int, float)):
                    published = datetime.fromtimestamp(story["time"], tz=timezone.utc)

                items.append(
                    NewsItem(
                        title=story["title"],
                        url=story["url"],
                        source=self.name,
                        published_at=published,
                    )
                )
        logger.info("HackerNews: fetched %d stories", len(items))
        return items


# ─────────────────────────────────────────────
# Product Hunt
# ─────────────────────────────────────────────

_PRODUCT_HUNT_QUERY = """
query LatestPosts($first: Int!) {
  posts(first: $first, order: NEWEST) {
    edges {
      node { name tagline description url createdAt thumbnail { url } }
    }
  }
}
"""


class ProductHuntSource:
    """GraphQL v2 API. Skipped when PRODUCT_HUNT_API_KEY is not set."""

    name = "ProductHunt"

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings

    async def fetch(self) -> list[NewsItem]:
        token = self._config.product_hunt_api_key
        if not token:
            logger.info("Product Hunt API key not configured, skipping")
            return []

        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        payload = {"query": _PRODUCT_HUNT_QUERY, "variables": {"first": _MAX_FEED_ITEMS}}
        async with httpx.AsyncClient(
            timeout=self._config.http_timeout_seconds, headers=headers
        ) as client:
            resp = await client.post(self._config.product_hunt_api_url, json=payload)
            resp.raise_for_status()
            data = resp.json() or {}

        edges = ((data.get("data") or {}).get("posts") or {}).get("edges") or []
        items: list[NewsItem] = []
        for edge in edges:
            node = edge.get("node") or {}
            if not node.get("name") or not node.get("url"):
                continue
            items.append(
                NewsItem(
                    title=node["name"],
                    url=node["url"],
                    source=self.name,
                    description=node.get("tagline"),
                    content=node.get("description"),
                    image_url=(node.get("thumbnail") or {}).get("url"),
                    published_at=_parse_iso(node.get("createdAt")),
                )
            )
        logger.info("ProductHunt: fetched %d posts", len(items))
        return items


# ─────────────────────────────────────────────
# RSS / Atom
# ─────────────────────────────────────────────

class RssFeedSource:
    """Any RSS 2.0 or Atom feed configured by the user."""

    def __init__(self, name: str, url: str, config: Settings | None = None):
        self.name = name
        self.url = url
        self._config = config or default_settings

    async def fetch(self) -> list[NewsItem]:
        async with httpx.AsyncClient(
            timeout=self._config.http_timeout_seconds, follow_redirects=True
        ) as client:
            resp = await client.get(self.url)
            resp.raise_for_status()
        items = parse_feed(resp.text, source=self.name)
        logger.info("RSS %s: fetched %d entries", self.name, len(items))
        return items


def parse_feed(xml_text: str, source: str) -> list[NewsItem]:
    """Parse an RSS 2.0 or Atom document. Raises ET.ParseError on bad XML."""
    root = ET.fromstring(xml_text)
    items: list[NewsItem] = []

    for node in root.iter("item"):
        title = _text(node, "title")
        link = _text(node, "link")
        if not title or not link:
            continue
        items.append(
            NewsItem(
                title=title,
                url=link,
                source=source,
                description=_text(node, "description"),
                published_at=_parse_rfc822(_text(node, "pubDate")),
            )
        )

    for entry in root.iter(f"{_ATOM}entry"):
        title = _text(entry, f"{_ATOM}title")
        link = _atom_link(entry)
        if not title or not link:
            continue
        items.append(
            NewsItem(
                title=title,
                url=link,
                source=source,
                description=_text(entry, f"{_ATOM}summary"),
                content=_text(entry, f"{_ATOM}content"),
                published_at=_parse_iso(
                    _text(entry, f"{_ATOM}published") or _text(entry, f"{_ATOM}updated")
                ),
            )
        )

    return items[:_MAX_FEED_ITEMS]


def _text(node: ET.Element, tag: str) -> str | None:
    child = node.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _atom_link(entry: ET.Element) -> str | None:
    for link in entry.findall(f"{_ATOM}link"):
        if link.get("rel", "alternate") == "alternate" and link.get("href"):
            return link.get("href")
    return None


def _parse_rfc822(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
