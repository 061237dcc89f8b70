"""
src/agents/information_agent.py — Fetch, classify and summarise news for one user.

Flow (one run, strictly sequential):
  1. Read the user's interests (defaults below).
  2. Fetch every source: HackerNews, Product Hunt, and the user's active RSS
     feeds. A source that raises counts as one failed item; the rest continue.
  3. Classify each item with one model call. A failed call or unusable reply
     counts as a failed item and the item is kept as ("other", 0.5).
  4. Persist each item as an Article. A failed insert counts as a failed item.
  5. Summarise the top articles by relevance with one more model call and
     store it as today's DailySummary (fixed text if the call fails).
  6. Post a "daily_summary" SystemMessage.
"""

import logging
from dataclasses import dataclass

from config import Settings, settings as default_settings
from src.agents.base import AgentRun, BaseAgent
from src.agents.replies import ArticleClassification
from src.integrations.news_sources import (
    HackerNewsSource,
    NewsItem,
    ProductHuntSource,
    RssFeedSource,
)
from src.utils.json_parser import parse_reply

logger = logging.getLogger(__name__)

DEFAULT_INTERESTS = ["AI", "Technology", "Productivity"]
SUMMARY_FALLBACK = "Today's summary could not be generated. Browse the article list for details."

CLASSIFY_SYSTEM_PROMPT = """\
You are an information curator. Classify one article for a reader and score
how relevant it is to their interests.

Categories:
  ai_breakthrough    — new models, research results, AI product launches
  productivity_tool  — apps, tools and workflows that save time
  investment         — markets, funding, crypto, company finance
  other              — anything else

Return JSON only:
{"category": "...", "relevance_score": 0.0-1.0, "reason": "one short sentence"}
"""

SUMMARY_SYSTEM_PROMPT = """\
You write a concise daily briefing (at most 300 words) from a list of
articles. Cover:
  1. Today's key points (3-5 bullets)
  2. Trends worth noticing
  3. Investment opportunities, if any
Plain text, no JSON.
"""


@dataclass
class ScoredArticle:
    id: str
    title: str
    category: str
    relevance_score: float


class InformationAgent(BaseAgent):
    name = "information"

    def __init__(self, store, llm, notifier, sources=None, config: Settings | None = None, **kwargs):
        super().__init__(store, llm, notifier, **kwargs)
        self.config = config or default_settings
        self.sources = sources if sources is not None else [
            HackerNewsSource(self.config),
            ProductHuntSource(self.config),
        ]

    async def execute(self, run: AgentRun) -> None:
        user_id = run.user_id
        prefs = await self.store.get_preferences(user_id)
        interests = (prefs.interests if prefs and prefs.interests else None) or DEFAULT_INTERESTS

        items = await self._fetch_all(run)
        logger.info("Information agent: %d items fetched for user=%s", len(items), user_id)

        scored: list[ScoredArticle] = []
        for item in items:
            classification = await self._classify(item, interests, run)
            try:
                article = await self.store.create_article(
                    user_id,
                    title=item.title[:500],
                    description=item.description,
                    content=item.content,
                    url=item.url[:1000],
                    image_url=item.image_url,
                    source=item.source,
                    category=classification.category,
                    relevance_score=classification.relevance_score,
                    published_at=item.published_at,
                )
            except Exception as exc:
                logger.warning("Article persist failed (%s): %s", item.url, exc)
                run.items_failed += 1
                continue
            scored.append(
                ScoredArticle(
                    id=article.id,
                    title=item.title,
                    category=classification.category,
                    relevance_score=classification.relevance_score,
                )
            )

        top = sorted(scored, key=lambda a: a.relevance_score, reverse=True)[: self.config.summary_top_articles]
        summary = await self._summarise(top)

        today = await self.today(user_id)
        await self.store.upsert_daily_summary(
            user_id, today.isoformat(), summary, [a.id for a in top]
        )
        await self.store.create_message(
            user_id,
            message_type="daily_summary",
            title=f"Daily briefing · {today.isoformat()}",
            content=summary,
            extra={"article_count": len(scored), "top_article_ids": [a.id for a in top]},
        )

    # ─────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────

    async def _fetch_all(self, run: AgentRun) -> list[NewsItem]:
        sources = list(self.sources)
        for row in await self.store.list_active_sources(run.user_id):
            url = (row.config or {}).get("url")
            if row.source_type == "rss" and url:
                sources.append(RssFeedSource(row.name, url, self.config))

        items: list[NewsItem] = []
        for source in sources:
            try:
                fetched = await source.fetch()
            except Exception as exc:
                logger.warning("Source %s failed: %s", getattr(source, "name", source), exc)
                run.items_failed += 1
                continue
            items.extend(fetched)
            run.items_processed += len(fetched)
        return items

    async def _classify(self, item: NewsItem, interests: list[str], run: AgentRun) -> ArticleClassification:
        prompt = (
            f"Reader interests: {', '.join(interests)}\n\n"
            f"Title: {item.title}\n"
            f"Description: {item.description or 'n/a'}\n"
            f"Source: {item.source}"
        )
        try:
            raw = await self.llm.invoke(
                [
                    {"role": "system", "content": CLASSIFY_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                output_schema=ArticleClassification,
            )
            return parse_reply(raw, ArticleClassification, context="article classification")
        except Exception as exc:
            logger.warning("Classification failed for %r: %s", item.title[:80], exc)
            run.items_failed += 1
            return ArticleClassification.neutral()

    async def _summarise(self, top: list[ScoredArticle]) -> str:
        listing = "\n".join(
            f"- [{a.category}] {a.title} (relevance {a.relevance_score * 100:.0f}%)" for a in top
        ) or "- (no articles today)"
        try:
            text = await self.llm.invoke(
                [
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Articles:\n{listing}"},
                ]
            )
        except Exception as exc:
            logger.warning("Daily summary generation failed: %s", exc)
            return SUMMARY_FALLBACK
        return text.strip() or SUMMARY_FALLBACK
