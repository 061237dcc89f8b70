"""
src/agents/learning_agent.py — One lesson per user per day.

The curriculum rotates by day of week (Sunday = 0):

    day % 3 == 0 → web3
    day % 3 == 1 → us_stocks
    day % 3 == 2 → quantitative

A run is a no-op when today's lesson already exists. If two runs race past
that check, the (user_id, date) unique constraint lets exactly one insert
succeed; the loser finishes as "skipped" and posts no message.

Unlike the Information agent, an unparseable lesson reply fails the run.
"""

import logging
from datetime import date

from src.agents.base import AgentRun, BaseAgent
from src.agents.replies import LEARNING_CATEGORIES, LearningPlan
from src.utils.json_parser import parse_reply

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = "Today's lesson summary could not be generated. Open the lesson for details."

CATEGORY_DESCRIPTIONS = {
    "web3": "blockchain, cryptocurrencies, DeFi, NFTs and other Web3 technology",
    "us_stocks": "US stock market basics, company analysis and investing strategies",
    "quantitative": "quantitative investing, algorithmic trading and data analysis",
}

LESSON_SYSTEM_PROMPT = """\
You are an investment educator writing one self-contained daily lesson for a
beginner. Build from fundamentals, use concrete real-world examples, and only
cite resources that actually exist.

Return JSON only:
{
  "topic": "today's topic",
  "explanation": "concept explanation, 200-300 words",
  "case_study": "a real case study, 200-300 words",
  "key_points": ["point 1", "point 2", "point 3", "point 4"],
  "resources": [{"title": "...", "url": "https://...", "type": "article|video|course"}],
  "next_topic": "suggested topic for the next lesson"
}
"""

SUMMARY_SYSTEM_PROMPT = """\
Summarise a lesson in at most 150 words: the core takeaway, why it matters,
and how to apply it to real investing. Plain text.
"""


def day_of_week(d: date) -> int:
    """Sunday = 0 … Saturday = 6."""
    return (d.weekday() + 1) % 7


def category_for_day(day: int) -> str:
    return LEARNING_CATEGORIES[day % 3]


class LearningAgent(BaseAgent):
    name = "learning"

    async def should_run(self, user_id: str) -> bool:
        today = await self.today(user_id)
        existing = await self.store.get_learning_for_date(user_id, today.isoformat())
        return existing is None

    async def execute(self, run: AgentRun) -> None:
        user_id = run.user_id
        today = await self.today(user_id)
        category = category_for_day(day_of_week(today))
        logger.info("Learning agent: user=%s date=%s category=%s", user_id, today, category)

        raw = await self.llm.invoke(
            [
                {"role": "system", "content": LESSON_SYSTEM_PROMPT},
                {"role": "user", "content": f"Today's subject area: {CATEGORY_DESCRIPTIONS[category]}"},
            ],
            output_schema=LearningPlan,
        )
        plan = parse_reply(raw, LearningPlan, context="learning plan")
        run.items_processed += 1

        content = await self.store.insert_learning_content(
            user_id,
            today.isoformat(),
            topic=plan.topic[:255],
            category=category,
            explanation=plan.explanation,
            case_study=plan.case_study,
            key_points=plan.key_points,
            resources=[r.model_dump() for r in plan.resources],
            next_topic=plan.next_topic[:255] or None,
        )
        if content is None:
            logger.info("Learning agent: lost the race for user=%s date=%s", user_id, today)
            run.skipped = True
            return

        summary = await self._summarise(plan, category)
        await self.store.create_message(
            user_id,
            message_type="learning_task",
            title=f"Today's lesson: {plan.topic}"[:255],
            content=summary,
            extra={"category": category, "key_points": plan.key_points, "content_id": content.id},
        )

    async def _summarise(self, plan: LearningPlan, category: str) -> str:
        points = "\n".join(f"- {p}" for p in plan.key_points) or "- (none)"
        try:
            text = await self.llm.invoke(
                [
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Topic: {plan.topic}\nCategory: {category}\nKey points:\n{points}",
                    },
                ]
            )
        except Exception as exc:
            logger.warning("Learning summary generation failed: %s", exc)
            return SUMMARY_FALLBACK
        return text.strip() or SUMMARY_FALLBACK
