"""
src/agents/investment_agent.py — Buy / sell / hold / watch signals for a portfolio.

Flow:
  1. Load the portfolio. Empty → no run at all (no log row, no message).
  2. Price every holding. Crypto via CoinGecko; US equities have no provider
     and are skipped. A symbol whose quote fails is logged and skipped.
  3. One model call per priced symbol → SignalRecommendation. A failed call
     or unusable reply drops that symbol without counting a failure.
  4. Persist each signal; a failed insert counts as a failed item.
  5. One report call grouping signals by verdict → "investment_signal" message.

items_processed is the number of symbols that had market data.
"""

import logging
from collections import Counter
from typing import Awaitable, Callable

from config import Settings, settings as default_settings
from src.agents.base import AgentRun, BaseAgent
from src.agents.replies import SIGNAL_VERDICTS, SignalRecommendation
from src.integrations.market_data import MarketQuote, fetch_quote
from src.utils.json_parser import parse_reply

logger = logging.getLogger(__name__)

QuoteFetcher = Callable[[str, str], Awaitable[MarketQuote | None]]

REPORT_FALLBACK = "Today's investment report could not be generated. Review the signal list for details."

SIGNAL_SYSTEM_PROMPT = """\
You are a professional investment analyst. From one asset's market snapshot,
give a recommendation grounded in technical and fundamental reasoning, with
explicit risk awareness. Confidence must reflect how certain the analysis is.

Return JSON only:
{
  "signal": "buy" | "sell" | "hold" | "watch",
  "reason": "100-150 words",
  "target_price": number,
  "stop_loss": number,
  "risk_level": "low" | "medium" | "high",
  "confidence": 0.0-1.0
}
"""

REPORT_SYSTEM_PROMPT = """\
Write a concise investment report (at most 300 words) from today's signals:
  1. Market overview
  2. Main opportunities
  3. Risk warnings
  4. Suggested actions
Plain text.
"""


class InvestmentAgent(BaseAgent):
    name = "investment"

    def __init__(
        self,
        store,
        llm,
        notifier,
        quote_fetcher: QuoteFetcher | None = None,
        config: Settings | None = None,
        **kwargs,
    ):
        super().__init__(store, llm, notifier, **kwargs)
        self.config = config or default_settings
        self.quote_fetcher = quote_fetcher or (
            lambda symbol, asset_type: fetch_quote(symbol, asset_type, self.config)
        )

    async def should_run(self, user_id: str) -> bool:
        return bool(await self.store.list_portfolio(user_id))

    async def execute(self, run: AgentRun) -> None:
        user_id = run.user_id
        portfolio = await self.store.list_portfolio(user_id)

        quotes: list[MarketQuote] = []
        for asset_type in ("crypto", "us_stock"):
            for item in (p for p in portfolio if p.asset_type == asset_type):
                try:
                    quote = await self.quote_fetcher(item.symbol, asset_type)
                except Exception as exc:
                    logger.warning("Quote for %s (%s) failed: %s", item.symbol, asset_type, exc)
                    continue
                if quote is None:
                    continue
                quotes.append(quote)
                await self._refresh_valuation(item, quote)
        run.items_processed = len(quotes)

        signals: list[tuple[MarketQuote, SignalRecommendation]] = []
        for quote in quotes:
            recommendation = await self._recommend(quote)
            if recommendation is not None:
                signals.append((quote, recommendation))

        for quote, rec in signals:
            target, stop = rec.resolved_prices(quote.current_price)
            try:
                await self.store.create_signal(
                    user_id,
                    symbol=quote.symbol,
                    asset_type=quote.asset_type,
                    signal=rec.signal,
                    reason=rec.reason,
                    target_price=target,
                    stop_loss=stop,
                    risk_level=rec.risk_level,
                    confidence=rec.confidence,
                )
            except Exception as exc:
                logger.warning("Signal persist failed for %s: %s", quote.symbol, exc)
                run.items_failed += 1

        counts = Counter(rec.signal for _, rec in signals)
        report = await self._report(signals)
        await self.store.create_message(
            user_id,
            message_type="investment_signal",
            title="Investment report",
            content=report,
            extra={
                "signal_count": len(signals),
                **{f"{verdict}_count": counts.get(verdict, 0) for verdict in SIGNAL_VERDICTS},
            },
        )

    # ─────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────

    async def _refresh_valuation(self, item, quote: MarketQuote) -> None:
        try:
            await self.store.update_portfolio_price(item.id, quote.current_price)
        except Exception as exc:
            logger.warning("Portfolio valuation refresh failed for %s: %s", item.symbol, exc)

    async def _recommend(self, quote: MarketQuote) -> SignalRecommendation | None:
        market_cap = f"${quote.market_cap:,.0f}" if quote.market_cap else "n/a"
        prompt = (
            f"Asset: {quote.symbol} ({quote.asset_type})\n"
            f"Current price: ${quote.current_price}\n"
            f"24h change: {quote.change_24h:.2f}%\n"
            f"Market cap: {market_cap}"
        )
        try:
            raw = await self.llm.invoke(
                [
                    {"role": "system", "content": SIGNAL_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                output_schema=SignalRecommendation,
            )
            return parse_reply(raw, SignalRecommendation, context=f"signal {quote.symbol}")
        except Exception as exc:
            logger.warning("Signal generation failed for %s: %s", quote.symbol, exc)
            return None

    async def _report(self, signals: list[tuple[MarketQuote, SignalRecommendation]]) -> str:
        sections = []
        for verdict in ("buy", "sell", "watch"):
            group = [(q, r) for q, r in signals if r.signal == verdict]
            lines = "\n".join(f"- {q.symbol}: {r.reason}" for q, r in group) or "- none"
            sections.append(f"{verdict.upper()} signals ({len(group)}):\n{lines}")
        try:
            text = await self.llm.invoke(
                [
                    {"role": "system", "content": REPORT_SYSTEM_PROMPT},
                    {"role": "user", "content": "\n\n".join(sections)},
                ]
            )
        except Exception as exc:
            logger.warning("Investment report generation failed: %s", exc)
            return REPORT_FALLBACK
        return text.strip() or REPORT_FALLBACK
