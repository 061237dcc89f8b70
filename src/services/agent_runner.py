"""
src/services/agent_runner.py — Fire-and-forget agent triggers with run tracking.

    run_id = await runner.trigger("learning", user_id)

`trigger` checks the agent's precondition, persists a "queued" execution log,
schedules the run as a background task and returns the log id straight away.
The caller polls GET /api/agents/runs/{run_id} for the outcome. None means
the precondition was not met and nothing was recorded.
"""

import asyncio
import logging

from config import Settings, settings as default_settings
from src.agents.base import BaseAgent, RunOutcome
from src.agents.information_agent import InformationAgent
from src.agents.investment_agent import InvestmentAgent
from src.agents.learning_agent import LearningAgent
from src.integrations.owner_notifier import OwnerNotifier
from src.services.llm_service import LLMClient
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)


class UnknownAgentError(KeyError):
    pass


def build_agents(
    store: AlphaStore,
    llm: LLMClient,
    notifier: OwnerNotifier,
    config: Settings | None = None,
) -> dict[str, BaseAgent]:
    cfg = config or default_settings
    agents: list[BaseAgent] = [
        InformationAgent(store, llm, notifier, config=cfg),
        LearningAgent(store, llm, notifier),
        InvestmentAgent(store, llm, notifier, config=cfg),
    ]
    return {agent.name: agent for agent in agents}


class AgentRunner:

    def __init__(self, store: AlphaStore, agents: dict[str, BaseAgent]):
        self.store = store
        self.agents = agents
        self._tasks: set[asyncio.Task] = set()

    @property
    def agent_names(self) -> list[str]:
        return sorted(self.agents)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def get(self, agent_name: str) -> BaseAgent:
        try:
            return self.agents[agent_name]
        except KeyError:
            raise UnknownAgentError(agent_name) from None

    async def trigger(self, agent_name: str, user_id: str) -> str | None:
        """Queue one run and return its execution-log id (None if skipped).

        Raises UnknownAgentError for a name that is not registered.
        """
        agent = self.get(agent_name)
        try:
            if not await agent.should_run(user_id):
                logger.info("Trigger %s for user=%s: precondition not met", agent_name, user_id)
                return None
        except Exception as exc:
            # The run body will hit the same problem and record it
            logger.warning("Trigger %s: precondition check raised: %s", agent_name, exc)

        row = await self.store.start_execution(user_id, agent_name, status="queued")
        task = asyncio.create_task(
            agent.execute_run(row.id, user_id), name=f"agent:{agent_name}:{row.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Queued %s run %s for user=%s", agent_name, row.id, user_id)
        return row.id

    async def run_now(self, agent_name: str, user_id: str) -> RunOutcome | None:
        """Run inline and wait for the outcome (CLI / tests)."""
        return await self.get(agent_name).run(user_id)

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight runs; their log rows are finished as failed."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d in-flight agent run(s)", len(tasks))
