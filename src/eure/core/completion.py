"""
Completion-service client: streams an answer for a conversation as text
fragments, using a langgraph chat graph around a streaming chat model.
"""
import logging
from typing import AsyncIterator, Callable, Optional, Protocol, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langgraph.graph.state import CompiledStateGraph

from eure.config import Settings
from eure.core.agents.chat_agent import CHATBOT_NODE, build_agent, build_llm, to_lc_messages
from eure.core.errors import UnsupportedModelError
from eure.core.langgraph_adapter import adapt_events
from eure.models import Turn

logger = logging.getLogger(__name__)

LLMFactory = Callable[[str, float, int], BaseChatModel]


class CompletionClient(Protocol):
    def stream(
        self, conversation: Sequence[Turn], prompt: str, model: str
    ) -> AsyncIterator[str]: ...


class LangGraphCompletionClient:
    def __init__(
        self,
        settings: Settings,
        llm_factory: LLMFactory = build_llm,
        thread_id: Optional[str] = None,
    ):
        self.settings = settings
        self.llm_factory = llm_factory
        self.thread_id = thread_id
        self._agents: dict[str, CompiledStateGraph] = {}

    def _agent_for(self, model: str) -> CompiledStateGraph:
        if model not in self.settings.allowed_models:
            raise UnsupportedModelError(model, self.settings.allowed_models)

        agent = self._agents.get(model)
        if agent is None:
            llm = self.llm_factory(model, self.settings.temperature, self.settings.max_tokens)
            agent = build_agent(llm)
            self._agents[model] = agent
            logger.info('built chat agent for model %s', model)
        return agent

    async def stream(self, conversation: Sequence[Turn], prompt: str, model: str) -> AsyncIterator[str]:
        agent = self._agent_for(model)
        payload = {'messages': to_lc_messages(conversation, prompt, self.settings.system_prompt)}
        config = {'configurable': {'thread_id': self.thread_id}} if self.thread_id else {}

        events = agent.astream_events(payload, config=config, version='v2')
        async for text in adapt_events(events, node=CHATBOT_NODE):
            yield text
