from typing import Annotated, Sequence, TypedDict

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from langgraph.graph import StateGraph, START, END
from langgraph.graph.message import add_messages
from langgraph.graph.state import CompiledStateGraph

from eure.models import Role, Turn


CHATBOT_NODE = 'chatbot'


class ChatState(TypedDict):
    messages: Annotated[list[BaseMessage], add_messages]


def build_llm(model: str, temperature: float = 0.6, max_tokens: int = 1000) -> BaseChatModel:
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        streaming=True,
    )


def to_lc_messages(conversation: Sequence[Turn], prompt: str, system_prompt: str = '') -> list[BaseMessage]:
    """
    Prior turns oldest first, then the new prompt exactly once.
    """
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))

    for turn in conversation:
        if turn.role is Role.USER:
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))

    messages.append(HumanMessage(content=prompt))
    return messages


def chatbot_factory(llm: BaseChatModel):
    async def chatbot(state: ChatState):
        ai_msg = await llm.ainvoke(state['messages'])
        return {'messages': [ai_msg]}
    return chatbot


def build_agent(llm: BaseChatModel) -> CompiledStateGraph:
    """
    Single-node graph: the whole conversation goes in, one answer comes out.
    History is owned by the session, so no checkpointer is attached.
    """
    graph_builder = StateGraph(ChatState)
    graph_builder.add_node(CHATBOT_NODE, chatbot_factory(llm))

    graph_builder.add_edge(START, CHATBOT_NODE)
    graph_builder.add_edge(CHATBOT_NODE, END)

    return graph_builder.compile(name='eure_chat_agent')
