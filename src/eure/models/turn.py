"""
Data models for the Eure chat session.
"""
from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = 'user'
    ASSISTANT = 'assistant'


class StreamStatus(str, Enum):
    IDLE = 'idle'
    STREAMING = 'streaming'
    CANCELLED = 'cancelled'
    COMMITTED = 'committed'


@dataclass(frozen=True)
class Turn:
    """
    A single immutable message in the conversation, attributed to a role.
    """
    role: Role
    text: str = ""

    def to_message(self) -> dict[str, str]:
        return {'role': self.role.value, 'content': self.text}


@dataclass
class LiveBuffer:
    """
    The in-progress assistant answer of one stream.

    `generation` identifies the stream that owns the buffer; fragments from
    any other generation must not touch it.
    """
    generation: int = 0
    accumulated_text: str = ""
    status: StreamStatus = StreamStatus.IDLE

    def reset(self) -> None:
        self.accumulated_text = ""
        self.status = StreamStatus.IDLE
