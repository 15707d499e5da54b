"""
Events emitted by the streaming session to its listeners.
"""

from typing import Callable, Literal, TypedDict, Union


class SubmitEvent(TypedDict):
    type: Literal['submit']
    generation: int
    text: str


class TokenEvent(TypedDict):
    type: Literal['token']
    generation: int
    text: str


class DoneEvent(TypedDict):
    type: Literal['done']
    generation: int
    text: str


class CancelledEvent(TypedDict):
    type: Literal['cancelled']
    generation: int
    reason: Literal['user', 'superseded']


class ErrorEvent(TypedDict):
    type: Literal['error']
    generation: int
    message: str


DomainEvent = Union[
    SubmitEvent, TokenEvent, DoneEvent, CancelledEvent, ErrorEvent,
]

Listener = Callable[[DomainEvent], None]
