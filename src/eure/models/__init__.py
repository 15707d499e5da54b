"""
Conversation data models.
"""
from .turn import LiveBuffer, Role, StreamStatus, Turn
from .history import HistoryStore

__all__ = ["HistoryStore", "LiveBuffer", "Role", "StreamStatus", "Turn"]
