"""
Terminal UI widgets for the Eure chat application.
"""
from .input_area import InputArea
from .chat_log import ChatLog
from .live_answer import LiveAnswer

__all__ = ["InputArea", "ChatLog", "LiveAnswer"]
