"""
Prompt input widget.
"""
from textual import events
from textual.widgets import Input
from textual.message import Message


class InputArea(Input):
    class Submit(Message, bubble=True):
        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    async def on_key(self, event: events.Key) -> None:
        if event.key != "enter":
            return

        event.stop()
        event.prevent_default()
        prompt = self.value.strip()
        if not prompt:
            return
        self.post_message(self.Submit(prompt))
        self.value = ""
