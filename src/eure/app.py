"""
Eure chat: terminal front end for a streaming chat session.
"""

import asyncio
import logging
import uuid
from typing import Optional

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding

from eure.config import Settings, get_settings
from eure.core.completion import CompletionClient, LangGraphCompletionClient
from eure.core.domain import DomainEvent
from eure.core.orchestrator import Orchestrator
from eure.core.session import StreamingSession
from eure.models import Role, Turn
from eure.widgets import ChatLog, InputArea, LiveAnswer


def build_session(settings: Settings, client: Optional[CompletionClient] = None) -> StreamingSession:
    """Wire the default client and asyncio transport into a fresh session."""
    session_id = str(uuid.uuid4())
    if client is None:
        client = LangGraphCompletionClient(settings, thread_id=session_id)
    transport = Orchestrator(client, session_id=session_id)
    return StreamingSession(transport, settings.model, session_id=session_id)


class ChatApp(App):
    BINDINGS = [
        Binding('escape', 'stop_answering', 'Stop answering', priority=True),
    ]

    def __init__(self, session: Optional[StreamingSession] = None, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or get_settings()
        self.session = session or build_session(self.settings)
        self.event_q: asyncio.Queue = asyncio.Queue()
        self._unsubscribe = self.session.subscribe(self.event_q.put_nowait)

    def compose(self) -> ComposeResult:
        yield ChatLog(id="chat_log", markup=True, wrap=True)
        yield LiveAnswer(id="live_answer")
        yield InputArea(id="input_text", placeholder="What can I help you with?")

    async def on_mount(self) -> None:
        self.query_one("#live_answer", LiveAnswer).hide_answer()
        chat_log = self.query_one("#chat_log", ChatLog)
        chat_log.write("[bold green]Welcome to Eure![/bold green]")
        chat_log.write_notice(f"model: {self.session.model}  session: {self.session.session_id}")
        self.set_focus(self.query_one("#input_text", InputArea))
        self._pump()

    async def on_unmount(self) -> None:
        self._unsubscribe()
        transport = self.session.transport
        if isinstance(transport, Orchestrator):
            await transport.aclose()

    async def on_input_area_submit(self, message: InputArea.Submit) -> None:
        self.session.submit(message.value)

    def action_stop_answering(self) -> None:
        self.session.cancel()

    @work(exclusive=True, group='pump')
    async def _pump(self):
        """
        Render session events in the order they happened. The live answer is
        always read back from `view_state()`, never from the event itself.
        """
        chat_log = self.query_one("#chat_log", ChatLog)
        live = self.query_one("#live_answer", LiveAnswer)

        while True:
            ev: DomainEvent = await self.event_q.get()
            type = ev['type']

            if type == 'submit':
                chat_log.write_turn(Turn(role=Role.USER, text=ev['text']))
                live.show_answer("")

            elif type == 'token':
                view = self.session.view_state()
                if view.is_streaming and view.generation == ev['generation']:
                    live.show_answer(view.live_answer or "")

            elif type == 'done':
                live.hide_answer()
                if ev['text']:
                    chat_log.write_turn(Turn(role=Role.ASSISTANT, text=ev['text']))

            elif type == 'cancelled':
                live.hide_answer()
                if ev['reason'] == 'user':
                    chat_log.write_notice("answer stopped")

            elif type == 'error':
                live.hide_answer()
                chat_log.write_notice(f"error: {ev['message']}", style="bold red")


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        filename=settings.log_file,
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )
    # Suppress noisy logs from the underlying HTTP libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    app = ChatApp(settings=settings)
    app.run()


if __name__ == "__main__":
    main()
