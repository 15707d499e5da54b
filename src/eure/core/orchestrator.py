import asyncio
import logging
from typing import Optional, Sequence

from eure.core.completion import CompletionClient
from eure.core.session import StreamSink
from eure.models import Turn

logger = logging.getLogger(__name__)


class StreamHandle:
    def __init__(self, task: asyncio.Task):
        self.task = task

    @property
    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


class Orchestrator:
    """
    Asyncio transport: one task per stream, pumping the completion client's
    fragments into the sink of the stream that opened it.
    """

    def __init__(self, client: CompletionClient, session_id: Optional[str] = None):
        self.client = client
        self.session_id = session_id
        self._tasks: set[asyncio.Task] = set()

    def open(self, conversation: Sequence[Turn], prompt: str, model: str, sink: StreamSink) -> StreamHandle:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.run(conversation, prompt, model, sink))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return StreamHandle(task)

    async def run(self, conversation: Sequence[Turn], prompt: str, model: str, sink: StreamSink):
        try:
            async for fragment in self.client.stream(conversation, prompt, model):
                sink.on_delta(fragment)
        except asyncio.CancelledError:
            logger.debug('stream task cancelled (session=%s)', self.session_id)
            raise
        except Exception as exc:
            logger.exception('completion stream failed (session=%s, model=%s)', self.session_id, model)
            sink.on_stream_error(exc)
            return

        sink.on_stream_end()

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
