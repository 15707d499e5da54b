"""
Streaming session controller.

Owns the conversation history and the live buffer of the single stream in
flight, applies fragments pushed by the transport, and commits a finished
answer into history exactly once.
"""
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional, Protocol, Sequence, Union

from eure.core.domain import DomainEvent, Listener
from eure.core.errors import PromptRejectedError, StreamFailedError
from eure.models import HistoryStore, LiveBuffer, Role, StreamStatus, Turn

logger = logging.getLogger(__name__)


class StreamSink(Protocol):
    def on_delta(self, fragment: str) -> None: ...
    def on_stream_end(self) -> None: ...
    def on_stream_error(self, error: Union[BaseException, str]) -> None: ...


class StreamHandle(Protocol):
    def cancel(self) -> None: ...


class Transport(Protocol):
    def open(
        self,
        conversation: Sequence[Turn],
        prompt: str,
        model: str,
        sink: StreamSink,
    ) -> StreamHandle: ...


@dataclass(frozen=True)
class ViewState:
    """
    What a reader may render. `live_answer` is set only while a stream is
    in flight; once committed, the answer is the last entry of `history`.
    """
    history: tuple[Turn, ...]
    live_answer: Optional[str]
    status: StreamStatus
    error: Optional[str] = None
    generation: int = 0

    @property
    def is_streaming(self) -> bool:
        return self.status is StreamStatus.STREAMING

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise StreamFailedError(self.error, self.generation)


class _GenerationSink:
    """Routes transport callbacks to the session, tagged with one generation."""

    def __init__(self, session: 'StreamingSession', generation: int):
        self._session = session
        self.generation = generation

    def on_delta(self, fragment: str) -> None:
        self._session.on_delta(fragment, self.generation)

    def on_stream_end(self) -> None:
        self._session.on_stream_end(self.generation)

    def on_stream_error(self, error: Union[BaseException, str]) -> None:
        self._session.on_stream_error(error, self.generation)


class StreamingSession:
    def __init__(
        self,
        transport: Transport,
        model: str,
        history: Optional[HistoryStore] = None,
        session_id: Optional[str] = None,
    ):
        self.transport = transport
        self.model = model
        self.session_id = session_id or str(uuid.uuid4())

        self._history = history if history is not None else HistoryStore()
        self._buffer = LiveBuffer()
        self._handle: Optional[StreamHandle] = None
        self._generation = 0
        self._abandoned: Optional[int] = None
        self._error: Optional[str] = None

        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        # events are queued under the lock, in state-change order, and
        # delivered by a single outermost dispatcher
        self._pending: Deque[DomainEvent] = deque()
        self._dispatching = False

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def submit(self, prompt_text: str) -> int:
        """
        Append the user turn and open a new stream for it.

        A stream still in flight is cancelled first. Returns the generation
        token of the new stream.
        """
        if not isinstance(prompt_text, str):
            raise PromptRejectedError(
                f'prompt must be a string, got {type(prompt_text).__name__}'
            )

        with self._lock:
            if self._buffer.status is StreamStatus.STREAMING:
                self._pending.append(self._teardown('superseded'))

            conversation = self._history.snapshot()
            self._history.append(Turn(role=Role.USER, text=prompt_text))

            self._generation += 1
            generation = self._generation
            self._buffer = LiveBuffer(generation=generation, status=StreamStatus.STREAMING)
            self._error = None
            self._pending.append({'type': 'submit', 'generation': generation, 'text': prompt_text})
            logger.info(
                'session %s: stream %d opened (model=%s, prior_turns=%d)',
                self.session_id, generation, self.model, len(conversation),
            )

            sink = _GenerationSink(self, generation)
            try:
                self._handle = self.transport.open(conversation, prompt_text, self.model, sink)
            except Exception as exc:
                logger.exception('session %s: failed to open stream %d', self.session_id, generation)
                self._handle = None
                self._pending.append(self._fail(exc))

        self._dispatch()
        return generation

    def on_delta(self, fragment: str, generation: Optional[int] = None) -> None:
        with self._lock:
            if not self._is_live(generation):
                logger.debug('session %s: dropped stale fragment for stream %s', self.session_id, generation)
                return
            self._buffer.accumulated_text += fragment
            self._pending.append({'type': 'token', 'generation': self._buffer.generation, 'text': fragment})

        self._dispatch()

    def on_stream_end(self, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and (
                generation != self._buffer.generation or generation == self._abandoned
            ):
                logger.debug('session %s: ignored end of stale stream %d', self.session_id, generation)
                return
            if self._buffer.status is not StreamStatus.STREAMING:
                logger.warning(
                    'session %s: stream end received while %s; ignoring',
                    self.session_id, self._buffer.status.value,
                )
                return

            generation = self._buffer.generation
            text = self._buffer.accumulated_text
            if text:
                self._history.append(Turn(role=Role.ASSISTANT, text=text))
            self._buffer.status = StreamStatus.COMMITTED
            self._pending.append({'type': 'done', 'generation': generation, 'text': text})
            self._buffer.reset()
            self._handle = None
            logger.info('session %s: stream %d committed (%d chars)', self.session_id, generation, len(text))

        self._dispatch()

    def on_stream_error(self, error: Union[BaseException, str], generation: Optional[int] = None) -> None:
        with self._lock:
            if not self._is_live(generation):
                logger.debug('session %s: ignored failure of stale stream %s', self.session_id, generation)
                return
            self._pending.append(self._fail(error))

        self._dispatch()

    def cancel(self) -> bool:
        """
        Stop the stream in flight and discard its partial answer.

        Returns False when there was nothing to cancel.
        """
        with self._lock:
            if self._buffer.status is not StreamStatus.STREAMING:
                logger.debug('session %s: cancel requested while idle', self.session_id)
                return False
            self._pending.append(self._teardown('user'))

        self._dispatch()
        return True

    def view_state(self) -> ViewState:
        with self._lock:
            streaming = self._buffer.status is StreamStatus.STREAMING
            return ViewState(
                history=self._history.snapshot(),
                live_answer=self._buffer.accumulated_text if streaming else None,
                status=self._buffer.status,
                error=self._error,
                generation=self._generation,
            )

    def _is_live(self, generation: Optional[int]) -> bool:
        if self._buffer.status is not StreamStatus.STREAMING:
            return False
        return generation is None or generation == self._buffer.generation

    def _teardown(self, reason: str) -> DomainEvent:
        generation = self._buffer.generation
        handle, self._handle = self._handle, None
        self._buffer.status = StreamStatus.CANCELLED
        self._buffer.reset()
        self._abandoned = generation
        if handle is not None:
            handle.cancel()
        logger.info('session %s: stream %d cancelled (%s)', self.session_id, generation, reason)
        return {'type': 'cancelled', 'generation': generation, 'reason': reason}

    def _fail(self, error: Union[BaseException, str]) -> DomainEvent:
        generation = self._buffer.generation
        message = str(error) or type(error).__name__
        self._handle = None
        self._buffer.status = StreamStatus.CANCELLED
        self._buffer.reset()
        self._abandoned = generation
        self._error = message
        logger.warning('session %s: stream %d failed: %s', self.session_id, generation, message)
        return {'type': 'error', 'generation': generation, 'message': message}

    def _dispatch(self) -> None:
        """
        Deliver queued events. Calls made while a dispatch is already running
        (a listener re-entering the session, or another thread) only enqueue;
        the running dispatcher drains them in order.
        """
        with self._lock:
            if self._dispatching:
                return
            self._dispatching = True

        try:
            while True:
                with self._lock:
                    if not self._pending:
                        self._dispatching = False
                        return
                    ev = self._pending.popleft()
                    listeners = list(self._listeners)

                for listener in listeners:
                    try:
                        listener(ev)
                    except Exception:
                        logger.exception('session %s: listener failed on %s event', self.session_id, ev['type'])
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise
