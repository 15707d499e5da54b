import logging
import threading

import pytest

from eure.core.errors import PromptRejectedError, StreamFailedError
from eure.core.session import StreamingSession
from eure.models import HistoryStore, Role, StreamStatus, Turn


def test_end_to_end_turn(session, transport):
    session.submit('Hi')

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'),)
    assert view.status is StreamStatus.STREAMING
    assert view.live_answer == ''

    session.on_delta('He')
    session.on_delta('llo')
    assert session.view_state().live_answer == 'Hello'

    session.on_stream_end()

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'), Turn(Role.ASSISTANT, 'Hello'))
    assert view.live_answer is None
    assert view.status is StreamStatus.IDLE


def test_submit_sends_prior_turns_and_prompt_separately(session, transport):
    session.submit('Hi')
    assert transport.last['conversation'] == ()
    assert transport.last['prompt'] == 'Hi'
    assert transport.last['model'] == 'gpt-4o'
    session.on_delta('Hello')
    session.on_stream_end()

    session.submit('Again')
    assert transport.last['conversation'] == (
        Turn(Role.USER, 'Hi'),
        Turn(Role.ASSISTANT, 'Hello'),
    )
    assert transport.last['prompt'] == 'Again'


def test_empty_prompt_is_accepted(session, transport):
    session.submit('')
    assert session.view_state().history == (Turn(Role.USER, ''),)
    assert len(transport.opened) == 1


def test_non_string_prompt_is_rejected_without_side_effects(session, transport, events):
    with pytest.raises(PromptRejectedError):
        session.submit(None)

    assert session.view_state().history == ()
    assert transport.opened == []
    assert events == []


def test_live_answer_present_only_while_streaming(session):
    assert session.view_state().live_answer is None
    session.submit('Hi')
    assert session.view_state().is_streaming
    assert session.view_state().live_answer == ''
    session.on_stream_end()
    assert not session.view_state().is_streaming
    assert session.view_state().live_answer is None


def test_double_stream_end_commits_once(session, caplog):
    session.submit('Hi')
    session.on_delta('Hello')
    session.on_stream_end()

    with caplog.at_level(logging.WARNING, logger='eure.core.session'):
        session.on_stream_end()

    assistant_turns = [t for t in session.view_state().history if t.role is Role.ASSISTANT]
    assert assistant_turns == [Turn(Role.ASSISTANT, 'Hello')]
    assert 'stream end received while idle' in caplog.text


def test_stream_end_while_idle_is_ignored(session):
    session.on_stream_end()
    assert session.view_state().history == ()


def test_empty_answer_commits_nothing(session, events):
    session.submit('Hi')
    session.on_stream_end()

    assert session.view_state().history == (Turn(Role.USER, 'Hi'),)
    assert events[-1] == {'type': 'done', 'generation': 1, 'text': ''}


def test_cancel_discards_partial_answer(session, transport, events):
    session.submit('Hi')
    session.on_delta('Hel')
    session.on_delta('lo')

    assert session.cancel() is True

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'),)
    assert view.live_answer is None
    assert view.status is StreamStatus.IDLE
    assert transport.last['handle'].cancelled
    assert events[-1] == {'type': 'cancelled', 'generation': 1, 'reason': 'user'}


def test_cancel_while_idle_returns_false(session, events):
    assert session.cancel() is False
    assert events == []


def test_deltas_after_cancel_are_ignored(session, transport, caplog):
    session.submit('Hi')
    sink = transport.last['sink']
    session.cancel()

    with caplog.at_level(logging.DEBUG, logger='eure.core.session'):
        sink.on_delta('late')
        sink.on_stream_end()

    assert session.view_state().history == (Turn(Role.USER, 'Hi'),)
    assert session.view_state().live_answer is None
    assert 'stream end received' not in caplog.text
    assert 'ignored end of stale stream 1' in caplog.text


def test_late_end_after_failure_is_not_a_contract_violation(session, transport, caplog):
    session.submit('Hi')
    sink = transport.last['sink']
    sink.on_stream_error('reset by peer')

    with caplog.at_level(logging.WARNING, logger='eure.core.session'):
        sink.on_stream_end()

    assert 'stream end received' not in caplog.text
    assert session.view_state().history == (Turn(Role.USER, 'Hi'),)


def test_stale_stream_cannot_touch_new_buffer(session, transport, events):
    session.submit('first')
    stream_a = transport.last
    stream_a['sink'].on_delta('foo')

    session.submit('second')
    stream_b = transport.last

    assert stream_a['handle'].cancelled
    assert {'type': 'cancelled', 'generation': 1, 'reason': 'superseded'} in events

    stream_a['sink'].on_delta('stale')
    stream_a['sink'].on_stream_end()
    assert session.view_state().live_answer == ''

    stream_b['sink'].on_delta('bar')
    stream_b['sink'].on_stream_end()

    assert session.view_state().history == (
        Turn(Role.USER, 'first'),
        Turn(Role.USER, 'second'),
        Turn(Role.ASSISTANT, 'bar'),
    )


def test_superseded_stream_is_never_committed(session, transport):
    session.submit('first')
    session.on_delta('partial')
    session.submit('second')

    assert transport.opened[1]['conversation'] == (Turn(Role.USER, 'first'),)
    assert all(t.role is Role.USER for t in session.view_state().history)


def test_generation_tokens_increase(session):
    assert session.submit('a') == 1
    assert session.submit('b') == 2
    assert session.generation == 2


def test_transport_failure_discards_and_reports(session, transport, events):
    session.submit('Hi')
    session.on_delta('Hel')
    transport.last['sink'].on_stream_error(ConnectionError('connection reset'))

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'),)
    assert view.live_answer is None
    assert view.error == 'connection reset'
    assert events[-1] == {'type': 'error', 'generation': 1, 'message': 'connection reset'}

    with pytest.raises(StreamFailedError) as exc_info:
        view.raise_for_error()
    assert exc_info.value.generation == 1


def test_next_submit_clears_error(session, transport):
    session.submit('Hi')
    transport.last['sink'].on_stream_error('boom')
    assert session.view_state().error == 'boom'

    session.submit('retry')
    assert session.view_state().error is None
    session.view_state().raise_for_error()


def test_failure_of_stale_stream_is_ignored(session, transport):
    session.submit('first')
    stale_sink = transport.last['sink']
    session.submit('second')

    stale_sink.on_stream_error(RuntimeError('late failure'))

    view = session.view_state()
    assert view.error is None
    assert view.is_streaming


def test_open_failure_is_a_transport_failure(events):
    class BrokenTransport:
        def open(self, conversation, prompt, model, sink):
            raise OSError('no route to host')

    session = StreamingSession(BrokenTransport(), 'gpt-4o')
    session.subscribe(events.append)
    session.submit('Hi')

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'),)
    assert view.status is StreamStatus.IDLE
    assert view.error == 'no route to host'
    assert [e['type'] for e in events] == ['submit', 'error']


def test_events_follow_state_changes(session, events):
    session.submit('Hi')
    session.on_delta('He')
    session.on_delta('llo')
    session.on_stream_end()

    assert events == [
        {'type': 'submit', 'generation': 1, 'text': 'Hi'},
        {'type': 'token', 'generation': 1, 'text': 'He'},
        {'type': 'token', 'generation': 1, 'text': 'llo'},
        {'type': 'done', 'generation': 1, 'text': 'Hello'},
    ]


def test_committed_answer_is_never_shown_twice(session):
    seen = []

    def check(ev):
        view = session.view_state()
        last = view.history[-1] if view.history else None
        both = (
            view.live_answer is not None
            and last is not None
            and last.role is Role.ASSISTANT
            and view.live_answer == last.text
            and view.live_answer != ''
        )
        seen.append(both)

    session.subscribe(check)
    session.submit('Say hello')
    session.on_delta('hello')
    session.on_stream_end()
    # a repeated answer must still render once
    session.submit('Say hello')
    session.on_delta('hello')
    session.on_stream_end()

    assert not any(seen)
    assert [t.text for t in session.view_state().history] == ['Say hello', 'hello', 'Say hello', 'hello']


def test_listener_errors_do_not_break_the_session(session, caplog):
    def broken(ev):
        raise RuntimeError('listener bug')

    session.subscribe(broken)
    with caplog.at_level(logging.ERROR, logger='eure.core.session'):
        session.submit('Hi')
        session.on_delta('ok')
        session.on_stream_end()

    assert session.view_state().history[-1] == Turn(Role.ASSISTANT, 'ok')
    assert 'listener failed' in caplog.text


def test_unsubscribe_stops_notifications(session):
    received = []
    unsubscribe = session.subscribe(received.append)
    session.submit('Hi')
    unsubscribe()
    session.on_delta('x')

    assert [e['type'] for e in received] == ['submit']


def test_history_only_grows(session):
    lengths = []
    for prompt in ('a', 'b', 'c'):
        session.submit(prompt)
        lengths.append(len(session.history))
        session.on_delta(prompt.upper())
        session.on_stream_end()
        lengths.append(len(session.history))
        session.on_stream_end()
        lengths.append(len(session.history))

    assert lengths == sorted(lengths)
    assert lengths[-1] == 6


def test_uses_injected_history_and_random_session_id(transport):
    store = HistoryStore((Turn(Role.USER, 'earlier'),))
    first = StreamingSession(transport, 'gpt-4o', history=store)
    second = StreamingSession(transport, 'gpt-4o')

    first.submit('now')

    assert first.history is store
    assert transport.last['conversation'] == (Turn(Role.USER, 'earlier'),)
    assert first.session_id != second.session_id


def test_listener_cancelling_on_token_keeps_event_order(session):
    seen = []

    def stop_on_first_token(ev):
        if ev['type'] == 'token':
            session.cancel()

    session.subscribe(stop_on_first_token)
    session.subscribe(lambda ev: seen.append(ev['type']))

    session.submit('Hi')
    session.on_delta('x')

    assert seen == ['submit', 'token', 'cancelled']
    assert session.view_state().history == (Turn(Role.USER, 'Hi'),)
    assert session.view_state().live_answer is None


def test_cancel_from_another_thread_inside_delivery(session):
    seen = []

    def cancel_from_worker(ev):
        if ev['type'] == 'token':
            worker = threading.Thread(target=session.cancel)
            worker.start()
            worker.join(timeout=5)
            assert not worker.is_alive()

    session.subscribe(cancel_from_worker)
    session.subscribe(lambda ev: seen.append(ev['type']))

    session.submit('Hi')
    session.on_delta('x')

    assert seen == ['submit', 'token', 'cancelled']
    assert not session.view_state().is_streaming


def test_cancel_races_with_incoming_deltas(session, transport):
    seen = []
    first_token = threading.Event()

    def record(ev):
        seen.append(ev['type'])
        if ev['type'] == 'token':
            first_token.set()

    session.subscribe(record)
    session.submit('Hi')
    sink = transport.last['sink']

    def feed():
        for _ in range(500):
            sink.on_delta('a')

    feeder = threading.Thread(target=feed)
    feeder.start()
    assert first_token.wait(timeout=5)
    session.cancel()
    feeder.join(timeout=5)
    sink.on_stream_end()

    assert seen.count('cancelled') == 1
    assert 'token' not in seen[seen.index('cancelled'):]
    assert 'done' not in seen

    view = session.view_state()
    assert view.history == (Turn(Role.USER, 'Hi'),)
    assert view.live_answer is None
