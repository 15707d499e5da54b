import pytest

from eure.core.session import StreamingSession

from fakes import FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    return StreamingSession(transport, 'gpt-4o', session_id='test-session')


@pytest.fixture
def events(session):
    received = []
    session.subscribe(received.append)
    return received
