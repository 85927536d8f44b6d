"""
Shared fixtures.

Every fixture works offline: transports are scripted and time is faked.
"""

import pytest

from helpers import FakeClock, MockTransport

from mediawiki_client.api_client import ClientConfig, WikiClient
from mediawiki_client.client.session import SessionStore
from mediawiki_client.recovery.retry import RetryExecutor
from mediawiki_client.runtime.decoder import XmlResponseDecoder


ENDPOINT = "https://wiki.test/w/api.php"


@pytest.fixture
def clock():
    """Fake monotonic clock whose sleep advances time."""
    return FakeClock()


@pytest.fixture
def transport():
    """Scripted transport with empty queues."""
    return MockTransport()


@pytest.fixture
def decoder():
    return XmlResponseDecoder()


@pytest.fixture
def session():
    """Anonymous session store without fetchers."""
    return SessionStore()


@pytest.fixture
def executor(transport, session, decoder, clock):
    """Retry executor over the scripted transport."""
    return RetryExecutor(transport, session, decoder, sleep=clock.sleep)


@pytest.fixture
def config():
    return ClientConfig(endpoint=ENDPOINT, throttle=10.0)


@pytest.fixture
def client(config, transport, clock):
    """Client wired to the scripted transport and fake clock."""
    with WikiClient(config, transport=transport, sleep=clock.sleep, clock=clock) as wiki:
        yield wiki
