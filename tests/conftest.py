"""
Pytest configuration and fixtures for all tests.
"""

import asyncio
import os
import sys

import pytest

# Add project root to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

os.environ.setdefault('LOG_LEVEL', 'DEBUG')

from subinbox.models import Alias, AliasStatus, RemoteItem, Session


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakePort:
    """In-memory stand-in for the remote command port.

    Put an exception in ``failures[<method name>]`` to make that call fail.
    """

    def __init__(self, clock, session_ttl_ms=3_600_000):
        self.clock = clock
        self.session_ttl_ms = session_ttl_ms
        self.remote_items = []
        self.stored_session = None
        self.stored_secret = None
        self.stored_aliases = []
        self.stored_preferences = None
        self.logged = []
        self.sent = []
        self.calls = []
        self.failures = {}
        self.fetch_delay = 0.0

    def _call(self, name):
        self.calls.append(name)
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    async def authenticate(self, account, secret):
        self._call('authenticate')
        return Session(account=account, token=f'tok-{account}', expires_at=self.clock() + self.session_ttl_ms)

    async def deauthenticate(self):
        self._call('deauthenticate')
        self.stored_session = None

    async def fetch_remote_items(self):
        self._call('fetch_remote_items')
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        return list(self.remote_items)

    async def send_remote_item(self, destination, subject, body):
        self._call('send_remote_item')
        self.sent.append((destination, subject, body))

    async def persist_session(self, session):
        self._call('persist_session')
        self.stored_session = session

    async def load_session(self):
        self._call('load_session')
        return self.stored_session

    async def persist_secret(self, secret):
        self._call('persist_secret')
        self.stored_secret = secret

    async def load_secret(self):
        self._call('load_secret')
        return self.stored_secret

    async def persist_alias_list(self, aliases):
        self._call('persist_alias_list')
        self.stored_aliases = list(aliases)

    async def load_alias_list(self):
        self._call('load_alias_list')
        return list(self.stored_aliases)

    async def persist_preferences(self, preferences):
        self._call('persist_preferences')
        self.stored_preferences = preferences

    async def load_preferences(self):
        self._call('load_preferences')
        return self.stored_preferences

    async def log_error(self, record):
        self._call('log_error')
        self.logged.append(record)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def port(clock):
    return FakePort(clock)


@pytest.fixture
def make_item():
    def _make(item_id, recipient='user@2925.com', timestamp=1000, is_read=False, sender='someone@example.com'):
        return RemoteItem(
            id=item_id,
            sender=sender,
            recipient=recipient,
            subject=f'Subject {item_id}',
            body=f'Body {item_id}',
            timestamp=timestamp,
            is_read=is_read,
        )
    return _make


@pytest.fixture
def make_alias():
    def _make(address, status=AliasStatus.ACTIVE, created_at=1000):
        local = address.split('@')[0]
        return Alias(address=address, suffix=local[4:] or 'x', created_at=created_at, status=status)
    return _make
