"""Shared test fixtures and utilities."""

import io
from typing import List

import pytest

from annex_remote_b2.channel import ControlChannel
from annex_remote_b2.config import RemoteSettings
from annex_remote_b2.remote import SpecialRemote
from annex_remote_b2.storage.memory import InMemoryAccount, InMemoryObjectStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedAnnex:
    """
    Plays git-annex's side of the protocol.

    Requests are queued as lines; everything the remote writes is captured
    in ``output``.
    """

    def __init__(self, lines: List[str] = ()):
        self.input = io.BytesIO("".join(line + "\n" for line in lines).encode("utf-8"))
        self.output = io.BytesIO()
        self.channel = ControlChannel(self.input, self.output)

    def feed(self, *lines: str) -> None:
        """Append request lines after the current read position."""
        pos = self.input.tell()
        self.input.seek(0, io.SEEK_END)
        self.input.write("".join(line + "\n" for line in lines).encode("utf-8"))
        self.input.seek(pos)

    @property
    def lines(self) -> List[str]:
        return self.output.getvalue().decode("utf-8").splitlines()

    def responses(self) -> List[str]:
        """Output lines except PROGRESS and GETCONFIG chatter."""
        return [
            line for line in self.lines
            if not line.startswith("PROGRESS ") and not line.startswith("GETCONFIG ")
        ]


def config_replies(bucket: str = "annex-bucket", prefix: str = "",
                   account_id: str = "acct", app_key: str = "key") -> List[str]:
    """VALUE lines answering the four GETCONFIG requests in order."""
    return [
        f"VALUE {account_id}",
        f"VALUE {app_key}",
        f"VALUE {bucket}",
        f"VALUE {prefix}",
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bucket_store():
    return InMemoryObjectStore()


@pytest.fixture
def account(bucket_store):
    return InMemoryAccount({"annex-bucket": bucket_store})


@pytest.fixture
def annex():
    return ScriptedAnnex()


@pytest.fixture
def make_remote(account, clock):
    """Factory fixture building a SpecialRemote against the in-memory account."""
    connects = []

    def _make(annex: ScriptedAnnex, **settings):
        def connect(config):
            connects.append(config)
            return account

        remote = SpecialRemote(
            annex.channel,
            settings=RemoteSettings(**settings),
            connect=connect,
            environ={},
            clock=clock,
        )
        remote.connects = connects
        return remote

    return _make


@pytest.fixture
def ready_remote(make_remote, annex):
    """A SpecialRemote that has completed PREPARE with prefix 'annex/'."""
    remote = make_remote(annex)
    annex.feed(*config_replies(prefix="annex"))
    remote.handle_line("PREPARE")
    assert remote.ready
    annex.output.seek(0)
    annex.output.truncate()
    return remote
