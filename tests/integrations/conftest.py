from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from sqinn.core.config import SqinnSettings
from sqinn.integrations.client import Sqinn

FAKE_PEER = Path(__file__).with_name("fake_sqinn_peer.py")


def fake_peer_settings(*peer_args: str) -> SqinnSettings:
    return SqinnSettings(sqinn_path=sys.executable, args=[str(FAKE_PEER), *peer_args])


@pytest.fixture()
def peer_settings() -> Callable[..., SqinnSettings]:
    """Return a factory building settings that launch the fake peer."""

    return fake_peer_settings


@pytest.fixture()
def sq() -> Iterator[Sqinn]:
    client = Sqinn.launch(fake_peer_settings())
    client.open(":memory:")
    yield client
    client.close()
    client.terminate()
