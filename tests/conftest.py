from __future__ import annotations

import os

# Pas de fichier de log pendant les tests
os.environ.setdefault("LOG_DIR", "")

import pytest
from fastapi.testclient import TestClient

from errors import DeliveryFailure
from state_store import StateStore
from status_hub import BroadcastHub


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeObserver:
    """Observateur synchrone qui garde les trames reçues."""

    def __init__(self) -> None:
        self.frames: list[str] = []
        self.fail = False
        self.closed = False

    def deliver(self, frame: str) -> None:
        if self.fail:
            raise DeliveryFailure("broken pipe")
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> StateStore:
    return StateStore(clock=clock)


@pytest.fixture
def hub(store: StateStore) -> BroadcastHub:
    return BroadcastHub(store, capacity=2)


@pytest.fixture
def client():
    from main import app

    app.state.stateStore = StateStore()
    app.state.statusHub = BroadcastHub(app.state.stateStore, capacity=2)
    with TestClient(app) as c:
        yield c
