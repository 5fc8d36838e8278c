"""
Tests for request routing and session housekeeping
"""
import pytest

from backend import Backend, UnknownSessionError
from conftest import FakeLLM, FakeStore, build_row
from eumlog.settings import SessionConfig

CLOSING = "고생하셨습니다. 감사합니다!"


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def backend(clock):
    config = SessionConfig(history_ttl_seconds=10, sweep_interval_seconds=60)
    return Backend(config, llm=FakeLLM(), store=FakeStore(), clock=clock)


def start(backend, name):
    return backend._process_request_data({"type": "start_consultation", "payload": {"row": build_row(name=name)}})


def test_expired_sessions_are_swept_on_a_later_request(backend, clock):
    for i in range(50):
        start(backend, f"고객{i}")
    assert len(backend.sessions) == 50

    clock.now += 10_000
    backend._process_request_data({"type": "parse", "payload": {"text": build_row()}})

    assert backend.sessions == {}
    assert backend.history._items == {}


def test_sweep_waits_for_the_interval(backend, clock):
    start(backend, "김하나")
    clock.now += 30

    # TTL has passed but the sweep interval has not.
    assert not backend.maybe_sweep()
    assert len(backend.sessions) == 1

    clock.now += 31
    assert backend.maybe_sweep()
    assert backend.sessions == {}


def test_active_sessions_survive_a_sweep(backend, clock):
    start(backend, "김하나")
    start(backend, "이둘")
    clock.now += 8
    backend._process_request_data(
        {"type": "consultation_chat", "payload": {"name": "이둘", "birth": "950315", "message": "네"}}
    )

    clock.now += 5
    assert backend.sweep() == 1
    assert list(backend.sessions) == [("이둘", "950315")]


def test_swept_session_releases_its_save_marker(clock):
    config = SessionConfig(history_ttl_seconds=10, sweep_interval_seconds=60)
    store = FakeStore()
    backend = Backend(config, llm=FakeLLM([CLOSING]), store=store, clock=clock)
    start(backend, "김하나")
    backend._process_request_data(
        {"type": "consultation_chat", "payload": {"name": "김하나", "birth": "950315", "message": "네"}}
    )
    assert backend.guard.is_done(("김하나", "950315"))

    clock.now += 100
    backend.sweep()

    assert not backend.guard.is_done(("김하나", "950315"))
    with pytest.raises(UnknownSessionError):
        backend.get_session("김하나", "950315")
    assert len(store.saves) == 1


def test_unknown_type_is_an_error_response(backend):
    response = backend._process_request_data({"type": "ingest", "payload": {}})
    assert response["status"] == "error"
    assert "ingest" in response["message"]
