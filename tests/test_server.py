"""
Tests for the HTTP event endpoint
"""
import pytest
from fastapi.testclient import TestClient

import server
from backend import Backend
from conftest import FakeLLM, FakeStore, build_row
from eumlog.settings import SessionConfig

CLOSING = (
    "모든 상담이 완료되었습니다! 고생하셨습니다. 감사합니다!\n\n"
    '```json\n{"updates": {}, "change_summary": "변경 사항 없음", "memo": ""}\n```'
)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def client(store):
    backend = Backend(SessionConfig(), llm=FakeLLM(["네 확인했습니다!", CLOSING]), store=store)
    server.set_backend(backend)
    yield TestClient(server.app)
    server.set_backend(None)


def post(client, type_, payload):
    return client.post("/events", json={"type": type_, "payload": payload})


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_parse_event(client):
    response = post(client, "parse", {"text": build_row() + "\n" + build_row(name="이둘", gender="남자")})
    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["name"] for r in data] == ["김하나", "이둘"]
    assert data[0]["membership_tier"] == "BASIC"
    assert data[0]["selected_conditions"] == ["나이", "키"]


def test_batch_script_event(client):
    response = post(client, "batch_script", {"text": build_row()})
    assert response.status_code == 200
    script = response.json()["data"][0]["script"]
    assert "안녕하세요 김하나님!" in script
    assert "베이직: 12만원" in script


def test_unknown_type_is_rejected(client):
    assert post(client, "ingestion", {}).status_code == 400


def test_missing_payload_field_is_rejected(client):
    assert post(client, "parse", {}).status_code == 400


def test_chat_without_session_is_not_found(client):
    response = post(client, "consultation_chat", {"name": "김하나", "birth": "950315", "message": "네"})
    assert response.status_code == 404


def test_full_consultation_over_http(client, store):
    start = post(client, "start_consultation", {"row": build_row()})
    assert start.status_code == 200
    assert len(start.json()["data"]["bubbles"]) == 3
    assert start.json()["data"]["directives"][-1]["attributeKey"] == "closing"

    identity = {"name": "김하나", "birth": "950315"}
    first = post(client, "consultation_chat", dict(identity, message="네"))
    assert first.json()["data"]["completed"] is False

    last = post(client, "consultation_chat", dict(identity, message="없어요"))
    body = last.json()["data"]
    assert body["completed"] is True
    assert body["outcome"]["change_summary"] == "변경 사항 없음"
    assert len(store.saves) == 1

    state = post(client, "consultation_state", identity).json()["data"]
    assert state["completed"] is True
    assert state["transcript"][-1]["role"] == "model"


def test_start_with_keyed_record(client):
    record = {"이름(*)": "박셋", "성별(*)": "남자", "생년월일(*)": "900101", "보장 조건 선택 (중요)(*)": "나이, 키, 연봉"}
    response = post(client, "start_consultation", {"record": record})
    assert response.status_code == 200
    assert response.json()["data"]["membershipTier"] == "PREMIUM"
