"""
Tests for the interactive consultation session
"""
from langchain_core.messages import HumanMessage, SystemMessage

from conftest import FakeLLM, FakeStore
from eumlog.consult_prompts import (
    LLM_RETRY_NOTICE,
    NO_CHANGES_SUMMARY,
    SAVE_SUCCESS_NOTICE,
    TURN_RULE_PREFIX,
)
from eumlog.llm_client import MaxRetryErrorsException, TerminalLlmError
from eumlog.session_tracker import ConsultationSession

CLOSING_NO_CHANGES = (
    "네! 질문 모두 확인했습니다.\n\n"
    "모든 상담이 완료되었습니다! 김하나님께서 선택하신 [나이, 키] 조건은 확실히 보장하여 매칭을 진행해 드릴 예정입니다. "
    "고생하셨습니다. 감사합니다!\n\n"
    '```json\n{"updates": {}, "change_summary": "변경 사항 없음", "memo": ""}\n```'
)


def new_session(record, llm, store, history, guard):
    return ConsultationSession(record, llm=llm, store=store, history=history, guard=guard)


def test_start_emits_intro_bubbles_once(make_record, fake_llm, fake_store, history, guard):
    session = new_session(make_record(), fake_llm, fake_store, history, guard)

    bubbles = session.start()
    assert len(bubbles) == 3
    assert "김하나" in bubbles[0]
    assert "[나이, 키]" in bubbles[1]
    assert "베이직" in bubbles[1]

    assert session.start() == bubbles
    assert len(session.transcript()) == 3


def test_send_builds_model_input(make_record, fake_store, history, guard):
    llm = FakeLLM(["**네** 확인했습니다!\n\n다음으로 키 조건 확인해 드릴게요."])
    session = new_session(make_record(), llm, fake_store, history, guard)
    session.start()

    result = session.send("네 괜찮아요")

    messages = llm.calls[0]
    assert isinstance(messages[0], SystemMessage)
    assert "[나이, 키]" in messages[0].content
    assert isinstance(messages[1], HumanMessage)
    assert messages[-1].content == TURN_RULE_PREFIX + "네 괜찮아요"
    assert result.bubbles == ["네 확인했습니다!", "다음으로 키 조건 확인해 드릴게요."]
    assert not result.completed
    assert fake_store.saves == []


def test_intro_bubbles_reach_the_model_as_one_turn(make_record, fake_store, history, guard):
    llm = FakeLLM()
    session = new_session(make_record(), llm, fake_store, history, guard)
    session.start()
    session.send("네")

    # system, start cue, merged intro, current user turn
    assert len(llm.calls[0]) == 4


def test_basic_client_without_changes_saves_exactly_once(make_record, fake_store, history, guard):
    llm = FakeLLM(["네 확인했습니다!", CLOSING_NO_CHANGES, "고생하셨습니다. 좋은 하루 보내세요!"])
    session = new_session(make_record(selected_conditions=("나이", "키")), llm, fake_store, history, guard)
    session.start()

    first = session.send("네")
    assert not first.completed

    done = session.send("없어요")
    assert done.completed
    assert done.notice == SAVE_SUCCESS_NOTICE
    assert done.outcome.change_summary == NO_CHANGES_SUMMARY
    assert done.outcome.updates == {}
    assert len(fake_store.saves) == 1

    write = fake_store.saves[0]
    assert write.name == "김하나"
    assert write.birth == "950315"
    assert "[user] 없어요" in write.chat_log
    assert "```json" not in write.chat_log

    # Re-detection after the save notice must not save again.
    assert session.check_completion() is None
    again = session.send("감사합니다")
    assert not again.completed
    assert len(fake_store.saves) == 1


def test_recreated_session_does_not_save_twice(make_record, fake_store, history, guard):
    record = make_record()
    session = new_session(record, FakeLLM([CLOSING_NO_CHANGES]), fake_store, history, guard)
    session.start()
    session.send("네")

    twin = new_session(record, FakeLLM([CLOSING_NO_CHANGES]), fake_store, history, guard)
    twin.send("네")
    assert len(fake_store.saves) == 1


def test_json_block_is_hidden_from_bubbles(make_record, fake_store, history, guard):
    session = new_session(make_record(), FakeLLM([CLOSING_NO_CHANGES]), fake_store, history, guard)
    session.start()
    result = session.send("네")

    assert all("```" not in b for b in result.bubbles)
    assert any("고생하셨습니다" in b for b in result.bubbles)


def test_relaxed_conditions_reach_the_store(make_record, fake_store, history, guard):
    reply = (
        "네, 확인했습니다! 고생하셨습니다.\n\n"
        '```json\n{"updates": {"preferred_income": "3천만 원 이상"}, "change_summary": "연봉 3천 가능", "memo": "온화함"}\n```'
    )
    session = new_session(make_record(), FakeLLM([reply]), fake_store, history, guard)
    session.start()
    session.send("3천도 괜찮아요")

    write = fake_store.saves[0]
    assert write.outcome.updates == {"preferred_income": "3천만 원 이상"}
    assert write.to_payload()["changeSummary"] == "연봉 3천 가능"
    assert write.to_payload()["action"] == "save_consultation"


def test_transient_llm_failure_keeps_transcript(make_record, fake_store, history, guard):
    llm = FakeLLM([MaxRetryErrorsException("All 3 retry attempts failed.")])
    session = new_session(make_record(), llm, fake_store, history, guard)
    session.start()
    before = session.transcript()

    result = session.send("90년생도 괜찮아요")

    assert result.notice == LLM_RETRY_NOTICE
    assert result.pending_user_text == "90년생도 괜찮아요"
    assert result.bubbles == []
    assert session.transcript() == before


def test_terminal_llm_failure_is_surfaced(make_record, fake_store, history, guard):
    llm = FakeLLM([TerminalLlmError("API key not valid")])
    session = new_session(make_record(), llm, fake_store, history, guard)
    session.start()

    result = session.send("네")
    assert "API key not valid" in result.notice
    assert result.pending_user_text == "네"
    assert len(session.transcript()) == 3


def test_store_failure_is_reported_not_retried(make_record, history, guard):
    store = FakeStore(fail=True)
    session = new_session(make_record(), FakeLLM([CLOSING_NO_CHANGES, CLOSING_NO_CHANGES]), store, history, guard)
    session.start()

    result = session.send("네")
    assert result.completed
    assert result.notice.startswith("⚠")
    assert "sheet is unreachable" in session.transcript()[-1]["text"]

    session.send("저장이 안 됐나요?")
    assert len(store.saves) == 1


def test_state_snapshot(make_record, fake_llm, fake_store, history, guard):
    session = new_session(make_record(), fake_llm, fake_store, history, guard)
    session.start()
    state = session.state()

    assert state["membershipTier"] == "BASIC"
    assert state["started"]
    assert not state["completed"]
    assert state["directives"][-1]["attributeKey"] == "closing"
    assert [t["role"] for t in state["transcript"]] == ["model", "model", "model"]
