"""
Pytest configuration and fixtures
"""
import pytest

from eumlog.consultation_store import ConsultationStore, ConsultationStoreError
from eumlog.history_cache import HistoryCache
from eumlog.idempotency_cache import SaveGuard
from eumlog.records import ClientRecord

# Gender sits at index 2 and the selected-conditions cell at index 32, so the
# preference cells (22-27) are clear of the fixed profile fields.
PIVOT = 2
CONDITION_INDEX = 32


def build_row(
    *,
    group="일반",
    name="김하나",
    gender="여자",
    birth="950315",
    phone="010-1234-5678",
    location="전남 여수시",
    job="회사원",
    height="165",
    education="대졸",
    income="4천",
    smoking="비흡연",
    religion="무교",
    age_pref="90년생 이상",
    height_pref="175cm 이상",
    smoking_pref="비흡연자",
    income_pref="5천 이상",
    education_pref="대졸 이상",
    weights="키1 / 나이2",
    personality="차분하고 다정함",
    conditions="나이, 키",
    leading=(),
) -> str:
    fields = [""] * (CONDITION_INDEX + 1)
    g = PIVOT
    fields[0] = group
    fields[g - 1] = name
    fields[g] = gender
    fields[g + 1] = birth
    fields[g + 2] = phone
    fields[g + 3] = location
    fields[g + 4] = job
    fields[g + 5] = height
    fields[g + 6] = education
    fields[g + 7] = income
    fields[g + 8] = smoking
    fields[g + 11] = religion
    fields[22] = age_pref
    fields[23] = height_pref
    fields[24] = smoking_pref
    fields[25] = income_pref
    fields[26] = education_pref
    fields[27] = weights
    fields[g + 26] = personality
    fields[CONDITION_INDEX] = conditions
    return "\t".join(list(leading) + fields)


def build_record(**overrides) -> ClientRecord:
    values = dict(
        id="test-id",
        group="일반",
        name="김하나",
        gender="여자",
        birth_token="950315",
        location="전남 여수시",
        selected_conditions=("나이", "키"),
    )
    values.update(overrides)
    return ClientRecord(**values)


class FakeLLM:
    """Returns queued replies (or raises queued exceptions) and records every call."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def invoke(self, messages, **kwargs):
        self.calls.append(list(messages))
        if not self.replies:
            return "네 확인했습니다!"
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeStore(ConsultationStore):
    def __init__(self, fail=False):
        self.fail = fail
        self.saves = []

    def save(self, write):
        self.saves.append(write)
        if self.fail:
            raise ConsultationStoreError("sheet is unreachable")
        return f"fake:{len(self.saves)}"


@pytest.fixture
def make_row():
    return build_row


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def history():
    return HistoryCache(ttl_seconds=3600, max_tokens=16000)


@pytest.fixture
def guard():
    return SaveGuard()
