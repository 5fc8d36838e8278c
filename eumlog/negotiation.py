# eumlog/negotiation.py
"""
Per-attribute negotiation policies.

Every policy is a pure function (record, prefs) -> NegotiationStep. The rules are
intentionally asymmetric by client gender. Steps only describe what to say and
how to react to the answer; they never modify the record.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from eumlog.consult_prompts import HEIGHT_LEAD_IN, LOCATION_LEAD_IN
from eumlog.preferences import NormalizedPreferences, income_phrase, normalize
from eumlog.records import ClientRecord, NON_RELIGIOUS


class ReactionPolicy(str, Enum):
    EASY = "EASY"
    CONDITIONAL = "CONDITIONAL"
    DEFAULT = "DEFAULT"
    HEIGHT_WARNING = "HEIGHT_WARNING"


AGE = "age"
HEIGHT = "height"
LOCATION = "location"
SMOKING = "smoking"
RELIGION = "religion"
EDUCATION = "education"
INCOME = "income"
JOB = "job"
CLOSING = "closing"

STEP_ORDER = (AGE, HEIGHT, LOCATION, SMOKING, RELIGION, EDUCATION, INCOME, JOB)

# Survey label of each attribute inside selectedConditions.
CONDITION_LABELS = {
    AGE: "나이",
    HEIGHT: "키",
    LOCATION: "지역",
    SMOKING: "흡연",
    RELIGION: "종교",
    EDUCATION: "학력",
    INCOME: "연봉",
    JOB: "직업",
}

PROVINCE_OPTION = "전남"
METRO_OPTION = "광주"
PROVINCE_CITIES = ("여수", "순천", "광양", "목포")
# Cities where local employers hire many associate-degree holders.
INDUSTRIAL_CITIES = ("여수", "순천", "광양")

QUESTION_MARKERS = ("?", "？")

FEMALE_AGE_GAP = 5
TALL_HEIGHT = 178
MALE_HEIGHT_THRESHOLD = 160
MALE_HEIGHT_FLOOR = 158
MALE_INCOME_GUARANTEED_THRESHOLD = 5000
INCOME_FLOOR_PROPOSAL = 3000
INCOME_COUNTER_THRESHOLD = 7000
INCOME_COUNTER_STEP = 2000
INCOME_EASY_CEILING = 3000


def is_question(text: str) -> bool:
    return any(m in (text or "") for m in QUESTION_MARKERS)


@dataclass(frozen=True)
class NegotiationStep:
    attribute_key: str
    guaranteed: bool
    guidance_text: str
    reaction_policy: ReactionPolicy
    proposed_value: Any = None
    lead_in: str = ""

    @property
    def followup_suppressed(self) -> bool:
        """Statements (no question marker) must not get a trailing question."""
        return not is_question(self.guidance_text)

    def to_directive(self) -> Dict[str, Any]:
        return {
            "attributeKey": self.attribute_key,
            "guaranteed": self.guaranteed,
            "guidanceText": self.guidance_text,
            "followUpSuppressed": self.followup_suppressed,
            "reactionPolicy": self.reaction_policy.value,
        }


def _guaranteed(record: ClientRecord, key: str) -> bool:
    return record.is_selected(CONDITION_LABELS[key])


# -----------------------
# Age
# -----------------------

def age_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, AGE)
    text = prefs.age_text

    def step(guidance, reaction, proposed=None):
        return NegotiationStep(AGE, guaranteed, guidance, reaction, proposed)

    if not text:
        if guaranteed:
            return step("나이 조건을 선택해주셨는데, 선호하시는 구체적인 연령대가 있으실까요?", ReactionPolicy.DEFAULT)
        return step("나이는 따로 적어주지 않으셨는데, 선호하시는 구체적인 연령대가 있으실까요?", ReactionPolicy.DEFAULT)

    if prefs.age_flexible:
        return step(f"나이는 특별히 상관없다고({text}) 해주셨는데, 폭넓게 매칭해 드리겠습니다!", ReactionPolicy.EASY)

    as_is = f"나이는 {text}으로 적어주셨는데, 설문지 내용 그대로 우선 반영하겠습니다."
    bound = prefs.age_bound
    my_year = prefs.client_birth_year
    if bound is None or my_year is None:
        return step(as_is, ReactionPolicy.DEFAULT)

    if record.is_female:
        older_limit = my_year - FEMALE_AGE_GAP
        if bound != older_limit:
            return step(
                f"나이는 {text}으로 적어주셨는데, {older_limit}년생(5살 연상)까지는 어떠실까요?",
                ReactionPolicy.CONDITIONAL,
                older_limit,
            )
        return step(as_is, ReactionPolicy.DEFAULT)

    gap = bound - my_year
    if gap >= 2:
        one_younger = my_year + 1
        return step(
            f"나이는 {text}으로 적어주셨는데, {one_younger}년생(1살 연하) 분들까지는 어떠실까요?",
            ReactionPolicy.CONDITIONAL,
            one_younger,
        )
    if bound > my_year:
        return step(f"{as_is} 혹시 성향이 잘 맞는다면 연상도 가능하실까요?", ReactionPolicy.CONDITIONAL)
    return step(as_is, ReactionPolicy.DEFAULT)


# -----------------------
# Height
# -----------------------

def _height_outcome(record: ClientRecord, prefs: NormalizedPreferences):
    text = prefs.height_text
    if not text:
        return "키 조건 관련해서, 구체적으로 선호하시는 키 기준이 있으실까요?", ReactionPolicy.DEFAULT, None

    value = prefs.height_value
    if value is None:
        return f"키 관련해서 {text}으로 적어주셨는데, 구체적인 기준(cm)이 있으실까요?", ReactionPolicy.DEFAULT, None

    said = "1순위로 두셨는데" if prefs.height_priority else "적어주셨는데"

    if record.is_female:
        low = value - 3 if value >= TALL_HEIGHT else value - 2
        high = value - 1
        return (
            f"키 관련해서 {text}으로 {said}, 다른 조건이 괜찮다면 {low}~{high}cm 정도는 괜찮으실까요?",
            ReactionPolicy.CONDITIONAL,
            low,
        )

    if prefs.height_max_limit:
        return (
            f"키는 {text}으로 {said}, 원하시는 아담한 스타일이나 해당 키 범위의 분들로 잘 찾아보겠습니다!",
            ReactionPolicy.EASY,
            None,
        )
    if value >= MALE_HEIGHT_THRESHOLD:
        proposal = value - 2
        if proposal < MALE_HEIGHT_THRESHOLD:
            proposal = MALE_HEIGHT_FLOOR
            offer = f"{MALE_HEIGHT_FLOOR}cm 등 150대 후반 분들도"
        else:
            offer = f"{proposal}cm 정도 분들도"
        return (
            f"키는 {text}으로 {said}, 혹시 비율이 좋다면 {offer} 괜찮으실까요? 조율이 가능한지 여쭤봅니다!",
            ReactionPolicy.CONDITIONAL,
            proposal,
        )
    if prefs.height_has_range:
        return f"키는 {text}으로 {said}, 해당 범위 안에서 잘 찾아보겠습니다!", ReactionPolicy.EASY, None
    return (
        f"키 관련해서 {text}으로 {said}, 다른 조건이 정말 괜찮다면 조금 유연하게 봐주실 수 있을까요?",
        ReactionPolicy.CONDITIONAL,
        None,
    )


def height_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, HEIGHT)
    guidance, reaction, proposed = _height_outcome(record, prefs)
    if not guaranteed:
        reaction = ReactionPolicy.HEIGHT_WARNING
    return NegotiationStep(HEIGHT, guaranteed, guidance, reaction, proposed, lead_in=HEIGHT_LEAD_IN)


# -----------------------
# Location
# -----------------------

def resident_city(location: str) -> Optional[str]:
    for city in PROVINCE_CITIES:
        if city in (location or ""):
            return city
    return None


def location_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, LOCATION)
    location = record.location or ""

    if not guaranteed:
        guidance = (
            "지역이 필수조건은 아니셔서 선호하시는 지역(거주지)으로 가점 매칭되지만, "
            "인근이나 타 지역 분이 나올 수도 있는 점 참고부탁드려요!"
        )
        reaction = ReactionPolicy.EASY
    elif record.is_selected(PROVINCE_OPTION):
        city = resident_city(location) or "해당 지역"
        guidance = (
            f"지역 조건으로 '전남'을 선택해주셨네요! {record.name}님 거주지인 {city} 기준으로 가점을 드리지만, "
            "필터 특성상 전남 전체 지역이 소개 범위에 포함되는 점 참고 부탁드립니다. (광주 필터와는 분리되어 진행됩니다!)"
        )
        reaction = ReactionPolicy.EASY
    elif record.is_selected(METRO_OPTION):
        guidance = "지역 조건으로 '광주'를 선택해주셨네요! 광주와 광주 근교 거주자분들로 매칭 도와드리겠습니다."
        reaction = ReactionPolicy.EASY
    elif METRO_OPTION in location:
        guidance = "거주지가 광주이신데, 광주 지역만 선호하시나요? 아니면 전남(여순광)도 괜찮으신가요?"
        reaction = ReactionPolicy.DEFAULT
    else:
        guidance = (
            "지역 필터는 크게 전남(여순광)과 광주로 나뉘는데, 어느 쪽을 선호하시나요? "
            "말씀해주시면 그쪽에 가점을 반영해드릴게요."
        )
        reaction = ReactionPolicy.DEFAULT

    return NegotiationStep(LOCATION, guaranteed, guidance, reaction, lead_in=LOCATION_LEAD_IN)


# -----------------------
# Smoking
# -----------------------

def smoking_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, SMOKING)
    text = prefs.smoking_text

    if prefs.smoking_non_smoker and guaranteed:
        return NegotiationStep(
            SMOKING, guaranteed, "비흡연 선호라고 해주셔서, 비흡연자로 소개드리도록 하겠습니다!", ReactionPolicy.EASY
        )
    if prefs.smoking_non_smoker:
        return NegotiationStep(
            SMOKING,
            guaranteed,
            "비흡연 선호라고 해주셨는데, 다른 조건이 괜찮다면 흡연자라도 괜찮으실까요?",
            ReactionPolicy.CONDITIONAL,
            "흡연 무관",
        )
    if text and prefs.smoking_accepts_smokers:
        return NegotiationStep(
            SMOKING,
            guaranteed,
            f"흡연 여부는 {text}으로 적어주셔서, 흡연하시는 분도 폭넓게 매칭해 드리겠습니다!",
            ReactionPolicy.EASY,
        )
    if text:
        return NegotiationStep(
            SMOKING, guaranteed, f"흡연 여부는 설문에 적어주신 대로({text}) 반영하겠습니다!", ReactionPolicy.EASY
        )
    if guaranteed:
        return NegotiationStep(
            SMOKING, guaranteed, "흡연 조건을 선택해주셨는데, 비흡연자만 원하시나요?", ReactionPolicy.DEFAULT
        )
    return NegotiationStep(
        SMOKING, guaranteed, "흡연 기준은 따로 적어주지 않으셨는데, 비흡연자만 원하시나요?", ReactionPolicy.DEFAULT
    )


# -----------------------
# Religion
# -----------------------

def religion_step(record: ClientRecord, prefs: NormalizedPreferences) -> Optional[NegotiationStep]:
    """Only rendered when religion is a guaranteed condition."""
    if not _guaranteed(record, RELIGION):
        return None

    religion = record.religion or NON_RELIGIOUS
    if religion == NON_RELIGIOUS:
        guidance = "본인 종교가 무교이신데요, 상대방도 무교이신 분으로 소개드리겠습니다!"
    elif record.is_selected("무교만"):
        guidance = (
            f"본인 종교가 {religion}이신데요, 종교 조건으로 '무교만'을 선택해주셨네요! "
            "상대방이 무교인 분들 위주로 우선 매칭해드리겠습니다."
        )
    elif record.is_selected("종교일치"):
        guidance = (
            f"본인 종교가 {religion}이신데요, 종교 조건으로 '종교 일치'를 선택해주셨네요! "
            "회원님과 같은 종교를 가지신 분들 위주로 매칭 진행하겠습니다."
        )
    else:
        guidance = (
            f"본인 종교가 {religion}이신데요, 혹시 상대방도 꼭 같은 종교여야 할까요? 아니면 무교인 분까지는 괜찮으실까요? "
            "(특정 종교만 고집하면 매칭이 어려울 수 있어서, 무교까지 넓혀주시면 훨씬 좋은 분 소개가 가능합니다!)"
        )
    return NegotiationStep(RELIGION, True, guidance, ReactionPolicy.DEFAULT)


# -----------------------
# Education
# -----------------------

def education_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, EDUCATION)
    text = prefs.education_text

    if prefs.education_high:
        if record.is_female:
            guidance = "대졸 이상으로 하셨는데, 전문대졸은 괜찮으실까요?"
        else:
            guidance = "대졸 이상으로 하셨는데, 전문대졸은 어려우실까요?"
        if any(city in (record.location or "") for city in INDUSTRIAL_CITIES):
            guidance += " 지역특성상 대기업분들이 전문대졸이나 고졸이 많으셔서요!"
        return NegotiationStep(EDUCATION, guaranteed, guidance, ReactionPolicy.CONDITIONAL, "전문대졸 이상")

    if not text:
        return NegotiationStep(EDUCATION, guaranteed, "선호하시는 학력 기준이 있으실까요?", ReactionPolicy.DEFAULT)
    if guaranteed:
        guidance = f"필수로 학력조건 선택해주셨는데, {text}로 반영하여 진행하겠습니다!"
    else:
        guidance = f"학력은 {text}로 적어주셨는데, 이대로 진행하겠습니다!"
    return NegotiationStep(EDUCATION, guaranteed, guidance, ReactionPolicy.EASY)


# -----------------------
# Income
# -----------------------

def income_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, INCOME)
    text = prefs.income_text
    amount = prefs.income_amount

    if not text:
        if guaranteed:
            guidance = "연봉(경제력) 조건을 선택해주셨는데, 어느 정도 기준을 원하시나요?"
        else:
            guidance = "연봉(경제력) 기준은 따로 적어주지 않으셨는데, 어느 정도 기준을 원하시나요?"
        return NegotiationStep(INCOME, guaranteed, guidance, ReactionPolicy.DEFAULT)

    if not record.is_female and guaranteed and amount >= MALE_INCOME_GUARANTEED_THRESHOLD:
        return NegotiationStep(
            INCOME,
            guaranteed,
            f"연봉 조건을 필수로 선택해주셨는데요, {text} 이상을 원하셨지만 혹시 3천만 원 이상인 분들도 괜찮으실까요?",
            ReactionPolicy.CONDITIONAL,
            INCOME_FLOOR_PROPOSAL,
        )
    if amount >= INCOME_COUNTER_THRESHOLD:
        proposal = amount - INCOME_COUNTER_STEP
        return NegotiationStep(
            INCOME,
            guaranteed,
            f"연봉 {text}으로 하셨는데, 혹시 다른 조건이 정말 좋다면 {income_phrase(proposal)} 정도도 괜찮으실까요?",
            ReactionPolicy.CONDITIONAL,
            proposal,
        )
    if text.startswith("7천") or "1억" in text:
        return NegotiationStep(
            INCOME,
            guaranteed,
            f"연봉 {text}으로 하셨는데, 이 기준이 절대적인가요? 혹시 다른 조건이 정말 좋다면 조금 조절 가능하실까요?",
            ReactionPolicy.CONDITIONAL,
        )

    reaction = ReactionPolicy.EASY if amount <= INCOME_EASY_CEILING else ReactionPolicy.DEFAULT
    return NegotiationStep(
        INCOME, guaranteed, f"연봉 {text}으로 하셨는데, 설문지 내용 그대로 우선 반영하도록 하겠습니다.", reaction
    )


# -----------------------
# Job
# -----------------------

def job_step(record: ClientRecord, prefs: NormalizedPreferences) -> NegotiationStep:
    guaranteed = _guaranteed(record, JOB)

    if record.is_selected("자영업") or record.is_selected("사업"):
        return NegotiationStep(
            JOB,
            guaranteed,
            "직업 조건으로 자영업/사업가 분들도 괜찮다고 해주셔서, 폭넓게 소개해드리겠습니다!",
            ReactionPolicy.EASY,
        )
    if record.is_selected("직장인"):
        return NegotiationStep(
            JOB,
            guaranteed,
            "직업 조건으로 '직장인'을 선택해주셨는데, 혹시 안정적인 자영업(사업가) 분들도 괜찮으실까요?",
            ReactionPolicy.CONDITIONAL,
            "자영업 가능",
        )
    return NegotiationStep(
        JOB,
        guaranteed,
        "직업은 직장인을 선호하시는걸까요? 아니면 자영업도 가능하실까요?",
        ReactionPolicy.CONDITIONAL,
        "자영업 가능",
    )


POLICIES: Dict[str, Callable[[ClientRecord, NormalizedPreferences], Optional[NegotiationStep]]] = {
    AGE: age_step,
    HEIGHT: height_step,
    LOCATION: location_step,
    SMOKING: smoking_step,
    RELIGION: religion_step,
    EDUCATION: education_step,
    INCOME: income_step,
    JOB: job_step,
}


class NegotiationPolicyEngine:
    """
    Stateless lookup from attribute key to its policy function.
    """

    def __init__(self, policies: Dict[str, Callable] = None):
        self.policies = dict(policies or POLICIES)

    def step_for(
        self,
        key: str,
        record: ClientRecord,
        prefs: NormalizedPreferences = None,
    ) -> Optional[NegotiationStep]:
        if key not in self.policies:
            raise KeyError(f"Unknown negotiation attribute: {key}")
        return self.policies[key](record, prefs or normalize(record))

    def steps(self, record: ClientRecord) -> List[NegotiationStep]:
        prefs = normalize(record)
        out: List[NegotiationStep] = []
        for key in STEP_ORDER:
            step = self.step_for(key, record, prefs)
            if step is not None:
                out.append(step)
        return out
