# eumlog/script_builder.py

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from eumlog.base_utils import BaseUtils
from eumlog.consult_prompts import (
    BATCH_LABELS,
    BEST_EFFORT_NOTICES,
    CLOSING_GUIDANCE,
    CLOSING_OUTPUT_CONTRACT,
    HEIGHT_TRADEOFF_NOTICE,
    REACTION_DIRECTIVES,
    STEP_TITLES,
    SYSTEM_INSTRUCTION,
)
from eumlog.negotiation import (
    AGE,
    CLOSING,
    CONDITION_LABELS,
    HEIGHT,
    RELIGION,
    SMOKING,
    NegotiationPolicyEngine,
    NegotiationStep,
    ReactionPolicy,
)
from eumlog.outcome import FIELD_CONTRACT
from eumlog.records import ClientRecord, MALE, MembershipTier

logger = logging.getLogger("eumlog_backend")

PROMOTIONAL_MARKER = "이벤트"
# Partner cohort: matched without the paid profile pass.
PARTNER_COHORT = "돈냄"

PRICES = {
    # (is_male, is_promotional) -> prices per tier
    (True, True): {"basic": "13만원", "premium": "21만원"},
    (False, True): {"basic": "8만원", "premium": "14만원"},
    (True, False): {"basic": "18만원", "premium": "32만원"},
    (False, False): {"basic": "12만원", "premium": "21만원"},
}

SEPARATOR = "--------------------------------"


def get_price(gender: str, group: str) -> Dict[str, str]:
    is_promotional = PROMOTIONAL_MARKER in (group or "").strip()
    return dict(PRICES[(gender == MALE, is_promotional)])


@dataclass(frozen=True)
class ConsultationScript:
    """
    Ordered negotiation steps for one record snapshot, closing step last.
    """

    record: ClientRecord
    steps: Tuple[NegotiationStep, ...]
    closing: NegotiationStep

    @property
    def all_steps(self) -> Tuple[NegotiationStep, ...]:
        return self.steps + (self.closing,)

    @property
    def attribute_keys(self) -> List[str]:
        return [s.attribute_key for s in self.all_steps]

    def to_directives(self) -> List[Dict[str, Any]]:
        return [s.to_directive() for s in self.all_steps]


def closing_step(record: ClientRecord) -> NegotiationStep:
    guidance = CLOSING_GUIDANCE.replace("{NAME}", record.name).replace("{CONDITIONS}", record.condition_text())
    return NegotiationStep(CLOSING, True, guidance, ReactionPolicy.DEFAULT)


class ScriptSequencer(BaseUtils):
    """
    Evaluates the policy engine once per attribute and renders the result
    either as one batch document or as the interactive system instruction.
    """

    def __init__(self, engine: NegotiationPolicyEngine = None):
        self.engine = engine or NegotiationPolicyEngine()

    def build(self, record: ClientRecord) -> ConsultationScript:
        steps = tuple(self.engine.steps(record))
        return ConsultationScript(record=record, steps=steps, closing=closing_step(record))

    # -----------------------
    # Batch mode
    # -----------------------

    def _title_info(self, record: ClientRecord, key: str) -> str:
        if key == AGE:
            return f"{record.birth_token[:2]}년생" if record.birth_token else ""
        if key == HEIGHT:
            return record.height
        if key == SMOKING:
            return record.smoking
        if key == RELIGION:
            return record.religion
        return ""

    def _batch_title(self, record: ClientRecord, num: int, step: NegotiationStep) -> str:
        key = step.attribute_key
        info = self._title_info(record, key)
        info_text = f" (본인 {info})" if info else ""
        title = f"{num}. {BATCH_LABELS[key]} 조건{info_text}"
        if record.is_selected(CONDITION_LABELS[key]):
            return f"📌 {title} (선택)"
        return title

    def _batch_opening(self, record: ClientRecord) -> List[str]:
        lines = [
            f"안녕하세요 {record.name}님! 이음로그 매니저입니다.",
            "보내주신 프로필과 이상형 조건 꼼꼼하게 확인했습니다.",
            "",
        ]
        if record.membership_tier == MembershipTier.PREMIUM:
            lines += [
                f"선택하신 조건이 {len(record.selected_conditions)}가지라 프리미엄 기준에 해당됩니다 😊",
                "이용료가 조금 더 높은 플랜인데, 이 기준으로 진행 괜찮으실까요?",
                "",
                "(혹시 베이직으로 진행 원하시면 조건을 2개로 줄여드릴 수도 있습니다!)",
            ]
        else:
            lines += [
                "보장되는 조건이 최대 2개인 베이직 플랜으로 안내드릴게요!",
                f"선택하신 [{record.condition_labels()}] 조건은 확실히 보장해드립니다 😊",
                "",
                "다만, 그 외 조건들은 맞지 않을 수도 있다는 점 참고 부탁드려요.",
                "(더 많은 조건 보장을 원하시면 프리미엄으로 변경도 가능합니다.)",
            ]
        lines += [
            "",
            SEPARATOR,
            "",
            "그럼 매칭 진행 전, 몇 가지 세부 사항 확인차 질문드리고 싶은데 5-10분 정도 시간 괜찮으실까요?",
            "",
        ]
        return lines

    def _batch_block(self, record: ClientRecord, num: int, step: NegotiationStep) -> List[str]:
        lines = [self._batch_title(record, num, step), step.guidance_text]
        key = step.attribute_key
        if key == HEIGHT:
            lines.append(HEIGHT_TRADEOFF_NOTICE)
        if not step.guaranteed and key in BEST_EFFORT_NOTICES:
            lines.append(BEST_EFFORT_NOTICES[key])
        lines.append("")
        return lines

    def _batch_closing(self, record: ClientRecord, payment_account_text: str) -> List[str]:
        lines = [SEPARATOR, "", "네! 질문 모두 확인했습니다 🙂"]
        premium = record.membership_tier == MembershipTier.PREMIUM
        if premium:
            lines += [
                f"말씀해주신 {len(record.selected_conditions)}가지 조건은 확실하게 맞춰서 소개해드리겠습니다!",
                "그 외 부분들도 최대한 신경 써서 좋은 분 찾아볼게요.",
                "",
            ]
        else:
            lines += [
                "회원님께서 선택하신 조건은 확실히 보장해드리며,",
                "그 외 조건들도 가능한 범위 내에서 최대한 맞춰 소개해드리겠습니다!",
                "",
            ]

        if record.group == PARTNER_COHORT:
            lines += ["1차 후보군 검색을 시작하겠습니다 😊", ""]
        else:
            price = get_price(record.gender, record.group)
            lines += ["이제 본격적인 매칭 진행을 위해 [프로필 제공권] 결제 진행 부탁드립니다!", "", "💰 이용권 안내"]
            if premium:
                lines.append(f"프리미엄: {price['premium']} (3개월 간 프로필 제공)")
            else:
                lines.append(f"베이직: {price['basic']} (3개월 간 프로필 제공)")
            if payment_account_text:
                lines += ["", "📩 입금 계좌", payment_account_text]
            lines += ["※ 입금 확인 후 바로 리스트업 들어갑니다!", ""]

        lines.append("네 이번주 중으로 매칭 연락 드리겠습니다! 감사합니다.")
        return lines

    def render_batch(self, script: ConsultationScript, payment_account_text: str = "") -> str:
        record = script.record
        lines = self._batch_opening(record)
        for num, step in enumerate(script.steps, start=1):
            lines += self._batch_block(record, num, step)
        lines += self._batch_closing(record, payment_account_text)
        return "\n".join(lines)

    # -----------------------
    # Interactive mode
    # -----------------------

    def _render_step(self, num: int, step: NegotiationStep) -> str:
        guidance = step.guidance_text
        if step.lead_in:
            guidance = f"{step.lead_in}\\n\\n{guidance}"
        marker = " (안내만)" if step.followup_suppressed else ""
        lines = [
            f"{num}. {STEP_TITLES[step.attribute_key]}{marker}",
            f"   - 가이드: \"{guidance}\"",
        ]
        if step.attribute_key != CLOSING:
            lines.append(f"   - 보장 여부: {'보장' if step.guaranteed else '비보장'}")
            lines.append(f"   - 반응: {REACTION_DIRECTIVES[step.reaction_policy.value]}")
        return "\n".join(lines)

    def system_instruction(self, script: ConsultationScript) -> str:
        steps_text = "\n\n".join(self._render_step(i, s) for i, s in enumerate(script.all_steps, start=1))
        output_contract = self.unsafe_string_format(CLOSING_OUTPUT_CONTRACT, FIELD_CONTRACT=FIELD_CONTRACT)
        return self.unsafe_string_format(
            SYSTEM_INSTRUCTION,
            print_unused_keys_report=False,
            CONDITIONS=script.record.condition_text(),
            PREFERRED_EDUCATION=script.record.preferred_education_text or "없음",
            STEPS=steps_text,
            OUTPUT_CONTRACT=output_contract,
        )


DEFAULT_SEQUENCER = ScriptSequencer()


def build_consultation_script(record: ClientRecord) -> ConsultationScript:
    return DEFAULT_SEQUENCER.build(record)


def render_batch(script: ConsultationScript, payment_account_text: str = "") -> str:
    return DEFAULT_SEQUENCER.render_batch(script, payment_account_text)


def build_system_instruction(script: ConsultationScript) -> str:
    return DEFAULT_SEQUENCER.system_instruction(script)
