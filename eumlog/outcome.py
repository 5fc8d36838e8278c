# eumlog/outcome.py
"""
Structured result of a finished consultation.

The closing turn ends with a fenced ```json block naming a closed set of field
keys; each value must match one of the canonical phrasings below or it is
kept out of `updates`. Dropped values stay visible in the change summary so an
accepted relaxation is never recorded as "no changes".
"""

import logging
import re
from typing import Dict, Optional

from pydantic import BaseModel, Field

from eumlog.base_utils import BaseUtils
from eumlog.consult_prompts import (
    CHANGE_SUMMARY_HEADER,
    COMPLETION_PHRASE,
    NO_CHANGES_SUMMARY,
    NON_CANONICAL_NOTE,
)

logger = logging.getLogger("eumlog_backend")

_FENCED_JSON_RE = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)

# field key -> (description for the output contract, canonical patterns)
CANONICAL_FIELDS = {
    "preferred_age": (
        "선호 나이",
        ["YYYY년생 이상", "YYYY년생 ~ YYYY년생", "무관"],
        [r"\d{2}(?:\d{2})?년생 이상", r"\d{2}(?:\d{2})?년생 ~ \d{2}(?:\d{2})?년생", r"무관"],
    ),
    "preferred_height": (
        "선호 키",
        ["<n>cm 이상", "<n>cm 이하", "<n>~<n>cm", "무관"],
        [r"1\d{2}cm 이상", r"1\d{2}cm 이하", r"1\d{2}~1\d{2}cm", r"무관"],
    ),
    "preferred_smoking": ("흡연 기준", ["비흡연", "흡연 무관"], [r"비흡연", r"흡연 무관"]),
    "preferred_income": (
        "연봉 기준",
        ["N천만 원 이상", "N억 원 이상", "N억 N천만 원 이상", "무관"],
        [r"[1-9]천만 원 이상", r"[1-9]억 원 이상", r"[1-9]억 [1-9]천만 원 이상", r"무관"],
    ),
    "preferred_education": (
        "학력 기준",
        ["고졸 이상", "전문대졸 이상", "대졸 이상", "대학원졸 이상", "무관"],
        [r"고졸 이상", r"전문대졸 이상", r"대졸 이상", r"대학원졸 이상", r"무관"],
    ),
    "religion": ("상대 종교", ["무교", "종교 일치", "무교 가능", "무관"], [r"무교", r"종교 일치", r"무교 가능", r"무관"]),
    "location": ("지역", ["전남", "광주", "전남, 광주", "무관"], [r"전남", r"광주", r"전남, 광주", r"무관"]),
    "job": ("직업", ["직장인", "자영업 가능", "무관"], [r"직장인", r"자영업 가능", r"무관"]),
}

_CANONICAL_RES = {
    key: [re.compile(rf"^{p}$") for p in entry[2]] for key, entry in CANONICAL_FIELDS.items()
}

FIELD_CONTRACT = "\n".join(
    f"  - {key} ({label}): " + " | ".join(f'"{t}"' for t in templates)
    for key, (label, templates, _) in CANONICAL_FIELDS.items()
)


class NegotiationOutcome(BaseModel):
    updates: Dict[str, str] = Field(default_factory=dict)
    change_summary: str = NO_CHANGES_SUMMARY
    memo: str = ""

    @property
    def has_changes(self) -> bool:
        return bool(self.updates)


def canonicalize_value(key: str, value) -> Optional[str]:
    """Return the canonical spelling of value for key, or None when it is not allowed."""
    if key not in _CANONICAL_RES or value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    text = re.sub(r"\s*~\s*", lambda m: " ~ " if "년생" in text else "~", text)
    for pattern in _CANONICAL_RES[key]:
        if pattern.match(text):
            return text
    return None


class OutcomeExtractor(BaseUtils):

    def _last_block(self, text: str) -> Optional[str]:
        blocks = _FENCED_JSON_RE.findall(text or "")
        return blocks[-1] if blocks else None

    def _summary_section(self, text: str) -> str:
        """Free-text fallback: whatever follows the change-summary header."""
        if CHANGE_SUMMARY_HEADER not in (text or ""):
            return ""
        section = text.split(CHANGE_SUMMARY_HEADER, 1)[1]
        lines = [ln.strip() for ln in section.splitlines() if ln.strip() and COMPLETION_PHRASE not in ln]
        return "\n".join(lines)

    def extract(self, text: str) -> NegotiationOutcome:
        block = self._last_block(text)
        if block is None:
            summary = self._summary_section(text)
            if summary:
                logger.warning("closing turn has a change summary but no data block; updates left empty")
                return NegotiationOutcome(change_summary=summary)
            return NegotiationOutcome()

        try:
            data = self.load_fault_tolerant_json(block)
        except ValueError as e:
            logger.warning(f"could not parse outcome block, treating as no changes: {e}")
            return NegotiationOutcome()
        if not isinstance(data, dict):
            logger.warning(f"outcome block is not an object: {type(data).__name__}")
            return NegotiationOutcome()

        raw_updates = data.get("updates") or {}
        updates: Dict[str, str] = {}
        dropped: Dict[str, str] = {}
        if isinstance(raw_updates, dict):
            for key, value in raw_updates.items():
                canonical = canonicalize_value(str(key), value)
                if canonical is None:
                    logger.warning(f"dropping non-canonical outcome value {key}={value!r}")
                    if value is not None:
                        dropped[str(key)] = self.coerce_field_to_str(value)
                    continue
                updates[str(key)] = canonical

        summary = self.coerce_field_to_str(data.get("change_summary"))
        if not updates and not dropped:
            summary = NO_CHANGES_SUMMARY
        elif not summary or summary == NO_CHANGES_SUMMARY:
            summary = ", ".join(f"{k}: {v}" for k, v in {**updates, **dropped}.items())
        if dropped:
            note = NON_CANONICAL_NOTE.format(FIELDS=", ".join(f"{k}={v}" for k, v in dropped.items()))
            summary = f"{summary} {note}"
        return NegotiationOutcome(
            updates=updates,
            change_summary=summary,
            memo=self.coerce_field_to_str(data.get("memo")),
        )


_EXTRACTOR = OutcomeExtractor()


def extract_outcome(text: str) -> NegotiationOutcome:
    return _EXTRACTOR.extract(text)
