# eumlog/preferences.py

import logging
import re
from dataclasses import dataclass
from typing import Optional

from eumlog.records import ClientRecord

logger = logging.getLogger("eumlog_backend")

_FLEXIBLE_RE = re.compile(r"무관|상관\s*없|모두|다\s*괜찮|다\s*가능|전혀|오픈")
_MAX_LIMIT_RE = re.compile(r"이하|미만|작은|아담")
_YEAR_TOKEN_RE = re.compile(r"\d{2,4}(?![0-9])(?!\s*[살세])")
_AGE_RANGE_RE = re.compile(r"\d+\s*[~\-]\s*\d+\s*[살세]")
_RANGE_RE = re.compile(r"\d+\s*[~\-]\s*\d+")
_THOUSANDS_RE = re.compile(r"(\d+)천")

# Two-digit years below this belong to the 2000s.
CENTURY_PIVOT = 30

# Income amounts are expressed in units of 10,000 KRW (만원).
HUNDRED_MILLION = 10000

SMOKER_ACCEPT_WORDS = ("가능", "괜찮", "상관")
HIGH_EDUCATION_WORDS = ("대졸", "4년제", "대학원")
LOWER_EDUCATION_QUALIFIERS = ("전문", "초대졸")


def is_flexible(text: str) -> bool:
    return bool(text) and bool(_FLEXIBLE_RE.search(text))


def is_max_limit(text: str) -> bool:
    """'165 이하', '작은 분' ... the stated bound already favours smaller values."""
    return bool(text) and bool(_MAX_LIMIT_RE.search(text))


def has_range(text: str) -> bool:
    return bool(text) and bool(_RANGE_RE.search(text))


def resolve_two_digit_year(value: int) -> int:
    return 2000 + value if value < CENTURY_PIVOT else 1900 + value


def resolve_year_token(token: str) -> int:
    """
    '95' -> 1995, '01' -> 2001, '1988' -> 1988.
    """
    num = int(token)
    if len(token) == 2:
        return resolve_two_digit_year(num)
    return num


def resolve_birth_year(birth_token: str) -> Optional[int]:
    """
    Resolve the client's own birth field ('95', '950101', '1995-01-01', '19950101').

    A leading 4-digit run (or an 8-digit yyyymmdd run) that starts with 19/20 is
    read as a full year; anything else uses its first two digits.
    """
    m = re.search(r"\d+", birth_token or "")
    if not m:
        return None
    run = m.group(0)
    if len(run) in (4, 8) and run[:2] in ("19", "20"):
        return int(run[:4])
    if len(run) < 2:
        return None
    return resolve_two_digit_year(int(run[:2]))


def preferred_birth_year_bound(text: str) -> Optional[int]:
    """
    Minimum resolved birth year over every year-like token in the age preference.

    Tokens followed by 살/세 are ages, not years, and are ignored; so are both
    ends of an age range such as "25~30세".
    """
    text = _AGE_RANGE_RE.sub(" ", text or "")
    years = [resolve_year_token(tok) for tok in _YEAR_TOKEN_RE.findall(text)]
    if not years:
        return None
    return min(years)


def height_value(text: str) -> Optional[int]:
    m = re.search(r"\d+", text or "")
    if not m:
        return None
    value = int(m.group(0))
    return value or None


def income_amount(text: str) -> int:
    """
    Income preference in 만원 units: '1억' -> 10000, '5천 이상' -> 5000.

    Other denominations are not recognised and count as no constraint (0).
    """
    if not text:
        return 0
    if "1억" in text:
        return HUNDRED_MILLION
    m = _THOUSANDS_RE.search(text)
    if m:
        return int(m.group(1)) * 1000
    logger.debug("no income amount recognised in %r", text)
    return 0


def format_income_amount(amount: int) -> str:
    """10000 -> '1억', 12000 -> '1억 2천', 5000 -> '5천'."""
    if amount >= HUNDRED_MILLION:
        ok, remain = divmod(amount, HUNDRED_MILLION)
        return f"{ok}억 {remain // 1000}천" if remain > 0 else f"{ok}억"
    return f"{amount // 1000}천"


def income_phrase(amount: int) -> str:
    """Spoken amount with its unit: '8천만 원', '1억 원', '1억 2천만 원'."""
    text = format_income_amount(amount)
    return f"{text} 원" if text.endswith("억") else f"{text}만 원"


def is_high_education(text: str) -> bool:
    if not text:
        return False
    if any(q in text for q in LOWER_EDUCATION_QUALIFIERS):
        return False
    return any(w in text for w in HIGH_EDUCATION_WORDS)


def height_is_priority(weights_text: str) -> bool:
    return bool(weights_text) and ("키1" in weights_text or "키 1" in weights_text)


@dataclass(frozen=True)
class NormalizedPreferences:
    """Decision-relevant view of a record's preferences; original texts are kept."""

    client_birth_year: Optional[int]

    age_text: str
    age_flexible: bool
    age_bound: Optional[int]

    height_text: str
    height_value: Optional[int]
    height_max_limit: bool
    height_has_range: bool
    height_priority: bool

    smoking_text: str
    smoking_non_smoker: bool
    smoking_accepts_smokers: bool

    education_text: str
    education_high: bool

    income_text: str
    income_amount: int


def normalize(record: ClientRecord) -> NormalizedPreferences:
    age_text = record.preferred_age_text or ""
    height_text = record.preferred_height_text or ""
    smoking_text = record.preferred_smoking_text or ""
    education_text = record.preferred_education_text or ""
    income_text = record.preferred_income_text or ""

    return NormalizedPreferences(
        client_birth_year=resolve_birth_year(record.birth_token),
        age_text=age_text,
        age_flexible=is_flexible(age_text),
        age_bound=preferred_birth_year_bound(age_text),
        height_text=height_text,
        height_value=height_value(height_text),
        height_max_limit=is_max_limit(height_text),
        height_has_range=has_range(height_text),
        height_priority=height_is_priority(record.priority_weights_text),
        smoking_text=smoking_text,
        smoking_non_smoker="비흡연" in smoking_text,
        smoking_accepts_smokers=(
            any(w in smoking_text for w in SMOKER_ACCEPT_WORDS) or is_flexible(smoking_text)
        ),
        education_text=education_text,
        education_high=is_high_education(education_text),
        income_text=income_text,
        income_amount=income_amount(income_text),
    )
