# eumlog/record_parser.py

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from eumlog.records import (
    ClientRecord,
    DEFAULT_GROUP,
    GENDER_TOKENS,
    NON_RELIGIOUS,
)

logger = logging.getLogger("eumlog_backend")

CONDITION_KEYWORDS = ("나이", "키", "지역", "직업", "학력", "종교", "연봉", "흡연")

# Consent phrases that survey exports glue into otherwise useful columns.
CONSENT_PHRASES = ("동의합니다", "사실이며", "규정을 확인")
CONDITION_ENTRY_BLOCKLIST = ("동의", "사실")

MAX_CONDITION_FIELD_LEN = 200
PREFERENCE_LOOKBACK = 10

_EDUCATION_RE = re.compile(r"대졸|고졸|전문대|대학원|석사|박사")
_AGE_RE = re.compile(r"년생|19\d{2}|20\d{2}|\d{2}\s*~")
_AGE_YEARS_RE = re.compile(r"\d{2}살")
_THREE_DIGITS_RE = re.compile(r"\d{3}")
_DIGITS_RE = re.compile(r"\d+")

INCOME_SCALE_TOKENS = ("천", "억")
INCOME_BOUND_MARKERS = ("이상", "이하", "미만", "초과", "~", "무관")
HEIGHT_MIN, HEIGHT_MAX = 140, 190


@dataclass(frozen=True)
class OffsetLayout:
    """
    Position of each fixed profile field relative to the gender (pivot) column.

    Survey exports prepend a varying number of group/date/id columns but keep
    these fields in the same relative order around gender.
    """

    name: int = -1
    birth: int = 1
    phone: int = 2
    location: int = 3
    job: int = 4
    height: int = 5
    education: int = 6
    income: int = 7
    smoking: int = 8
    religion: int = 11
    personality: int = 26
    scan_start: int = 5


DEFAULT_LAYOUT = OffsetLayout()


def _field(fields: List[str], idx: int) -> str:
    if idx < 0 or idx >= len(fields):
        return ""
    return (fields[idx] or "").strip()


def _has_consent_phrase(value: str) -> bool:
    return any(p in value for p in CONSENT_PHRASES)


def split_selected_conditions(raw: str) -> List[str]:
    """
    Split the raw "selected conditions" cell into trimmed condition labels.

    Pipe wins over comma, comma over slash; consent boilerplate and empty
    entries are dropped.
    """
    clean = re.sub(r"[\[\]]", "", raw or "").strip()
    if "|" in clean:
        parts = clean.split("|")
    elif "," in clean:
        parts = clean.split(",")
    elif "/" in clean:
        parts = clean.split("/")
    elif clean:
        parts = [clean]
    else:
        parts = []

    out = []
    for p in parts:
        p = p.strip()
        if not p:
            continue
        if any(b in p for b in CONDITION_ENTRY_BLOCKLIST):
            continue
        out.append(p)
    return out


def new_record_id() -> str:
    return uuid4().hex


class RecordParser:
    """
    Strategy interface: one raw row in, zero or one ClientRecord out.
    """

    def parse_row(self, row: Any) -> Optional[ClientRecord]:
        raise NotImplementedError

    def parse_many(self, rows) -> List[ClientRecord]:
        results: List[ClientRecord] = []
        for row in rows:
            record = self.parse_row(row)
            if record is not None:
                results.append(record)
        return results


class TsvRowParser(RecordParser):
    """
    Column-inference parser for one tab-separated export line.
    """

    def __init__(self, layout: OffsetLayout = DEFAULT_LAYOUT):
        self.layout = layout

    # -----------------------
    # Pivot / conditions
    # -----------------------

    def find_pivot(self, fields: List[str]) -> int:
        for i, value in enumerate(fields):
            if value.strip() in GENDER_TOKENS:
                return i
        return -1

    def find_condition_column(self, fields: List[str], pivot: int) -> int:
        best_idx = -1
        best_count = 0

        for i in range(pivot + self.layout.scan_start, len(fields)):
            val = (fields[i] or "").strip()
            if len(val) > MAX_CONDITION_FIELD_LEN:
                continue
            if _has_consent_phrase(val):
                continue
            # Submission dates look like "2024/05/01 10:00"
            if "/" in val and re.search(r"\d", val) and "년생" not in val and "cm" not in val and "~" not in val:
                continue

            count = sum(1 for kw in CONDITION_KEYWORDS if kw in val)
            if count == 0:
                continue
            if "|" in val:
                return i
            if count > best_count:
                best_count = count
                best_idx = i

        return best_idx

    # -----------------------
    # Preference inference
    # -----------------------

    def _is_age_value(self, val: str, birth: str) -> bool:
        if not (_AGE_RE.search(val) or _AGE_YEARS_RE.search(val)):
            return False
        if birth and birth in val:
            return False
        nums = _DIGITS_RE.findall(val)
        return bool(nums) and len(nums[0]) <= 4

    def _is_height_value(self, val: str) -> bool:
        if any(t in val for t in ("원", "천", "억")):
            return False
        if "cm" in val or "이상" in val or "이하" in val:
            return "년생" not in val and "kg" not in val
        for num in _THREE_DIGITS_RE.findall(val):
            if HEIGHT_MIN <= int(num) <= HEIGHT_MAX:
                return True
        return False

    def _is_income_value(self, val: str) -> bool:
        if "년" in val or "세" in val:
            return False
        if any(t in val for t in INCOME_SCALE_TOKENS):
            return any(m in val for m in INCOME_BOUND_MARKERS)
        return "무관" in val and "연봉" in val

    def _is_priority_value(self, val: str) -> bool:
        if "순위" in val or "중요" in val:
            return True
        return "/" in val and bool(re.search(r"\d", val)) and "년생" not in val

    def infer_preferences(self, fields: List[str], pivot: int, condition_idx: int) -> Dict[str, str]:
        lay = self.layout
        floor = pivot + lay.scan_start
        start = condition_idx - PREFERENCE_LOOKBACK if condition_idx != -1 else floor
        start = max(start, floor)

        birth = _field(fields, pivot + lay.birth)
        height_col = pivot + lay.height
        found: Dict[str, str] = {}

        for i in range(start, len(fields)):
            if i == condition_idx:
                continue
            val = (fields[i] or "").strip()
            if not val or _has_consent_phrase(val):
                continue

            if "smoking" not in found and ("흡연자" in val or "비흡연" in val) and len(val) < 20:
                found["smoking"] = val
                continue
            if "education" not in found and _EDUCATION_RE.search(val) and "학력" not in val:
                found["education"] = val
                continue
            if "age" not in found and self._is_age_value(val, birth):
                found["age"] = val
                continue
            if "height" not in found and i != height_col and self._is_height_value(val):
                found["height"] = val
                continue
            if "income" not in found and self._is_income_value(val):
                found["income"] = val
                continue
            if "weights" not in found and self._is_priority_value(val):
                found["weights"] = val

        return found

    # -----------------------
    # Entry point
    # -----------------------

    def parse_row(self, row: str) -> Optional[ClientRecord]:
        if not row or not row.strip():
            return None

        fields = row.split("\t")
        g = self.find_pivot(fields)
        if g == -1:
            logger.debug("skip row without gender pivot: %r", row[:60])
            return None

        lay = self.layout
        name = _field(fields, g + lay.name)
        if not name:
            logger.debug("skip row without name at pivot %d", g)
            return None

        condition_idx = self.find_condition_column(fields, g)
        raw_conditions = _field(fields, condition_idx) if condition_idx != -1 else ""
        prefs = self.infer_preferences(fields, g, condition_idx)

        return ClientRecord(
            id=new_record_id(),
            group=_field(fields, 0) or DEFAULT_GROUP,
            name=name,
            gender=_field(fields, g),
            birth_token=_field(fields, g + lay.birth),
            phone=_field(fields, g + lay.phone),
            location=_field(fields, g + lay.location),
            job=_field(fields, g + lay.job),
            height=_field(fields, g + lay.height),
            education=_field(fields, g + lay.education),
            income=_field(fields, g + lay.income),
            smoking=_field(fields, g + lay.smoking),
            religion=_field(fields, g + lay.religion) or NON_RELIGIOUS,
            personality_note=_field(fields, g + lay.personality),
            preferred_age_text=prefs.get("age", ""),
            preferred_height_text=prefs.get("height", ""),
            preferred_smoking_text=prefs.get("smoking", ""),
            preferred_income_text=prefs.get("income", ""),
            preferred_education_text=prefs.get("education", ""),
            priority_weights_text=prefs.get("weights", ""),
            selected_conditions_raw=raw_conditions,
            selected_conditions=tuple(split_selected_conditions(raw_conditions)),
        )


# Spreadsheet header -> ClientRecord attribute, for rows handed back by the store.
KEYED_COLUMNS = {
    "group": ("그룹", "group"),
    "name": ("이름(*)", "name"),
    "gender": ("성별(*)", "gender"),
    "birth_token": ("생년월일(*)", "birth"),
    "phone": ("연락처(*)", "phone"),
    "location": ("거주지역(*)", "location"),
    "job": ("직업(*)", "job"),
    "height": ("키 / 체형(*)", "키(*)", "height"),
    "education": ("학력(*)", "education"),
    "income": ("연봉(*)", "income"),
    "smoking": ("흡연 여부(*)", "smoking"),
    "religion": ("종교(*)", "religion"),
    "personality_note": ("성격(*)", "personality"),
    "preferred_age_text": ("선호 나이 범위(*)",),
    "preferred_height_text": ("최소한의 허용 가능한 키(*)",),
    "preferred_smoking_text": ("흡연 기준(*)",),
    "preferred_income_text": ("상대방의 연봉(소득) 기준이 있다면(*)",),
    "preferred_education_text": ("선호 학력(*)",),
    "priority_weights_text": ("이상형 조건 순위(*)",),
    "selected_conditions_raw": ("보장 조건 선택 (중요)(*)",),
}


class KeyedRowParser(RecordParser):
    """
    Parser for header-keyed rows (the shape the spreadsheet store returns).
    """

    def __init__(self, columns: Mapping[str, tuple] = None):
        self.columns = dict(columns or KEYED_COLUMNS)

    def _get(self, row: Mapping[str, Any], attr: str) -> str:
        for key in self.columns.get(attr, ()):
            value = row.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""

    def parse_row(self, row: Mapping[str, Any]) -> Optional[ClientRecord]:
        if not isinstance(row, Mapping):
            return None
        gender = self._get(row, "gender")
        name = self._get(row, "name")
        if gender not in GENDER_TOKENS or not name:
            return None

        values = {attr: self._get(row, attr) for attr in self.columns}
        raw_conditions = values.pop("selected_conditions_raw", "")
        values["group"] = values.get("group") or DEFAULT_GROUP
        values["religion"] = values.get("religion") or NON_RELIGIOUS

        return ClientRecord(
            id=new_record_id(),
            selected_conditions_raw=raw_conditions,
            selected_conditions=tuple(split_selected_conditions(raw_conditions)),
            **values,
        )


def parse_consultation_data(text: str, parser: RecordParser = None) -> List[ClientRecord]:
    """
    Parse a raw multi-line TSV export into ClientRecords.

    Header rows, blank lines and anything without a gender column are skipped.
    """
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")
    parser = parser or TsvRowParser()
    lines = [line.rstrip("\r") for line in text.split("\n") if line.strip()]
    records = parser.parse_many(lines)
    logger.debug("parsed %d records from %d lines", len(records), len(lines))
    return records
