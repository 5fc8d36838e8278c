# eumlog/records.py

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

MALE = "남자"
FEMALE = "여자"
GENDER_TOKENS = (MALE, FEMALE)

DEFAULT_GROUP = "일반"
NON_RELIGIOUS = "무교"

# More than this many guaranteed conditions puts a client on the premium plan.
PREMIUM_CONDITION_THRESHOLD = 2


class MembershipTier(str, Enum):
    PREMIUM = "PREMIUM"
    BASIC = "BASIC"


def tier_for(selected_conditions) -> MembershipTier:
    if len(selected_conditions or ()) > PREMIUM_CONDITION_THRESHOLD:
        return MembershipTier.PREMIUM
    return MembershipTier.BASIC


@dataclass(frozen=True)
class ClientRecord:
    """
    One client's survey row, as recovered by a RecordParser.

    Immutable: negotiation results never flow back into a record, they live in
    a separate NegotiationOutcome.
    """

    id: str
    group: str
    name: str
    gender: str
    birth_token: str

    phone: str = ""
    location: str = ""
    job: str = ""
    height: str = ""
    education: str = ""
    income: str = ""
    smoking: str = ""
    religion: str = NON_RELIGIOUS
    personality_note: str = ""

    preferred_age_text: str = ""
    preferred_height_text: str = ""
    preferred_smoking_text: str = ""
    preferred_income_text: str = ""
    preferred_education_text: str = ""

    priority_weights_text: str = ""
    selected_conditions_raw: str = ""
    selected_conditions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def membership_tier(self) -> MembershipTier:
        return tier_for(self.selected_conditions)

    @property
    def is_female(self) -> bool:
        return self.gender == FEMALE

    @property
    def session_key(self) -> Tuple[str, str]:
        return (self.name, self.birth_token)

    def is_selected(self, keyword: str) -> bool:
        """True when any guaranteed condition mentions keyword (label or sub-option)."""
        return any(keyword in cond for cond in self.selected_conditions)

    def condition_text(self) -> str:
        return ", ".join(self.selected_conditions) if self.selected_conditions else "없음"

    def condition_labels(self) -> str:
        """Condition list without the parenthesised sub-options."""
        return ", ".join(c.split("(")[0].strip() for c in self.selected_conditions)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["selected_conditions"] = list(self.selected_conditions)
        data["membership_tier"] = self.membership_tier.value
        return data
