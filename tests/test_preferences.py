"""
Tests for preference normalization
"""
import pytest

from eumlog.preferences import (
    format_income_amount,
    has_range,
    height_is_priority,
    height_value,
    income_amount,
    income_phrase,
    is_flexible,
    is_high_education,
    is_max_limit,
    normalize,
    preferred_birth_year_bound,
    resolve_birth_year,
    resolve_two_digit_year,
)


@pytest.mark.parametrize("token,expected", [
    (95, 1995),
    (30, 1930),
    (29, 2029),
    (0, 2000),
    (1, 2001),
    (88, 1988),
])
def test_two_digit_year_window(token, expected):
    assert resolve_two_digit_year(token) == expected


def test_two_digit_year_window_is_total():
    for token in range(100):
        year = resolve_two_digit_year(token)
        assert year == (2000 + token if token < 30 else 1900 + token)


@pytest.mark.parametrize("birth,expected", [
    ("950315", 1995),
    ("95", 1995),
    ("1995-03-15", 1995),
    ("19950315", 1995),
    ("010203", 2001),
    ("", None),
    ("모름", None),
])
def test_resolve_birth_year(birth, expected):
    assert resolve_birth_year(birth) == expected


@pytest.mark.parametrize("text,expected", [
    ("85년생 이상", 1985),
    ("90~95년생", 1990),
    ("1992년생부터 97년생까지", 1992),
    ("연하 01년생까지", 2001),
    ("30살 이하", None),
    ("25~30세", None),
    ("25 - 30살 정도", None),
    ("25~30세 또는 95년생", 1995),
    ("동갑이나 연하", None),
    ("", None),
])
def test_preferred_birth_year_bound(text, expected):
    assert preferred_birth_year_bound(text) == expected


@pytest.mark.parametrize("text,expected", [
    ("1억 이상", 10000),
    ("5천 이상", 5000),
    ("연봉 3천만원 이상", 3000),
    ("4000만원 이상", 0),
    ("무관", 0),
    ("", 0),
])
def test_income_amount(text, expected):
    assert income_amount(text) == expected


@pytest.mark.parametrize("amount,expected", [
    (5000, "5천"),
    (8000, "8천"),
    (10000, "1억"),
    (12000, "1억 2천"),
])
def test_format_income_amount(amount, expected):
    assert format_income_amount(amount) == expected


@pytest.mark.parametrize("amount,expected", [
    (8000, "8천만 원"),
    (10000, "1억 원"),
    (12000, "1억 2천만 원"),
])
def test_income_phrase_has_a_single_unit(amount, expected):
    assert income_phrase(amount) == expected


@pytest.mark.parametrize("text,expected", [
    ("무관", True),
    ("상관 없어요", True),
    ("다 괜찮아요", True),
    ("85년생 이상", False),
    ("", False),
])
def test_is_flexible(text, expected):
    assert is_flexible(text) == expected


@pytest.mark.parametrize("text,expected", [
    ("165cm 이하", True),
    ("아담한 분", True),
    ("170 미만", True),
    ("175cm 이상", False),
])
def test_is_max_limit(text, expected):
    assert is_max_limit(text) == expected


@pytest.mark.parametrize("text,expected", [
    ("대졸 이상", True),
    ("4년제 졸업", True),
    ("대학원", True),
    ("전문대졸 이상", False),
    ("초대졸 이상", False),
    ("고졸 이상", False),
    ("", False),
])
def test_is_high_education(text, expected):
    assert is_high_education(text) == expected


def test_height_value_takes_first_number():
    assert height_value("160~165cm") == 160
    assert height_value("175cm 이상") == 175
    assert height_value("큰 편") is None


def test_range_and_priority_detection():
    assert has_range("160~165cm")
    assert has_range("160 - 165")
    assert not has_range("165cm 이상")
    assert height_is_priority("키1 / 나이2")
    assert height_is_priority("키 1순위")
    assert not height_is_priority("나이1 / 키2")


def test_normalize_keeps_original_texts(make_record):
    record = make_record(
        preferred_age_text="85년생 이상",
        preferred_height_text="175cm 이상",
        preferred_smoking_text="흡연 가능",
        preferred_income_text="5천 이상",
        preferred_education_text="대졸 이상",
        priority_weights_text="키1",
    )
    prefs = normalize(record)

    assert prefs.client_birth_year == 1995
    assert prefs.age_text == "85년생 이상"
    assert prefs.age_bound == 1985
    assert not prefs.age_flexible
    assert prefs.height_value == 175
    assert prefs.height_priority
    assert not prefs.height_max_limit
    assert prefs.smoking_accepts_smokers
    assert not prefs.smoking_non_smoker
    assert prefs.education_high
    assert prefs.income_amount == 5000
