"""
Tests for the TSV and keyed-row record parsers
"""
import dataclasses

import pytest

from eumlog.record_parser import (
    KeyedRowParser,
    TsvRowParser,
    parse_consultation_data,
    split_selected_conditions,
)
from eumlog.records import MembershipTier, tier_for


def test_parses_fixed_fields_around_pivot(make_row):
    records = parse_consultation_data(make_row())

    assert len(records) == 1
    r = records[0]
    assert r.name == "김하나"
    assert r.gender == "여자"
    assert r.birth_token == "950315"
    assert r.phone == "010-1234-5678"
    assert r.location == "전남 여수시"
    assert r.job == "회사원"
    assert r.height == "165"
    assert r.education == "대졸"
    assert r.income == "4천"
    assert r.smoking == "비흡연"
    assert r.religion == "무교"
    assert r.personality_note == "차분하고 다정함"
    assert r.group == "일반"


def test_infers_preference_columns(make_row):
    r = parse_consultation_data(make_row())[0]

    assert r.preferred_age_text == "90년생 이상"
    assert r.preferred_height_text == "175cm 이상"
    assert r.preferred_smoking_text == "비흡연자"
    assert r.preferred_income_text == "5천 이상"
    assert r.preferred_education_text == "대졸 이상"
    assert r.priority_weights_text == "키1 / 나이2"


def test_condition_column_and_tier(make_row):
    r = parse_consultation_data(make_row(conditions="나이, 키"))[0]
    assert r.selected_conditions == ("나이", "키")
    assert r.membership_tier == MembershipTier.BASIC

    r = parse_consultation_data(make_row(conditions="나이 | 키 | 지역(전남)"))[0]
    assert r.selected_conditions == ("나이", "키", "지역(전남)")
    assert r.membership_tier == MembershipTier.PREMIUM


def test_leading_columns_do_not_shift_fields(make_row):
    r = parse_consultation_data(make_row(leading=("2024/05/01 10:00", "A-17")))[0]
    assert r.name == "김하나"
    assert r.birth_token == "950315"
    assert r.preferred_age_text == "90년생 이상"
    assert r.selected_conditions == ("나이", "키")


@pytest.mark.parametrize("line", [
    "이름\t성별\t생년월일",
    "\t\t\t",
    "김하나\t여성\t950315",
    "",
])
def test_rows_without_pivot_are_skipped(line):
    assert parse_consultation_data(line) == []


def test_header_and_blank_lines_are_filtered(make_row):
    text = "\n".join([
        "그룹\t이름(*)\t성별(*)\t생년월일(*)",
        "",
        make_row(),
        make_row(name="이둘", gender="남자", birth="900101"),
        "   ",
    ])
    records = parse_consultation_data(text)
    assert [r.name for r in records] == ["김하나", "이둘"]


def test_row_without_name_is_skipped():
    parser = TsvRowParser()
    assert parser.parse_row("남자\t900101\t010") is None


def test_parsing_twice_differs_only_in_id(make_row):
    row = make_row()
    first = parse_consultation_data(row)[0]
    second = parse_consultation_data(row)[0]

    assert first.id != second.id
    assert dataclasses.replace(first, id=second.id) == second


def test_non_text_input_raises():
    with pytest.raises(TypeError):
        parse_consultation_data(None)


@pytest.mark.parametrize("raw,expected", [
    ("[나이, 키]", ["나이", "키"]),
    ("나이 | 키 | 흡연", ["나이", "키", "흡연"]),
    ("나이/키", ["나이", "키"]),
    ("키", ["키"]),
    ("나이, , 키, 위 내용에 동의합니다", ["나이", "키"]),
    ("", []),
])
def test_split_selected_conditions(raw, expected):
    assert split_selected_conditions(raw) == expected


def test_condition_column_first_occurrence_wins_ties():
    parser = TsvRowParser()
    fields = ["일반", "김하나", "여자"] + [""] * 5 + ["나이 키", "지역 학력"]
    assert parser.find_condition_column(fields, 2) == 8


def test_condition_column_pipe_short_circuits():
    parser = TsvRowParser()
    fields = ["일반", "김하나", "여자"] + [""] * 5 + ["나이 키 지역 학력", "연봉|흡연"]
    assert parser.find_condition_column(fields, 2) == 9


def test_condition_column_skips_consent_and_dates():
    parser = TsvRowParser()
    fields = ["일반", "김하나", "여자"] + [""] * 5 + [
        "나이, 키 조건을 확인했으며 위 내용에 동의합니다",
        "2024/05/01 나이",
        "학력, 종교",
    ]
    assert parser.find_condition_column(fields, 2) == 10


def test_tier_boundary():
    assert tier_for(("나이", "키")) == MembershipTier.BASIC
    assert tier_for(("나이", "키", "흡연")) == MembershipTier.PREMIUM
    assert tier_for(()) == MembershipTier.BASIC


def test_keyed_row_parser():
    row = {
        "그룹": "이벤트",
        "이름(*)": "박셋",
        "성별(*)": "남자",
        "생년월일(*)": "900101",
        "거주지역(*)": "광주 북구",
        "선호 나이 범위(*)": "93년생 이상",
        "보장 조건 선택 (중요)(*)": "나이, 연봉, 지역(광주)",
    }
    r = KeyedRowParser().parse_row(row)

    assert r.name == "박셋"
    assert r.group == "이벤트"
    assert r.religion == "무교"
    assert r.preferred_age_text == "93년생 이상"
    assert r.selected_conditions == ("나이", "연봉", "지역(광주)")
    assert r.membership_tier == MembershipTier.PREMIUM


def test_keyed_row_parser_requires_gender_and_name():
    parser = KeyedRowParser()
    assert parser.parse_row({"이름(*)": "박셋"}) is None
    assert parser.parse_row({"성별(*)": "남자"}) is None
    assert parser.parse_row("not a mapping") is None
