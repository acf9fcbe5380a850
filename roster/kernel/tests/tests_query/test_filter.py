"""
Roster Query — Filter Tests

Active predicates are ANDed; empty criteria is the identity.
"""

import pytest

from roster.kernel.query import apply_filter
from roster.kernel.types import FilterCriteria, StudentRecord


def make_record(code, first, last, **fields):
    return StudentRecord(student_code=code, first_name=first, last_name=last, **fields)


@pytest.fixture
def records():
    return [
        make_record("SV0001", "Nguyễn Văn", "An", email="an@school.vn", hometown="Hà Nội", grade="A"),
        make_record("SV0002", "Trần Thị", "Bình", email=None, hometown="Huế", grade="C"),
        make_record("SV0003", "Lê", "Cường", email="cuong@mail.com", hometown="Hà Nội", grade=None),
        make_record("XY9999", "Phạm", "Dung", email="dung@school.vn", hometown=None, grade="A"),
    ]


class TestIdentity:
    def test_empty_criteria_returns_same_sequence(self, records):
        result = apply_filter(records, FilterCriteria())
        assert result == records
        assert result is not records

    def test_blank_values_are_not_applied(self, records):
        assert apply_filter(records, FilterCriteria(search="", hometown="", grade="")) == records


class TestSearch:
    def test_case_insensitive_code(self, records):
        codes = [r.student_code for r in apply_filter(records, FilterCriteria(search="xy99"))]
        assert codes == ["XY9999"]

    def test_matches_full_name_across_the_space(self, records):
        result = apply_filter(records, FilterCriteria(search="văn an"))
        assert [r.student_code for r in result] == ["SV0001"]

    def test_matches_email_and_hometown(self, records):
        assert len(apply_filter(records, FilterCriteria(search="school.vn"))) == 2
        assert len(apply_filter(records, FilterCriteria(search="huế"))) == 1

    def test_absent_fields_do_not_match(self, records):
        """SV0002 has no email; it still matches on other fields."""
        result = apply_filter(records, FilterCriteria(search="bình"))
        assert [r.student_code for r in result] == ["SV0002"]


class TestHometownAndGrade:
    def test_hometown_is_exact(self, records):
        assert len(apply_filter(records, FilterCriteria(hometown="Hà Nội"))) == 2
        assert apply_filter(records, FilterCriteria(hometown="Hà")) == []

    def test_grade_never_matches_undefined(self, records):
        result = apply_filter(records, FilterCriteria(grade="A"))
        assert [r.student_code for r in result] == ["SV0001", "XY9999"]

    def test_predicates_are_anded(self, records):
        result = apply_filter(records, FilterCriteria(search="school", hometown="Hà Nội", grade="A"))
        assert [r.student_code for r in result] == ["SV0001"]


class TestCriteria:
    def test_with_value(self):
        criteria = FilterCriteria().with_value("grade", "B")
        assert criteria.active() == {"grade": "B"}
        assert criteria.with_value("grade", "").is_active is False

    def test_unknown_filter(self):
        with pytest.raises(ValueError):
            FilterCriteria().with_value("email", "x")
