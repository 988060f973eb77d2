"""Tests for the filter builder and render()."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from filterexpr import DictResolver, F, Filter, render
from filterexpr.builder import BuilderOptions, Condition
from filterexpr.exceptions import ParseError
from filterexpr.parser import parse_expression


@pytest.fixture
def resolver() -> DictResolver:
    return DictResolver({"Age": "number", "Name": "text", "Active": "boolean", "At": "timestamp"})


class TestFieldBuilder:
    @pytest.mark.req("FILTER-BUILD-001")
    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (F.field("Age").equals(5), "[Age] == 5"),
            (F.field("Age").not_equals(5), "[Age] != 5"),
            (F.field("Age").greater_than(1.5), "[Age] > 1.5"),
            (F.field("Age").greater_than_or_equal(18), "[Age] >= 18"),
            (F.field("Age").less_than(65), "[Age] < 65"),
            (F.field("Age").less_than_or_equal(65), "[Age] <= 65"),
            (F.field("Name").equals("Bob"), "[Name] == 'Bob'"),
            (F.field("Name").like("B_b%"), "[Name] like 'B_b%'"),
            (F.field("Name").not_like("B%"), "[Name] not like 'B%'"),
            (F.field("Name").contains("ob"), "[Name] like '%ob%'"),
            (F.field("Name").starts_with("B"), "[Name] like 'B%'"),
            (F.field("Name").ends_with("b"), "[Name] like '%b'"),
            (F.field("Name").in_list(["a", "b"]), "[Name] in {'a', 'b'}"),
            (F.field("Age").not_in_list([1, 2]), "[Age] not in {1, 2}"),
            (F.field("Age").between(18, 30), "[Age] between 18 and 30"),
            (F.field("Age").not_between(18, 30), "[Age] not between 18 and 30"),
            (F.field("Name").is_null(), "[Name] is null"),
            (F.field("Name").is_not_null(), "[Name] is not null"),
            (F.field("Name").is_empty(), "[Name] is empty"),
            (F.field("Name").is_not_empty(), "[Name] is not empty"),
            (F.field("Active").equals(True), "[Active] == 1"),
            (F.field("Active").equals(False), "[Active] == 0"),
            (F.field("At").greater_than(date(2024, 1, 2)), "[At] > '2024-01-02 00:00:00'"),
            (
                F.field("At").less_than(datetime(2024, 1, 2, 3, 4, 5)),
                "[At] < '2024-01-02 03:04:05'",
            ),
        ],
    )
    def test_renders(self, condition: Condition, expected: str) -> None:
        assert str(condition) == expected

    def test_none_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="is_null"):
            F.field("Name").equals(None)

    def test_quote_in_text_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="single quote"):
            str(F.field("Name").equals("O'Brien"))

    def test_empty_lists_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            F.field("Age").in_list([])
        with pytest.raises(ValueError):
            F.field("Age").not_in_list([])


class TestCombinators:
    def test_docstring_example(self) -> None:
        condition = F.field("Age").between(18, 30) & F.field("Name").contains("hello")
        assert str(condition) == "[Age] between 18 and 30 && [Name] like '%hello%'"

    def test_or_inside_and_is_parenthesized(self) -> None:
        either = F.field("Age").equals(1) | F.field("Age").equals(2)
        condition = either & F.field("Name").is_null()
        assert str(condition) == "([Age] == 1 || [Age] == 2) && [Name] is null"

    def test_and_inside_or_is_not_parenthesized(self) -> None:
        condition = F.field("Age").equals(1) & F.field("Age").equals(2) | F.field("Name").is_null()
        assert str(condition) == "[Age] == 1 && [Age] == 2 || [Name] is null"

    def test_invert(self) -> None:
        assert str(~F.field("Active").equals(True)) == "!([Active] == 1)"

    def test_and_or_helpers(self) -> None:
        a, b, c = (F.field(n).is_null() for n in ("Age", "Name", "At"))
        assert str(F.and_(a, b, c)) == "[Age] is null && [Name] is null && [At] is null"
        assert str(F.or_(a, b)) == "[Age] is null || [Name] is null"
        assert F.and_(a) is a
        with pytest.raises(ValueError):
            F.or_()

    def test_raw_parses(self) -> None:
        assert str(Filter.raw("[Age]   >=  18")) == "[Age] >= 18"
        with pytest.raises(ParseError):
            Filter.raw("[Age] >=")

    def test_repr(self) -> None:
        assert repr(F.field("Age").equals(1)) == "Filter('[Age] == 1')"

    def test_custom_options(self) -> None:
        options = BuilderOptions(
            date_format="%Y-%m-%d", true_literal="'true'", false_literal="'false'"
        )
        assert F.field("At").equals(date(2024, 5, 1)).to_string(options) == "[At] == '2024-05-01'"
        assert F.field("Active").equals(True).to_string(options) == "[Active] == 'true'"


class TestCompileBuilt:
    def test_compile_condition(self, resolver: DictResolver) -> None:
        condition = F.field("Age").greater_than_or_equal(18) & F.field("Active").equals(True)
        predicate = condition.compile(resolver)
        assert predicate({"Age": 20, "Active": True}) is True
        assert predicate({"Age": 20, "Active": False}) is False
        assert predicate.expression == "[Age] >= 18 && [Active] == 1"

    def test_date_literals_compile(self, resolver: DictResolver) -> None:
        predicate = F.field("At").between(date(2024, 1, 1), date(2024, 12, 31)).compile(resolver)
        assert predicate({"At": "2024-06-01"}) is True
        assert predicate({"At": "2025-06-01"}) is False


class TestRender:
    @pytest.mark.req("FILTER-BUILD-002")
    @pytest.mark.parametrize(
        "source",
        [
            "[A] == 1",
            "[A] == 1 || [B] == 2 && [C] == 3",
            "([A] == 1 || [B] == 2) && [C] == 3",
            "[A] - ([B] - 1) == 0",
            "[A] - [B] - 1 == 0",
            "([A] + [B]) * 2 > 10",
            "[A] / ([B] * 2) > 1",
            "!([A] == 1)",
            "![Flag] && [A] is not null",
            "-[A] < 3",
            "[A] not like 'x%'",
            "!([A] not like 'x%')",
            "[A] in {1, 2.5, 'x'}",
            "[A] not between [B] - 1 and [B] + 1",
            "[A] is empty || [B] is not empty",
            "[A] == ''",
            "[A] == NULL",
            "'x' like [A]",
        ],
    )
    def test_render_parses_back_to_same_tree(self, source: str) -> None:
        expr = parse_expression(source)
        assert parse_expression(render(expr)) == expr

    def test_render_normalizes_spacing_and_case(self) -> None:
        assert render(parse_expression("[A]  IS   NOT NULL")) == "[A] is not null"
        assert render(parse_expression("[A]=1")) == "[A] == 1"

    def test_render_rejects_bracket_in_field_name(self) -> None:
        from filterexpr.ast import FieldRef

        with pytest.raises(ValueError, match="\\]"):
            render(FieldRef("a]b"))
