"""Unit tests for the query parser."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pql.engine.ast_nodes import (
    ComparisonNode,
    InNode,
    IsEmptyNode,
    LogicalNode,
    NotNode,
    ast_to_dict,
    iter_fields,
)
from pql.engine.parser import MAX_NESTING, parse_query
from pql.exceptions import QueryParseError


class TestComparisons:
    def test_equality(self) -> None:
        assert parse_query("priority = high") == ComparisonNode("priority", "=", "high", "string")

    def test_not_equal(self) -> None:
        assert parse_query("type != bug") == ComparisonNode("type", "!=", "bug", "string")

    def test_number(self) -> None:
        node = parse_query("storyPoints >= 5")
        assert node == ComparisonNode("storyPoints", ">=", 5, "number")
        assert isinstance(node.value, int)

    def test_negative_number(self) -> None:
        assert parse_query("estimate > -2") == ComparisonNode("estimate", ">", -2, "number")

    def test_date(self) -> None:
        node = parse_query("dueDate < 2024-12-31")
        assert node == ComparisonNode(
            "dueDate", "<", datetime(2024, 12, 31, tzinfo=timezone.utc), "date"
        )

    def test_relative_date(self) -> None:
        assert parse_query("created > -7d") == ComparisonNode(
            "created", ">", "-7d", "relative_date"
        )

    def test_quoted_string(self) -> None:
        assert parse_query('title = "login bug"') == ComparisonNode(
            "title", "=", "login bug", "string"
        )

    def test_keyword_as_comparison_value(self) -> None:
        # "= EMPTY" compares against the literal text
        assert parse_query("resolution = empty") == ComparisonNode(
            "resolution", "=", "empty", "string"
        )

    def test_key_with_string(self) -> None:
        assert parse_query('key = "TEST-42"') == ComparisonNode("key", "=", "TEST-42", "string")

    def test_key_with_number(self) -> None:
        assert parse_query("key = 42") == ComparisonNode("key", "=", 42, "number")

    def test_key_with_ordering_operator(self) -> None:
        assert parse_query('key > "TEST-10"') == ComparisonNode("key", ">", "TEST-10", "string")


class TestFieldAliases:
    @pytest.mark.parametrize(
        ("typed", "canonical"),
        [
            ("points", "storyPoints"),
            ("story_points", "storyPoints"),
            ("storypoints", "storyPoints"),
            ("label", "labels"),
            ("summary", "title"),
            ("due_date", "dueDate"),
            ("startdate", "startDate"),
            ("created_at", "created"),
            ("updatedAt", "updated"),
            ("fix_version", "fixVersion"),
            ("affected_version", "affectedVersion"),
            ("PRIORITY", "priority"),
        ],
    )
    def test_alias_resolution(self, typed: str, canonical: str) -> None:
        node = parse_query(f"{typed} = x")
        assert isinstance(node, ComparisonNode)
        assert node.field == canonical

    def test_unknown_field_is_kept(self) -> None:
        node = parse_query("customField = x")
        assert isinstance(node, ComparisonNode)
        assert node.field == "customField"


class TestLogicalOperators:
    def test_and(self) -> None:
        node = parse_query("type = bug AND priority = high")
        assert isinstance(node, LogicalNode)
        assert node.operator == "AND"
        assert node.left == ComparisonNode("type", "=", "bug", "string")
        assert node.right == ComparisonNode("priority", "=", "high", "string")

    def test_or(self) -> None:
        node = parse_query("type = bug OR type = task")
        assert isinstance(node, LogicalNode)
        assert node.operator == "OR"

    def test_not(self) -> None:
        node = parse_query("NOT type = bug")
        assert node == NotNode(ComparisonNode("type", "=", "bug", "string"))

    def test_double_not(self) -> None:
        node = parse_query("NOT NOT type = bug")
        assert node == NotNode(NotNode(ComparisonNode("type", "=", "bug", "string")))

    def test_and_binds_tighter_than_or(self) -> None:
        node = parse_query("a = 1 OR b = 2 AND c = 3")
        assert isinstance(node, LogicalNode)
        assert node.operator == "OR"
        assert isinstance(node.right, LogicalNode)
        assert node.right.operator == "AND"

    def test_left_associative(self) -> None:
        node = parse_query("a = 1 OR b = 2 OR c = 3")
        assert isinstance(node, LogicalNode)
        assert isinstance(node.left, LogicalNode)
        assert node.right == ComparisonNode("c", "=", 3, "number")

    def test_implicit_and(self) -> None:
        node = parse_query("type = bug priority = high")
        assert node == LogicalNode(
            "AND",
            ComparisonNode("type", "=", "bug", "string"),
            ComparisonNode("priority", "=", "high", "string"),
        )

    def test_implicit_and_equals_explicit_and(self) -> None:
        assert parse_query("type = bug priority = high") == parse_query(
            "type = bug AND priority = high"
        )

    def test_explicit_and_after_implicit_and(self) -> None:
        node = parse_query("type = bug priority = high AND status = Done")
        assert isinstance(node, LogicalNode)
        assert node.operator == "AND"
        assert node.right == ComparisonNode("status", "=", "Done", "string")
        assert isinstance(node.left, LogicalNode)
        assert node.left.operator == "AND"

    def test_implicit_and_before_parenthesis(self) -> None:
        node = parse_query("type = bug (priority = high OR priority = low)")
        assert isinstance(node, LogicalNode)
        assert node.operator == "AND"
        assert isinstance(node.right, LogicalNode)
        assert node.right.operator == "OR"

    def test_implicit_and_before_not(self) -> None:
        node = parse_query("type = bug NOT priority = low")
        assert isinstance(node, LogicalNode)
        assert isinstance(node.right, NotNode)

    def test_keywords_case_insensitive(self) -> None:
        assert parse_query("a = 1 and b = 2 or not c = 3") == parse_query(
            "a = 1 AND b = 2 OR NOT c = 3"
        )


class TestParentheses:
    def test_grouping_overrides_precedence(self) -> None:
        node = parse_query("(type = bug OR type = story) AND priority = high")
        assert isinstance(node, LogicalNode)
        assert node.operator == "AND"
        assert isinstance(node.left, LogicalNode)
        assert node.left.operator == "OR"

    def test_nested_parentheses(self) -> None:
        assert parse_query("((priority = high))") == ComparisonNode(
            "priority", "=", "high", "string"
        )

    def test_not_with_group(self) -> None:
        node = parse_query("NOT (type = subtask OR type = epic)")
        assert isinstance(node, NotNode)
        assert isinstance(node.operand, LogicalNode)
        assert node.operand.operator == "OR"


class TestInLists:
    def test_in(self) -> None:
        assert parse_query("type IN (bug, task, story)") == InNode(
            "type", ("bug", "task", "story"), False
        )

    def test_not_in(self) -> None:
        assert parse_query("type NOT IN (epic, subtask)") == InNode(
            "type", ("epic", "subtask"), True
        )

    def test_quoted_values(self) -> None:
        node = parse_query('assignee IN ("Jordan", "Alex")')
        assert isinstance(node, InNode)
        assert node.values == ("Jordan", "Alex")

    def test_numbers(self) -> None:
        node = parse_query("storyPoints IN (1, 2, 3, 5)")
        assert isinstance(node, InNode)
        assert node.values == (1, 2, 3, 5)

    def test_no_space_before_paren(self) -> None:
        assert parse_query("type IN(bug)") == InNode("type", ("bug",))

    @pytest.mark.parametrize(
        ("text", "values"),
        [
            ("type IN ()", ()),
            ("type IN (", ()),
            ("type IN (bug", ("bug",)),
            ("type IN (bug,", ("bug",)),
            ("type IN (bug, ", ("bug",)),
            ("type IN (bug, )", ("bug",)),
            ("type IN (bug, task,", ("bug", "task")),
        ],
    )
    def test_lenient_lists(self, text: str, values: tuple) -> None:
        assert parse_query(text) == InNode("type", values, False)

    def test_not_in_without_closing_paren(self) -> None:
        assert parse_query("type NOT IN (epic") == InNode("type", ("epic",), True)

    def test_not_in_with_trailing_comma(self) -> None:
        assert parse_query("type NOT IN (epic, subtask,") == InNode(
            "type", ("epic", "subtask"), True
        )

    def test_list_followed_by_condition(self) -> None:
        node = parse_query("type IN (bug) AND priority = high")
        assert isinstance(node, LogicalNode)
        assert node.left == InNode("type", ("bug",))

    def test_double_comma_is_error(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("type IN (bug,,)")
        assert exc_info.value.position == 13

    def test_missing_comma_is_error(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("type IN (bug task)")
        assert exc_info.value.position == 13

    def test_in_without_paren_is_error(self) -> None:
        with pytest.raises(QueryParseError):
            parse_query("type IN bug")


class TestIsEmpty:
    def test_is_empty(self) -> None:
        assert parse_query("assignee IS EMPTY") == IsEmptyNode("assignee", False)

    def test_is_not_empty(self) -> None:
        assert parse_query("sprint IS NOT EMPTY") == IsEmptyNode("sprint", True)

    def test_is_null(self) -> None:
        assert parse_query("sprint IS NULL") == IsEmptyNode("sprint", False)

    def test_is_not_none(self) -> None:
        assert parse_query("description is not none") == IsEmptyNode("description", True)

    def test_is_without_empty_is_error(self) -> None:
        with pytest.raises(QueryParseError, match="EMPTY"):
            parse_query("assignee IS alice")


class TestErrors:
    @pytest.mark.parametrize("text", ["", "   ", "\t\n"])
    def test_empty_query(self, text: str) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query(text)
        assert exc_info.value.message == "Empty query"
        assert exc_info.value.position == 0
        assert exc_info.value.length == 0

    def test_missing_operator(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("priority high")
        assert exc_info.value.position == 9
        assert exc_info.value.length == 4

    def test_missing_value(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("priority = ")
        # Points at the end of input
        assert exc_info.value.position == 11
        assert exc_info.value.length == 1

    def test_unmatched_parenthesis(self) -> None:
        with pytest.raises(QueryParseError, match=r"\)"):
            parse_query("(priority = high")

    def test_unexpected_trailing_token(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("priority = high )")
        assert exc_info.value.position == 16

    @pytest.mark.parametrize("text", ['title = "unclosed', "title = 'unclosed"])
    def test_unterminated_string(self, text: str) -> None:
        with pytest.raises(QueryParseError):
            parse_query(text)

    def test_unknown_character(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("type = bug & priority = high")
        assert exc_info.value.position == 11

    def test_dangling_and(self) -> None:
        with pytest.raises(QueryParseError, match="end of query"):
            parse_query("type = bug AND")

    def test_not_in_without_field(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("NOT IN (bug)")
        assert exc_info.value.position == 0

    def test_invalid_calendar_date(self) -> None:
        with pytest.raises(QueryParseError, match="Invalid date") as exc_info:
            parse_query("dueDate < 2024-13-45")
        assert exc_info.value.position == 10
        assert exc_info.value.length == 10

    def test_positions_refer_to_untrimmed_input(self) -> None:
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("   priority high")
        assert exc_info.value.position == 12

    def test_not_without_in(self) -> None:
        with pytest.raises(QueryParseError, match='Expected "IN" after "NOT"') as exc_info:
            parse_query("type NOT bug")
        assert exc_info.value.position == 9
        assert exc_info.value.length == 3

    def test_number_too_long_for_int(self) -> None:
        text = "storyPoints > " + "9" * 5000
        with pytest.raises(QueryParseError, match="Invalid number") as exc_info:
            parse_query(text)
        assert exc_info.value.position == 14
        assert exc_info.value.length == 5000

    def test_number_too_long_in_list(self) -> None:
        with pytest.raises(QueryParseError, match="Invalid number"):
            parse_query("key IN (1, " + "9" * 5000 + ")")

    def test_deep_parentheses(self) -> None:
        text = "(" * 250 + "a = 1" + ")" * 250
        with pytest.raises(QueryParseError, match="nested too deeply") as exc_info:
            parse_query(text)
        assert exc_info.value.position == MAX_NESTING

    def test_long_not_chain(self) -> None:
        with pytest.raises(QueryParseError, match="nested too deeply") as exc_info:
            parse_query("NOT " * 1200 + "a = 1")
        assert exc_info.value.position == 4 * MAX_NESTING

    def test_nesting_at_the_limit(self) -> None:
        text = "(" * MAX_NESTING + "type = bug" + ")" * MAX_NESTING
        assert parse_query(text) == ComparisonNode("type", "=", "bug", "string")

    def test_sibling_groups_do_not_add_up(self) -> None:
        group = "(" * 60 + "type = bug" + ")" * 60
        node = parse_query(f"{group} AND {group}")
        assert isinstance(node, LogicalNode)

    def test_error_is_a_pql_error(self) -> None:
        from pql.exceptions import PQLError, QueryError

        with pytest.raises(QueryError):
            parse_query("priority =")
        with pytest.raises(PQLError):
            parse_query("priority =")


class TestAstHelpers:
    def test_iter_fields(self) -> None:
        node = parse_query("type = bug AND (labels IN (a) OR NOT sprint IS EMPTY)")
        assert list(iter_fields(node)) == ["type", "labels", "sprint"]

    def test_ast_to_dict(self) -> None:
        node = parse_query("dueDate < 2024-12-31 OR type NOT IN (bug)")
        assert ast_to_dict(node) == {
            "type": "logical",
            "operator": "OR",
            "left": {
                "type": "comparison",
                "field": "dueDate",
                "operator": "<",
                "value": "2024-12-31",
                "valueType": "date",
            },
            "right": {"type": "in", "field": "type", "values": ["bug"], "negated": True},
        }

    def test_ast_to_dict_is_empty_and_not(self) -> None:
        node = parse_query("NOT assignee IS EMPTY")
        assert ast_to_dict(node) == {
            "type": "not",
            "operand": {"type": "is_empty", "field": "assignee", "negated": False},
        }
