"""Tests for fuzzy matching and the numbered picker"""
import io
from unittest.mock import patch

import pytest
from rich.console import Console

from git_worktree_keeper.exceptions import SelectionCancelled
from git_worktree_keeper.ui.pickers import (
    NumberedPicker,
    TextualPicker,
    default_picker,
    filter_options,
    fuzzy_match,
)


def numbered(answers: str) -> NumberedPicker:
    return NumberedPicker(console=Console(file=io.StringIO()), stream=io.StringIO(answers))


class TestFuzzyMatch:
    """Test fuzzy scoring."""

    def test_empty_query_matches(self):
        assert fuzzy_match("", "anything") == (1.0, [])

    def test_substring(self):
        score, indices = fuzzy_match("app", "web-app")
        assert score > 1.0
        assert indices == [4, 5, 6]

    def test_subsequence(self):
        score, indices = fuzzy_match("wap", "web-app")
        assert 0 < score < 1.0
        assert indices == [0, 4, 5]

    def test_no_match(self):
        assert fuzzy_match("xyz", "web-app") == (0.0, [])

    def test_case_insensitive(self):
        assert fuzzy_match("API", "my-api")[0] > 0


class TestFilterOptions:
    """Test option filtering."""

    def test_best_first(self):
        options = ["frontend-application", "app", "mapper"]
        assert filter_options("app", options)[0] == "app"

    def test_non_matching_dropped(self):
        assert filter_options("zz", ["app", "api"]) == []

    def test_empty_query_keeps_order(self):
        assert filter_options("", ["b", "a"]) == ["b", "a"]


class TestNumberedPicker:
    """Test the prompt-based picker with a scripted input stream."""

    def test_select_by_number(self):
        assert numbered("2\n").select("Pick", ["a", "b", "c"]) == "b"

    def test_empty_answer_picks_first(self):
        assert numbered("\n").select("Pick", ["a", "b"]) == "a"

    def test_out_of_range_asks_again(self):
        assert numbered("9\n3\n").select("Pick", ["a", "b", "c"]) == "c"

    def test_filter_to_single_match(self):
        assert numbered("gam\n").select("Pick", ["alpha", "beta", "gamma"]) == "gamma"

    def test_filter_then_number(self):
        picker = numbered("ap\n2\n")
        assert picker.select("Pick", ["api", "app", "zebra"]) == "app"

    def test_select_nothing(self):
        with pytest.raises(SelectionCancelled):
            numbered("").select("Pick", [])

    def test_select_many(self):
        assert numbered("1,3\n").select_many("Pick", ["a", "b", "c"]) == ["a", "c"]
        assert numbered("all\n").select_many("Pick", ["a", "b"]) == ["a", "b"]

    def test_select_many_empty_cancels(self):
        with pytest.raises(SelectionCancelled):
            numbered("\n").select_many("Pick", ["a", "b"])

    def test_select_many_retries_on_garbage(self):
        assert numbered("x\n2-3\n").select_many("Pick", ["a", "b", "c"]) == ["b", "c"]

    def test_confirm(self):
        assert numbered("y\n").confirm("Sure?") is True
        assert numbered("n\n").confirm("Sure?") is False
        assert numbered("\n").confirm("Sure?") is False

    def test_prompt_text(self):
        assert numbered("  add login page \n").prompt_text("Name") == "add login page"

    def test_interrupt_cancels(self):
        picker = numbered("")
        with patch("git_worktree_keeper.ui.pickers.Prompt.ask", side_effect=KeyboardInterrupt):
            with pytest.raises(SelectionCancelled):
                picker.prompt_text("Name")


class TestParseNumbers:
    """Test multi-selection parsing."""

    def test_ranges_and_lists(self):
        assert NumberedPicker._parse_numbers("1,3-5", 5) == {0, 2, 3, 4}
        assert NumberedPicker._parse_numbers("2 4", 4) == {1, 3}

    def test_all(self):
        assert NumberedPicker._parse_numbers("ALL", 3) == {0, 1, 2}

    def test_invalid(self):
        assert NumberedPicker._parse_numbers("0", 3) is None
        assert NumberedPicker._parse_numbers("4", 3) is None
        assert NumberedPicker._parse_numbers("3-1", 3) is None
        assert NumberedPicker._parse_numbers("a", 3) is None


class TestDefaultPicker:
    """Test picker choice by terminal."""

    def test_not_a_terminal(self):
        with patch("git_worktree_keeper.ui.pickers.sys") as mock_sys:
            mock_sys.stdin.isatty.return_value = False
            assert isinstance(default_picker(), NumberedPicker)

    def test_terminal(self):
        with patch("git_worktree_keeper.ui.pickers.sys") as mock_sys:
            mock_sys.stdin.isatty.return_value = True
            mock_sys.stdout.isatty.return_value = True
            assert isinstance(default_picker(), TextualPicker)

    def test_textual_cancel(self):
        with patch("git_worktree_keeper.ui.pickers.FuzzyPickerApp") as mock_app:
            mock_app.return_value.run.return_value = None
            with pytest.raises(SelectionCancelled):
                TextualPicker().select("Pick", ["a"])

    def test_textual_select(self):
        with patch("git_worktree_keeper.ui.pickers.FuzzyPickerApp") as mock_app:
            mock_app.return_value.run.return_value = ["b"]
            assert TextualPicker().select("Pick", ["a", "b"]) == "b"
            mock_app.assert_called_once_with("Pick", ["a", "b"], multi=False)
