"""Tests for compensating actions"""
import pytest

from git_worktree_keeper.core.rollback import CompensatingActions


class TestCompensatingActions:
    """Test undo ordering and failure handling."""

    def test_success_keeps_changes(self):
        log = []
        with CompensatingActions() as actions:
            actions.run("one", lambda: log.append("do 1"), lambda: log.append("undo 1"))
            actions.run("two", lambda: log.append("do 2"), lambda: log.append("undo 2"))
        assert log == ["do 1", "do 2"]

    def test_failure_undoes_in_reverse(self):
        log = []

        def fail():
            raise OSError("disk full")

        with pytest.raises(OSError):
            with CompensatingActions() as actions:
                actions.run("one", lambda: log.append("do 1"), lambda: log.append("undo 1"))
                actions.run("two", lambda: log.append("do 2"), lambda: log.append("undo 2"))
                actions.run("three", fail, lambda: log.append("undo 3"))

        assert log == ["do 1", "do 2", "undo 2", "undo 1"]

    def test_failing_undo_does_not_stop_the_rest(self):
        log = []

        def broken_undo():
            raise RuntimeError("cannot undo")

        actions = CompensatingActions()
        actions.run("one", lambda: None, lambda: log.append("undo 1"))
        actions.run("two", lambda: None, broken_undo)

        errors = actions.rollback()

        assert log == ["undo 1"]
        assert len(errors) == 1
        assert "two" in errors[0]

    def test_run_returns_action_result(self):
        actions = CompensatingActions()
        assert actions.run("value", lambda: 42, lambda: None) == 42
        actions.commit()
        assert actions.rollback() == []
