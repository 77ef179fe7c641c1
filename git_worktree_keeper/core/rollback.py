"""Compensating actions for multi-step filesystem and registry changes."""

from typing import Any, Callable, List, Tuple

from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


class CompensatingActions:
    """Runs steps that each register an undo; failures undo in reverse order.

    Example:
        with CompensatingActions() as actions:
            actions.run("move directory", lambda: os.rename(a, b), lambda: os.rename(b, a))
            actions.run(...)
        # Leaving the block with an exception rolls back completed steps.
    """

    def __init__(self):
        self._undo_stack: List[Tuple[str, Callable[[], Any]]] = []
        self.rollback_errors: List[str] = []

    def run(self, description: str, action: Callable[[], Any], undo: Callable[[], Any]) -> Any:
        """Run a step and remember how to undo it.

        The undo is registered only when the step completed.
        """
        logger.debug(f"Step: {description}")
        result = action()
        self._undo_stack.append((description, undo))
        return result

    def rollback(self) -> List[str]:
        """Undo completed steps, most recent first.

        Every undo is attempted even when an earlier one fails.

        Returns:
            Messages for undos that failed
        """
        while self._undo_stack:
            description, undo = self._undo_stack.pop()
            try:
                undo()
                logger.info(f"Rolled back: {description}")
            except Exception as e:
                message = f"Could not roll back '{description}': {e}"
                logger.error(message)
                self.rollback_errors.append(message)
        return self.rollback_errors

    def commit(self) -> None:
        """Forget the undos; the change is final."""
        self._undo_stack.clear()

    def __enter__(self) -> "CompensatingActions":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False
