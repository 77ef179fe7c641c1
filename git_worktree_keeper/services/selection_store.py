"""Persistence of the last chosen repository."""

import os
from pathlib import Path
from typing import Optional, Protocol

from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


class LastSelectionStore(Protocol):
    """Single-value store for the last chosen repository name.

    Absence or corruption is never an error: load returns None.
    """

    def load(self) -> Optional[str]:
        ...

    def save(self, name: str) -> None:
        ...


class FileLastSelectionStore:
    """Keeps the last selection in a plain text file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Ignoring unreadable selection file {self.path}: {e}")
            return None

        # Only a single plain name is valid
        if not value or "\n" in value or os.sep in value:
            logger.debug(f"Ignoring malformed selection file {self.path}")
            return None
        return value

    def save(self, name: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(f"{name}\n", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not remember selection in {self.path}: {e}")


class MemoryLastSelectionStore:
    """In-memory store, used in tests and non-interactive runs."""

    def __init__(self, value: Optional[str] = None):
        self.value = value

    def load(self) -> Optional[str]:
        return self.value

    def save(self, name: str) -> None:
        self.value = name
