"""Repository model."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Repository:
    """A git repository's primary checkout."""

    path: str
    name: str

    @classmethod
    def from_path(cls, path: str) -> "Repository":
        """Build a repository from its checkout directory."""
        path = os.path.abspath(path)
        return cls(path=path, name=os.path.basename(path.rstrip(os.sep)))

    def __str__(self) -> str:
        return self.name
