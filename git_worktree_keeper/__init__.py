"""
git-worktree-keeper - Per-branch git worktree lifecycle manager
"""

from .__version__ import __version__
from .core import WorktreeKeeper
from .cli.main import main

__all__ = ["WorktreeKeeper", "main", "__version__"]
