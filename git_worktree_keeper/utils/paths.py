"""Path helpers.

git reports worktree paths fully resolved, so every comparison between a
user-supplied path and a registry path goes through normalize_path.
"""

import os


def normalize_path(path: str) -> str:
    """Absolute, user-expanded, symlink-resolved form of a path."""
    return os.path.realpath(os.path.abspath(os.path.expanduser(str(path))))


def is_within(path: str, root: str) -> bool:
    """True if path lies strictly below root."""
    path = normalize_path(path)
    root = normalize_path(root)
    return path != root and path.startswith(root.rstrip(os.sep) + os.sep)
