"""Interactive terminal UI for git-worktree-keeper."""

from .pickers import NumberedPicker, Picker, TextualPicker, default_picker, fuzzy_match

__all__ = ["NumberedPicker", "Picker", "TextualPicker", "default_picker", "fuzzy_match"]
