"""Interactive pickers used to choose repositories, worktrees and branches."""

import re
import sys
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Set, Tuple

from rich.console import Console
from rich.prompt import Confirm, Prompt
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Input, OptionList, SelectionList, Static
from textual.widgets.option_list import Option

from git_worktree_keeper.exceptions import SelectionCancelled
from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


def fuzzy_match(query: str, text: str) -> Tuple[float, List[int]]:
    """Fuzzy match a query against an option.

    Returns (score, matched_indices) where higher score = better match.
    Score of 0 means no match.

    Scoring priorities:
    - Exact substring matches score highest
    - Matches at word boundaries (after /, _, -, .) score higher
    - Consecutive character matches score higher
    - Shorter options get a bonus
    """
    if not query:
        return (1.0, [])

    query_lower = query.lower()
    text_lower = text.lower()

    idx = text_lower.find(query_lower)
    if idx != -1:
        boundary_bonus = 0.2 if idx == 0 or text[idx - 1] in "/_-. " else 0
        length_penalty = len(text) / 200
        return (1.0 + boundary_bonus - length_penalty, list(range(idx, idx + len(query))))

    # Characters in order
    matched_indices: List[int] = []
    query_idx = 0
    consecutive_bonus = 0.0
    boundary_bonus = 0.0
    last_match = -2

    for i, char in enumerate(text_lower):
        if query_idx < len(query_lower) and char == query_lower[query_idx]:
            matched_indices.append(i)
            if i == last_match + 1:
                consecutive_bonus += 0.1
            if i == 0 or text[i - 1] in "/_-. ":
                boundary_bonus += 0.15
            last_match = i
            query_idx += 1

    if query_idx < len(query_lower):
        return (0.0, [])

    base_score = len(query) / len(text)
    length_penalty = len(text) / 300
    score = base_score + consecutive_bonus + boundary_bonus - length_penalty
    return (max(0.01, score), matched_indices)


def filter_options(query: str, options: Sequence[str]) -> List[str]:
    """Options matching query, best first; ties keep their original order."""
    if not query:
        return list(options)
    scored = []
    for position, option in enumerate(options):
        score, _ = fuzzy_match(query, option)
        if score > 0:
            scored.append((-score, position, option))
    return [option for _, _, option in sorted(scored)]


class Picker(ABC):
    """Collaborator that asks the user to choose or type something.

    Every method raises SelectionCancelled when the user aborts.
    """

    @abstractmethod
    def select(self, prompt: str, options: Sequence[str]) -> str:
        """Choose exactly one option."""

    @abstractmethod
    def select_many(self, prompt: str, options: Sequence[str]) -> List[str]:
        """Choose one or more options, returned in option order."""

    @abstractmethod
    def confirm(self, prompt: str, default: bool = False) -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    def prompt_text(self, prompt: str, default: str = "") -> str:
        """Ask for free text."""


_RANGE = re.compile(r"^(\d+)-(\d+)$")


class NumberedPicker(Picker):
    """Numbered-list picker built on rich prompts.

    Works on any terminal and is the fallback when a full-screen picker
    can't run. Typing text instead of a number narrows the list.
    """

    def __init__(self, console: Optional[Console] = None, stream=None):
        self.console = console or Console(stderr=True)
        self.stream = stream  # Alternative input stream, used by tests

    def _ask(self, prompt: str, default: str = "") -> str:
        try:
            return Prompt.ask(prompt, console=self.console, default=default,
                              show_default=bool(default), stream=self.stream)
        except (KeyboardInterrupt, EOFError):
            raise SelectionCancelled()

    def _show(self, options: Sequence[str]) -> None:
        for number, option in enumerate(options, start=1):
            self.console.print(f"  [cyan]{number:>3}[/cyan]  {option}")

    def select(self, prompt: str, options: Sequence[str]) -> str:
        if not options:
            raise SelectionCancelled("Nothing to select")

        visible = list(options)
        while True:
            self.console.print(f"[bold]{prompt}[/bold]")
            self._show(visible)
            answer = self._ask("Number or filter (empty picks 1)").strip()
            if not answer:
                return visible[0]
            if answer.isdigit():
                index = int(answer) - 1
                if 0 <= index < len(visible):
                    return visible[index]
                self.console.print(f"[red]Choose a number between 1 and {len(visible)}[/red]")
                continue

            matches = filter_options(answer, options)
            if len(matches) == 1:
                return matches[0]
            if not matches:
                self.console.print(f"[yellow]Nothing matches '{answer}'[/yellow]")
                visible = list(options)
            else:
                visible = matches

    def select_many(self, prompt: str, options: Sequence[str]) -> List[str]:
        if not options:
            raise SelectionCancelled("Nothing to select")

        while True:
            self.console.print(f"[bold]{prompt}[/bold]")
            self._show(options)
            answer = self._ask("Numbers or ranges, e.g. 1,3-5 ('all' for everything)").strip()
            if not answer:
                raise SelectionCancelled()
            chosen = self._parse_numbers(answer, len(options))
            if chosen is None:
                self.console.print("[red]Could not read that selection[/red]")
                continue
            return [options[i] for i in sorted(chosen)]

    @staticmethod
    def _parse_numbers(answer: str, count: int) -> Optional[Set[int]]:
        """Zero-based indices from "1,3-5" style input, None if malformed."""
        if answer.lower() == "all":
            return set(range(count))
        chosen: Set[int] = set()
        for token in re.split(r"[,\s]+", answer):
            if not token:
                continue
            range_match = _RANGE.match(token)
            if range_match:
                start, end = int(range_match.group(1)), int(range_match.group(2))
            elif token.isdigit():
                start = end = int(token)
            else:
                return None
            if start < 1 or end > count or start > end:
                return None
            chosen.update(range(start - 1, end))
        return chosen or None

    def confirm(self, prompt: str, default: bool = False) -> bool:
        try:
            return Confirm.ask(prompt, console=self.console, default=default, stream=self.stream)
        except (KeyboardInterrupt, EOFError):
            raise SelectionCancelled()

    def prompt_text(self, prompt: str, default: str = "") -> str:
        return self._ask(prompt, default=default).strip()


class FuzzyPickerApp(App):
    """Full-screen fuzzy filter over a list of options.

    Exits with the list of chosen options, or None when cancelled.
    """

    CSS = """
    #picker {
        height: 1fr;
        padding: 0 1;
    }

    #picker-prompt {
        height: auto;
        padding: 1 0 0 0;
        text-style: bold;
    }

    #picker-filter {
        margin: 1 0;
    }

    OptionList, SelectionList {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("down", "cursor_down", "Down", show=False),
        Binding("up", "cursor_up", "Up", show=False),
        Binding("tab", "toggle", "Toggle", priority=True),
    ]

    def __init__(self, prompt: str, options: Sequence[str], multi: bool = False):
        super().__init__()
        self.prompt = prompt
        self.options = list(options)
        self.multi = multi
        self.visible: List[str] = list(options)
        self.chosen: Set[str] = set()  # Survives filter changes

    def compose(self) -> ComposeResult:
        with Vertical(id="picker"):
            yield Static(self.prompt, id="picker-prompt")
            yield Input(placeholder="Type to filter", id="picker-filter")
            if self.multi:
                yield SelectionList[str](id="picker-options")
            else:
                yield OptionList(id="picker-options")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_options()
        self.query_one(Input).focus()

    def _list(self):
        return self.query_one("#picker-options")

    def _refresh_options(self) -> None:
        widget = self._list()
        widget.clear_options()
        if self.multi:
            widget.add_options([(option, option, option in self.chosen) for option in self.visible])
        else:
            widget.add_options([Option(option) for option in self.visible])
        if self.visible:
            widget.highlighted = 0

    def on_input_changed(self, event: Input.Changed) -> None:
        self.visible = filter_options(event.value, self.options)
        self._refresh_options()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if self.multi:
            if not self.chosen and self._highlighted_option() is not None:
                self.chosen.add(self._highlighted_option())
            if self.chosen:
                self.exit([option for option in self.options if option in self.chosen])
            return
        option = self._highlighted_option()
        if option is not None:
            self.exit([option])

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.exit([self.visible[event.option_index]])

    def on_selection_list_selected_changed(self, event: SelectionList.SelectedChanged) -> None:
        selected = set(event.selection_list.selected)
        for option in self.visible:
            if option in selected:
                self.chosen.add(option)
            else:
                self.chosen.discard(option)

    def _highlighted_option(self) -> Optional[str]:
        index = self._list().highlighted
        if index is None or not 0 <= index < len(self.visible):
            return None
        return self.visible[index]

    def action_cursor_down(self) -> None:
        self._list().action_cursor_down()

    def action_cursor_up(self) -> None:
        self._list().action_cursor_up()

    def action_toggle(self) -> None:
        if not self.multi:
            return
        option = self._highlighted_option()
        if option is None:
            return
        widget = self._list()
        widget.toggle(option)

    def action_cancel(self) -> None:
        self.exit(None)


class TextualPicker(Picker):
    """Fuzzy picker for interactive terminals.

    Yes/no questions and free text go through the numbered picker's prompts.
    """

    def __init__(self, fallback: Optional[NumberedPicker] = None):
        self.fallback = fallback or NumberedPicker()

    def _run(self, prompt: str, options: Sequence[str], multi: bool) -> List[str]:
        if not options:
            raise SelectionCancelled("Nothing to select")
        result = FuzzyPickerApp(prompt, options, multi=multi).run()
        if not result:
            raise SelectionCancelled()
        return result

    def select(self, prompt: str, options: Sequence[str]) -> str:
        return self._run(prompt, options, multi=False)[0]

    def select_many(self, prompt: str, options: Sequence[str]) -> List[str]:
        return self._run(prompt, options, multi=True)

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return self.fallback.confirm(prompt, default=default)

    def prompt_text(self, prompt: str, default: str = "") -> str:
        return self.fallback.prompt_text(prompt, default=default)


def default_picker() -> Picker:
    """Fuzzy picker on a terminal, numbered prompts otherwise."""
    if sys.stdin.isatty() and sys.stdout.isatty():
        return TextualPicker()
    logger.debug("Not a terminal, using numbered prompts")
    return NumberedPicker()
