"""Branch name synthesis for new worktrees."""

import re
from typing import Optional

from git_worktree_keeper.constants import COMMIT_TYPES_BY_NAME, DEFAULT_COMMIT_TYPE
from git_worktree_keeper.exceptions import InvalidNameError
from git_worktree_keeper.models.branch import BranchSpec

_SUMMARY_INVALID = re.compile(r"[^a-z0-9]")
_NAME_INVALID = re.compile(r"[^A-Za-z0-9._-]")
_DASH_RUN = re.compile(r"-{2,}")


class BranchNameSynthesizer:
    """Turns a ticket id, a summary or free text into a branch name.

    The same name is used for the worktree directory.
    """

    @staticmethod
    def clean_summary(summary: Optional[str]) -> str:
        """
        Reduce a ticket summary to lower-case dash-separated words.

        Args:
            summary: Ticket summary, may be None

        Returns:
            Cleaned summary, empty when nothing usable remains
        """
        if not summary:
            return ""
        cleaned = _SUMMARY_INVALID.sub("-", summary.lower())
        return _DASH_RUN.sub("-", cleaned).strip("-")

    @staticmethod
    def sanitize(name: str) -> str:
        """
        Final pass applied to every branch name.

        Raises:
            InvalidNameError: If nothing remains after sanitizing
        """
        sanitized = _DASH_RUN.sub("-", _NAME_INVALID.sub("-", name or "")).strip("-")
        if not sanitized:
            raise InvalidNameError(name or "")
        return sanitized

    @classmethod
    def compose(cls, raw_input: str, ticket_id: Optional[str] = None,
                summary: Optional[str] = None) -> str:
        """Compose the unsanitized name from its parts."""
        if ticket_id:
            cleaned = cls.clean_summary(summary)
            return f"{ticket_id}-{cleaned}" if cleaned else ticket_id
        return raw_input

    @classmethod
    def synthesize(cls, raw_input: str, ticket_id: Optional[str] = None,
                   summary: Optional[str] = None) -> str:
        """
        Build the branch name.

        A ticket with a summary becomes "<ticket>-<cleaned summary>", a ticket
        whose summary cleans to nothing stays the bare ticket, and anything else
        is the free text itself with its case preserved.

        Args:
            raw_input: What the user typed
            ticket_id: Ticket id when raw_input matched the ticket pattern
            summary: Summary from the ticket tracker or the user

        Returns:
            Sanitized branch name

        Raises:
            InvalidNameError: If the result would be empty
        """
        return cls.sanitize(cls.compose(raw_input, ticket_id, summary))

    @classmethod
    def build_spec(cls, raw_input: str, ticket_id: Optional[str] = None,
                   summary: Optional[str] = None,
                   commit_type: Optional[str] = None) -> BranchSpec:
        """Build a BranchSpec with its name computed once."""
        commit_type = commit_type or DEFAULT_COMMIT_TYPE
        if commit_type not in COMMIT_TYPES_BY_NAME:
            raise ValueError(f"Unknown commit type: {commit_type}")
        return BranchSpec(
            raw_input=raw_input,
            ticket_id=ticket_id,
            summary=summary,
            commit_type=commit_type,
            sanitized_name=cls.synthesize(raw_input, ticket_id, summary),
        )

    @staticmethod
    def commit_message(spec: BranchSpec, ticket_link: Optional[str] = None) -> str:
        """
        Compose the message of the initial empty commit.

        Subject is "<type>: <emoji> <ticket> <summary>", using whichever of
        ticket and summary are known and the literal input otherwise. With a
        ticket and a tracker link prefix, the body links the ticket.
        """
        emoji = COMMIT_TYPES_BY_NAME[spec.commit_type].emoji
        parts = [part for part in (spec.ticket_id, (spec.summary or "").strip().lower()) if part]
        description = " ".join(parts) if parts else spec.raw_input.strip()

        message = f"{spec.commit_type}: {emoji} {description}"
        if spec.ticket_id and ticket_link:
            message += f"\n\nTicket: {ticket_link}{spec.ticket_id}"
        return message
