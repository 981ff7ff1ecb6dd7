"""
Wikispaces Migration - Conflict Policy

Pure decision logic for writing a revision over existing target state.
Nothing in this module performs I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WriteMode(Enum):
    """How to treat a title that already has a revision on the target."""
    NEVER = "never"
    IF_OLDER = "if_older"
    ALWAYS = "always"

    @classmethod
    def parse(cls, value: str) -> "WriteMode":
        """Parse a config value, accepting a few common spellings."""
        normalized = (value or "never").strip().lower().replace("-", "_")
        aliases = {"skip": "never", "older": "if_older", "update": "if_older", "force": "always"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Invalid overwrite mode: {value!r}. Must be one of: never, if_older, always"
            )


class DecisionKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP_UNCHANGED = "skip_unchanged"
    SKIP_EXISTS = "skip_exists"
    SKIP_STALE = "skip_stale"
    FAIL = "fail"


@dataclass(frozen=True)
class ExistingState:
    """What the target already holds for a title."""
    timestamp: int
    touched: int
    is_text: bool = True


@dataclass(frozen=True)
class ConflictDecision:
    kind: DecisionKind
    timestamp: Optional[int] = None
    reason: str = ""

    @property
    def writes(self) -> bool:
        return self.kind in (DecisionKind.CREATE, DecisionKind.UPDATE)


class ConflictPolicy:
    """
    Decides create/update/skip/fail for one revision.

    Timestamps are unix seconds. ``now`` is only used when source
    timestamps are not being kept.
    """

    def __init__(self, mode: WriteMode = WriteMode.NEVER, use_timestamp: bool = False):
        self.mode = mode
        self.use_timestamp = use_timestamp

    def edit_timestamp(
        self,
        source_timestamp: Optional[int],
        existing: Optional[ExistingState],
        now: int,
    ) -> int:
        """Compute the timestamp the new revision would be written with."""
        if not self.use_timestamp or source_timestamp is None:
            return now
        if self.mode == WriteMode.ALWAYS and existing is not None:
            return max(source_timestamp, existing.timestamp + 1)
        return source_timestamp

    def decide(
        self,
        existing: Optional[ExistingState],
        timestamp: int,
        identical: bool,
    ) -> ConflictDecision:
        """
        Decide what to do with a revision.

        Args:
            existing: Current target state, or None when the title is new
            timestamp: Edit timestamp from ``edit_timestamp``
            identical: Translated content equals the existing content
        """
        if existing is None:
            return ConflictDecision(DecisionKind.CREATE, timestamp)

        if self.mode == WriteMode.NEVER:
            return ConflictDecision(DecisionKind.SKIP_EXISTS, reason="title exists")

        if not existing.is_text:
            return ConflictDecision(
                DecisionKind.FAIL, reason="existing revision is not wikitext"
            )

        if self.mode == WriteMode.IF_OLDER:
            # Identical content wins over timestamps so reruns stay quiet.
            if identical:
                return ConflictDecision(DecisionKind.SKIP_UNCHANGED, reason="content unchanged")
            if self.use_timestamp and existing.touched >= timestamp:
                return ConflictDecision(
                    DecisionKind.SKIP_STALE,
                    reason=f"target touched at {existing.touched}, revision is from {timestamp}",
                )

        return ConflictDecision(DecisionKind.UPDATE, timestamp)

    def evaluate(
        self,
        existing: Optional[ExistingState],
        source_timestamp: Optional[int],
        identical: bool,
        now: int,
    ) -> ConflictDecision:
        """Compute the edit timestamp and decide in one step."""
        timestamp = self.edit_timestamp(source_timestamp, existing, now)
        return self.decide(existing, timestamp, identical)
