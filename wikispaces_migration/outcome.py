"""
Wikispaces Migration - Import Outcomes

Result objects returned by every import operation and merged upward into
the run-level report.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


SUCCESS = "success"
SKIP = "skip"
FAIL = "fail"


class ImportCode(Enum):
    """Every kind of outcome entry, with the counter it increments."""

    CREATED = ("created", SUCCESS)
    UPDATED = ("updated", SUCCESS)
    FILE_IMPORTED = ("fileimported", SUCCESS)
    TALK_EDIT_IMPORTED = ("talkeditimported", SUCCESS)
    FOOTER_IMPORTED = ("footerimported", SUCCESS)
    USER_IMPORTED = ("userimported", SUCCESS)

    TITLE_EXISTS = ("titleexists", SKIP)
    NOT_MODIFIED = ("notmodified", SKIP)
    CONTENT_UNCHANGED = ("notchanged", SKIP)
    FILE_EXISTS = ("fileexists", SKIP)
    TAGS_PRESENT = ("tagspresent", SKIP)
    NO_VERSIONS = ("noversions", SKIP)
    REPLIES_UNAVAILABLE = ("repliesunavailable", SKIP)

    INVALID_TITLE = ("invalidtitle", FAIL)
    WRITE_FAILED = ("writefailed", FAIL)
    FILE_IMPORT_FAILED = ("fileimportfailed", FAIL)
    SECTION_NOT_FOUND = ("sectionnotfound", FAIL)
    NOT_TEXT = ("nottext", FAIL)
    TALK_EDIT_FAILED = ("talkeditimportfailed", FAIL)
    FOOTER_FAILED = ("footerimportfailed", FAIL)
    USER_FAILED = ("userimportfailed", FAIL)
    POLICY_FAILED = ("policyfailed", FAIL)

    def __init__(self, key: str, kind: str):
        self.key = key
        self.kind = kind


@dataclass
class ImportOutcome:
    """
    Counters and diagnostics for a set of write attempts.

    Every entry bumps exactly one counter, so the number of entries always
    equals ``success_count + skip_count + fail_count``. Outcomes are only
    ever combined by addition; nothing is decremented.
    """
    success_count: int = 0
    skip_count: int = 0
    fail_count: int = 0
    entries: List[Tuple[ImportCode, str]] = field(default_factory=list)

    @classmethod
    def of(cls, code: ImportCode, message: str = "") -> "ImportOutcome":
        outcome = cls()
        outcome.record(code, message)
        return outcome

    def record(self, code: ImportCode, message: str = "") -> "ImportOutcome":
        if code.kind == SUCCESS:
            self.success_count += 1
        elif code.kind == SKIP:
            self.skip_count += 1
        else:
            self.fail_count += 1
        self.entries.append((code, message))
        return self

    def merge(self, other: "ImportOutcome") -> "ImportOutcome":
        """Add another outcome's counters and entries into this one."""
        self.success_count += other.success_count
        self.skip_count += other.skip_count
        self.fail_count += other.fail_count
        self.entries.extend(other.entries)
        return self

    def __add__(self, other: "ImportOutcome") -> "ImportOutcome":
        return ImportOutcome().merge(self).merge(other)

    @property
    def total(self) -> int:
        return self.success_count + self.skip_count + self.fail_count

    @property
    def ok(self) -> bool:
        return self.fail_count == 0

    def count(self, *codes: ImportCode) -> int:
        return sum(1 for code, _ in self.entries if code in codes)

    def failures(self) -> List[Tuple[ImportCode, str]]:
        return [(code, msg) for code, msg in self.entries if code.kind == FAIL]

    def summary(self) -> str:
        return (
            f"{self.success_count} succeeded, "
            f"{self.skip_count} skipped, "
            f"{self.fail_count} failed"
        )
