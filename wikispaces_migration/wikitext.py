"""
Wikispaces Migration - Wikitext Helpers

Target-side text utilities: escaping and section handling.

Sections follow MediaWiki numbering: section 0 is the text before the first
heading, sections 1..N are the headings in document order.
"""

import re
from typing import List, Optional, Tuple


_HEADING_RE = re.compile(r"^(={1,6})(.+?)\1[ \t]*$", re.MULTILINE)
_SHIELD_RE = re.compile(
    r"<(nowiki|pre|syntaxhighlight|source|code)\b.*?</\1>|<!--.*?-->",
    re.DOTALL | re.IGNORECASE,
)

_ESCAPES = {
    '"': "&#34;",
    "&": "&#38;",
    "'": "&#39;",
    "<": "&#60;",
    "=": "&#61;",
    ">": "&#62;",
    "[": "&#91;",
    "]": "&#93;",
    "{": "&#123;",
    "|": "&#124;",
    "}": "&#125;",
    ";": "&#59;",
}
_LINE_START = {"#": "&#35;", "*": "&#42;", ":": "&#58;", ";": "&#59;", " ": "&#32;"}


def escape_wikitext(text: str) -> str:
    """
    Escape text so it renders literally inside wikitext.

    Markup characters become numeric entities; list/indent markers at the
    start of a line, signature tildes, behaviour switches and URL schemes
    are neutralized.
    """
    if not text:
        return ""
    escaped = "".join(_ESCAPES.get(ch, ch) for ch in text)
    if escaped[0] in _LINE_START:
        escaped = _LINE_START[escaped[0]] + escaped[1:]
    escaped = re.sub(
        r"\n([#*: ])",
        lambda m: "\n" + _LINE_START[m.group(1)],
        escaped,
    )
    escaped = escaped.replace("\n----", "\n&#45;---")
    escaped = escaped.replace("~~~", "~~&#126;")
    escaped = escaped.replace("__", "_&#95;")
    escaped = escaped.replace("://", "&#58;//")
    return re.sub(r"\b(ISBN|RFC|PMID) ", r"\1&#32;", escaped)


def _headings(text: str) -> List[Tuple[int, int]]:
    """(offset, level) of real section headings, ignoring shielded regions."""
    shielded = [(m.start(), m.end()) for m in _SHIELD_RE.finditer(text)]
    headings = []
    for match in _HEADING_RE.finditer(text):
        if any(start <= match.start() < end for start, end in shielded):
            continue
        headings.append((match.start(), len(match.group(1))))
    return headings


def _heading_offsets(text: str) -> List[int]:
    return [offset for offset, _ in _headings(text)]


def _section_span(text: str, section: int) -> Optional[Tuple[int, int]]:
    """
    Start and end offsets of a section, or None when it does not exist.

    A section runs until the next heading of the same or a higher level,
    so it includes its subsections.
    """
    headings = _headings(text)
    if section < 0 or section > len(headings):
        return None
    if section == 0:
        return 0, headings[0][0] if headings else len(text)
    start, level = headings[section - 1]
    for offset, other in headings[section:]:
        if other <= level:
            return start, offset
    return start, len(text)


def count_sections(text: str) -> int:
    """Number of headed sections in the text."""
    return len(_heading_offsets(text or ""))


def split_sections(text: str) -> List[str]:
    """
    Split text at every heading into [lead, section1, section2, ...].

    Pieces do not nest; joining the result gives back the original text.
    """
    text = text or ""
    offsets = _heading_offsets(text)
    bounds = [0] + offsets + [len(text)]
    return [text[bounds[i]:bounds[i + 1]] for i in range(len(bounds) - 1)]


def get_section(text: str, section: int) -> Optional[str]:
    """Return one section's text including its subsections, or None when it does not exist."""
    text = text or ""
    span = _section_span(text, section)
    if span is None:
        return None
    return text[span[0]:span[1]]


def replace_section(text: str, section: int, new_text: str) -> Optional[str]:
    """Replace one section (with its subsections), returning the whole new text or None if missing."""
    text = text or ""
    span = _section_span(text, section)
    if span is None:
        return None
    return text[:span[0]] + new_text + text[span[1]:]


def append_to_section(text: str, section: Optional[int], addition: str) -> Optional[str]:
    """
    Append text to a section, or to the whole page when section is None.

    The appended text lands after the section's existing content and its
    subsections, before the next heading of the same or a higher level.
    Returns None when the section does not exist.
    """
    if section is None:
        return (text or "") + addition
    current = get_section(text, section)
    if current is None:
        return None
    trailing = current[len(current.rstrip("\n")):]
    return replace_section(text, section, current.rstrip("\n") + addition + trailing)
