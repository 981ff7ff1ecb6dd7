"""
Wikispaces Migration - Markup Translator

Converts Wikispaces markup into MediaWiki wikitext and extracts the file
references a page needs before it can be written.

Translation is best-effort: markup that does not match a rule passes
through unchanged and nothing here raises on malformed input.
"""

import re
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Tuple, Union

from .wikitext import escape_wikitext


# Code blocks with an optional language, and ``raw`` segments.
_CODE_RE = re.compile(
    r'\[\[code(?:\s+format="([^"]*)")?\]\](.*?)\[\[code\]\]',
    re.DOTALL | re.IGNORECASE,
)
_RAW_RE = re.compile(r"``(.+?)``", re.DOTALL)
_TOC_RE = re.compile(r"\[\[toc(?:\|[^\]]*)?\]\]", re.IGNORECASE)
_FILE_TOKEN_RE = re.compile(r"\[\[(image|file):(.*?)\]\]", re.IGNORECASE)

# Inline rules, applied in order.
_BOLD_ITALIC_RE = re.compile(r"//\*\*|\*\*//")
_BOLD_RE = re.compile(r"\*\*")
# A "//" directly after ":" is part of a URL scheme.
_ITALIC_RE = re.compile(r"(?<!:)//(.+?)(?<!:)//")
_UNDERLINE_RE = re.compile(r"__(.+?)__")
_MONOSPACE_RE = re.compile(r"\{\{(.+?)\}\}")

_OPTION_RE = re.compile(r'([\w-]+)(?:=(?:"([^"]*)"|(\S*)))?')
_EXTERNAL_RE = re.compile(r"^https?://", re.IGNORECASE)

_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile("\x00(\\d+)\x00")

IMAGE_OPTIONS = ("width", "height", "align", "caption", "link")


class FileReference(NamedTuple):
    name: str
    is_external: bool


def parse_file_markup(markup: str) -> Tuple[str, Dict[str, Union[str, bool]], bool]:
    """
    Split the inside of an image/file token into name, options and external flag.

    The first word always belongs to the name. Following words extend the
    name until the first ``key=value`` option. Option values may be quoted.
    An option without a value is stored as True.
    """
    markup = markup.strip()
    if not markup:
        return "", {}, False

    match = re.match(r"(\S+)(.*)", markup, re.DOTALL)
    name, rest = match.group(1), match.group(2)

    option_start = re.search(r'(?:^|\s)[\w-]+=', rest)
    if option_start is None:
        name = (name + rest).strip()
        rest = ""
    else:
        name = (name + rest[:option_start.start()]).strip()
        rest = rest[option_start.start():]

    options: Dict[str, Union[str, bool]] = {}
    for opt in _OPTION_RE.finditer(rest):
        key, quoted, bare = opt.groups()
        if quoted is not None:
            options[key] = quoted
        elif bare is not None:
            options[key] = bare
        else:
            options[key] = True

    return name, options, bool(_EXTERNAL_RE.match(name))


class MarkupTranslator:
    """
    Stateless Wikispaces to MediaWiki markup translator.

    Example:
        translator = MarkupTranslator()
        translator.translate("**bold**")   # "'''bold'''"
    """

    def translate(self, text: str) -> str:
        """Convert a Wikispaces markup body into wikitext."""
        if not text:
            return text or ""
        # NUL delimits placeholders and is never valid in wikitext.
        text = text.replace("\x00", "")

        shielded: List[str] = []

        def shield(rendered: str) -> str:
            shielded.append(rendered)
            return _PLACEHOLDER.format(len(shielded) - 1)

        text = _CODE_RE.sub(lambda m: shield(self._convert_code(m)), text)
        text = _RAW_RE.sub(lambda m: shield(f"<nowiki>{m.group(1)}</nowiki>"), text)
        text = _TOC_RE.sub("", text)
        text = _FILE_TOKEN_RE.sub(lambda m: shield(self._convert_file_token(m)), text)
        text = self._convert_tables(text)

        text = _BOLD_ITALIC_RE.sub("'''''", text)
        text = _BOLD_RE.sub("'''", text)
        text = _ITALIC_RE.sub(r"''\1''", text)
        text = _UNDERLINE_RE.sub(r"<u>\1</u>", text)
        text = _MONOSPACE_RE.sub(r"<code>\1</code>", text)

        return _PLACEHOLDER_RE.sub(lambda m: shielded[int(m.group(1))], text)

    def extract_references(
        self, text: str, include_external: bool = False
    ) -> List[FileReference]:
        """
        List the files referenced by image/file tokens, in first-seen order.

        Each name appears once. External references are left out unless
        asked for, since only local files need importing.
        """
        if not text:
            return []
        text = _RAW_RE.sub("", _CODE_RE.sub("", text))

        seen = set()
        references = []
        for match in _FILE_TOKEN_RE.finditer(text):
            name, _, is_external = parse_file_markup(match.group(2))
            if not name or name in seen:
                continue
            if is_external and not include_external:
                continue
            seen.add(name)
            references.append(FileReference(name, is_external))
        return references

    # =========================================================================
    # BLOCK RULES
    # =========================================================================

    def _convert_code(self, match: re.Match) -> str:
        lang, body = match.group(1), match.group(2)
        if lang:
            return f'<syntaxhighlight lang="{lang}">{body}</syntaxhighlight>'
        return f"<syntaxhighlight>{body}</syntaxhighlight>"

    def _convert_tables(self, text: str) -> str:
        """Turn each run of lines starting with ``||`` into a wikitable."""
        lines = text.split("\n")
        result = []
        i = 0
        while i < len(lines):
            if not lines[i].lstrip().startswith("||"):
                result.append(lines[i])
                i += 1
                continue
            rows = []
            while i < len(lines) and lines[i].lstrip().startswith("||"):
                rows.append(self._convert_row(lines[i]))
                i += 1
            result.append("{|\n" + "\n|-\n".join(rows) + "\n|}")
        return "\n".join(result)

    def _convert_row(self, line: str) -> str:
        cells = line.strip().strip("|").split("||")
        converted = []
        for cell in cells:
            stripped = cell.strip()
            if stripped.startswith("~"):
                # Header cells become bold.
                cell = f"'''{stripped[1:].strip()}'''"
            converted.append(cell)
        return "|" + "||".join(converted)

    # =========================================================================
    # IMAGES & FILES
    # =========================================================================

    def _convert_file_token(self, match: re.Match) -> str:
        kind = match.group(1).lower()
        name, options, is_external = parse_file_markup(match.group(2))
        if not name:
            return match.group(0)
        if kind == "image":
            return self.convert_image(name, options, is_external)
        return self.convert_file_link(name, options, is_external)

    def convert_image(self, name: str, options: Dict, is_external: bool) -> str:
        """Render an image token. External images become plain links."""
        opts = {key: options.get(key) or "" for key in IMAGE_OPTIONS}
        for key, value in opts.items():
            if value is True:
                opts[key] = ""

        if is_external:
            caption = opts["caption"] or "External image"
            return f"[{name} {caption}]"

        params = ""
        width, height = opts["width"], opts["height"]
        if width and not height:
            params += f"|{width}px"
        elif height and not width:
            params += f"|x{height}px"
        elif width and height:
            params += f"|{width}x{height}px"
        if opts["align"]:
            params += f"|{opts['align']}"
        if opts["link"]:
            params += f"|link={opts['link']}"
        if opts["caption"]:
            params += f"|{opts['caption']}"
        return f"[[File:{name}{params}]]"

    def convert_file_link(self, name: str, options: Dict, is_external: bool) -> str:
        caption = options.get("caption")
        if caption is True:
            caption = ""
        if is_external:
            return f"[{name} {caption or 'External file'}]"
        if caption:
            return f"[[:File:{name}|{caption}]]"
        return f"[[:File:{name}]]"

    # =========================================================================
    # DISCUSSIONS & TAGS
    # =========================================================================

    def signature(self, username: str, timestamp: int) -> str:
        when = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        return f" --[[User:{username}|{username}]] ([[User talk:{username}|talk]]) {when}"

    def render_topic(self, subject: str, body: str, username: str, timestamp: int) -> str:
        """Wikitext for a post opening a new talk page section."""
        return (
            f"\n== {escape_wikitext(subject)} ==\n"
            + self.translate(body)
            + self.signature(username, timestamp)
        )

    def render_reply(self, body: str, username: str, timestamp: int) -> str:
        """Wikitext for a post continuing an existing section."""
        return "\n\n" + self.translate(body) + self.signature(username, timestamp)

    def render_tags(self, names: List[str]) -> str:
        return "\n" + "".join(f"[[Category:{name}]]" for name in names)
