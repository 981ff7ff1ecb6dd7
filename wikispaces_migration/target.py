"""
Wikispaces Migration - Target Store

The storage interface the importers write through, its value types, title
rules, and the MediaWiki implementation built on mwclient.
"""

import io
import logging
import re
import secrets
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol
from urllib.parse import urlparse
from xml.sax.saxutils import escape

import mwclient
import requests
from mwclient.errors import APIError, FileExists

from . import wikitext
from .policy import ExistingState


logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class TargetError(Exception):
    """Base class for target store failures."""

    def __init__(self, message: str, title: Optional[str] = None):
        super().__init__(message)
        self.title = title


class InvalidTitleError(TargetError):
    """A name cannot be turned into a valid target title."""


class SectionNotFoundError(TargetError):
    """The section to append to does not exist."""


class ContentModelError(TargetError):
    """The page to append to does not hold wikitext."""


class TargetWriteError(TargetError):
    """The target rejected a write."""


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class Identity:
    """A user on the target wiki."""
    name: str
    user_id: Optional[int] = None
    created: bool = False


@dataclass(frozen=True)
class ExistingRevision:
    """The latest revision of a title on the target."""
    content: str
    timestamp: int
    touched: int
    content_model: str = "wikitext"

    @property
    def is_text(self) -> bool:
        return self.content_model == "wikitext"

    def state(self) -> ExistingState:
        return ExistingState(timestamp=self.timestamp, touched=self.touched, is_text=self.is_text)


@dataclass(frozen=True)
class FileImportResult:
    title: str
    skipped: bool = False


class TargetStore(Protocol):
    """Everything the importers need from the target wiki."""

    def resolve_title(self, name: str) -> str:
        """Return the target title for a page name or raise InvalidTitleError."""

    def talk_title(self, title: str) -> str:
        """Return the discussion page title for a title."""

    def current_revision(self, title: str) -> Optional[ExistingRevision]:
        """Return the latest revision, or None when the title does not exist."""

    def write_revision(
        self, title: str, text: str, author: Identity, summary: str, timestamp: int
    ) -> None:
        """Write a full revision. Raises TargetWriteError."""

    def append_to_section(
        self,
        title: str,
        section: Optional[int],
        text: str,
        author: Identity,
        summary: str,
        timestamp: int,
    ) -> None:
        """Append to a section (None = whole page) by read-modify-write."""

    def ensure_user(
        self, username: str, external_id: Optional[int], allow_create: bool
    ) -> Optional[Identity]:
        """Look up (and optionally create) a user. None when unavailable."""

    def import_file(self, local_path: Path, author: Identity, overwrite: bool) -> FileImportResult:
        """Publish a local file under its base name."""


# =============================================================================
# TITLES
# =============================================================================

MAX_TITLE_BYTES = 255
_FORBIDDEN_TITLE_RE = re.compile(r"[<>\[\]{}|\x00-\x1f\x7f]|~~~")
_NAMESPACES = ("User", "Project", "File", "MediaWiki", "Template", "Help", "Category")


def normalize_title(name: str) -> str:
    """
    Turn a Wikispaces page name into a target title.

    ``#`` would start a fragment, so it is replaced with a lookalike.

    Raises:
        InvalidTitleError: When no valid title can be derived
    """
    if name is None:
        raise InvalidTitleError("Empty title", title=name)
    title = unicodedata.normalize("NFC", name).replace("_", " ")
    title = re.sub(r"\s+", " ", title).strip()
    title = title.replace("#", "＃")

    if not title:
        raise InvalidTitleError("Empty title", title=name)
    if _FORBIDDEN_TITLE_RE.search(title):
        raise InvalidTitleError(f"Title contains illegal characters: {name!r}", title=name)
    if title in (".", "..") or title.startswith(("./", "../")) or "/./" in title or "/../" in title:
        raise InvalidTitleError(f"Relative path title: {name!r}", title=name)
    if title.startswith(":"):
        raise InvalidTitleError(f"Title starts with a colon: {name!r}", title=name)
    if len(title.encode("utf-8")) > MAX_TITLE_BYTES:
        raise InvalidTitleError(f"Title too long: {name!r}", title=name)

    return title[0].upper() + title[1:]


def talk_title(title: str) -> str:
    namespace, sep, rest = title.partition(":")
    if sep and namespace in _NAMESPACES:
        return f"{namespace} talk:{rest}"
    return f"Talk:{title}"


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _unix(value: Optional[str]) -> int:
    if not value:
        return 0
    parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def build_import_xml(title: str, text: str, username: str, summary: str, timestamp: int) -> bytes:
    """Build a one-revision export document for ``action=import``."""
    parts = [
        '<?xml version="1.0"?>',
        '<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.11/" '
        'version="0.11" xml:lang="en">',
        f"  <page><title>{escape(title)}</title>",
        "    <revision>",
        f"      <timestamp>{_iso(timestamp)}</timestamp>",
        f"      <contributor><username>{escape(username)}</username></contributor>",
        f"      <comment>{escape(summary)}</comment>",
        "      <model>wikitext</model><format>text/x-wiki</format>",
        f'      <text xml:space="preserve">{escape(text)}</text>',
        "    </revision>",
        "  </page></mediawiki>",
    ]
    return "\n".join(parts).encode("utf-8")


# =============================================================================
# MEDIAWIKI
# =============================================================================

class MediaWikiTarget:
    """
    TargetStore backed by a MediaWiki API through mwclient.

    Revisions are written with ``action=import`` so author and timestamp are
    kept. The account needs the ``import`` and ``createaccount`` rights.

    Example:
        target = MediaWikiTarget("https://wiki.example.org/w/", "Bot", "secret")
        target.current_revision("Main Page")
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        interwiki_prefix: str = "wikispaces",
        site: Optional[mwclient.Site] = None,
        timeout: int = 60,
    ):
        parsed = urlparse(url if "://" in url else f"https://{url}")
        self.scheme = parsed.scheme or "https"
        self.host = parsed.netloc
        self.path = parsed.path if parsed.path.endswith("/") else parsed.path + "/"
        if self.path.endswith("api.php/"):
            self.path = self.path[: -len("api.php/")]
        self.username = username
        self.password = password
        self.interwiki_prefix = interwiki_prefix
        self.timeout = timeout
        self._site = site
        self._users: Dict[str, Optional[Identity]] = {}

    @property
    def api_url(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}api.php"

    @property
    def site(self) -> mwclient.Site:
        if self._site is None:
            logger.info(f"Connecting to {self.api_url}")
            self._site = mwclient.Site(
                self.host, path=self.path, scheme=self.scheme,
                reqs={"timeout": self.timeout},
            )
            if self.username:
                self._site.login(self.username, self.password)
        return self._site

    def test_connection(self) -> bool:
        """Read site info; raises TargetError on failure."""
        try:
            info = self.site.api("query", meta="siteinfo", siprop="general")
        except (APIError, requests.RequestException) as e:
            raise TargetError(f"Cannot reach {self.api_url}: {e}")
        name = info.get("query", {}).get("general", {}).get("sitename", "?")
        logger.info(f"Connection test successful for {name}")
        return True

    # =========================================================================
    # TITLES & REVISIONS
    # =========================================================================

    def resolve_title(self, name: str) -> str:
        return normalize_title(name)

    def talk_title(self, title: str) -> str:
        return talk_title(title)

    def current_revision(self, title: str) -> Optional[ExistingRevision]:
        try:
            result = self.site.api(
                "query",
                prop="revisions|info",
                titles=title,
                rvprop="content|timestamp|contentmodel",
                rvslots="main",
                formatversion=2,
            )
        except (APIError, requests.RequestException) as e:
            raise TargetError(f"Cannot read {title}: {e}", title=title)

        pages = result.get("query", {}).get("pages", [])
        if not pages:
            return None
        page = pages[0]
        if page.get("invalid"):
            raise InvalidTitleError(page.get("invalidreason", "invalid title"), title=title)
        if page.get("missing") or not page.get("revisions"):
            return None

        revision = page["revisions"][0]
        slot = revision.get("slots", {}).get("main", {})
        return ExistingRevision(
            content=slot.get("content", ""),
            timestamp=_unix(revision.get("timestamp")),
            touched=_unix(page.get("touched")),
            content_model=slot.get("contentmodel", "wikitext"),
        )

    def write_revision(
        self, title: str, text: str, author: Identity, summary: str, timestamp: int
    ) -> None:
        xml_bytes = build_import_xml(title, text, author.name, summary, timestamp)
        files = {"xml": ("import.xml", io.BytesIO(xml_bytes), "text/xml")}
        try:
            data = {
                "action": "import",
                "format": "json",
                "token": self.site.get_token("csrf"),
                "interwikiprefix": self.interwiki_prefix,
                "assignknownusers": "1",
            }
            response = self.site.connection.post(
                self.api_url, data=data, files=files, timeout=self.timeout
            )
            response.raise_for_status()
            result = response.json()
        except (APIError, requests.RequestException, ValueError) as e:
            raise TargetWriteError(f"Import request failed for {title}: {e}", title=title)

        if "error" in result:
            error = result["error"]
            raise TargetWriteError(
                f"Import API error [{error.get('code')}]: {error.get('info')}", title=title
            )
        imported = result.get("import", [])
        if not any(entry.get("revisions", 0) > 0 for entry in imported):
            raise TargetWriteError(f"No revision imported for {title}", title=title)
        logger.debug(f"Imported revision of {title} by {author.name} at {_iso(timestamp)}")

    def append_to_section(
        self,
        title: str,
        section: Optional[int],
        text: str,
        author: Identity,
        summary: str,
        timestamp: int,
    ) -> None:
        existing = self.current_revision(title)
        if existing is not None and not existing.is_text:
            raise ContentModelError(f"{title} holds {existing.content_model}", title=title)
        if existing is None and section is not None:
            raise SectionNotFoundError(f"{title} does not exist", title=title)

        current = existing.content if existing is not None else ""
        updated = wikitext.append_to_section(current, section, text)
        if updated is None:
            raise SectionNotFoundError(f"Section {section} not found in {title}", title=title)
        self.write_revision(title, updated, author, summary, timestamp)

    # =========================================================================
    # USERS
    # =========================================================================

    def ensure_user(
        self, username: str, external_id: Optional[int], allow_create: bool
    ) -> Optional[Identity]:
        if not username:
            return None
        name = username[0].upper() + username[1:]
        if name in self._users and (self._users[name] is not None or not allow_create):
            return self._users[name]

        try:
            result = self.site.api("query", list="users", ususers=name, formatversion=2)
        except (APIError, requests.RequestException) as e:
            raise TargetError(f"Cannot look up user {name}: {e}")

        users = result.get("query", {}).get("users", [])
        info = users[0] if users else {"missing": True}
        if info.get("invalid"):
            logger.warning(f"Invalid username '{username}' (Wikispaces ID: {external_id})")
            self._users[name] = None
            return None
        if not info.get("missing"):
            identity = Identity(name=info.get("name", name), user_id=info.get("userid"))
            self._users[name] = identity
            return identity
        if not allow_create:
            return None

        identity = self._create_account(name, external_id)
        self._users[name] = identity
        return identity

    def _create_account(self, name: str, external_id: Optional[int]) -> Optional[Identity]:
        password = secrets.token_urlsafe(24)
        try:
            result = self.site.post(
                "createaccount",
                username=name,
                password=password,
                retype=password,
                createtoken=self.site.get_token("createaccount"),
                createreturnurl=self.api_url,
            )
        except (APIError, requests.RequestException) as e:
            logger.error(f"Failed to create user {name}: {e}")
            return None

        status = result.get("createaccount", {})
        if status.get("status") != "PASS":
            logger.error(f"Failed to create user {name}: {status.get('message', status.get('status'))}")
            return None
        logger.info(f"Created user {name} (Wikispaces ID: {external_id})")
        return Identity(name=status.get("username", name), created=True)

    # =========================================================================
    # FILES
    # =========================================================================

    def import_file(self, local_path: Path, author: Identity, overwrite: bool) -> FileImportResult:
        local_path = Path(local_path)
        base_name = unicodedata.normalize("NFC", local_path.name)
        title = f"File:{normalize_title(base_name)}"

        try:
            exists = not overwrite and self.site.images[title.split(":", 1)[1]].exists
        except (APIError, requests.RequestException) as e:
            raise TargetWriteError(f"Cannot check whether {base_name} exists: {e}", title=title)
        if exists:
            logger.info(f"{base_name} exists, skipping")
            return FileImportResult(title=title, skipped=True)

        try:
            with open(local_path, "rb") as fh:
                result = self.site.upload(
                    fh,
                    filename=base_name,
                    description=f"Originally uploaded by [[User:{author.name}]]",
                    ignore=overwrite,
                )
        except FileExists:
            logger.info(f"{base_name} exists, skipping")
            return FileImportResult(title=title, skipped=True)
        except (APIError, requests.RequestException, OSError) as e:
            raise TargetWriteError(f"Upload of {base_name} failed: {e}", title=title)

        outcome = (result or {}).get("result")
        if outcome == "Warning":
            warnings = result.get("warnings", {})
            if "exists" in warnings or "duplicate" in warnings or "fileexists-no-change" in warnings:
                logger.info(f"{base_name} exists with same content, skipping")
                return FileImportResult(title=title, skipped=True)
            raise TargetWriteError(f"Upload of {base_name} returned warnings: {warnings}", title=title)
        if outcome not in (None, "Success"):
            raise TargetWriteError(f"Upload of {base_name} failed: {outcome}", title=title)
        return FileImportResult(title=title)
