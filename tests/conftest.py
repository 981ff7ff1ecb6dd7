"""
Shared fakes for the importer tests.

The fakes keep everything in memory and record every call so tests can
assert on the exact remote fetches and target writes.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from wikispaces_migration.api import CallResult, RemoteFault
from wikispaces_migration.cache import RemoteRecordCache
from wikispaces_migration.discussion import DiscussionImporter
from wikispaces_migration.downloader import DownloadError
from wikispaces_migration.importer import AuthorResolver, RevisionImporter
from wikispaces_migration.markup import MarkupTranslator
from wikispaces_migration.models import (
    RemoteAuthSource, RemoteMessage, RemotePage, RemoteTag, RemoteUser,
)
from wikispaces_migration.policy import ConflictPolicy, WriteMode
from wikispaces_migration.target import (
    ContentModelError, ExistingRevision, FileImportResult, Identity,
    SectionNotFoundError, TargetWriteError, normalize_title, talk_title,
)
from wikispaces_migration import wikitext


NOW = 1_600_000_000


def make_page(name="Home", page_id=1, version_id=10, content="", comment="", date_created=1000,
              username="alice", user_id=7) -> RemotePage:
    return RemotePage(
        id=page_id,
        name=name,
        version_id=version_id,
        latest_version=version_id,
        comment=comment,
        content=content,
        date_created=date_created,
        user_id=user_id,
        username=username,
    )


def make_message(msg_id, subject="", body="", topic_id=None, date_created=1000,
                 username="bob", user_id=8) -> RemoteMessage:
    return RemoteMessage(
        id=msg_id,
        subject=subject,
        body=body,
        topic_id=topic_id if topic_id is not None else msg_id,
        date_created=date_created,
        user_id=user_id,
        username=username,
    )


def fault(call, message, code="Server") -> RemoteFault:
    return RemoteFault(code=code, message=message, call=call)


class FakeRemoteApi:
    """In-memory stand-in for WikispacesApi."""

    def __init__(self):
        # page name -> versions in listing order (content filled)
        self.versions: Dict[str, List[RemotePage]] = {}
        self.tags: Dict[int, List[RemoteTag]] = {}
        self.topics: Dict[int, List[RemoteMessage]] = {}
        self.replies: Dict[int, object] = {}  # topic id -> list or RemoteFault
        self.users: List[RemoteUser] = []
        self.auth_sources: List[RemoteAuthSource] = []
        self.faults: Dict[str, RemoteFault] = {}
        self.calls: List[tuple] = []

    def add_page(self, *versions: RemotePage) -> None:
        self.versions.setdefault(versions[0].name, []).extend(versions)

    def _result(self, call, value):
        if call in self.faults:
            return CallResult(fault=self.faults[call])
        return CallResult(value=value)

    def _meta(self, page: RemotePage) -> RemotePage:
        return RemotePage(
            id=page.id, name=page.name, version_id=page.version_id,
            latest_version=page.latest_version, comment=page.comment,
            date_created=page.date_created, user_id=page.user_id, username=page.username,
        )

    def list_pages(self):
        self.calls.append(("list_pages",))
        return self._result("listPages", [self._meta(v[-1]) for v in self.versions.values()])

    def get_page(self, name):
        self.calls.append(("get_page", name))
        if name not in self.versions:
            return CallResult(fault=fault("getPage", "Invalid Object"))
        return self._result("getPage", self._meta(self.versions[name][-1]))

    def list_versions(self, name):
        self.calls.append(("list_versions", name))
        return self._result("listPageVersions", [self._meta(v) for v in self.versions.get(name, [])])

    def get_revision(self, name, version=None):
        self.calls.append(("get_revision", name, version))
        pages = self.versions.get(name, [])
        if version is None and pages:
            return self._result("getPageWithVersion", pages[-1])
        for page in pages:
            if page.version_id == version:
                return self._result("getPageWithVersion", page)
        return CallResult(fault=fault("getPageWithVersion", "Invalid Object"))

    def list_tags(self, page_id):
        self.calls.append(("list_tags", page_id))
        return self._result("listTagsForPage", self.tags.get(page_id, []))

    def list_topics(self, page_id):
        self.calls.append(("list_topics", page_id))
        return self._result("listTopics", self.topics.get(page_id, []))

    def list_replies(self, topic_id):
        self.calls.append(("list_replies", topic_id))
        replies = self.replies.get(topic_id, [])
        if isinstance(replies, RemoteFault):
            return CallResult(fault=replies)
        return self._result("listMessagesInTopic", replies)

    def list_users(self):
        self.calls.append(("list_users",))
        return self._result("listUsers", self.users)

    def list_auth_sources(self):
        self.calls.append(("list_auth_sources",))
        return self._result("listAuthSources", self.auth_sources)


class FakeDownloader:
    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files = files or {}
        self.calls: List[str] = []

    def download_file(self, name: str) -> bytes:
        self.calls.append(name)
        if name not in self.files:
            raise DownloadError("HTTP 404: Not Found", f"https://space/{name}", status_code=404)
        return self.files[name]


class FakeTargetStore:
    """
    In-memory TargetStore.

    ``pages`` maps titles to their revisions (oldest first); each revision is
    a dict with text, author, summary and timestamp.
    """

    def __init__(self):
        self.pages: Dict[str, List[dict]] = {}
        self.models: Dict[str, str] = {}
        self.touched: Dict[str, int] = {}
        self.users: Dict[str, Identity] = {}
        self.invalid_users = set()
        self.files: Dict[str, bytes] = {}
        self.file_authors: Dict[str, str] = {}
        self.fail_writes = set()
        self.fail_files = set()
        self.user_checks: List[tuple] = []
        self.file_imports: List[str] = []
        self.writes: List[dict] = []

    def seed(self, title, text, timestamp=500, author="Someone", touched=None, model="wikitext"):
        self.pages.setdefault(title, []).append(
            {"text": text, "author": author, "summary": "", "timestamp": timestamp}
        )
        self.models[title] = model
        if touched is not None:
            self.touched[title] = touched

    def text(self, title) -> Optional[str]:
        revisions = self.pages.get(title)
        return revisions[-1]["text"] if revisions else None

    def resolve_title(self, name):
        return normalize_title(name)

    def talk_title(self, title):
        return talk_title(title)

    def current_revision(self, title):
        revisions = self.pages.get(title)
        if not revisions:
            return None
        latest = revisions[-1]
        return ExistingRevision(
            content=latest["text"],
            timestamp=latest["timestamp"],
            touched=self.touched.get(title, latest["timestamp"]),
            content_model=self.models.get(title, "wikitext"),
        )

    def write_revision(self, title, text, author, summary, timestamp):
        if title in self.fail_writes:
            raise TargetWriteError(f"Import of {title} rejected", title=title)
        revision = {"text": text, "author": author.name, "summary": summary, "timestamp": timestamp}
        self.pages.setdefault(title, []).append(revision)
        self.writes.append(dict(revision, title=title))

    def append_to_section(self, title, section, text, author, summary, timestamp):
        existing = self.current_revision(title)
        if existing is not None and not existing.is_text:
            raise ContentModelError(f"{title} is not wikitext", title=title)
        if existing is None and section is not None:
            raise SectionNotFoundError(f"{title} does not exist", title=title)
        updated = wikitext.append_to_section(existing.content if existing else "", section, text)
        if updated is None:
            raise SectionNotFoundError(f"Section {section} not found", title=title)
        self.write_revision(title, updated, author, summary, timestamp)

    def ensure_user(self, username, external_id, allow_create):
        self.user_checks.append((username, external_id, allow_create))
        if username in self.invalid_users:
            return None
        if username in self.users:
            return self.users[username]
        if not allow_create:
            return None
        identity = Identity(name=username, created=True)
        self.users[username] = identity
        return identity

    def import_file(self, local_path, author, overwrite):
        name = Path(local_path).name
        title = f"File:{name}"
        self.file_imports.append(name)
        if name in self.fail_files:
            raise TargetWriteError(f"Upload of {name} failed", title=title)
        if name in self.files and not overwrite:
            return FileImportResult(title=title, skipped=True)
        self.files[name] = Path(local_path).read_bytes()
        self.file_authors[name] = author.name
        return FileImportResult(title=title)


@pytest.fixture
def remote_api():
    return FakeRemoteApi()


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def store():
    return FakeTargetStore()


@pytest.fixture
def cache(remote_api, downloader, tmp_path):
    return RemoteRecordCache(remote_api, downloader, str(tmp_path / "cache"))


@pytest.fixture
def authors(store):
    return AuthorResolver(store, "Wikispaces importer")


def build_revision_importer(store, cache, authors, mode=WriteMode.NEVER, use_timestamp=False):
    return RevisionImporter(
        store=store,
        cache=cache,
        translator=MarkupTranslator(),
        policy=ConflictPolicy(mode=mode, use_timestamp=use_timestamp),
        authors=authors,
        clock=lambda: NOW,
    )


@pytest.fixture
def revision_importer(store, cache, authors):
    return build_revision_importer(store, cache, authors)


@pytest.fixture
def discussion_importer(remote_api, store, authors):
    return DiscussionImporter(
        api=remote_api,
        store=store,
        translator=MarkupTranslator(),
        authors=authors,
        clock=lambda: NOW,
    )
