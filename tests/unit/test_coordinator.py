"""
Unit tests for BatchCoordinator.
"""

import pytest

from conftest import build_revision_importer, fault, make_message, make_page
from wikispaces_migration.api import CallResult, WikispacesAPIError
from wikispaces_migration.coordinator import BatchCoordinator
from wikispaces_migration.models import RemoteAuthSource, RemoteTag, RemoteUser
from wikispaces_migration.outcome import ImportCode
from wikispaces_migration.policy import WriteMode


def make_coordinator(remote_api, cache, revisions, discussions, authors, **kwargs):
    return BatchCoordinator(
        api=remote_api,
        cache=cache,
        revisions=revisions,
        discussions=discussions,
        authors=authors,
        **kwargs,
    )


@pytest.fixture
def coordinator(remote_api, cache, revision_importer, discussion_importer, authors):
    return make_coordinator(remote_api, cache, revision_importer, discussion_importer, authors)


@pytest.fixture
def history_page(remote_api):
    remote_api.add_page(
        make_page(version_id=10, content="first", comment="v1", date_created=1000),
        make_page(version_id=11, content="second", comment="v2", date_created=2000),
    )
    return remote_api


class TestImportPage:
    """Tests for importing a single page."""

    def test_latest_version_only(self, history_page, store, coordinator):
        outcome = coordinator.import_page("Home")

        assert outcome.count(ImportCode.CREATED) == 1
        assert store.text("Home") == "second"
        assert ("get_revision", "Home", 11) in history_page.calls
        assert ("list_versions", "Home") not in history_page.calls

    def test_full_history_in_listing_order(
        self, history_page, store, cache, authors, discussion_importer
    ):
        revisions = build_revision_importer(
            store, cache, authors, mode=WriteMode.ALWAYS, use_timestamp=True
        )
        coordinator = make_coordinator(history_page, cache, revisions, discussion_importer, authors)

        outcome = coordinator.import_page("Home", with_history=True)

        assert outcome.count(ImportCode.CREATED) == 1
        assert outcome.count(ImportCode.UPDATED) == 1
        assert [w["text"] for w in store.writes] == ["first", "second"]
        assert [w["summary"] for w in store.writes] == [
            "Imported from Wikispaces: v1",
            "Imported from Wikispaces: v2",
        ]
        assert [w["timestamp"] for w in store.writes] == [1000, 2000]

    def test_history_with_never_mode_keeps_first(self, history_page, store, coordinator):
        outcome = coordinator.import_page("Home", with_history=True)

        assert outcome.count(ImportCode.CREATED) == 1
        assert outcome.count(ImportCode.TITLE_EXISTS) == 1
        assert store.text("Home") == "first"

    def test_no_versions(self, history_page, coordinator):
        history_page.list_versions = lambda name: CallResult(value=[])

        outcome = coordinator.import_page("Home", with_history=True)

        assert outcome.entries == [(ImportCode.NO_VERSIONS, "Home")]

    def test_tags_and_comments_after_success(self, history_page, store, coordinator):
        history_page.tags[1] = [RemoteTag(id=1, name="Math"), RemoteTag(id=2, name="Physics")]
        history_page.topics[1] = [make_message(4, subject="Question", body="Hello")]

        outcome = coordinator.import_page("Home")

        assert outcome.count(ImportCode.FOOTER_IMPORTED) == 1
        assert outcome.count(ImportCode.TALK_EDIT_IMPORTED) == 1
        assert store.text("Home") == "second\n[[Category:Math]][[Category:Physics]]"
        assert "== Question ==" in store.text("Talk:Home")

    def test_nothing_written_skips_tags_and_comments(self, history_page, store, coordinator):
        store.seed("Home", "already here")
        history_page.tags[1] = [RemoteTag(id=1, name="Math")]

        outcome = coordinator.import_page("Home")

        assert outcome.entries == [(ImportCode.TITLE_EXISTS, "Home")]
        assert ("list_tags", 1) not in history_page.calls
        assert ("list_topics", 1) not in history_page.calls

    def test_tags_and_comments_disabled(
        self, history_page, cache, revision_importer, discussion_importer, authors
    ):
        coordinator = make_coordinator(
            history_page, cache, revision_importer, discussion_importer, authors,
            with_tags=False, with_comments=False,
        )

        coordinator.import_page("Home")

        assert ("list_tags", 1) not in history_page.calls
        assert ("list_topics", 1) not in history_page.calls

    def test_revision_fault_aborts(self, history_page, coordinator):
        history_page.faults["getPageWithVersion"] = fault("getPageWithVersion", "Session expired")

        with pytest.raises(WikispacesAPIError):
            coordinator.import_page("Home")

    def test_tag_fault_aborts(self, history_page, coordinator):
        history_page.faults["listTagsForPage"] = fault("listTagsForPage", "Session expired")

        with pytest.raises(WikispacesAPIError):
            coordinator.import_page("Home")

    def test_unknown_page_aborts(self, remote_api, coordinator):
        with pytest.raises(WikispacesAPIError):
            coordinator.import_page("Nope")


class TestImportAllPages:
    """Tests for whole-space imports."""

    def test_imports_every_page(self, remote_api, store, coordinator):
        remote_api.add_page(make_page("Home", page_id=1, content="home"))
        remote_api.add_page(make_page("About", page_id=2, content="about"))

        outcome = coordinator.import_all_pages()

        assert outcome.summary() == "2 succeeded, 0 skipped, 0 failed"
        assert store.text("Home") == "home"
        assert store.text("About") == "about"
        assert remote_api.calls.count(("list_pages",)) == 1
        # The listing fills the cache, so no per-page metadata lookups
        assert not any(call[0] == "get_page" for call in remote_api.calls)

    def test_failed_page_does_not_stop_run(self, remote_api, store, coordinator):
        remote_api.add_page(make_page("a|b", page_id=1, content="bad"))
        remote_api.add_page(make_page("About", page_id=2, content="about"))

        outcome = coordinator.import_all_pages()

        assert outcome.count(ImportCode.INVALID_TITLE) == 1
        assert outcome.count(ImportCode.CREATED) == 1
        assert not outcome.ok

    def test_listing_fault_aborts(self, remote_api, coordinator):
        remote_api.faults["listPages"] = fault("listPages", "Invalid login")

        with pytest.raises(WikispacesAPIError):
            coordinator.import_all_pages()

    def test_list_pages(self, remote_api, coordinator):
        remote_api.add_page(make_page("Home", page_id=1))
        assert [p.name for p in coordinator.list_pages()] == ["Home"]


class TestImportUsers:
    """Tests for user imports."""

    def test_creates_users(self, remote_api, store, coordinator):
        remote_api.auth_sources = [RemoteAuthSource(id=1, name="Wikispaces", status="A")]
        remote_api.users = [
            RemoteUser(id=7, username="alice", auth_source_id=1),
            RemoteUser(id=8, username="bob"),
        ]

        outcome = coordinator.import_users()

        assert outcome.count(ImportCode.USER_IMPORTED) == 2
        assert set(store.users) == {"alice", "bob"}
        assert ("alice", 7, True) in store.user_checks

    def test_invalid_user_is_recorded(self, remote_api, store, coordinator):
        remote_api.users = [RemoteUser(id=9, username="bad<name>")]
        store.invalid_users.add("bad<name>")

        outcome = coordinator.import_users()

        assert outcome.entries == [(ImportCode.USER_FAILED, "bad<name>")]

    def test_listing_fault_aborts(self, remote_api, coordinator):
        remote_api.faults["listUsers"] = fault("listUsers", "Permission denied")

        with pytest.raises(WikispacesAPIError):
            coordinator.import_users()
