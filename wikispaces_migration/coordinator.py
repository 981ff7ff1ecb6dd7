"""
Wikispaces Migration - Batch Coordinator

Drives page, space and user imports and folds every per-item outcome into
one run-level report.
"""

import logging
from typing import Dict, List

from .api import WikispacesApi
from .cache import RemoteRecordCache
from .discussion import DiscussionImporter
from .importer import AuthorResolver, RevisionImporter
from .models import RemoteAuthSource, RemotePage
from .outcome import ImportCode, ImportOutcome
from .target import TargetError


logger = logging.getLogger(__name__)


class BatchCoordinator:
    """
    Top-level import orchestration.

    Per-item problems are recorded in the returned outcome. Only remote
    faults that are not known to be benign propagate (as
    WikispacesAPIError) and abort the run.

    Example:
        coordinator = BatchCoordinator(api, cache, revisions, discussions, authors)
        outcome = coordinator.import_all_pages(with_history=True)
        print(outcome.summary())
    """

    def __init__(
        self,
        api: WikispacesApi,
        cache: RemoteRecordCache,
        revisions: RevisionImporter,
        discussions: DiscussionImporter,
        authors: AuthorResolver,
        with_tags: bool = True,
        with_comments: bool = True,
    ):
        self.api = api
        self.cache = cache
        self.revisions = revisions
        self.discussions = discussions
        self.authors = authors
        self.with_tags = with_tags
        self.with_comments = with_comments

    def import_all_pages(self, with_history: bool = False) -> ImportOutcome:
        """Import every page of the space; no page failure stops the run."""
        outcome = ImportOutcome()
        pages = self.cache.get_all_pages()
        for i, page in enumerate(pages, 1):
            logger.info(f"[{i}/{len(pages)}] {page.name}")
            outcome.merge(self.import_page(page.name, with_history))
        return outcome

    def import_page(self, name: str, with_history: bool = False) -> ImportOutcome:
        """
        Import one page, optionally with its full history, then its tags
        and discussion.

        Versions are imported in the order the remote listing returns them.
        Tags and discussion are only imported when at least one revision was
        written.
        """
        outcome = ImportOutcome()
        page = self.cache.get_page(name)

        if with_history:
            versions = self.api.list_versions(name).unwrap()
        else:
            versions = [page]

        if not versions:
            logger.warning(f"No versions found for {name}")
            return outcome.record(ImportCode.NO_VERSIONS, name)

        for version in versions:
            outcome.merge(self.import_revision(version))

        if outcome.count(ImportCode.CREATED, ImportCode.UPDATED) == 0:
            return outcome

        if self.with_tags:
            tags = self.api.list_tags(page.id).unwrap()
            if tags:
                outcome.merge(self.revisions.import_footer(name, [tag.name for tag in tags]))

        if self.with_comments:
            outcome.merge(self.discussions.import_discussion(page.id, page.name))

        return outcome

    def import_revision(self, version: RemotePage) -> ImportOutcome:
        """Fetch a version's content and import it."""
        revision = self.api.get_revision(version.name, version.version_id).unwrap()
        return self.revisions.import_revision(revision)

    def import_users(self) -> ImportOutcome:
        """
        Make sure every Wikispaces user exists on the target.

        Run this before importing pages so revisions attribute to real users.
        """
        outcome = ImportOutcome()
        auth_sources: Dict[int, RemoteAuthSource] = {
            source.id: source for source in self.api.list_auth_sources().unwrap()
        }
        users = self.api.list_users().unwrap()
        logger.info(f"Found {len(users)} users, {len(auth_sources)} auth sources")

        for user in users:
            source = auth_sources.get(user.auth_source_id)
            if source is not None and not source.is_active:
                logger.debug(f"{user.username} uses disabled auth source {source.name}")
            try:
                identity = self.authors.store.ensure_user(user.username, user.id, allow_create=True)
            except TargetError as e:
                logger.error(f"Failed to import user {user.username}: {e}")
                outcome.record(ImportCode.USER_FAILED, f"{user.username}: {e}")
                continue
            if identity is None:
                logger.error(f"Failed to import user {user.username}")
                outcome.record(ImportCode.USER_FAILED, user.username)
            else:
                outcome.record(ImportCode.USER_IMPORTED, identity.name)
        return outcome

    def list_pages(self) -> List[RemotePage]:
        return self.cache.get_all_pages()
