"""
Wikispaces Migration - Revision Importer

Writes single page revisions, their attachments and the tag footer to the
target store, applying the conflict policy.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from .cache import RemoteRecordCache
from .downloader import DownloadError
from .markup import MarkupTranslator
from .models import RemotePage
from .outcome import ImportCode, ImportOutcome
from .policy import ConflictPolicy, DecisionKind, WriteMode
from .target import (
    ContentModelError, Identity, InvalidTitleError, SectionNotFoundError,
    TargetError, TargetStore,
)


logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Imported from Wikispaces: {comment}"
DEFAULT_FOOTER_SUMMARY = "[Importing page metadata from Wikispaces]"
DEFAULT_IMPORTER_USERNAME = "Wikispaces importer"


class AuthorResolver:
    """
    Maps Wikispaces authors to target identities.

    When an author cannot be resolved, edits are attributed to the importer
    account instead.
    """

    def __init__(self, store: TargetStore, importer_username: str = DEFAULT_IMPORTER_USERNAME):
        self.store = store
        self.importer_username = importer_username
        self._importer: Optional[Identity] = None

    def importer_identity(self) -> Identity:
        if self._importer is None:
            try:
                identity = self.store.ensure_user(self.importer_username, None, allow_create=True)
            except TargetError as e:
                logger.warning(f"Cannot ensure importer account {self.importer_username}: {e}")
                identity = None
            self._importer = identity or Identity(name=self.importer_username)
        return self._importer

    def resolve(
        self, username: Optional[str], external_id: Optional[int], allow_create: bool
    ) -> Identity:
        if username:
            try:
                identity = self.store.ensure_user(username, external_id, allow_create)
            except TargetError as e:
                logger.warning(f"User lookup failed for {username}: {e}")
                identity = None
            if identity is not None:
                return identity
            logger.warning(
                f"No target user for '{username}' (Wikispaces ID: {external_id}), "
                f"attributing to {self.importer_username}"
            )
        return self.importer_identity()


class RevisionImporter:
    """
    Imports one Wikispaces page revision into the target.

    Args:
        store: Target store to write to
        cache: Remote record cache for attachment downloads
        translator: Markup translator
        policy: Conflict policy deciding create/update/skip
        authors: Author resolver shared with the discussion importer
        summary: Edit summary template with a ``{comment}`` placeholder
        footer_summary: Edit summary for the tag footer
        clock: Source of the current unix time
    """

    def __init__(
        self,
        store: TargetStore,
        cache: RemoteRecordCache,
        translator: MarkupTranslator,
        policy: ConflictPolicy,
        authors: AuthorResolver,
        summary: str = DEFAULT_SUMMARY,
        footer_summary: str = DEFAULT_FOOTER_SUMMARY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cache = cache
        self.translator = translator
        self.policy = policy
        self.authors = authors
        self.summary = summary
        self.footer_summary = footer_summary
        self.clock = clock

    def make_summary(self, comment: str) -> str:
        if not self.summary:
            return comment or ""
        return self.summary.replace("{comment}", comment or "")

    def import_revision(self, revision: RemotePage) -> ImportOutcome:
        """
        Import a fully fetched revision (``content`` must be filled).

        Returns:
            ImportOutcome with one entry for the revision plus one per
            attachment that was imported for the first time
        """
        outcome = ImportOutcome()

        try:
            title = self.store.resolve_title(revision.name)
        except InvalidTitleError as e:
            logger.error(f"Invalid title '{revision.name}'. Skipping. ({e})")
            return outcome.record(ImportCode.INVALID_TITLE, revision.name)

        author = self.authors.resolve(revision.username, revision.user_id, allow_create=False)
        source = revision.content or ""
        text = self.translator.translate(source)

        outcome.merge(self.import_files(source, revision))

        try:
            existing = self.store.current_revision(title)
        except TargetError as e:
            logger.error(f"Cannot read current revision of {title}: {e}")
            return outcome.record(ImportCode.WRITE_FAILED, f"{title}: {e}")

        identical = existing is not None and existing.content == text
        decision = self.policy.evaluate(
            existing.state() if existing is not None else None,
            revision.date_created,
            identical,
            now=int(self.clock()),
        )

        if decision.kind == DecisionKind.SKIP_EXISTS:
            logger.info(f"Title {title} already exists. Skipping.")
            return outcome.record(ImportCode.TITLE_EXISTS, title)
        if decision.kind == DecisionKind.SKIP_STALE:
            logger.info(f"{title} has not been modified since the target page was touched. Skipping.")
            return outcome.record(ImportCode.NOT_MODIFIED, title)
        if decision.kind == DecisionKind.SKIP_UNCHANGED:
            logger.info(f"{title} contains no changes from the current revision. Skipping.")
            return outcome.record(ImportCode.CONTENT_UNCHANGED, title)
        if decision.kind == DecisionKind.FAIL:
            logger.error(f"Cannot write {title}: {decision.reason}")
            return outcome.record(ImportCode.POLICY_FAILED, f"{title}: {decision.reason}")

        try:
            self.store.write_revision(
                title, text, author, self.make_summary(revision.comment), decision.timestamp
            )
        except TargetError as e:
            action = "update" if existing is not None else "create"
            logger.error(f"Failed to {action} {title}: {e}")
            return outcome.record(ImportCode.WRITE_FAILED, f"{title}: {e}")

        if decision.kind == DecisionKind.UPDATE:
            logger.info(f"Successfully updated {title} (version {revision.version_id})")
            return outcome.record(ImportCode.UPDATED, title)
        logger.info(f"Successfully created {title} (version {revision.version_id})")
        return outcome.record(ImportCode.CREATED, title)

    def import_files(self, source: str, revision: RemotePage) -> ImportOutcome:
        """
        Import every local file referenced by a page body, once per run.

        Files are attributed to the author of the revision being imported.
        A failed file never stops the page import.
        """
        outcome = ImportOutcome()
        for reference in self.translator.extract_references(source):
            name = reference.name
            if not self.cache.first_sighting("file", name):
                continue

            try:
                path = self.cache.download_file(name)
            except DownloadError as e:
                logger.error(f"Failed to download file: {name} ({e})")
                outcome.record(ImportCode.FILE_IMPORT_FAILED, f"{name}: {e}")
                continue

            uploader = self.authors.resolve(revision.username, revision.user_id, allow_create=True)
            try:
                result = self.store.import_file(
                    path, uploader, overwrite=self.policy.mode == WriteMode.ALWAYS
                )
            except TargetError as e:
                logger.error(f"Failed to import file: {name} ({e})")
                outcome.record(ImportCode.FILE_IMPORT_FAILED, f"{name}: {e}")
                continue

            if result.skipped:
                outcome.record(ImportCode.FILE_EXISTS, result.title)
            else:
                logger.info(f"File imported: {name}")
                outcome.record(ImportCode.FILE_IMPORTED, result.title)
        return outcome

    def import_footer(self, page_name: str, tag_names: List[str]) -> ImportOutcome:
        """Append category markers for page tags, skipping those already present."""
        outcome = ImportOutcome()
        try:
            title = self.store.resolve_title(page_name)
        except InvalidTitleError as e:
            logger.error(f"Invalid title '{page_name}'. Skipping tags. ({e})")
            return outcome.record(ImportCode.INVALID_TITLE, page_name)

        try:
            existing = self.store.current_revision(title)
        except TargetError as e:
            logger.error(f"Cannot read {title} for tags: {e}")
            return outcome.record(ImportCode.FOOTER_FAILED, f"{title}: {e}")

        content = existing.content if existing is not None else ""
        unique: Dict[str, None] = dict.fromkeys(name for name in tag_names if name)
        missing = [
            name for name in unique
            if self.translator.render_tags([name]).strip() not in content
        ]
        if not missing:
            logger.info(f"Tags already present on {title}. Skipping.")
            return outcome.record(ImportCode.TAGS_PRESENT, title)

        footer = self.translator.render_tags(missing)
        try:
            self.store.append_to_section(
                title, None, footer, self.authors.importer_identity(),
                self.footer_summary, int(self.clock()),
            )
        except SectionNotFoundError as e:
            logger.error(f"Section not found on {title}: {e}")
            return outcome.record(ImportCode.SECTION_NOT_FOUND, f"{title}: {e}")
        except ContentModelError as e:
            logger.error(f"{title} is not wikitext: {e}")
            return outcome.record(ImportCode.NOT_TEXT, f"{title}: {e}")
        except TargetError as e:
            logger.error(f"Failed to add tags to {title}: {e}")
            return outcome.record(ImportCode.FOOTER_FAILED, f"{title}: {e}")

        logger.info(f"Added {len(missing)} categories to {title}")
        return outcome.record(ImportCode.FOOTER_IMPORTED, title)
