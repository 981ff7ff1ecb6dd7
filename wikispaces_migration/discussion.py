"""
Wikispaces Migration - Discussion Importer

Replays a page's discussion topics and replies onto its talk page, one
section per topic, in a single global order.
"""

import logging
import time
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Callable, List, Optional, Tuple

from .api import WikispacesApi, WikispacesAPIError
from .importer import AuthorResolver
from .markup import MarkupTranslator
from .models import RemoteMessage
from .outcome import ImportCode, ImportOutcome
from .target import (
    ContentModelError, InvalidTitleError, SectionNotFoundError, TargetError,
    TargetStore,
)
from .wikitext import count_sections


logger = logging.getLogger(__name__)

DEFAULT_TALK_SUMMARY = "[Importing from Wikispaces] {text}"


@dataclass
class DiscussionEdit:
    """One post placed in the edit sequence. Position 0 is the topic itself."""
    topic_id: int
    section: int
    position: int
    message: RemoteMessage

    @property
    def timestamp(self) -> int:
        return self.message.date_created or 0

    @property
    def is_topic(self) -> bool:
        return self.position == 0


def compare_edits(left: DiscussionEdit, right: DiscussionEdit) -> int:
    """
    Ordering of discussion edits.

    Topics keep their listing order and replies keep their position within a
    topic; only posts from different topics are ordered by creation time.
    """
    if left.position == 0 and right.position == 0:
        return left.section - right.section
    if left.section == right.section:
        return left.position - right.position
    return left.timestamp - right.timestamp


def order_edits(edits: List[DiscussionEdit]) -> List[DiscussionEdit]:
    return sorted(edits, key=cmp_to_key(compare_edits))


class DiscussionImporter:
    """
    Imports the discussion of one page.

    Args:
        api: Remote API client
        store: Target store to write to
        translator: Markup translator used to render posts
        authors: Author resolver (accounts may be created here)
        talk_summary: Edit summary template with a ``{text}`` placeholder
        clock: Source of the current unix time
    """

    def __init__(
        self,
        api: WikispacesApi,
        store: TargetStore,
        translator: MarkupTranslator,
        authors: AuthorResolver,
        talk_summary: str = DEFAULT_TALK_SUMMARY,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.store = store
        self.translator = translator
        self.authors = authors
        self.talk_summary = talk_summary
        self.clock = clock

    def collect_edits(self, page_id: int) -> Tuple[List[DiscussionEdit], ImportOutcome]:
        """
        Fetch topics and replies and flatten them into ordered edits.

        Raises:
            WikispacesAPIError: On any remote fault not known to be benign
        """
        outcome = ImportOutcome()
        edits: List[DiscussionEdit] = []

        topics = self.api.list_topics(page_id).unwrap()
        for i, topic in enumerate(topics):
            # Section 0 is the lead; topics are numbered from 1.
            section = i + 1
            topic_id = topic.topic_id or topic.id
            edits.append(DiscussionEdit(topic_id, section, 0, topic))

            result = self.api.list_replies(topic_id)
            if not result.ok:
                if result.fault.is_benign():
                    logger.warning(
                        f"Skipping replies of topic '{topic.subject}' ({topic_id}): "
                        f"{result.fault.message}"
                    )
                    outcome.record(ImportCode.REPLIES_UNAVAILABLE, f"topic {topic_id}")
                    continue
                raise WikispacesAPIError(result.fault)

            position = 0
            for reply in result.value:
                if reply.id == topic.id:
                    # The topic's own message carries its body.
                    if not topic.body:
                        topic.body = reply.body
                    continue
                position += 1
                edits.append(DiscussionEdit(topic_id, section, position, reply))

        return order_edits(edits), outcome

    def import_discussion(self, page_id: int, page_name: str) -> ImportOutcome:
        """Import every topic and reply of a page onto its talk page."""
        try:
            title = self.store.resolve_title(page_name)
        except InvalidTitleError as e:
            logger.error(f"Invalid title '{page_name}'. Skipping discussion. ({e})")
            return ImportOutcome.of(ImportCode.INVALID_TITLE, page_name)

        talk = self.store.talk_title(title)
        edits, outcome = self.collect_edits(page_id)
        if not edits:
            return outcome

        try:
            existing = self.store.current_revision(talk)
        except TargetError as e:
            logger.error(f"Cannot read {talk}: {e}")
            return outcome.record(ImportCode.TALK_EDIT_FAILED, f"{talk}: {e}")
        offset = count_sections(existing.content) if existing is not None else 0

        for edit in edits:
            outcome.merge(self.import_edit(talk, edit, offset))

        logger.info(f"Imported discussion of {title}: {outcome.summary()}")
        return outcome

    def import_edit(self, talk: str, edit: DiscussionEdit, offset: int = 0) -> ImportOutcome:
        message = edit.message
        author = self.authors.resolve(message.username, message.user_id, allow_create=True)
        timestamp = message.date_created or int(self.clock())

        section: Optional[int]
        if edit.is_topic:
            text = self.translator.render_topic(message.subject, message.body, author.name, timestamp)
            section = None
        else:
            text = self.translator.render_reply(message.body, author.name, timestamp)
            section = offset + edit.section

        summary = self.talk_summary.replace("{text}", text.strip())
        try:
            self.store.append_to_section(talk, section, text, author, summary, timestamp)
        except SectionNotFoundError as e:
            logger.error(f"Section {section} not found on {talk}: {e}")
            return ImportOutcome.of(ImportCode.SECTION_NOT_FOUND, f"{talk}#{section}")
        except ContentModelError as e:
            logger.error(f"{talk} is not wikitext: {e}")
            return ImportOutcome.of(ImportCode.NOT_TEXT, talk)
        except TargetError as e:
            logger.error(f"Failed to import talk edit on {talk}: {e}")
            return ImportOutcome.of(ImportCode.TALK_EDIT_FAILED, f"{talk}: {e}")

        logger.debug(f"Imported post {message.id} by {author.name} on {talk}")
        return ImportOutcome.of(ImportCode.TALK_EDIT_IMPORTED, f"{talk}#{edit.section}.{edit.position}")
