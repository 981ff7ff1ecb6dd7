"""
Unit tests for remote record decoders.
"""

import pytest

from wikispaces_migration.models import (
    RecordDecodeError,
    RemoteAuthSource,
    RemoteMember,
    RemoteMessage,
    RemotePage,
    RemoteSpace,
    RemoteTag,
    RemoteUser,
)


class TestRemotePage:
    """Tests for RemotePage decoding."""

    def test_from_soap_full(self):
        """Test creating a page from a complete SOAP record."""
        data = {
            "id": "42",
            "versionId": "1001",
            "name": "Home",
            "spaceId": "5",
            "latestVersion": "1001",
            "versions": "3",
            "isReadOnly": False,
            "viewGroup": "",
            "editGroup": "",
            "comment": "typo",
            "content": "**hi**",
            "html": "<b>hi</b>",
            "dateCreated": "1300000000",
            "userCreated": "7",
            "userCreatedUsername": "alice",
        }

        page = RemotePage.from_soap(data)

        assert page.id == 42
        assert page.version_id == 1001
        assert page.name == "Home"
        assert page.versions == 3
        assert page.comment == "typo"
        assert page.content == "**hi**"
        assert page.date_created == 1300000000
        assert page.user_id == 7
        assert page.username == "alice"

    def test_metadata_only(self):
        """Listing calls leave content empty."""
        page = RemotePage.from_soap({"id": 1, "name": "A", "versionId": 2})

        assert page.content is None
        assert page.comment == ""

    def test_snake_case_keys_are_accepted(self):
        page = RemotePage.from_soap({"id": 1, "name": "A", "version_id": 9})
        assert page.version_id == 9

    def test_unknown_field_is_rejected(self):
        with pytest.raises(RecordDecodeError) as exc_info:
            RemotePage.from_soap({"id": 1, "name": "A", "colour": "red"})

        assert exc_info.value.kind == "RemotePage"
        assert exc_info.value.field_name == "colour"

    def test_malformed_integer_is_rejected(self):
        with pytest.raises(RecordDecodeError, match="not an integer"):
            RemotePage.from_soap({"id": "abc", "name": "A"})


class TestRemoteMessage:
    """Tests for RemoteMessage decoding."""

    def test_topic(self):
        message = RemoteMessage.from_soap({
            "id": 5, "subject": "Hello", "body": "text", "topicId": 5,
            "pageId": 1, "dateCreated": 100, "userCreated": 3,
            "userCreatedUsername": "bob", "responses": 2,
        })

        assert message.is_topic
        assert message.username == "bob"
        assert message.responses == 2

    def test_reply(self):
        message = RemoteMessage.from_soap({"id": 6, "topicId": 5, "body": "re"})
        assert not message.is_topic


class TestOtherRecords:
    """Tests for the remaining record kinds."""

    def test_space(self):
        space = RemoteSpace.from_soap({
            "id": "9", "name": "myspace", "pageCount": "12", "license": "by-sa",
            "status": "normal", "isCrawled": True, "dateCreated": 1,
        })
        assert space.id == 9
        assert space.page_count == 12
        assert space.license == "by-sa"

    def test_tag(self):
        tag = RemoteTag.from_soap({"id": 1, "name": "math", "pageId": 2})
        assert (tag.name, tag.page_id) == ("math", 2)

    def test_user(self):
        user = RemoteUser.from_soap({
            "id": 3, "username": "carol", "authSourceId": 1, "authExternalId": "x-1",
            "posts": 4, "edits": 10,
        })
        assert user.username == "carol"
        assert user.auth_source_id == 1
        assert user.edits == 10

    def test_auth_source(self):
        source = RemoteAuthSource.from_soap({"id": 1, "name": "Google", "type": "G", "status": "D"})
        assert source.type == RemoteAuthSource.TYPE_GOOGLE
        assert not source.is_active

    def test_member(self):
        member = RemoteMember.from_soap({"userId": 3, "username": "carol", "type": "O"})
        assert member.is_organizer

    def test_user_rejects_unknown_field(self):
        with pytest.raises(RecordDecodeError):
            RemoteUser.from_soap({"id": 3, "username": "carol", "password": "x"})
