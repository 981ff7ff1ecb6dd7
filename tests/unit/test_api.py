"""
Unit tests for the Wikispaces SOAP client.

SOAP clients are replaced with mocks through ``client_factory``.
"""

from unittest.mock import Mock

import pytest
import requests
from zeep.exceptions import Fault

from wikispaces_migration.api import (
    CallResult,
    RemoteFault,
    WikispacesApi,
    WikispacesAPIError,
)


@pytest.fixture
def soap():
    """One mock client shared by every endpoint."""
    client = Mock()
    client.service.login.return_value = "session-1"
    client.service.getSpace.return_value = {"id": 5, "name": "myspace"}
    return client


@pytest.fixture
def factory(soap):
    return Mock(return_value=soap)


@pytest.fixture
def api(factory):
    return WikispacesApi("alice", "secret", "myspace", client_factory=factory)


class TestSession:
    """Tests for opening the SOAP session."""

    def test_endpoints_are_opened_once(self, api, factory, soap):
        soap.service.listPages.return_value = []

        api.list_pages()
        api.list_pages()

        wsdls = [call.args[0] for call in factory.call_args_list]
        assert wsdls == [
            f"http://www.wikispaces.com/{name}/api/?wsdl"
            for name in ("site", "user", "space", "page", "tag", "message")
        ]
        soap.service.login.assert_called_once_with("alice", "secret")
        soap.service.getSpace.assert_called_once_with("session-1", "myspace")

    def test_login_fault_is_returned(self, api, soap):
        soap.service.login.side_effect = Fault("Invalid login", code="Client")

        result = api.list_pages()

        assert not result.ok
        assert result.fault.call == "login"
        assert result.fault.message == "Invalid login"
        assert result.fault.code == "Client"

    def test_test_connection_raises_on_fault(self, api, soap):
        soap.service.getSpace.side_effect = Fault("No such space")

        with pytest.raises(WikispacesAPIError) as exc_info:
            api.test_connection()

        assert exc_info.value.fault.call == "getSpace"


class TestOperations:
    """Tests for the individual remote calls."""

    def test_list_pages(self, api, soap):
        soap.service.listPages.return_value = [
            {"id": 1, "name": "Home", "versionId": 10},
            {"id": 2, "name": "About", "versionId": 20},
        ]

        pages = api.list_pages().unwrap()

        soap.service.listPages.assert_called_once_with("session-1", 5)
        assert [p.name for p in pages] == ["Home", "About"]

    def test_get_revision_with_version(self, api, soap):
        soap.service.getPageWithVersion.return_value = {
            "id": 1, "name": "Home", "versionId": 3, "content": "**x**",
        }

        page = api.get_revision("Home", 3).unwrap()

        soap.service.getPageWithVersion.assert_called_once_with("session-1", 5, "Home", 3)
        assert page.content == "**x**"

    def test_get_revision_latest(self, api, soap):
        soap.service.getPage.return_value = {"id": 1, "name": "Home", "latestVersion": 9}
        soap.service.getPageWithVersion.return_value = {"id": 1, "name": "Home", "versionId": 9}

        api.get_revision("Home").unwrap()

        soap.service.getPageWithVersion.assert_called_once_with("session-1", 5, "Home", 9)

    def test_empty_listing(self, api, soap):
        soap.service.listTagsForPage.return_value = None
        assert api.list_tags(1).unwrap() == []

    def test_single_record_listing(self, api, soap):
        soap.service.listTopics.return_value = {"id": 4, "subject": "Hi", "topicId": 4}
        topics = api.list_topics(1).unwrap()
        assert [t.subject for t in topics] == ["Hi"]

    def test_replies_fault_is_benign(self, api, soap):
        soap.service.listMessagesInTopic.side_effect = Fault("Invalid Object", code="Server")

        result = api.list_replies(4)

        assert not result.ok
        assert result.fault.is_benign()
        assert result.fault.arguments == ("session-1", 4)

    def test_same_message_on_other_call_is_not_benign(self, api, soap):
        soap.service.listPages.side_effect = Fault("Invalid Object")
        assert not api.list_pages().fault.is_benign()

    def test_transport_error_becomes_fault(self, api, soap):
        soap.service.listUsers.side_effect = requests.ConnectionError("refused")

        result = api.list_users()

        assert result.fault.code == "transport"
        assert "refused" in result.fault.message


class TestRemoteFault:
    """Tests for fault diagnostics."""

    def test_signature_unknown_declaration(self):
        fault = RemoteFault(code="Server", message="x", call="listPages", arguments=("abc", 5))
        assert fault.signature() == "listPages( ??? )"
        assert fault.signature_with_values() == "listPages( <str> abc, <int> 5 )"

    def test_signature_with_declaration(self):
        fault = RemoteFault(
            code="Server", message="x", call="listPages", arguments=("abc", 5, [1, 2]),
            parameters={"session": "string", "spaceId": "int", "ids": "array"},
        )
        assert fault.signature() == "listPages( session, spaceId, ids )"
        assert fault.signature_with_values() == (
            "listPages( session => <str> abc, spaceId => <int> 5, ids => <array>(2) )"
        )

    def test_str(self):
        fault = RemoteFault(code="Server", message="Invalid Object", call="getPage")
        assert str(fault) == "getPage: Invalid Object (Server)"


class TestCallResult:
    def test_unwrap_value(self):
        assert CallResult(value=3).unwrap() == 3

    def test_unwrap_fault_raises(self):
        fault = RemoteFault(code="Server", message="boom", call="getPage")
        with pytest.raises(WikispacesAPIError) as exc_info:
            CallResult(fault=fault).unwrap()
        assert exc_info.value.fault is fault

    def test_map_keeps_fault(self):
        fault = RemoteFault(code="Server", message="boom", call="getPage")
        assert CallResult(fault=fault).map(len).fault is fault
        assert CallResult(value=[1, 2]).map(len).value == 2
