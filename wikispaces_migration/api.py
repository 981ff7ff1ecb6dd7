"""
Wikispaces Migration - SOAP API Client

Session-based client for the Wikispaces SOAP API.

Remote calls never raise on a SOAP fault. Every operation returns a
``CallResult`` holding either the decoded value or a ``RemoteFault`` that
describes the failed call, so callers decide whether a fault is fatal.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

import requests
from zeep import Client
from zeep.exceptions import Error as ZeepError
from zeep.exceptions import Fault
from zeep.helpers import serialize_object
from zeep.transports import Transport

from .models import (
    RemoteAuthSource, RemoteMember, RemoteMessage, RemotePage, RemoteSpace,
    RemoteTag, RemoteUser,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Faults that are known to happen for healthy data and may be skipped.
BENIGN_FAULTS: Dict[str, frozenset] = {
    "listMessagesInTopic": frozenset({"Invalid Object"}),
}


@dataclass
class RemoteFault:
    """Description of a failed remote call."""
    code: str
    message: str
    call: str
    arguments: Tuple[Any, ...] = ()
    parameters: Optional[Dict[str, str]] = None  # declared name -> type
    detail: Optional[str] = None

    def signature(self) -> str:
        """Display the method signature for logging."""
        args = ", ".join(self.parameters) if self.parameters else "???"
        return f"{self.call}( {args} )"

    def signature_with_values(self) -> str:
        """Display the method signature with actual argument values."""
        names = list(self.parameters) if self.parameters else []
        printed = []
        for i, arg in enumerate(self.arguments):
            if isinstance(arg, (list, tuple, dict)):
                value = f"<array>({len(arg)})"
            else:
                value = f"<{type(arg).__name__}> {arg}"
            printed.append(f"{names[i]} => {value}" if i < len(names) else value)
        return f"{self.call}( {', '.join(printed)} )"

    def is_benign(self) -> bool:
        """Whether this fault matches a known-benign signature for its call."""
        return self.message in BENIGN_FAULTS.get(self.call, ())

    def __str__(self) -> str:
        return f"{self.call}: {self.message} ({self.code})"


class WikispacesAPIError(Exception):
    """Raised when a remote fault is treated as fatal."""

    def __init__(self, fault: RemoteFault):
        super().__init__(str(fault))
        self.fault = fault


@dataclass
class CallResult(Generic[T]):
    """Outcome of one remote call: a value or a fault, never both."""
    value: Optional[T] = None
    fault: Optional[RemoteFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None

    def unwrap(self) -> T:
        """Return the value, raising WikispacesAPIError for a fault."""
        if self.fault is not None:
            raise WikispacesAPIError(self.fault)
        return self.value

    def map(self, func: Callable[[Any], T]) -> "CallResult[T]":
        if self.fault is not None:
            return CallResult(fault=self.fault)
        return CallResult(value=func(self.value))


def _as_list(data: Any) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


class WikispacesApi:
    """
    Wikispaces SOAP API client.

    The SOAP endpoints are opened lazily on the first call; a single login
    session is shared by all endpoints.

    Example:
        api = WikispacesApi("user", "secret", "myspace")
        pages = api.list_pages().unwrap()
    """

    WIKISPACES_URL = "http://www.wikispaces.com"
    ENDPOINTS = ("site", "user", "space", "page", "tag", "message")

    def __init__(
        self,
        user: str,
        password: str,
        space_name: str,
        base_url: str = WIKISPACES_URL,
        timeout: int = 60,
        api_delay: float = 0.0,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize the API client.

        Args:
            user: Wikispaces username
            password: Wikispaces password
            space_name: Name of the space to migrate
            base_url: Wikispaces site URL hosting the WSDL documents
            timeout: Request timeout in seconds
            api_delay: Delay between API calls in seconds
            client_factory: Builds a SOAP client for a WSDL URL (tests)
        """
        self.user = user
        self.password = password
        self.space_name = space_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_delay = api_delay
        self._client_factory = client_factory or self._make_client
        self._clients: Dict[str, Any] = {}
        self._session: Optional[str] = None
        self._space: Optional[RemoteSpace] = None
        self._last_request_time = 0.0

    def _make_client(self, wsdl: str) -> Client:
        http = requests.Session()
        transport = Transport(session=http, timeout=self.timeout)
        return Client(wsdl, transport=transport)

    def _rate_limit(self) -> None:
        """Apply rate limiting between API calls."""
        if self.api_delay > 0:
            elapsed = time.time() - self._last_request_time
            if elapsed < self.api_delay:
                time.sleep(self.api_delay - elapsed)
        self._last_request_time = time.time()

    def _open(self) -> Optional[RemoteFault]:
        """Create SOAP clients, log in and resolve the space (once)."""
        if self._session is not None and self._space is not None:
            return None

        if not self._clients:
            for endpoint in self.ENDPOINTS:
                wsdl = f"{self.base_url}/{endpoint}/api/?wsdl"
                self._clients[endpoint] = self._client_factory(wsdl)

        login = self._call("site", "login", self.user, self.password)
        if not login.ok:
            return login.fault
        self._session = login.value

        space = self._call("space", "getSpace", self._session, self.space_name)
        if not space.ok:
            return space.fault
        self._space = RemoteSpace.from_soap(space.value)
        logger.info(f"Opened Wikispaces session for space '{self.space_name}' (ID: {self._space.id})")
        return None

    def _call(self, endpoint: str, operation: str, *args: Any) -> CallResult:
        """Invoke a SOAP operation and convert faults into a CallResult."""
        client = self._clients[endpoint]
        self._rate_limit()
        logger.debug(f"SOAP {endpoint}.{operation}")
        try:
            value = getattr(client.service, operation)(*args)
        except Fault as e:
            fault = RemoteFault(
                code=str(e.code or "Server"),
                message=e.message,
                call=operation,
                arguments=args,
                parameters=self._declared_parameters(client, operation),
                detail=None if e.detail is None else str(e.detail),
            )
        except (ZeepError, requests.RequestException) as e:
            fault = RemoteFault(
                code="transport",
                message=str(e),
                call=operation,
                arguments=args,
                parameters=self._declared_parameters(client, operation),
            )
        else:
            return CallResult(value=serialize_object(value, dict))

        logger.error(
            f"SOAP error while calling {fault.signature()}: {fault.message} ({fault.code})"
        )
        return CallResult(fault=fault)

    def _declared_parameters(self, client: Any, operation: str) -> Optional[Dict[str, str]]:
        """Best-effort lookup of the WSDL-declared parameter names and types."""
        try:
            op = client.service._binding._operations[operation]
            elements = op.input.body.type.elements
        except (AttributeError, KeyError, TypeError):
            return None
        return {name: getattr(element.type, "name", None) or "?" for name, element in elements}

    def _space_call(self, endpoint: str, operation: str, *args: Any) -> CallResult:
        fault = self._open()
        if fault is not None:
            return CallResult(fault=fault)
        return self._call(endpoint, operation, self._session, *args)

    # =========================================================================
    # SPACES & USERS
    # =========================================================================

    def get_space(self) -> CallResult[RemoteSpace]:
        fault = self._open()
        if fault is not None:
            return CallResult(fault=fault)
        return CallResult(value=self._space)

    def list_auth_sources(self) -> CallResult[List[RemoteAuthSource]]:
        """List all authentication sources (not available for Private Label Original)."""
        return self._space_call("user", "listAuthSources").map(
            lambda data: [RemoteAuthSource.from_soap(d) for d in _as_list(data)]
        )

    def list_users(self) -> CallResult[List[RemoteUser]]:
        """List all users (not available for Private Label Original)."""
        return self._space_call("user", "listUsers").map(
            lambda data: [RemoteUser.from_soap(d) for d in _as_list(data)]
        )

    def list_members(self) -> CallResult[List[RemoteMember]]:
        """List members of the space with their access level."""
        result = self.get_space()
        if not result.ok:
            return CallResult(fault=result.fault)
        return self._space_call("space", "listMembers", result.value.id).map(
            lambda data: [RemoteMember.from_soap(d) for d in _as_list(data)]
        )

    # =========================================================================
    # PAGES
    # =========================================================================

    def list_pages(self) -> CallResult[List[RemotePage]]:
        """List all pages in the space (metadata only)."""
        result = self.get_space()
        if not result.ok:
            return CallResult(fault=result.fault)
        return self._space_call("page", "listPages", result.value.id).map(
            lambda data: [RemotePage.from_soap(d) for d in _as_list(data)]
        )

    def list_versions(self, page_name: str) -> CallResult[List[RemotePage]]:
        """List all versions of a page, in the order the API returns them."""
        result = self.get_space()
        if not result.ok:
            return CallResult(fault=result.fault)
        return self._space_call("page", "listPageVersions", result.value.id, page_name).map(
            lambda data: [RemotePage.from_soap(d) for d in _as_list(data)]
        )

    def get_page(self, page_name: str) -> CallResult[RemotePage]:
        """Get page metadata for the latest version."""
        result = self.get_space()
        if not result.ok:
            return CallResult(fault=result.fault)
        return self._space_call("page", "getPage", result.value.id, page_name).map(
            RemotePage.from_soap
        )

    def get_revision(self, page_name: str, version: Optional[int] = None) -> CallResult[RemotePage]:
        """
        Get a page with the content of a specific version.

        This is the only call that fills ``content`` and ``html``.
        With ``version=None`` the latest version is fetched.
        """
        if version is None:
            latest = self.get_page(page_name)
            if not latest.ok:
                return latest
            version = latest.value.latest_version or latest.value.version_id
        result = self.get_space()
        if not result.ok:
            return CallResult(fault=result.fault)
        return self._space_call(
            "page", "getPageWithVersion", result.value.id, page_name, version
        ).map(RemotePage.from_soap)

    # =========================================================================
    # TAGS & MESSAGES
    # =========================================================================

    def list_tags(self, page_id: int) -> CallResult[List[RemoteTag]]:
        return self._space_call("tag", "listTagsForPage", page_id).map(
            lambda data: [RemoteTag.from_soap(d) for d in _as_list(data)]
        )

    def list_topics(self, page_id: int) -> CallResult[List[RemoteMessage]]:
        """
        List topics (top-level messages) of a page.

        Bodies are not filled by this call; the topic's own message shows up
        in ``list_replies``.
        """
        return self._space_call("message", "listTopics", page_id).map(
            lambda data: [RemoteMessage.from_soap(d) for d in _as_list(data)]
        )

    def list_replies(self, topic_id: int) -> CallResult[List[RemoteMessage]]:
        return self._space_call("message", "listMessagesInTopic", topic_id).map(
            lambda data: [RemoteMessage.from_soap(d) for d in _as_list(data)]
        )

    def test_connection(self) -> bool:
        """
        Log in and resolve the space.

        Raises:
            WikispacesAPIError: On connection or auth errors
        """
        self.get_space().unwrap()
        logger.info(f"Connection test successful for space '{self.space_name}'")
        return True
