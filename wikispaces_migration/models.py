"""
Wikispaces Migration - Remote Records

Dataclasses representing records returned by the Wikispaces SOAP API.

Each record kind has an explicit decoder. Unknown fields are rejected at the
boundary instead of being silently attached to the object.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional


class RecordDecodeError(ValueError):
    """Raised when a remote record contains unexpected or malformed fields."""

    def __init__(self, kind: str, field_name: str, reason: str = "unknown field"):
        super().__init__(f"{kind}: {reason} '{field_name}'")
        self.kind = kind
        self.field_name = field_name


def _camelize(name: str) -> str:
    """Convert snake_case SOAP field names into the camelCase used by the API docs."""
    return re.sub(r"_(\w)", lambda m: m.group(1).upper(), name)


def _fields(kind: str, data: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Normalize field names and reject anything the record kind does not declare."""
    allowed = set(allowed)
    result = {}
    for key, value in data.items():
        name = _camelize(key)
        if name not in allowed:
            raise RecordDecodeError(kind, key)
        result[name] = value
    return result


def _int(kind: str, fields: Dict[str, Any], name: str) -> Optional[int]:
    value = fields.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RecordDecodeError(kind, name, reason="not an integer")


def _str(fields: Dict[str, Any], name: str) -> Optional[str]:
    value = fields.get(name)
    return None if value is None else str(value)


@dataclass
class RemoteSpace:
    """A Wikispaces space (the wiki being migrated)."""
    id: int
    name: str
    text: Optional[str] = None
    description: Optional[str] = None
    page_count: Optional[int] = None
    status: Optional[str] = None
    discussions: Optional[str] = None
    license: Optional[str] = None
    date_created: Optional[int] = None
    date_updated: Optional[int] = None

    FIELDS = (
        "id", "name", "text", "description", "pageCount", "status", "edits",
        "imageType", "backgroundColor", "highlightColor", "textColor", "linkColor",
        "subscriptionType", "subscriptionLevel", "subscriptionEndDate",
        "viewGroup", "editGroup", "createGroup", "messageEditGroup",
        "isCrawled", "license", "discussions",
        "dateCreated", "dateUpdated", "userCreated", "userUpdated",
    )

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteSpace":
        """Create RemoteSpace from SOAP response data."""
        f = _fields("RemoteSpace", data, cls.FIELDS)
        return cls(
            id=_int("RemoteSpace", f, "id"),
            name=_str(f, "name") or "",
            text=_str(f, "text"),
            description=_str(f, "description"),
            page_count=_int("RemoteSpace", f, "pageCount"),
            status=_str(f, "status"),
            discussions=_str(f, "discussions"),
            license=_str(f, "license"),
            date_created=_int("RemoteSpace", f, "dateCreated"),
            date_updated=_int("RemoteSpace", f, "dateUpdated"),
        )


@dataclass
class RemotePage:
    """
    One version of a Wikispaces page.

    Listing calls return metadata only; ``content`` and ``html`` are filled
    only when a specific version is fetched.
    """
    id: int
    name: str
    version_id: Optional[int] = None
    latest_version: Optional[int] = None
    versions: Optional[int] = None
    comment: str = ""
    content: Optional[str] = None
    html: Optional[str] = None
    date_created: Optional[int] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    is_read_only: bool = False

    FIELDS = (
        "id", "versionId", "name", "spaceId", "latestVersion", "versions",
        "isReadOnly", "viewGroup", "editGroup", "comment", "content", "html",
        "dateCreated", "userCreated", "userCreatedUsername",
    )

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemotePage":
        """Create RemotePage from SOAP response data."""
        f = _fields("RemotePage", data, cls.FIELDS)
        return cls(
            id=_int("RemotePage", f, "id"),
            name=_str(f, "name") or "",
            version_id=_int("RemotePage", f, "versionId"),
            latest_version=_int("RemotePage", f, "latestVersion"),
            versions=_int("RemotePage", f, "versions"),
            comment=_str(f, "comment") or "",
            content=_str(f, "content"),
            html=_str(f, "html"),
            date_created=_int("RemotePage", f, "dateCreated"),
            user_id=_int("RemotePage", f, "userCreated"),
            username=_str(f, "userCreatedUsername"),
            is_read_only=bool(f.get("isReadOnly", False)),
        )


@dataclass
class RemoteMessage:
    """A discussion post. Topics are messages whose ``topic_id`` is their own id."""
    id: int
    subject: str = ""
    body: str = ""
    html: Optional[str] = None
    page_id: Optional[int] = None
    topic_id: Optional[int] = None
    responses: Optional[int] = None
    date_created: Optional[int] = None
    user_id: Optional[int] = None
    username: Optional[str] = None

    FIELDS = (
        "id", "subject", "body", "html", "pageId", "topicId", "responses",
        "latestResponseId", "dateResponse", "dateCreated", "userCreated",
        "userCreatedUsername",
    )

    @property
    def is_topic(self) -> bool:
        return self.topic_id is None or self.topic_id == self.id

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteMessage":
        """Create RemoteMessage from SOAP response data."""
        f = _fields("RemoteMessage", data, cls.FIELDS)
        return cls(
            id=_int("RemoteMessage", f, "id"),
            subject=_str(f, "subject") or "",
            body=_str(f, "body") or "",
            html=_str(f, "html"),
            page_id=_int("RemoteMessage", f, "pageId"),
            topic_id=_int("RemoteMessage", f, "topicId"),
            responses=_int("RemoteMessage", f, "responses"),
            date_created=_int("RemoteMessage", f, "dateCreated"),
            user_id=_int("RemoteMessage", f, "userCreated"),
            username=_str(f, "userCreatedUsername"),
        )


@dataclass
class RemoteTag:
    """A tag (label) attached to a page."""
    id: int
    name: str
    page_id: Optional[int] = None
    date_created: Optional[int] = None
    user_id: Optional[int] = None

    FIELDS = ("id", "name", "pageId", "dateCreated", "userCreated")

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteTag":
        """Create RemoteTag from SOAP response data."""
        f = _fields("RemoteTag", data, cls.FIELDS)
        return cls(
            id=_int("RemoteTag", f, "id"),
            name=_str(f, "name") or "",
            page_id=_int("RemoteTag", f, "pageId"),
            date_created=_int("RemoteTag", f, "dateCreated"),
            user_id=_int("RemoteTag", f, "userCreated"),
        )


@dataclass
class RemoteUser:
    """An existing Wikispaces user."""
    id: int
    username: str
    auth_source_id: Optional[int] = None
    auth_external_id: Optional[str] = None
    posts: Optional[int] = None
    edits: Optional[int] = None
    date_created: Optional[int] = None

    FIELDS = (
        "id", "username", "posts", "edits", "authSourceId", "authExternalId",
        "dateCreated", "dateUpdated", "userCreated", "userUpdated",
    )

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteUser":
        """Create RemoteUser from SOAP response data."""
        f = _fields("RemoteUser", data, cls.FIELDS)
        return cls(
            id=_int("RemoteUser", f, "id"),
            username=_str(f, "username") or "",
            auth_source_id=_int("RemoteUser", f, "authSourceId"),
            auth_external_id=_str(f, "authExternalId"),
            posts=_int("RemoteUser", f, "posts"),
            edits=_int("RemoteUser", f, "edits"),
            date_created=_int("RemoteUser", f, "dateCreated"),
        )


@dataclass
class RemoteAuthSource:
    """An authentication source users can be associated with."""
    id: int
    name: str = ""
    type: Optional[str] = None
    status: Optional[str] = None

    TYPE_PASSWORD = "P"
    TYPE_WIKISPACES_SSO = "W"
    TYPE_SAML = "S"
    TYPE_OPENID = "O"
    TYPE_GOOGLE = "G"
    TYPE_LDAP = "L"
    TYPE_MOODLE = "M"
    TYPE_LTI = "T"

    FIELDS = ("id", "name", "type", "status")

    @property
    def is_active(self) -> bool:
        return self.status != "D"

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteAuthSource":
        """Create RemoteAuthSource from SOAP response data."""
        f = _fields("RemoteAuthSource", data, cls.FIELDS)
        return cls(
            id=_int("RemoteAuthSource", f, "id"),
            name=_str(f, "name") or "",
            type=_str(f, "type"),
            status=_str(f, "status"),
        )


@dataclass
class RemoteMember:
    """A member of the space with its access level (M = member, O = organizer)."""
    user_id: int
    username: str
    type: Optional[str] = None

    FIELDS = ("userId", "username", "type")

    @property
    def is_organizer(self) -> bool:
        return self.type == "O"

    @classmethod
    def from_soap(cls, data: Dict[str, Any]) -> "RemoteMember":
        """Create RemoteMember from SOAP response data."""
        f = _fields("RemoteMember", data, cls.FIELDS)
        return cls(
            user_id=_int("RemoteMember", f, "userId"),
            username=_str(f, "username") or "",
            type=_str(f, "type"),
        )
