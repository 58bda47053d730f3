"""
Schema definitions for authzgate.

This module defines the Pydantic models used throughout authzgate:
- Policy: Which users may perform which actions
- Request: One intercepted Docker API call
- Decision: The allow/deny outcome for a request
- AuditRecord: The append-only log entry derived from a request and decision

Design Decisions:
    - Models are immutable (frozen=True)
    - Policy patterns are compiled once, when the policy is validated
    - Field names on the wire follow the Docker plugin protocol via aliases
"""

import base64
import binascii
import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)


# =============================================================================
# Enums
# =============================================================================


class AuditHook(str, Enum):
    """
    Destination for audit records.

    The values are the selector strings accepted in configuration.
    STDOUT is the empty string, matching the plugin's historical default.
    """

    STDOUT = ""
    FILE = "file"
    SYSLOG = "syslog"


# =============================================================================
# Policy Models
# =============================================================================


class Policy(BaseModel):
    """
    A named rule binding a set of users to permitted action patterns.

    Each user should belong to a single policy. If a user appears in more
    than one policy, the first policy in load order is the one evaluated.

    Attributes:
        name: Unique policy name
        users: Users this policy applies to
        actions: Regular expressions matched against the whole action id
        readonly: Only read actions are allowed when set
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        description="Unique policy name",
        min_length=1,
    )
    users: list[str] = Field(
        default_factory=list,
        description="Users this policy applies to",
    )
    actions: list[str] = Field(
        default_factory=list,
        description="Action patterns (full-match regular expressions)",
    )
    readonly: bool = Field(
        default=False,
        description="Only allow read actions",
    )

    _patterns: tuple[re.Pattern[str], ...] = PrivateAttr(default=())

    @field_validator("users")
    @classmethod
    def validate_users(cls, v: list[str]) -> list[str]:
        """Reject empty user names."""
        for user in v:
            if not user:
                msg = "User names must not be empty"
                raise ValueError(msg)
        return v

    @field_validator("actions")
    @classmethod
    def validate_actions(cls, v: list[str]) -> list[str]:
        """Check that every action pattern compiles."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid action pattern {pattern!r}: {e}"
                raise ValueError(msg) from e
        return v

    def model_post_init(self, __context: Any) -> None:
        self._patterns = tuple(re.compile(p) for p in self.actions)

    def applies_to(self, user: str) -> bool:
        """Whether this policy claims the given user."""
        return bool(user) and user in self.users

    def matches(self, action: str) -> bool:
        """Whether any action pattern matches the whole action id."""
        return any(p.fullmatch(action) for p in self._patterns)


# =============================================================================
# Runtime Models
# =============================================================================


class Request(BaseModel):
    """
    An intercepted Docker API call.

    The transport authenticates the caller and fills every field before
    the gatekeeper sees the request.

    Attributes:
        method: HTTP method of the intercepted call
        uri: Request URI, including version prefix and query string
        user: Authenticated user (empty if the daemon has no client auth)
        body: Raw request body, never interpreted
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    method: str = Field(default="", alias="RequestMethod")
    uri: str = Field(default="", alias="RequestURI")
    user: str = Field(default="", alias="User")
    body: bytes = Field(default=b"", alias="RequestBody")

    @classmethod
    def from_plugin_payload(cls, payload: dict[str, Any]) -> "Request":
        """
        Build a request from a Docker authorization plugin payload.

        Docker encodes the request body as base64 and may send null for
        empty fields. Fields the gatekeeper does not use are ignored.

        Raises:
            ValueError: If the body is not valid base64
        """
        data = {k: v for k, v in payload.items() if v is not None}
        raw_body = data.pop("RequestBody", "")
        if isinstance(raw_body, str):
            try:
                data["RequestBody"] = base64.b64decode(raw_body, validate=True)
            except binascii.Error as e:
                msg = f"RequestBody is not valid base64: {e}"
                raise ValueError(msg) from e
        else:
            data["RequestBody"] = raw_body
        return cls.model_validate(data)


class Decision(BaseModel):
    """
    Result of evaluating a request against the policy set.

    Attributes:
        allow: Whether the request is permitted
        message: Human-readable explanation of the decision
        error: Failure description; when set the request is never allowed
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allow: bool = Field(..., description="Whether the request is permitted")
    message: str = Field(default="", description="Explanation of the decision")
    error: str = Field(default="", description="Failure description")

    @model_validator(mode="after")
    def check_error_denies(self) -> "Decision":
        """An errored decision can never allow."""
        if self.error and self.allow:
            msg = "A decision with an error cannot allow the request"
            raise ValueError(msg)
        return self

    @classmethod
    def permit(cls, message: str) -> "Decision":
        """Create an ALLOW decision."""
        return cls(allow=True, message=message)

    @classmethod
    def deny(cls, message: str) -> "Decision":
        """Create a DENY decision."""
        return cls(allow=False, message=message)

    @classmethod
    def failure(cls, error: str) -> "Decision":
        """Create a DENY decision caused by an error."""
        return cls(allow=False, message="Authorization failed", error=error)

    def to_plugin_payload(self) -> dict[str, Any]:
        """Render the decision in the Docker plugin response format."""
        return {"Allow": self.allow, "Msg": self.message, "Err": self.error}


class AuditRecord(BaseModel):
    """
    An append-only audit log entry.

    Serialized as one JSON object per line with the keys
    method, uri, user, allow, msg, err and time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: str
    uri: str
    user: str
    allow: bool
    msg: str
    err: str
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_decision(cls, request: Request, decision: Decision) -> "AuditRecord":
        """Derive a record from a request and the decision made for it."""
        return cls(
            method=request.method,
            uri=request.uri,
            user=request.user,
            allow=decision.allow,
            msg=decision.message,
            err=decision.error,
        )

    def to_line(self) -> str:
        """Serialize to a single JSON line (without the trailing newline)."""
        return self.model_dump_json()
