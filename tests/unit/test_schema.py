"""
Unit tests for schema models.

Tests cover:
- Policy validation and pattern matching
- Request construction from plugin payloads
- Decision invariants and plugin rendering
- Audit record serialization
"""

import base64
import json

import pytest
from pydantic import ValidationError

from authzgate.schema import AuditHook, AuditRecord, Decision, Policy, Request


# =============================================================================
# Policy Tests
# =============================================================================


class TestPolicy:
    """Tests for the Policy model."""

    def test_defaults(self) -> None:
        """A policy only needs a name."""
        policy = Policy(name="empty")
        assert policy.users == []
        assert policy.actions == []
        assert policy.readonly is False

    def test_name_required(self) -> None:
        """Name must be present and non-empty."""
        with pytest.raises(ValidationError):
            Policy(users=["alice"])
        with pytest.raises(ValidationError):
            Policy(name="")

    def test_empty_user_rejected(self) -> None:
        """Empty user names are invalid."""
        with pytest.raises(ValidationError):
            Policy(name="p", users=["alice", ""])

    def test_invalid_pattern_rejected(self) -> None:
        """Action patterns must compile."""
        with pytest.raises(ValidationError, match="Invalid action pattern"):
            Policy(name="p", actions=["container_("])

    def test_extra_fields_rejected(self) -> None:
        """Unknown keys are a configuration mistake."""
        with pytest.raises(ValidationError):
            Policy(name="p", roles=["admin"])

    def test_frozen(self) -> None:
        """Policies cannot be changed after load."""
        policy = Policy(name="p")
        with pytest.raises(ValidationError):
            policy.readonly = True

    def test_matches_full_action(self) -> None:
        """Patterns match the whole action id."""
        policy = Policy(name="p", actions=["container_.*"])
        assert policy.matches("container_create")
        assert not policy.matches("image_list")

    def test_matches_is_not_substring(self) -> None:
        """A pattern matching part of the action id is not enough."""
        policy = Policy(name="p", actions=["container"])
        assert not policy.matches("container_create")
        assert not policy.matches("my_container")

    def test_no_actions_matches_nothing(self) -> None:
        """A policy without patterns allows nothing."""
        assert not Policy(name="p").matches("container_list")

    def test_applies_to(self) -> None:
        """applies_to checks user membership."""
        policy = Policy(name="p", users=["alice"])
        assert policy.applies_to("alice")
        assert not policy.applies_to("bob")
        assert not policy.applies_to("")


# =============================================================================
# Request Tests
# =============================================================================


class TestRequest:
    """Tests for the Request model."""

    def test_field_names(self) -> None:
        """Requests can be built with field names."""
        req = Request(method="POST", uri="/containers/create", user="alice")
        assert req.method == "POST"
        assert req.uri == "/containers/create"
        assert req.user == "alice"
        assert req.body == b""

    def test_from_plugin_payload(self) -> None:
        """Docker payload keys map onto request fields."""
        body = b'{"Image": "alpine"}'
        req = Request.from_plugin_payload({
            "User": "alice",
            "UserAuthNMethod": "TLS",
            "RequestMethod": "POST",
            "RequestURI": "/v1.41/containers/create",
            "RequestBody": base64.b64encode(body).decode(),
            "RequestHeaders": {"Content-Type": "application/json"},
        })
        assert req.user == "alice"
        assert req.method == "POST"
        assert req.uri == "/v1.41/containers/create"
        assert req.body == body

    def test_from_plugin_payload_nulls(self) -> None:
        """Null fields are treated as empty."""
        req = Request.from_plugin_payload({
            "User": None,
            "RequestMethod": "GET",
            "RequestURI": "/info",
            "RequestBody": None,
        })
        assert req.user == ""
        assert req.body == b""

    def test_from_plugin_payload_bad_body(self) -> None:
        """A body that is not base64 is rejected."""
        with pytest.raises(ValueError, match="base64"):
            Request.from_plugin_payload({"RequestBody": "not base64!"})


# =============================================================================
# Decision Tests
# =============================================================================


class TestDecision:
    """Tests for the Decision model."""

    def test_permit(self) -> None:
        """permit() creates an allow decision."""
        decision = Decision.permit("ok")
        assert decision.allow is True
        assert decision.message == "ok"
        assert decision.error == ""

    def test_deny(self) -> None:
        """deny() creates a deny decision without error."""
        decision = Decision.deny("no")
        assert decision.allow is False
        assert decision.error == ""

    def test_failure(self) -> None:
        """failure() denies and carries the error."""
        decision = Decision.failure("boom")
        assert decision.allow is False
        assert decision.error == "boom"
        assert decision.message

    def test_error_cannot_allow(self) -> None:
        """A decision with an error can never allow."""
        with pytest.raises(ValidationError):
            Decision(allow=True, message="ok", error="boom")

    def test_to_plugin_payload(self) -> None:
        """Decisions render with Docker plugin keys."""
        payload = Decision.deny("no").to_plugin_payload()
        assert payload == {"Allow": False, "Msg": "no", "Err": ""}


# =============================================================================
# Audit Record Tests
# =============================================================================


class TestAuditRecord:
    """Tests for the AuditRecord model."""

    def test_from_decision(self) -> None:
        """Records copy request and decision fields."""
        req = Request(method="GET", uri="/info", user="alice")
        record = AuditRecord.from_decision(req, Decision.permit("ok"))
        assert record.method == "GET"
        assert record.uri == "/info"
        assert record.user == "alice"
        assert record.allow is True
        assert record.msg == "ok"
        assert record.err == ""

    def test_to_line(self) -> None:
        """A record serializes to one JSON line with the audit keys."""
        req = Request(method="GET", uri="/info", user="alice")
        line = AuditRecord.from_decision(req, Decision.failure("x")).to_line()
        assert "\n" not in line
        data = json.loads(line)
        for key in ("method", "uri", "user", "allow", "msg", "err", "time"):
            assert key in data
        assert data["err"] == "x"


class TestAuditHook:
    """Tests for the AuditHook enum."""

    def test_values(self) -> None:
        """Hook selectors match the configuration strings."""
        assert AuditHook("") is AuditHook.STDOUT
        assert AuditHook("file") is AuditHook.FILE
        assert AuditHook("syslog") is AuditHook.SYSLOG

    def test_unknown_value(self) -> None:
        """Unknown selectors are rejected."""
        with pytest.raises(ValueError):
            AuditHook("kafka")
