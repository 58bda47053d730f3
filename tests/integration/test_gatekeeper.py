"""
Integration tests for the Gatekeeper.

Tests cover:
- End-to-end request handling with a file audit log
- Audit failures never changing decisions
- Response handling
- Building from settings
"""

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from authzgate.audit import AuditSink
from authzgate.config import AuditSettings, GatekeeperSettings
from authzgate.errors import AuditWriteError, ConfigError
from authzgate.gatekeeper import Gatekeeper
from authzgate.policy import PolicyEngine, PolicyStore
from authzgate.schema import AuditHook, Request


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def audit_path(temp_dir: Path) -> Path:
    return temp_dir / "audit" / "authzgate.log"


@pytest.fixture
def gatekeeper(policy_file: Path, audit_path: Path) -> Gatekeeper:
    """A gatekeeper auditing to a temporary file."""
    settings = GatekeeperSettings(
        policy_path=policy_file,
        audit=AuditSettings(hook=AuditHook.FILE, log_path=audit_path),
    )
    gk = Gatekeeper.from_settings(settings)
    yield gk
    gk.close()


def read_records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


# =============================================================================
# Request Handling
# =============================================================================


class TestHandleRequest:
    """Tests for handle_request()."""

    def test_allowed_request_is_audited(self, gatekeeper: Gatekeeper, audit_path: Path) -> None:
        """alice creates a container and the decision is recorded."""
        request = Request(method="POST", uri="/v1.41/containers/create", user="alice")
        decision = gatekeeper.handle_request(request)
        gatekeeper.close()

        assert decision.allow is True
        records = read_records(audit_path)
        assert len(records) == 1
        assert records[0]["user"] == "alice"
        assert records[0]["uri"] == "/v1.41/containers/create"
        assert records[0]["allow"] is True
        assert records[0]["msg"] == decision.message

    def test_denied_request_is_audited(self, gatekeeper: Gatekeeper, audit_path: Path) -> None:
        """Denials are recorded too."""
        decision = gatekeeper.handle_request(
            Request(method="POST", uri="/containers/create", user="bob")
        )
        gatekeeper.close()

        assert decision.allow is False
        records = read_records(audit_path)
        assert records[0]["allow"] is False
        assert "no policy found for user" in records[0]["msg"]

    def test_every_request_gets_one_record(self, gatekeeper: Gatekeeper, audit_path: Path) -> None:
        """The audit log has one line per request."""
        for user in ("alice", "bob", "carol", "dave"):
            gatekeeper.handle_request(Request(method="GET", uri="/containers/json", user=user))
        gatekeeper.close()
        assert [r["user"] for r in read_records(audit_path)] == ["alice", "bob", "carol", "dave"]

    def test_readonly_scenario(self, gatekeeper: Gatekeeper) -> None:
        """carol's readonly policy blocks container creation."""
        decision = gatekeeper.handle_request(
            Request(method="POST", uri="/containers/create", user="carol")
        )
        assert decision.allow is False


# =============================================================================
# Audit Failure Isolation
# =============================================================================


class TestAuditFailures:
    """Audit failures never change decisions."""

    def test_audit_error_keeps_allow(
        self, store: PolicyStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An allowed request stays allowed when auditing fails."""
        auditor = MagicMock(spec=AuditSink)
        auditor.record.side_effect = AuditWriteError(underlying_error="disk full")
        gk = Gatekeeper(PolicyEngine(store), auditor)

        with caplog.at_level(logging.ERROR, logger="authzgate"):
            decision = gk.handle_request(
                Request(method="POST", uri="/containers/create", user="alice")
            )

        assert decision.allow is True
        assert decision.error == ""
        assert "Failed to audit request" in caplog.text
        assert "disk full" in caplog.text

    def test_audit_error_keeps_deny(self, store: PolicyStore) -> None:
        """A denied request stays denied when auditing fails."""
        auditor = MagicMock(spec=AuditSink)
        auditor.record.side_effect = AuditWriteError(underlying_error="disk full")
        gk = Gatekeeper(PolicyEngine(store), auditor)

        decision = gk.handle_request(Request(method="POST", uri="/containers/create", user="bob"))
        assert decision.allow is False
        assert decision.error == ""

    def test_unwritable_audit_file(self, policy_file: Path, temp_dir: Path) -> None:
        """A real unwritable destination doesn't block authorization."""
        blocker = temp_dir / "file"
        blocker.write_text("")
        settings = GatekeeperSettings(
            policy_path=policy_file,
            audit=AuditSettings(hook=AuditHook.FILE, log_path=blocker / "audit.log"),
        )
        with Gatekeeper.from_settings(settings) as gk:
            decision = gk.handle_request(
                Request(method="GET", uri="/containers/json", user="alice")
            )
        assert decision.allow is True


# =============================================================================
# Responses
# =============================================================================


class TestHandleResponse:
    """Tests for handle_response()."""

    @pytest.mark.parametrize("user", ["alice", "bob", ""])
    def test_always_allowed(self, gatekeeper: Gatekeeper, user: str) -> None:
        """Responses are allowed for every user."""
        decision = gatekeeper.handle_response(
            Request(method="POST", uri="/containers/create", user=user)
        )
        assert decision.allow is True

    def test_not_audited(self, gatekeeper: Gatekeeper, audit_path: Path) -> None:
        """Responses leave no audit record."""
        gatekeeper.handle_response(Request(method="POST", uri="/containers/create", user="alice"))
        gatekeeper.close()
        assert not audit_path.exists()

    def test_passes_response_to_auditor(self, store: PolicyStore) -> None:
        """The response and its decision go to record_response, never to record."""
        auditor = MagicMock(spec=AuditSink)
        gk = Gatekeeper(PolicyEngine(store), auditor)
        request = Request(method="GET", uri="/info", user="bob")

        decision = gk.handle_response(request)

        assert decision.allow is True
        auditor.record_response.assert_called_once_with(request, decision)
        auditor.record.assert_not_called()


# =============================================================================
# Construction
# =============================================================================


class TestFromSettings:
    """Tests for Gatekeeper.from_settings()."""

    def test_no_policy_file_denies_everything(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Without a policy file every request is denied."""
        with Gatekeeper.from_settings(GatekeeperSettings()) as gk:
            decision = gk.handle_request(Request(method="GET", uri="/info", user="alice"))
        assert decision.allow is False

    def test_bad_policy_file_stops_startup(self, temp_dir: Path) -> None:
        """A malformed policy file raises before anything is served."""
        path = temp_dir / "policy.yaml"
        path.write_text("- name: ops\n  users: [alice]\n  actions: ['container_(']\n")
        with pytest.raises(ConfigError):
            Gatekeeper.from_settings(GatekeeperSettings(policy_path=path))

    def test_strict_setting(self, temp_dir: Path) -> None:
        """Strict settings reject ambiguous policy files."""
        path = temp_dir / "policy.yaml"
        path.write_text("- name: a\n  users: [alice]\n- name: b\n  users: [alice]\n")
        with pytest.raises(ConfigError):
            Gatekeeper.from_settings(GatekeeperSettings(policy_path=path, strict=True))
