"""
Gatekeeper for authzgate.

The Gatekeeper is the only component the plugin transport talks to. It
coordinates:
- Policy Engine: Decides whether a request is allowed
- Audit Sink: Records the decision

Request Flow:
    1. Evaluate the request against the policy set
    2. Record the request and decision in the audit log
    3. Return the decision, whatever happened in step 2

Design Principles:
    - Fail-closed for authorization: unknown means deny
    - Fail-open for auditing: an audit outage is reported to the operator
      but never turns into an authorization outage
"""

import logging

from authzgate.audit import AuditSink
from authzgate.config import GatekeeperSettings
from authzgate.errors import AuditError
from authzgate.policy import PolicyEngine, PolicyStore
from authzgate.schema import Decision, Request

logger = logging.getLogger(__name__)


class Gatekeeper:
    """
    Authorizes and audits Docker API calls.

    Usage:
        gatekeeper = Gatekeeper.from_settings(settings)
        decision = gatekeeper.handle_request(request)
        gatekeeper.close()

    Attributes:
        engine: Evaluates requests
        auditor: Records decisions
    """

    def __init__(self, engine: PolicyEngine, auditor: AuditSink) -> None:
        self.engine = engine
        self.auditor = auditor

    @classmethod
    def from_settings(cls, settings: GatekeeperSettings) -> "Gatekeeper":
        """
        Build a gatekeeper from settings.

        The policy set is loaded here, so a malformed policy file stops
        startup before any request is served.

        Raises:
            ConfigError: If the policy file is missing or malformed
        """
        if settings.policy_path is None:
            logger.warning("No policy file configured, every request will be denied")
            store = PolicyStore()
        else:
            store = PolicyStore.from_file(settings.policy_path, strict=settings.strict)
        return cls(PolicyEngine(store), AuditSink(settings.audit))

    def handle_request(self, request: Request) -> Decision:
        """Authorize a request flowing from the client to the daemon, then audit it."""
        decision = self.engine.evaluate(request)

        try:
            self.auditor.record(request, decision)
        except AuditError as e:
            logger.error("Failed to audit request '%s'", e)

        return decision

    def handle_response(self, request: Request) -> Decision:
        """Authorize a response flowing from the daemon back to the client."""
        decision = self.engine.evaluate_response(request)
        self.auditor.record_response(request, decision)
        return decision

    def close(self) -> None:
        self.auditor.close()

    def __enter__(self) -> "Gatekeeper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
