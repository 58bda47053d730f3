"""
Decision Engine for authzgate.

The Decision Engine is the security boundary of the gatekeeper. Every
request the Docker daemon forwards is evaluated here before it is allowed.

Design Principles:
    - Deny-by-default: A request is blocked unless a policy allows it
    - Fail-closed: Unknown users and unclassifiable requests are denied
    - Predictable: Same inputs always produce same decisions
    - Auditable: All decisions include clear reasons

How it works:
    1. Classify the request into an action id
    2. Find the caller's policy (first match in load order)
    3. No policy: deny
    4. Readonly policy and a mutating action: deny
    5. Any action pattern fully matches: allow, otherwise deny

Responses flowing back from the daemon are not subject to policy and are
always allowed.

Security Note:
    Decision messages are shown to Docker clients. They name actions and
    policies but never the patterns a policy contains.
"""

import logging
from collections.abc import Callable

from authzgate.policy.store import PolicyStore
from authzgate.routes import classify, is_read_action
from authzgate.schema import Decision, Request

logger = logging.getLogger(__name__)


class PolicyEngine:
    """
    Evaluates Docker requests against a PolicyStore.

    Usage:
        engine = PolicyEngine(store)
        decision = engine.evaluate(request)
        if decision.allow:
            # forward to the daemon
        else:
            # reject with decision.message

    Attributes:
        store: The policies to enforce
    """

    def __init__(
        self,
        store: PolicyStore,
        classifier: Callable[[str, str], str] = classify,
    ) -> None:
        """
        Initialize the decision engine.

        Args:
            store: The policies to enforce
            classifier: Maps (method, uri) to an action id
        """
        self.store = store
        self._classify = classifier

    def evaluate(self, request: Request) -> Decision:
        """
        Decide whether a request may reach the daemon.

        Never raises for a well-formed request; every outcome, including
        unknown users and unknown routes, is an explicit decision.

        Args:
            request: The intercepted request

        Returns:
            Decision indicating allow/deny with reason
        """
        action = self._classify(request.method, request.uri)
        logger.debug(
            "Evaluating request, method: '%s', uri: '%s', action: '%s'",
            request.method,
            request.uri,
            action,
        )

        policy = self.store.find_policy(request.user)
        if policy is None:
            decision = Decision.deny(f"no policy found for user '{request.user}'")
        elif policy.readonly and not is_read_action(action):
            decision = Decision.deny(
                f"action '{action}' denied: policy '{policy.name}' is readonly"
            )
        elif policy.matches(action):
            decision = Decision.permit(
                f"action '{action}' allowed by policy '{policy.name}'"
            )
        else:
            decision = Decision.deny(
                f"action '{action}' not allowed by policy '{policy.name}'"
            )

        logger.debug(decision.message)
        return decision

    def evaluate_response(self, request: Request) -> Decision:
        """
        Decide on a response returned by the daemon.

        No policy applies to outbound traffic: the daemon has already acted
        on the request, so responses are always allowed.
        """
        return Decision.permit("responses are not subject to policy")
