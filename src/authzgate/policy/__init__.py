"""
Policy module for authzgate.

This module implements the authorization model: a flat mapping from users
to the Docker actions they may perform.

Key concepts:
    - Policy: A named set of users and the action patterns they may use
    - PolicyStore: The immutable policy set, searched in load order
    - PolicyEngine: Turns a request into an allow/deny Decision

The engine is the security boundary. It must be:
    - Fail-closed: Unknown users and unknown requests are denied
    - Predictable: Same inputs always produce same decisions
    - Auditable: All decisions carry a reason
"""

from authzgate.policy.engine import PolicyEngine
from authzgate.policy.store import PolicyStore

__all__ = [
    "PolicyEngine",
    "PolicyStore",
]
