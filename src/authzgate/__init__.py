"""
authzgate - Policy-based authorization plugin for the Docker daemon.

authzgate sits between Docker clients and the daemon. Every API call is
classified into an action, checked against a flat user -> actions policy
set, and recorded in an append-only audit log.

It provides:
- Deny-by-default authorization with per-user action patterns
- Readonly policies that only allow read actions
- Audit records to stdout, a file or syslog

Example usage:
    $ authzgate serve --policy-file policy.yaml --auditor-hook file
    $ authzgate check policy.yaml --user alice --method POST --uri /containers/create
"""

__version__ = "0.1.0"
__author__ = "authzgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
