"""
Exception hierarchy for authzgate.

All authzgate exceptions inherit from GatekeeperError, allowing callers to
catch every gatekeeper-specific exception with a single except clause.

Exception Categories:
    - ConfigError: Malformed policy set or settings (fatal to startup)
    - AuditError: Audit destination unavailable or misused (per call)

There is deliberately no error for classification: an unrecognized request
shape degrades to the generic action id instead of raising.

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (policy, pattern, hook where applicable)
    - All errors provide actionable suggestions where possible
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Configuration errors: 1xxx
ERROR_CONFIG_INVALID = 1001
ERROR_CONFIG_NOT_FOUND = 1002
ERROR_CONFIG_PATTERN = 1003
ERROR_CONFIG_AMBIGUOUS = 1004

# Audit errors: 2xxx
ERROR_AUDIT_ARGUMENT = 2001
ERROR_AUDIT_INIT = 2002
ERROR_AUDIT_WRITE = 2003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class GatekeeperError(Exception):
    """
    Base exception for all authzgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(GatekeeperError):
    """
    Raised when a policy set or the gatekeeper settings are malformed.

    A ConfigError is fatal: the gatekeeper must not serve traffic with a
    partially loaded policy set.

    Attributes:
        source: Where the configuration came from (file path or "<string>")
    """

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.source}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["source"] = self.source


@dataclass
class PolicyPatternError(ConfigError):
    """Raised when a policy action pattern is not a valid regular expression."""

    policy: str = ""
    pattern: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Invalid action pattern {self.pattern!r} in policy "
                f"'{self.policy}': {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_CONFIG_PATTERN
        if not self.suggestion:
            self.suggestion = "Action patterns are Python regular expressions matched against the whole action id"
        super().__post_init__()
        self.context.update({
            "policy": self.policy,
            "pattern": self.pattern,
            "underlying_error": self.underlying_error,
        })


@dataclass
class PolicyAmbiguityError(ConfigError):
    """Raised in strict mode when a user is claimed by more than one policy."""

    user: str = ""
    policies: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"User '{self.user}' appears in multiple policies: "
                f"{', '.join(self.policies)}"
            )
        if self.code == 0:
            self.code = ERROR_CONFIG_AMBIGUOUS
        if not self.suggestion:
            self.suggestion = "Each user must belong to exactly one policy in strict mode"
        super().__post_init__()
        self.context.update({
            "user": self.user,
            "policies": self.policies,
        })


# =============================================================================
# Audit Errors
# =============================================================================


@dataclass
class AuditError(GatekeeperError):
    """
    Base class for audit errors.

    Audit errors are recoverable per call. They are reported to the
    operator and never change an already computed decision.

    Attributes:
        hook: The audit destination in use ("", "file" or "syslog")
    """

    hook: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["hook"] = self.hook


@dataclass
class AuditArgumentError(AuditError):
    """Raised when record() is called without a request or a decision."""

    argument: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Audit {self.argument} is missing"
        if self.code == 0:
            self.code = ERROR_AUDIT_ARGUMENT
        super().__post_init__()
        self.context["argument"] = self.argument


@dataclass
class AuditInitError(AuditError):
    """Raised when the audit destination cannot be opened."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to initialize audit destination: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_AUDIT_INIT
        if not self.suggestion:
            self.suggestion = "Check that the audit log path is writable or that syslog is running"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class AuditWriteError(AuditError):
    """Raised when writing an audit record fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to write audit record: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_AUDIT_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
