"""
Configuration for authzgate.

Settings are a validated Pydantic model. They can be loaded from a YAML
file and are then overridden by command-line flags and environment
variables in the CLI.

Example settings file:
    policy_path: /etc/authzgate/policy.yaml
    strict: false
    audit:
      hook: file
      log_path: /var/log/authzgate.log
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authzgate.errors import ERROR_CONFIG_NOT_FOUND, ConfigError
from authzgate.schema import AuditHook

DEFAULT_AUDIT_LOG_PATH = Path("/var/log/authzgate.log")
DEFAULT_PLUGIN_DIR = Path("/run/docker/plugins")
PLUGIN_NAME = "authzgate"
DEFAULT_SOCKET_PATH = DEFAULT_PLUGIN_DIR / f"{PLUGIN_NAME}.sock"


class AuditSettings(BaseModel):
    """
    Where audit records go.

    Attributes:
        hook: Audit destination ("" for stdout, "file" or "syslog")
        log_path: Audit log file, used only with the file hook
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    hook: AuditHook = Field(
        default=AuditHook.STDOUT,
        description="Audit destination",
    )
    log_path: Path | None = Field(
        default=None,
        description="Audit log file (file hook only)",
    )

    @property
    def resolved_log_path(self) -> Path:
        """The audit log file, falling back to the default location."""
        return self.log_path or DEFAULT_AUDIT_LOG_PATH


class GatekeeperSettings(BaseModel):
    """
    Complete gatekeeper configuration.

    Attributes:
        policy_path: Policy file to load at startup
        audit: Audit destination settings
        strict: Reject users that appear in more than one policy
        debug: Enable debug logging
        socket_path: Unix socket the plugin listens on
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    policy_path: Path | None = Field(
        default=None,
        description="Policy file to load at startup",
    )
    audit: AuditSettings = Field(
        default_factory=AuditSettings,
        description="Audit destination settings",
    )
    strict: bool = Field(
        default=False,
        description="Reject ambiguous policy sets",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )
    socket_path: Path = Field(
        default=DEFAULT_SOCKET_PATH,
        description="Plugin unix socket",
    )


def parse_hook(value: str) -> AuditHook:
    """
    Resolve an audit hook selector string.

    Raises:
        ConfigError: If the selector is not a known hook
    """
    try:
        return AuditHook(value)
    except ValueError as e:
        raise ConfigError(
            source="auditor-hook",
            message=f"Wrong audit hook value '{value}'",
            suggestion="Use one of: '' (stdout), 'file', 'syslog'",
        ) from e


def load_settings(path: Path | str) -> GatekeeperSettings:
    """
    Load gatekeeper settings from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated GatekeeperSettings object

    Raises:
        ConfigError: If the file is missing, not YAML, or doesn't match the schema
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(
            source=str(path),
            message=f"Cannot read settings file {path}: {e}",
            code=ERROR_CONFIG_NOT_FOUND,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            source=str(path),
            message=f"Settings file {path} is not valid YAML: {e}",
        ) from e

    try:
        return GatekeeperSettings.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(
            source=str(path),
            message=f"Invalid settings in {path}: {e}",
        ) from e
