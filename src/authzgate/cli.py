"""
CLI entry point for authzgate.

This module provides the Typer-based command-line interface for authzgate.

Commands:
    serve       Run the Docker authorization plugin
    validate    Load a policy file and report problems
    check       Evaluate a single request against a policy file
    classify    Show the action id for a method and URI

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    gatekeeper and server modules. The core can be used programmatically
    without the CLI.
"""

import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from authzgate import __version__
from authzgate.config import GatekeeperSettings, load_settings, parse_hook
from authzgate.errors import ConfigError
from authzgate.log import init_logging
from authzgate.policy import PolicyEngine, PolicyStore
from authzgate.routes import classify as classify_action
from authzgate.routes import is_read_action
from authzgate.schema import Request

# Initialize Typer app with metadata
app = typer.Typer(
    name="authzgate",
    help="Policy-based authorization plugin for the Docker daemon.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]authzgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    authzgate - Authorization plugin for docker.

    Every Docker API call is checked against a user -> actions policy set
    and recorded in an audit log.
    """
    pass


@app.command()
def serve(
    policy_file: Annotated[
        Optional[Path],
        typer.Option(
            "--policy-file",
            help="Path to the policy file.",
            envvar="POLICY_FILE",
            resolve_path=True,
        ),
    ] = None,
    auditor_hook: Annotated[
        Optional[str],
        typer.Option(
            "--auditor-hook",
            help="Audit destination: '' (stdout), 'file' or 'syslog'.",
            envvar="AUDITOR_HOOK",
        ),
    ] = None,
    audit_log_path: Annotated[
        Optional[Path],
        typer.Option(
            "--audit-log-path",
            help="Audit log file, used with the file hook.",
            envvar="AUDIT_LOG_PATH",
        ),
    ] = None,
    socket_path: Annotated[
        Optional[Path],
        typer.Option(
            "--socket",
            help="Unix socket to listen on.",
        ),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a YAML settings file. Flags override its values.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option(
            "--strict",
            help="Refuse to start if a user appears in more than one policy.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Enable debug mode.",
            envvar="DEBUG",
        ),
    ] = False,
) -> None:
    """
    Run the Docker authorization plugin.

    Loads the policy file, then serves the plugin protocol on a unix socket
    until interrupted.

    Example:
        $ authzgate serve --policy-file /etc/authzgate/policy.yaml --auditor-hook syslog
    """
    try:
        settings = build_settings(
            config_path=config_path,
            policy_file=policy_file,
            auditor_hook=auditor_hook,
            audit_log_path=audit_log_path,
            socket_path=socket_path,
            strict=strict,
            debug=debug,
        )
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    init_logging(settings.debug)

    # Imported here so the other commands don't pay for the web stack
    from authzgate.server import serve as serve_plugin

    try:
        serve_plugin(settings)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        if settings.debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)


def build_settings(
    config_path: Path | None = None,
    policy_file: Path | None = None,
    auditor_hook: str | None = None,
    audit_log_path: Path | None = None,
    socket_path: Path | None = None,
    strict: bool = False,
    debug: bool = False,
) -> GatekeeperSettings:
    """
    Merge the settings file with command-line overrides.

    Raises:
        ConfigError: If the settings file or the audit hook is invalid
    """
    base = load_settings(config_path) if config_path else GatekeeperSettings()
    data = base.model_dump()

    if policy_file is not None:
        data["policy_path"] = policy_file
    if auditor_hook is not None:
        data["audit"]["hook"] = parse_hook(auditor_hook)
    if audit_log_path is not None:
        data["audit"]["log_path"] = audit_log_path
    if socket_path is not None:
        data["socket_path"] = socket_path
    if strict:
        data["strict"] = True
    if debug:
        data["debug"] = True

    return GatekeeperSettings.model_validate(data)


@app.command()
def validate(
    policy_file: Annotated[
        Path,
        typer.Argument(
            help="Path to the policy file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    strict: Annotated[
        bool,
        typer.Option(
            "--strict",
            help="Treat users in more than one policy as an error.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Load a policy file and report problems.

    Example:
        $ authzgate validate policy.yaml --strict
    """
    try:
        store = PolicyStore.from_file(policy_file, strict=strict)
    except ConfigError as e:
        if json_output:
            print(json.dumps({"valid": False, "error": e.to_dict()}, indent=2))
        else:
            console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    ambiguous = store.ambiguous_users()

    if json_output:
        output = {
            "valid": True,
            "policies": [p.model_dump() for p in store],
            "ambiguous_users": ambiguous,
        }
        print(json.dumps(output, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Policy", style="cyan")
    table.add_column("Users")
    table.add_column("Actions")
    table.add_column("Readonly", width=8)

    for policy in store:
        table.add_row(
            policy.name,
            ", ".join(policy.users),
            ", ".join(policy.actions),
            "[yellow]yes[/yellow]" if policy.readonly else "no",
        )

    console.print(f"[green]✓[/green] Loaded [bold]{len(store)}[/bold] policies from {policy_file}")
    console.print(table)

    for user, owners in ambiguous.items():
        console.print(
            f"[yellow]Warning: user '{user}' appears in {', '.join(owners)}; "
            f"'{owners[0]}' is used[/yellow]"
        )


@app.command()
def check(
    policy_file: Annotated[
        Path,
        typer.Argument(
            help="Path to the policy file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    user: Annotated[
        str,
        typer.Option(
            "--user",
            "-u",
            help="Authenticated user making the request.",
        ),
    ],
    method: Annotated[
        str,
        typer.Option(
            "--method",
            "-m",
            help="HTTP method of the request.",
        ),
    ] = "GET",
    uri: Annotated[
        str,
        typer.Option(
            "--uri",
            help="Request URI, e.g. /v1.41/containers/json.",
        ),
    ] = "/",
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Evaluate a single request against a policy file.

    Nothing is audited. Exits 0 if the request is allowed, 1 otherwise.

    Example:
        $ authzgate check policy.yaml --user alice --method POST --uri /containers/create
    """
    try:
        store = PolicyStore.from_file(policy_file)
    except ConfigError as e:
        if json_output:
            print(json.dumps({"error": e.to_dict()}, indent=2))
        else:
            console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    request = Request(method=method, uri=uri, user=user)
    decision = PolicyEngine(store).evaluate(request)

    if json_output:
        output = {
            "action": classify_action(method, uri),
            "allow": decision.allow,
            "message": decision.message,
            "error": decision.error,
        }
        print(json.dumps(output, indent=2))
    elif decision.allow:
        console.print(f"[green]✓ allowed[/green] {decision.message}")
    else:
        console.print(f"[red]✗ denied[/red] {decision.message}")

    raise typer.Exit(code=0 if decision.allow else 1)


@app.command()
def classify(
    method: Annotated[str, typer.Argument(help="HTTP method.")],
    uri: Annotated[str, typer.Argument(help="Request URI.")],
) -> None:
    """
    Show the action id a request is classified as.

    Example:
        $ authzgate classify POST /v1.41/containers/create
    """
    action = classify_action(method, uri)
    kind = "read" if is_read_action(action) else "write"
    console.print(f"{action} [dim]({kind})[/dim]")


if __name__ == "__main__":
    app()
