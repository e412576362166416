"""
CLI entry point for autoapprove.

This module provides the Typer-based command-line interface.

Commands:
    hook            Decide one PermissionRequest read from stdin
    cache list      List cached verdicts
    cache stats     Summarize the cache
    cache clear     Remove cached verdicts (all, by verdict, by key, by text)
    config show     Print the effective config
    config path     Print the config file location
    config update-prompt  Save the built-in baseline policy into the config
    log stats       Summarize the decision log
    log tail        Show recent decisions
    doctor          Check config, credential and judgment-service access

Architecture Note:
    The CLI is thin: it loads the config once, builds the handler, and
    prints. stdout belongs to the hook protocol, so diagnostics go to stderr.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from autoapprove import __version__
from autoapprove.arbiter import SYSTEM_PROMPT_VERSION, OpenAICompatibleArbiter
from autoapprove.audit import LOG_FILE, DecisionLog
from autoapprove.cache import CACHE_FILE, DecisionCache
from autoapprove.config import (
    get_api_key,
    get_config_dir,
    get_config_path,
    load_config,
    read_config,
    upgrade_system_prompt,
)
from autoapprove.errors import ConfigLoadError
from autoapprove.handler import INVALID_INPUT_REASON, PermissionHandler
from autoapprove.schema import (
    Config,
    DecisionLogEntry,
    DecisionSource,
    PermissionRequestOutput,
    Verdict,
)

app = typer.Typer(
    name="autoapprove",
    help="Auto-approve or deny coding-agent tool requests.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()
err_console = Console(stderr=True)

ConfigDirOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config-dir",
        help="Config directory. Defaults to ~/.autoapprove.",
        envvar="AUTOAPPROVE_HOME",
        resolve_path=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]autoapprove[/bold] version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log diagnostics to stderr.",
        ),
    ] = False,
) -> None:
    """
    autoapprove - a permission hook for coding agents.

    Requests go through fast rules, then a decision cache, then a language
    model. Any failure on the way denies.
    """
    _configure_logging(verbose)


# =============================================================================
# Hook
# =============================================================================


def _emit(output: PermissionRequestOutput | None) -> None:
    # Passthrough prints nothing
    if output is not None:
        sys.stdout.write(output.to_json() + "\n")


@app.command()
def hook(config_dir: ConfigDirOption = None) -> None:
    """
    Decide one PermissionRequest read from stdin.

    Prints the decision JSON, or nothing when the request should go to the
    human. Always exits 0; any unexpected failure prints a deny.

    Example:
        $ echo '{"tool_name": "Read", "tool_input": {}}' | autoapprove hook
    """
    try:
        payload = json.loads(sys.stdin.read())
    except ValueError:
        _emit(PermissionRequestOutput.deny(INVALID_INPUT_REASON))
        raise typer.Exit(code=0)

    config_dir = config_dir or get_config_dir()
    config: Config | None = None
    try:
        config = load_config(config_dir)
        with PermissionHandler.from_config(config, config_dir) as handler:
            output = handler.handle(payload)
    except Exception as e:
        logging.getLogger(__name__).exception("Permission hook failed")
        reason = f"autoapprove internal error: {e}"
        _record_failure(config_dir, config, payload, reason)
        output = PermissionRequestOutput.deny(reason)

    _emit(output)
    raise typer.Exit(code=0)


def _record_failure(
    config_dir: Path,
    config: Config | None,
    payload: object,
    reason: str,
) -> None:
    """Log the deny emitted when the pipeline itself failed."""
    fields = payload if isinstance(payload, dict) else {}
    tool_name = fields.get("tool_name")
    session_id = fields.get("session_id")
    DecisionLog(
        config_dir / LOG_FILE,
        enabled=config.logging.enabled if config is not None else True,
    ).record(
        DecisionLogEntry(
            tool_name=tool_name if isinstance(tool_name, str) and tool_name else "unknown",
            decision=Verdict.DENY,
            reason=reason,
            source=DecisionSource.FAST,
            session_id=session_id if isinstance(session_id, str) else None,
        )
    )


# =============================================================================
# Cache Subcommand Group
# =============================================================================

cache_app = typer.Typer(
    name="cache",
    help="Inspect and clear cached verdicts.",
    no_args_is_help=True,
)
app.add_typer(cache_app, name="cache")


def _open_cache(config_dir: Path | None) -> DecisionCache:
    config_dir = config_dir or get_config_dir()
    config = load_config(config_dir)
    return DecisionCache(
        config_dir / CACHE_FILE,
        enabled=config.cache.enabled,
        ttl_hours=config.cache.ttl_hours,
    )


@cache_app.command("list")
def cache_list(
    config_dir: ConfigDirOption = None,
    project: Annotated[
        Optional[str],
        typer.Option("--project", "-p", help="Only entries for this project root."),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of entries to show."),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output entries in JSON format."),
    ] = False,
) -> None:
    """
    List cached verdicts, most recent first.

    Example:
        $ autoapprove cache list --project ~/src/app
    """
    entries = _open_cache(config_dir).list_entries(project)[:limit]

    if json_output:
        print(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        console.print("[dim]No cached decisions.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Created")
    table.add_column("Decision", width=8)
    table.add_column("Tool")
    table.add_column("Input")
    table.add_column("Reason")

    for entry in entries:
        decision = (
            "[green]allow[/green]" if entry.decision == "allow" else "[red]deny[/red]"
        )
        tool_input = json.dumps(entry.tool_input, default=str)
        if len(tool_input) > 50:
            tool_input = tool_input[:47] + "..."
        table.add_row(
            entry.key[:12],
            entry.created_at.isoformat()[:19],
            decision,
            entry.tool_name,
            tool_input,
            entry.reason,
        )

    console.print(table)


@cache_app.command("stats")
def cache_stats(config_dir: ConfigDirOption = None) -> None:
    """Show how many verdicts are cached."""
    cache = _open_cache(config_dir)
    stats = cache.stats()

    console.print(f"[bold]Decision cache[/bold] [dim]{cache.path}[/dim]")
    if not cache.enabled:
        console.print("  [yellow]Caching is disabled in config[/yellow]")
    console.print(f"  Entries: {stats.entries} ({stats.allowed} allow, {stats.denied} deny)")
    if stats.oldest is not None:
        console.print(f"  Oldest: {stats.oldest.isoformat()[:19]}")


@cache_app.command("clear")
def cache_clear(
    config_dir: ConfigDirOption = None,
    allow: Annotated[
        bool,
        typer.Option("--allow", help="Only clear cached allow verdicts."),
    ] = False,
    deny: Annotated[
        bool,
        typer.Option("--deny", help="Only clear cached deny verdicts."),
    ] = False,
    key: Annotated[
        Optional[str],
        typer.Option("--key", "-k", help="Clear one entry by its full key."),
    ] = None,
    grep: Annotated[
        Optional[str],
        typer.Option("--grep", "-g", help="Clear entries whose tool, input or reason contain TEXT."),
    ] = None,
) -> None:
    """
    Remove cached verdicts.

    Example:
        $ autoapprove cache clear --grep "git push"
    """
    selectors = sum([allow, deny, key is not None, grep is not None])
    if selectors > 1:
        console.print("[red]Use only one of --allow, --deny, --key, --grep[/red]")
        raise typer.Exit(code=1)

    cache = _open_cache(config_dir)

    if key is not None:
        if cache.clear_by_key(key):
            console.print(f"[green]Removed entry {key}[/green]")
        else:
            console.print(f"[yellow]No entry with key {key}[/yellow]")
            raise typer.Exit(code=1)
        return

    if allow:
        removed = cache.clear_by_decision(Verdict.ALLOW)
    elif deny:
        removed = cache.clear_by_decision(Verdict.DENY)
    elif grep is not None:
        removed = cache.clear_matching(grep)
    else:
        removed = cache.clear()

    console.print(f"[green]Removed {removed} cached decision(s)[/green]")


# =============================================================================
# Config Subcommand Group
# =============================================================================

config_app = typer.Typer(
    name="config",
    help="Show and update the configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def _redacted(config: Config) -> dict:
    data = config.model_dump(mode="json")
    if data["llm"].get("api_key"):
        data["llm"]["api_key"] = "***"
    if data["llm"].get("system_prompt"):
        data["llm"]["system_prompt"] = f"<{len(data['llm']['system_prompt'])} chars>"
    return data


@config_app.command("show")
def config_show(config_dir: ConfigDirOption = None) -> None:
    """Print the effective config (API key redacted)."""
    config = load_config(config_dir or get_config_dir())
    print(json.dumps(_redacted(config), indent=2))


@config_app.command("path")
def config_path(config_dir: ConfigDirOption = None) -> None:
    """Print the config file location."""
    print(get_config_path(config_dir or get_config_dir()))


@config_app.command("update-prompt")
def config_update_prompt(config_dir: ConfigDirOption = None) -> None:
    """Save the built-in baseline policy text into the config."""
    upgrade_system_prompt(config_dir or get_config_dir())
    console.print(f"[green]System prompt updated to version {SYSTEM_PROMPT_VERSION}[/green]")


# =============================================================================
# Log Subcommand Group
# =============================================================================

log_app = typer.Typer(
    name="log",
    help="Inspect the decision log.",
    no_args_is_help=True,
)
app.add_typer(log_app, name="log")


def _open_log(config_dir: Path | None) -> DecisionLog:
    return DecisionLog((config_dir or get_config_dir()) / LOG_FILE)


@log_app.command("stats")
def log_stats(config_dir: ConfigDirOption = None) -> None:
    """Show decision log size."""
    decision_log = _open_log(config_dir)
    stats = decision_log.stats()
    if stats is None:
        console.print(f"[dim]No decision log at {decision_log.path}[/dim]")
        return
    console.print(f"[bold]Decision log[/bold] [dim]{decision_log.path}[/dim]")
    console.print(f"  Entries: {stats.entries}")
    console.print(f"  Size: {stats.size_bytes} bytes")


@log_app.command("tail")
def log_tail(
    config_dir: ConfigDirOption = None,
    count: Annotated[
        int,
        typer.Option("--count", "-n", help="Number of decisions to show."),
    ] = 20,
) -> None:
    """Show the most recent decisions."""
    entries = _open_log(config_dir).tail(count)
    if not entries:
        console.print("[dim]No decisions logged.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Time")
    table.add_column("Tool", style="cyan")
    table.add_column("Decision", width=11)
    table.add_column("Source", width=6)
    table.add_column("Reason")

    colors = {"allow": "green", "deny": "red", "passthrough": "yellow"}
    for entry in entries:
        decision = entry.get("decision", "")
        color = colors.get(decision, "white")
        table.add_row(
            str(entry.get("timestamp", ""))[:19],
            entry.get("tool_name", ""),
            f"[{color}]{decision}[/{color}]",
            entry.get("source", ""),
            entry.get("reason", ""),
        )

    console.print(table)


# =============================================================================
# Doctor
# =============================================================================


@app.command()
def doctor(
    config_dir: ConfigDirOption = None,
    check_connection: Annotated[
        bool,
        typer.Option(
            "--check-connection",
            help="Also contact the judgment service.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Check configuration and dependencies.

    Example:
        $ autoapprove doctor --check-connection
    """
    config_dir = config_dir or get_config_dir()
    checks = []

    # Check 1: Config file
    config_file = get_config_path(config_dir)
    try:
        config = read_config(config_dir)
        checks.append({"name": "Config", "ok": True, "value": str(config_file), "message": "OK"})
    except FileNotFoundError:
        config = Config()
        checks.append({
            "name": "Config",
            "ok": True,
            "value": str(config_file),
            "message": "Not found (defaults will be written on first hook run)",
        })
    except ConfigLoadError as e:
        config = Config()
        checks.append({"name": "Config", "ok": False, "value": str(config_file), "message": e.message})

    # Check 2: Credential
    api_key = get_api_key(config)
    checks.append({
        "name": "API key",
        "ok": api_key is not None,
        "value": config.llm.provider,
        "message": "Found" if api_key else "Missing: unmatched requests will be denied",
    })

    # Check 3: Prompt version
    prompt_current = (
        config.llm.system_prompt is None
        or config.llm.system_prompt_version >= SYSTEM_PROMPT_VERSION
        or config.auto_update_system_prompt
    )
    checks.append({
        "name": "System prompt",
        "ok": prompt_current,
        "value": f"v{config.llm.system_prompt_version}",
        "message": "OK" if prompt_current else "Outdated; run: autoapprove config update-prompt",
    })

    # Check 4: Cache
    stats = DecisionCache(config_dir / CACHE_FILE, enabled=config.cache.enabled).stats()
    checks.append({
        "name": "Cache",
        "ok": True,
        "value": "enabled" if config.cache.enabled else "disabled",
        "message": f"{stats.entries} entries, TTL {config.cache.ttl_hours}h",
    })

    # Check 5: Decision log
    log_stats = DecisionLog(config_dir / LOG_FILE).stats()
    checks.append({
        "name": "Decision log",
        "ok": True,
        "value": "enabled" if config.logging.enabled else "disabled",
        "message": f"{log_stats.entries} entries" if log_stats else "No log yet",
    })

    # Check 6: Judgment service
    if check_connection:
        with OpenAICompatibleArbiter(config.llm, api_key=api_key) as arbiter:
            ok, message = arbiter.check_connection()
        checks.append({"name": "Judgment service", "ok": ok, "value": config.llm.model, "message": message})

    all_ok = all(check["ok"] for check in checks)

    if json_output:
        print(json.dumps({"ok": all_ok, "version": __version__, "checks": checks}, indent=2))
    else:
        console.print(f"[bold]autoapprove doctor[/bold] v{__version__}")
        console.print()
        for check in checks:
            icon = "[green]✓[/green]" if check["ok"] else "[red]✗[/red]"
            if check["ok"]:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")
            else:
                console.print(f"{icon} {check['name']}: [dim]{check['value']}[/dim]")
                console.print(f"    [red]{check['message']}[/red]")
        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
