"""Click CLI — loads config, builds the backend registry, runs analyze/debate/compare."""

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, ConfigError, load_config
from diligence.analysis import panel_descriptors, run_analysis
from diligence.backend import BackendRegistry
from diligence.comparison import run_comparison
from diligence.debate import run_debate
from diligence.documents import load_document
from diligence.errors import DebateFailedError, InputError
from diligence.healthcheck import run_health_checks
from diligence.models import AnalysisRequest, BackendDescriptor, DebateTurn
from diligence.output import (
    analysis_to_dict,
    comparison_to_dict,
    console,
    debate_failure_to_dict,
    debate_to_dict,
    print_analysis,
    print_comparison,
    print_debate,
    save_report,
)

logger = logging.getLogger(__name__)

# Logs and health-check chatter; stdout is reserved for results (and --json).
err_console = Console(stderr=True)


@dataclass
class CliState:
    config: AppConfig
    output_dir: Path
    skip_health_check: bool
    as_json: bool


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _select_backends(
    config: AppConfig,
    registry: BackendRegistry,
    models_arg: str | None,
) -> list[BackendDescriptor]:
    """Configured panel (or --models override) restricted to registered backends.

    Roles come from the configured panel; backends outside it get a generic role.
    """
    panel = panel_descriptors(config)
    if models_arg:
        roles = {d.name: d.role for d in panel}
        requested = [m.strip() for m in models_arg.split(",") if m.strip()]
        panel = [BackendDescriptor(n, roles.get(n, "senior M&A due-diligence analyst")) for n in requested]

    selected = [d for d in panel if d.name in registry]
    skipped = [d.name for d in panel if d.name not in registry]
    if skipped:
        logger.warning("Skipping unavailable backends: %s", ", ".join(skipped))
    return selected


def _print_health(out: Console, results: dict[str, tuple[bool, str]]) -> list[str]:
    """Print one OK/FAIL line per backend and return the failed names."""
    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            out.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            out.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)
    return failed_names


def _check_and_filter(registry: BackendRegistry, as_json: bool = False) -> BackendRegistry:
    """Run health checks, print results, and ask the user what to do on failures.

    Returns the registry restricted to working backends. Exits if the user
    declines to continue or no backend passes. With ``as_json`` everything
    goes to stderr and failed backends are dropped without asking.
    """
    out = err_console if as_json else console
    out.print("\n[bold]Checking backends...[/bold]")
    results = asyncio.run(run_health_checks(registry))
    failed_names = _print_health(out, results)

    if not failed_names:
        out.print()
        return registry

    working = registry.only(n for n in results if n not in failed_names)
    if not len(working):
        out.print("\n[bold red]Error:[/bold red] No backends passed the health check.")
        sys.exit(1)

    out.print(f"\n[yellow]{len(failed_names)} backend(s) failed:[/yellow] {', '.join(failed_names)}")
    out.print(f"Working backends: {', '.join(sorted(working.names()))}")
    if as_json:
        logger.warning("Continuing without: %s", ", ".join(failed_names))
    elif not click.confirm("Continue with working backends only?", default=True):
        sys.exit(0)
    out.print()
    return working


def _registry(state: CliState) -> BackendRegistry:
    registry = BackendRegistry.from_config(state.config)
    if not len(registry):
        console.print("[bold red]Error:[/bold red] No backends available. Check API keys in .env.")
        sys.exit(1)
    if not state.skip_health_check:
        registry = _check_and_filter(registry, state.as_json)
    return registry


def _emit(
    state: CliState,
    data: dict[str, Any],
    kind: str,
    slug_source: str,
    render: Callable[[], None],
) -> None:
    """Save the report, then print it as JSON or through ``render``."""
    saved = save_report(data, state.output_dir, kind, slug_source)
    if state.as_json:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return
    render()
    console.print(f"\n[dim]Saved to: {escape(str(saved))}[/dim]")


def _input_error(exc: InputError) -> None:
    console.print(f"[bold red]Input error:[/bold red] {escape(str(exc))}")
    sys.exit(1)


def _front_matter_rounds(value: object, source: str) -> int:
    """Parse ``rounds`` from front matter.

    Raises:
        InputError: If the value is not a whole number.
    """
    if not isinstance(value, bool):
        try:
            return int(str(value).strip())
        except ValueError:
            pass
    raise InputError(f"{source}: front matter rounds must be a whole number, got {value!r}")


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print results as JSON")
@click.option("--settings", "settings_path", type=click.Path(), default=None,
              help="Alternate settings.yaml")
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    output_path: str | None,
    skip_health_check: bool,
    as_json: bool,
    settings_path: str | None,
) -> None:
    """dd-consensus -- multi-backend due-diligence analysis and debate.

    \b
    Examples:
      dd-consensus analyze merger_agreement.md
      dd-consensus debate "The MAC clause exclusions adequately protect the buyer" --rounds 2
      dd-consensus debate --file topic.md
      dd-consensus compare "Is the 10% indemnification cap sufficient?" --file spa.md
      dd-consensus check
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ConfigError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    ctx.obj = CliState(
        config=config,
        output_dir=Path(output_path) if output_path else config.defaults.output_dir,
        skip_health_check=skip_health_check,
        as_json=as_json,
    )


@main.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--models", default=None, help="Comma-separated backend list, overrides the panel")
@click.option("--timeout", "timeout_sec", type=float, default=None, help="Per-backend timeout in seconds")
@click.pass_obj
def analyze(state: CliState, document: str, models: str | None, timeout_sec: float | None) -> None:
    """Analyze DOCUMENT with every backend and report consensus."""
    config = state.config
    doc = load_document(Path(document), config.defaults.max_document_chars)
    registry = _registry(state)
    backends = _select_backends(config, registry, models)

    if not state.as_json:
        names = ", ".join(d.name for d in backends) or "no backends"
        console.print(f"\n[bold cyan]Analysis[/bold cyan] of {doc.title} with {names}")

    request = AnalysisRequest(text=doc.text, backends=backends, timeout_sec=timeout_sec)
    try:
        result = asyncio.run(
            run_analysis(
                request,
                registry,
                config.prompts,
                max_tokens=config.analysis.max_tokens,
                default_timeout_sec=config.defaults.timeout_sec,
                retry_on_timeout=config.defaults.retry_on_timeout,
                consensus_config=config.consensus,
            )
        )
    except InputError as exc:
        _input_error(exc)
        return

    _emit(state, analysis_to_dict(result), "analysis", doc.title, lambda: print_analysis(result))


@main.command()
@click.argument("topic", required=False)
@click.option("--file", "context_file", type=click.Path(exists=True, dir_okay=False),
              help="Document used as debate context; front matter may set topic and rounds")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--timeout", "timeout_sec", type=float, default=None, help="Per-turn timeout in seconds")
@click.pass_obj
def debate(
    state: CliState,
    topic: str | None,
    context_file: str | None,
    rounds: int | None,
    timeout_sec: float | None,
) -> None:
    """Debate TOPIC: one backend argues FOR, another AGAINST, a third judges."""
    config = state.config
    context = ""
    if context_file:
        doc = load_document(Path(context_file), config.defaults.max_document_chars)
        context = doc.text
        topic = topic or str(doc.metadata.get("topic", "")) or None
        if rounds is None and "rounds" in doc.metadata:
            try:
                rounds = _front_matter_rounds(doc.metadata["rounds"], context_file)
            except InputError as exc:
                _input_error(exc)
                return
    if not topic:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument or a --file with a topic.")
        sys.exit(1)

    registry = _registry(state)

    def on_turn(turn: DebateTurn) -> None:
        if not state.as_json:
            console.print(f"[green]OK[/green] Round {turn.round} {turn.side.upper()} ({turn.backend})")

    try:
        result = asyncio.run(
            run_debate(
                topic,
                registry,
                config.prompts,
                config.debate,
                context=context,
                rounds=rounds,
                timeout_sec=timeout_sec or config.defaults.timeout_sec,
                on_turn=on_turn,
            )
        )
    except InputError as exc:
        _input_error(exc)
        return
    except DebateFailedError as exc:
        console.print(f"[bold red]Debate failed:[/bold red] {escape(str(exc))}")
        save_report(debate_failure_to_dict(exc), state.output_dir, "debate", topic)
        sys.exit(1)

    _emit(state, debate_to_dict(result), "debate", topic, lambda: print_debate(result))


@main.command()
@click.argument("prompt")
@click.option("--file", "context_file", type=click.Path(exists=True, dir_okay=False),
              help="Document used as context for every backend")
@click.option("--models", default=None, help="Comma-separated backend list, overrides the panel")
@click.option("--timeout", "timeout_sec", type=float, default=None, help="Per-backend timeout in seconds")
@click.pass_obj
def compare(
    state: CliState,
    prompt: str,
    context_file: str | None,
    models: str | None,
    timeout_sec: float | None,
) -> None:
    """Ask every backend PROMPT and compare the answers side by side."""
    config = state.config
    context = ""
    if context_file:
        context = load_document(Path(context_file), config.defaults.max_document_chars).text

    registry = _registry(state)
    backends = _select_backends(config, registry, models)
    try:
        result = asyncio.run(
            run_comparison(
                prompt,
                backends,
                registry,
                config.prompts,
                config.compare,
                context=context,
                timeout_sec=timeout_sec or config.defaults.timeout_sec,
                retry_on_timeout=config.defaults.retry_on_timeout,
            )
        )
    except InputError as exc:
        _input_error(exc)
        return

    _emit(state, comparison_to_dict(result), "comparison", prompt, lambda: print_comparison(result))


@main.command()
@click.pass_obj
def check(state: CliState) -> None:
    """Ping every backend that has an API key."""
    registry = BackendRegistry.from_config(state.config)
    if not len(registry):
        console.print("[bold red]Error:[/bold red] No backends available. Check API keys in .env.")
        sys.exit(1)
    results = asyncio.run(run_health_checks(registry))
    if _print_health(console, results):
        sys.exit(1)


if __name__ == "__main__":
    main()
