"""epicgraph CLI for rendering Jira epics as Mermaid blocking graphs.

Subcommands:
    generate  — Build the graph for one epic and write it as HTML
    config    — Manage stored Jira connection settings
"""

import json
from pathlib import Path

import typer

from epicgraph.backends.factory import SourceMode, create_source
from epicgraph.backends.jira import IssueSource
from epicgraph.errors import EpicGraphError
from epicgraph.graph.builder import GraphBuilder
from epicgraph.graph.renderer import render_mermaid, write_html
from epicgraph.graph.reporter import BuildReporter, RealReporter, SilentReporter
from epicgraph.state.config import DEFAULT_TIMEOUT, ConfigStore, JiraConfig

app = typer.Typer(name="epicgraph")
config_app = typer.Typer(name="config", help="Manage stored Jira settings.")
app.add_typer(config_app)

DEFAULT_OUTPUT_DIR = Path("output")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Render Jira epics as Mermaid blocking graphs.

    Run without a subcommand to print this help; that exits with status 1.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=1)


def get_default_config_store() -> ConfigStore:
    """Return the default settings store."""
    return ConfigStore()


def open_source(fixture: Path | None = None) -> IssueSource:
    """Return a fixture-backed source, or a Jira source from stored settings.

    Raises ConfigError when Jira settings are incomplete.
    """
    if fixture is not None:
        return create_source(SourceMode.FIXTURE, fixture_path=fixture)
    config = get_default_config_store().resolve()
    return create_source(SourceMode.REAL, config=config)


def generate_mermaid(
    epic_key: str, source: IssueSource, reporter: BuildReporter
) -> str:
    """Build the epic's graph and return it as Mermaid text."""
    graph = GraphBuilder(source, reporter).build(epic_key)
    summary = reporter.summarize(
        epic_key,
        task_count=len(graph.tasks),
        edge_count=sum(1 for _ in graph.edges()),
        failures=len(graph.failures),
    )
    if summary:
        typer.echo(summary, err=True)
    return render_mermaid(graph.tasks, graph.blocked_by, graph.epic_key)


@app.command()
def generate(
    epic_key: str | None = typer.Argument(
        None, help="Key of the epic to graph, e.g. PROP-292."
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, "--output-dir", "-o", help="Directory for the HTML file."
    ),
    fixture: Path | None = typer.Option(
        None, "--fixture", help="Read issues from a JSON snapshot instead of Jira."
    ),
    stdout: bool = typer.Option(
        False, "--stdout", help="Print the Mermaid text instead of writing HTML."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress progress output."
    ),
) -> None:
    """Build the blocking graph for an epic and write it as HTML."""
    if not epic_key:
        typer.echo("Usage: epicgraph generate <EPIC_KEY>", err=True)
        raise typer.Exit(code=1)

    reporter: BuildReporter = SilentReporter() if quiet else RealReporter()

    try:
        source = open_source(fixture)
    except EpicGraphError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except (OSError, json.JSONDecodeError) as exc:
        if fixture is None:
            raise
        typer.echo(f"Error: could not read fixture {fixture}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    try:
        mermaid = generate_mermaid(epic_key, source, reporter)
    except EpicGraphError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if stdout:
        typer.echo(mermaid)
        return

    path = write_html(mermaid, epic_key, output_dir)
    typer.echo(f"Wrote output to {path}")


@config_app.command("set")
def config_set(
    url: str = typer.Option(..., "--url", help="Jira base URL."),
    user: str = typer.Option(..., "--user", help="Jira account email."),
    token: str = typer.Option(
        ..., prompt=True, hide_input=True, help="Jira API token."
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT, "--timeout", help="Per-request timeout in seconds."
    ),
) -> None:
    """Store Jira connection settings."""
    store = get_default_config_store()
    store.save(
        JiraConfig(base_url=url, username=user, api_token=token, timeout=timeout)
    )
    typer.echo(f"Saved Jira settings to {store.path}")


@config_app.command("show")
def config_show() -> None:
    """Show the effective settings (stored values plus JIRA_* overrides)."""
    try:
        config = get_default_config_store().resolve()
    except EpicGraphError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    missing = config.missing_fields()
    if not any((config.base_url, config.username, config.api_token)):
        typer.echo("No Jira settings configured.")
        return
    typer.echo(f"  URL: {config.base_url or '(unset)'}")
    typer.echo(f"  User: {config.username or '(unset)'}")
    typer.echo(f"  Token: {config.masked_token or '(unset)'}")
    typer.echo(f"  Timeout: {config.timeout:g}s")
    if missing:
        typer.echo(f"  WARNING: missing {', '.join(missing)}")


@config_app.command("clear")
def config_clear() -> None:
    """Remove stored Jira settings."""
    store = get_default_config_store()
    if not store.clear():
        typer.echo("No stored settings to remove", err=True)
        raise typer.Exit(code=1)
    typer.echo("Stored settings removed")


if __name__ == "__main__":
    app()
