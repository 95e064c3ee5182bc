"""Command line interface for the CortexMap graph and its history."""

import json
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import DB_FILE_NAME, find_data_dir, load_settings
from .constants import DEFAULT_LOG_LIMIT, SHORT_ID_LENGTH
from .engine import CortexEngine
from .errors import CortexMapError
from .timeutil import format_relative_time, parse_time_reference

console = Console()


def _engine(ctx: click.Context) -> CortexEngine:
    """Open the engine for this invocation; closed when the command ends."""
    engine = CortexEngine(ctx.obj["data_dir"], linear_history=ctx.obj["linear_history"])
    ctx.call_on_close(engine.close)
    return engine


def _fail(ctx: click.Context, error: Exception) -> NoReturn:
    code = getattr(error, "code", "error")
    console.print(f"[red]Error:[/red] [dim]\\[{code}][/dim] {escape(str(error))}")
    ctx.exit(1)


def _short(ident: str | None) -> str:
    return ident[:SHORT_ID_LENGTH] if ident else "-"


def _print_graph(state: dict, header: str) -> None:
    nodes, edges = state["nodes"], state["edges"]
    console.print(f"[bold]{escape(header)}[/bold]")
    console.print(f"Nodes: {len(nodes)}, Edges: {len(edges)}")
    console.print()

    if not nodes:
        console.print("[dim]No nodes[/dim]")
        return

    table = Table(title="Nodes")
    table.add_column("ID", style="cyan")
    table.add_column("Role", style="green")
    table.add_column("Parent")
    table.add_column("Text")
    for node in sorted(nodes, key=lambda n: n["id"]):
        table.add_row(
            escape(node["id"]),
            node["role"],
            escape(node["parent_id"] or "-"),
            escape(node["text"][:60]),
        )
    console.print(table)

    if edges:
        table = Table(title="Edges")
        table.add_column("ID", style="cyan")
        table.add_column("Source")
        table.add_column("Type", style="yellow")
        table.add_column("Target")
        for edge in sorted(edges, key=lambda e: e["id"]):
            table.add_row(
                escape(edge["id"]),
                escape(edge["source"]),
                escape(edge["edge_type"]),
                escape(edge["target"]),
            )
        console.print(table)


@click.group()
@click.option(
    "--data-path",
    envvar="CORTEXMAP_PATH",
    type=click.Path(path_type=Path),
    help="Path to the data directory",
)
@click.pass_context
def cli(ctx, data_path):
    """CortexMap - versioned reasoning graph storage."""
    settings = load_settings()
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_path or find_data_dir()
    ctx.obj["agent_id"] = settings.agent_id
    ctx.obj["linear_history"] = settings.linear_history


@cli.command()
@click.pass_context
def init(ctx):
    """Create the data directory and database."""
    data_dir = ctx.obj["data_dir"]
    existed = (data_dir / DB_FILE_NAME).exists()
    _engine(ctx)
    if existed:
        console.print(f"[yellow]![/yellow] Already initialized at {data_dir}")
    else:
        console.print(f"[green]✓[/green] Initialized CortexMap store at {data_dir}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show live graph size and the latest commit."""
    try:
        st = _engine(ctx).status()
    except CortexMapError as e:
        _fail(ctx, e)

    console.print(f"Data directory: [cyan]{st['data_dir']}[/cyan]")
    console.print(
        f"Live graph: [bold]{st['node_count']}[/bold] nodes, [bold]{st['edge_count']}[/bold] edges"
    )
    head = st["head"]
    if head:
        console.print(
            f"Latest commit: [yellow]{_short(head['id'])}[/yellow] {escape(head['message'])} "
            f"({st['commit_count']} total)"
        )
        console.print(f"Snapshots: {st['snapshot_count']}")
    else:
        console.print("[dim]No commits yet[/dim]")


@cli.command()
@click.option("--commit", "commit_id", default=None, help="Show the graph captured by this commit")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, commit_id, as_json):
    """Show the live graph, or the graph at a commit.

    Examples:
        cortexmap show
        cortexmap show --commit 01J...
    """
    try:
        engine = _engine(ctx)
        if commit_id:
            state = engine.commit_snapshot(commit_id)
            header = f"Graph at commit {commit_id}"
        else:
            state = engine.read_graph()
            header = "Live graph"
    except CortexMapError as e:
        _fail(ctx, e)

    if as_json:
        click.echo(json.dumps(state, indent=2))
    else:
        _print_graph(state, header)


@cli.command()
@click.option("-m", "--message", required=True, help="Commit message")
@click.option("--agent", "agent_id", default=None, help="Agent id recorded on the commit")
@click.pass_context
def commit(ctx, message, agent_id):
    """Snapshot the live graph as a new commit."""
    try:
        result = _engine(ctx).create_commit(agent_id or ctx.obj["agent_id"], message)
    except CortexMapError as e:
        _fail(ctx, e)
    label = escape(f"[{_short(result['id'])}]")
    console.print(f"[green]✓[/green] {label} {escape(message)}")


@cli.command()
@click.option("-n", "--max-count", default=DEFAULT_LOG_LIMIT, help="Number of commits to show")
@click.option("--since", default=None, help="Only commits since (ISO, '2 days ago', 'yesterday')")
@click.option("--oneline", is_flag=True, help="Show one line per commit")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def log(ctx, max_count, since, oneline, as_json):
    """Show commit history, newest first."""
    try:
        since_ts = parse_time_reference(since) if since else None
        commits = _engine(ctx).vcs.history(limit=max_count, since=since_ts)
    except (CortexMapError, ValueError) as e:
        _fail(ctx, e)

    if as_json:
        click.echo(json.dumps([c.model_dump(mode="json") for c in commits], indent=2))
        return

    if not commits:
        console.print("[dim]No commits[/dim]")
        return

    for c in commits:
        if oneline:
            console.print(
                f"[yellow]{_short(c.id)}[/yellow] {escape(c.message.splitlines()[0] if c.message else '')}"
            )
        else:
            console.print(f"[yellow]commit {c.id}[/yellow]")
            console.print(f"Parent: {c.parent_id or '(root)'}")
            console.print(f"Agent:  {escape(c.agent_id)}")
            console.print(
                f"Date:   {c.timestamp.strftime('%Y-%m-%d %H:%M:%S')} ({format_relative_time(c.timestamp)})"
            )
            console.print()
            for line in c.message.split("\n"):
                console.print(f"    {escape(line)}")
            console.print()


@cli.command()
@click.argument("commit_id")
@click.pass_context
def restore(ctx, commit_id):
    """Replace the live graph with the state captured by a commit."""
    try:
        result = _engine(ctx).restore_commit(commit_id)
    except CortexMapError as e:
        _fail(ctx, e)
    console.print(
        f"[green]✓[/green] Restored {_short(commit_id)}: "
        f"{result['node_count']} nodes, {result['edge_count']} edges"
    )


@cli.command()
@click.argument("commit_id")
@click.pass_context
def lineage(ctx, commit_id):
    """Show the parent chain of a commit back to the root."""
    try:
        chain = _engine(ctx).vcs.lineage(commit_id)
    except CortexMapError as e:
        _fail(ctx, e)

    for depth, c in enumerate(chain):
        marker = "*" if depth == 0 else "|"
        console.print(
            f"{marker} [yellow]{_short(c.id)}[/yellow] {escape(c.agent_id)}: "
            f"{escape(c.message.splitlines()[0] if c.message else '')}"
        )


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_graph(ctx, path):
    """Replace the live graph with the nodes and edges in a JSON file."""
    try:
        payload = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] not valid JSON in {escape(str(path))}: {e}")
        ctx.exit(1)

    try:
        summary = _engine(ctx).save_graph(payload)
    except CortexMapError as e:
        _fail(ctx, e)
    console.print(
        f"[green]✓[/green] Imported {summary['node_count']} nodes, {summary['edge_count']} edges"
    )


@cli.command()
@click.option("--commit", "commit_id", default=None, help="Export the graph captured by this commit")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def export(ctx, commit_id, output):
    """Write the live graph (or a commit's graph) as JSON."""
    try:
        engine = _engine(ctx)
        state = engine.commit_snapshot(commit_id) if commit_id else engine.read_graph()
    except CortexMapError as e:
        _fail(ctx, e)

    text = json.dumps(state, indent=2)
    if output:
        output.write_text(text)
        console.print(f"[green]✓[/green] Wrote {output}")
    else:
        click.echo(text)


if __name__ == "__main__":
    cli()
