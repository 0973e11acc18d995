import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from proptree._errors import ProptreeError
from proptree._operators import standard_registry
from proptree._registry import Registry
from proptree._tree import TreeNode

from .config import ConfigError, ModuleSource, ScriptSource, get_config
from .discover import load_registry_from_source

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Proptree CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]✗ {escape(message)}[/red]")
    return typer.Exit(code=1)


def _tree_path(tree: Path | None) -> Path:
    if tree is not None:
        return tree
    try:
        configured = get_config().tree
    except ConfigError as e:
        raise _fail(str(e)) from e
    if configured is None:
        msg = "No tree file given and no [tool.proptree].tree configured"
        raise _fail(msg)
    return configured


def _load_tree(tree: Path | None) -> TreeNode:
    path = _tree_path(tree)
    err_console.print(f"[cyan]Loading tree from:[/cyan] {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return TreeNode.from_json(data)
    except OSError as e:
        raise _fail(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise _fail(f"Invalid JSON in {path}: {e}") from e
    except ValidationError as e:
        raise _fail(f"{path} is not a serialized tree: {e}") from e


def _load_registry(registry: str | None, name: str | None) -> Registry:
    try:
        if registry is not None:
            source = ModuleSource(registry) if ":" in registry else ScriptSource(Path(registry), name)
        else:
            source = get_config().registry
    except ConfigError as e:
        raise _fail(str(e)) from e

    if source is None:
        logger.debug("No registry configured, using the standard operators")
        return standard_registry()

    err_console.print(f"[cyan]Loading registry from:[/cyan] {escape(str(source))}")
    try:
        return load_registry_from_source(source)
    except (ImportError, ValueError, TypeError) as e:
        raise _fail(str(e)) from e


def _rich_tree(node: TreeNode, label: str | None = None) -> Tree:
    text = f"[bold]{escape(label or node.id)}[/bold] [dim]({escape(node.type.id)})[/dim]"
    if node.has_value():
        text += f" = {escape(repr(node.raw_value))}"
    if node.has_constraints():
        text += f" [yellow]{escape(str(node.constraint_keys()))}[/yellow]"
    branch = Tree(text)
    for key in node.child_keys():
        child = node.child(key)
        if child is not None:
            branch.add(_rich_tree(child, key))
    return branch


TreeArgument = Annotated[
    Path | None,
    typer.Argument(help="Path to a JSON tree file (defaults to [tool.proptree].tree)"),
]
RegistryOption = Annotated[
    str | None,
    typer.Option("--registry", help="Python script or module path (e.g., myapp.operators:registry)"),
]
NameOption = Annotated[
    str | None,
    typer.Option("--name", help="Name of the registry variable (for script paths only)"),
]


@app.command()
def show(tree: TreeArgument = None) -> None:
    """Print the structure of a tree."""
    root = _load_tree(tree)
    out_console.print(_rich_tree(root))


@app.command()
def validate(
    tree: TreeArgument = None,
    *,
    registry: RegistryOption = None,
    name: NameOption = None,
) -> None:
    """Check every constraint in a tree."""
    root = _load_tree(tree)
    root.set_registry(_load_registry(registry, name))
    err_console.print()

    try:
        result = asyncio.run(root.validate_deep())
    except ProptreeError as e:
        raise _fail(str(e)) from e

    if result.valid:
        err_console.print(f"[green]✓ All constraints pass ({root.count()} nodes)[/green]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Path", style="bold")
    table.add_column("Constraint", style="dim")
    table.add_column("Message", style="red")
    for path, errors in result.errors.items():
        for key, message in errors.items():
            table.add_row(escape(path), escape(key), escape(message))

    n_failures = sum(len(errors) for errors in result.errors.values())
    err_console.print(
        Panel(
            table,
            title="[bold]Validation Failures[/bold]",
            subtitle=f"[dim]{n_failures} failure(s)[/dim]",
            border_style="red",
        ),
    )
    raise _fail("Tree is invalid")


@app.command()
def snapshot(
    tree: TreeArgument = None,
    *,
    registry: RegistryOption = None,
    name: NameOption = None,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to output JSON file (defaults to stdout)"),
    ] = None,
    indent: Annotated[
        int,
        typer.Option("--indent", help="JSON indentation spaces"),
    ] = 2,
) -> None:
    """Evaluate a tree and write its values as JSON."""
    root = _load_tree(tree)
    root.set_registry(_load_registry(registry, name))

    try:
        values: Any = asyncio.run(root.snapshot())
    except ProptreeError as e:
        raise _fail(str(e)) from e

    text = json.dumps(values, indent=indent, default=str)
    if output is None:
        typer.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    err_console.print(f"[green]✓ Snapshot written to {output}[/green]")


if __name__ == "__main__":
    app()
