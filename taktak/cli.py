"""Command line interface for taktak."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from taktak import __version__
from taktak.config import settings
from taktak.executor.context import Credentials, ExecutionContext
from taktak.executor.engine import NodeExecutor
from taktak.executor.errors import WorkflowExecutionError
from taktak.executor.runner import WorkflowRunner
from taktak.logging import setup_logging
from taktak.workflows.models import ExecutionStatus, Workflow, WorkflowNode

app = typer.Typer(
    name="taktak",
    help="taktak - workflow execution engine",
    add_completion=False,
)

console = Console()


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="console or json"),
):
    """Configure logging for every command."""
    setup_logging(level=log_level, fmt=log_format)


def _load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(code=1)


def _parse_json_option(value: Optional[str], name: str) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except ValueError as e:
        console.print(f"[red]Invalid JSON for --{name}: {e}[/red]")
        raise typer.Exit(code=1)
    if not isinstance(parsed, dict):
        console.print(f"[red]--{name} must be a JSON object[/red]")
        raise typer.Exit(code=1)
    return parsed


@app.command("version")
def version():
    """Show version information."""
    version_info = f"""
taktak v{__version__}
Workflow execution engine

Environment: {settings.environment}
Python: {sys.version}
"""
    console.print(
        Panel(
            version_info.strip(),
            title="Version Information",
            border_style="green",
        )
    )


@app.command("node-types")
def node_types():
    """List node types that have a handler."""
    executor = NodeExecutor()

    table = Table(title="Node Types")
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Category")
    table.add_column("Description", style="dim")

    for definition in executor.registry.definitions():
        table.add_row(
            definition.type.value,
            definition.name,
            definition.category.value,
            definition.description,
        )

    console.print(table)


@app.command("config")
def show_config():
    """Show current configuration."""
    config_table = Table(title="taktak Configuration")

    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")

    config_items = [
        ("App Name", settings.app_name),
        ("Version", settings.app_version),
        ("Environment", settings.environment),
        ("Debug", str(settings.debug)),
        ("Log Level", settings.log_level),
        ("Max Loop Iterations", str(settings.max_loop_iterations)),
        ("HTTP Timeout (s)", str(settings.http_timeout)),
    ]

    for setting, value in config_items:
        config_table.add_row(setting, value)

    console.print(config_table)


@app.command("run-node")
def run_node(
    node_file: Path = typer.Argument(..., help="JSON file with a single node"),
    input_json: Optional[str] = typer.Option(None, "--input", "-i", help="Context input as JSON"),
    variables_json: Optional[str] = typer.Option(None, "--variables", "-v", help="Context variables as JSON"),
    credentials_file: Optional[Path] = typer.Option(None, "--credentials", "-c", help="JSON file of credentials"),
):
    """Execute a single node and print its result."""
    try:
        node = WorkflowNode.model_validate(_load_json_file(node_file))
    except PydanticValidationError as e:
        console.print(f"[red]Invalid node: {e}[/red]")
        raise typer.Exit(code=1)

    context = ExecutionContext(
        input=_parse_json_option(input_json, "input"),
        variables=_parse_json_option(variables_json, "variables"),
        credentials=Credentials(_load_json_file(credentials_file)) if credentials_file else None,
    )

    try:
        result = asyncio.run(NodeExecutor().execute(node, context))
    except WorkflowExecutionError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)

    console.print_json(data=result, default=str)


@app.command("run")
def run_workflow(
    workflow_file: Path = typer.Argument(..., help="JSON file with a workflow"),
    input_json: Optional[str] = typer.Option(None, "--input", "-i", help="Trigger input as JSON"),
    credentials_file: Optional[Path] = typer.Option(None, "--credentials", "-c", help="JSON file of credentials"),
):
    """Run a workflow and print the execution record."""
    try:
        workflow = Workflow.model_validate(_load_json_file(workflow_file))
    except PydanticValidationError as e:
        console.print(f"[red]Invalid workflow: {e}[/red]")
        raise typer.Exit(code=1)

    credentials = Credentials(_load_json_file(credentials_file)) if credentials_file else None
    execution = asyncio.run(
        WorkflowRunner().run(workflow, _parse_json_option(input_json, "input"), credentials=credentials)
    )

    table = Table(title=f"Execution {execution.id}")
    table.add_column("Time", style="dim")
    table.add_column("Level")
    table.add_column("Node", style="cyan")
    table.add_column("Message")
    for entry in execution.logs:
        table.add_row(entry.timestamp, entry.level, entry.node_id or "", entry.message)
    console.print(table)

    console.print_json(execution.model_dump_json())

    if execution.status != ExecutionStatus.SUCCESS:
        raise typer.Exit(code=1)


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
