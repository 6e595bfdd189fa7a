import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config.loader import load_config
from .error.exceptions import RenderingError
from .error.handler import ErrorHandler, describe_error
from .kernel import RenderingKernel
from .logging.config import LogConfig

load_dotenv()

# Initialize Typer app
app = typer.Typer(help="Compile and render view templates")

# Messages go to stderr so rendered output can be piped
console = Console(stderr=True)

logger = logging.getLogger(__name__)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config file")


def _load_kernel(config_path: Optional[Path]) -> RenderingKernel:
    settings = load_config(str(config_path) if config_path else None)
    LogConfig.from_settings(settings, handler=RichHandler(console=console, show_path=False)).configure()
    return RenderingKernel(settings)


def _load_data(data_file: Optional[Path]) -> Dict[str, Any]:
    """Read a YAML or JSON data bag."""
    if data_file is None:
        return {}
    if not data_file.exists():
        raise typer.BadParameter(f"Data file not found: {data_file}")
    try:
        content = data_file.read_text(encoding="utf-8")
        data = json.loads(content) if data_file.suffix == ".json" else yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"Invalid data file {data_file}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise typer.BadParameter(f"Data file root must be a mapping: {data_file}")
    return data


def _fail(error: RenderingError) -> None:
    console.print(f"[bold red]{escape(describe_error(error))}[/bold red]", highlight=False)
    raise typer.Exit(code=ErrorHandler.exit_code(error))


@app.command("render")
def render(
    template: str = typer.Argument(..., help="Logical template name, e.g. home/index"),
    data_file: Optional[Path] = typer.Option(None, "--data", "-d", help="YAML or JSON data file"),
    config_path: Optional[Path] = ConfigOption,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write HTML to this file")
):
    """Render a template to HTML."""
    data = _load_data(data_file)
    try:
        kernel = _load_kernel(config_path)
        html = kernel.render_template(template, data)
    except RenderingError as e:
        _fail(e)

    if output:
        output.write_text(html, encoding="utf-8")
        console.print(f"[bold green]Wrote {output}[/bold green]")
    else:
        typer.echo(html, nl=False)


@app.command("compile")
def compile_template(
    template: str = typer.Argument(..., help="Logical template name"),
    config_path: Optional[Path] = ConfigOption
):
    """Compile a template and print the compiled text."""
    try:
        kernel = _load_kernel(config_path)
        compiled = kernel.compile(template)
        compiled_path = kernel.processor.compiled_path(template)
    except RenderingError as e:
        _fail(e)

    table = Table(show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Template", template)
    table.add_row("Cache file", compiled_path)
    table.add_row("Compilations", str(kernel.processor.compile_count))
    console.print(table)
    typer.echo(compiled, nl=False)


@app.command("clear-cache")
def clear_cache(
    config_path: Optional[Path] = ConfigOption
):
    """Remove all compiled templates."""
    try:
        kernel = _load_kernel(config_path)
    except RenderingError as e:
        _fail(e)

    removed = kernel.clear_cache()
    console.print(f"[bold green]Removed {removed} compiled template(s)[/bold green]")


if __name__ == "__main__":
    app()
