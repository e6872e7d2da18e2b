"""CLI interface for running recipes."""

import asyncio
import json
from pathlib import Path

import typer

from .config import settings
from .exceptions import BrowserError, RecipeLoadError
from .observability import setup_structured_logging
from .recipes import Recipe, RecipeEngine, StepType, load_field_schema, resolve_step_type, shape_result, validate_recipe_fields

app = typer.Typer(help="Run declarative extraction recipes")


def _load(recipe_path: Path, step_type: str) -> tuple[Recipe, StepType]:
    resolved = resolve_step_type(step_type)
    if resolved is None:
        typer.echo(f"Error: unknown step type '{step_type}' (use autocomplete or url)", err=True)
        raise typer.Exit(code=2)
    try:
        return Recipe.from_file(recipe_path), resolved
    except RecipeLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2) from e


@app.command()
def run(
    recipe_path: Path = typer.Argument(..., help="Recipe JSON file"),
    step_type: str = typer.Option("url", "--type", "-t", help="autocomplete or url"),
    input: str = typer.Option("", "--input", "-i", help="Search query (autocomplete) or detail URL (url)"),
    raw: bool = typer.Option(False, "--raw", help="Print every variable instead of the shaped result"),
) -> None:
    """Execute one step list of a recipe and print the extracted data."""
    setup_structured_logging(settings.logging.level, settings.logging.json_output)
    recipe, resolved = _load(recipe_path, step_type)

    schema = load_field_schema(settings.engine.get_fields_schema_path())
    report = validate_recipe_fields(recipe, resolved, schema)

    async def _run() -> dict:
        async with RecipeEngine() as engine:
            return await engine.execute_recipe(recipe, resolved, input)

    try:
        result = asyncio.run(_run())
    except BrowserError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2) from e
    output = result if raw else shape_result(result, recipe, resolved, report.ignored_fields)
    if report.ignored_fields and not raw:
        output["ignored_fields"] = sorted(report.ignored_fields)
    typer.echo(json.dumps(output, indent=2, ensure_ascii=False, default=str))


@app.command()
def check(
    recipe_path: Path = typer.Argument(..., help="Recipe JSON file"),
    step_type: str = typer.Option("url", "--type", "-t", help="autocomplete or url"),
) -> None:
    """Validate the output fields of a recipe step list."""
    setup_structured_logging(settings.logging.level, settings.logging.json_output)
    recipe, resolved = _load(recipe_path, step_type)

    schema = load_field_schema(settings.engine.get_fields_schema_path())
    report = validate_recipe_fields(recipe, resolved, schema)

    for name in report.missing_show:
        typer.echo(f"error: {name}: \"show\" is required")
    for name in sorted(report.ignored_fields):
        typer.echo(f"warning: {name}: unknown output key, value will be ignored")
    if report.has_errors:
        raise typer.Exit(code=1)
    typer.echo("ok")


@app.command()
def config() -> None:
    """Show current configuration."""
    print(f"System language: {settings.engine.system_language}")
    print(f"System region: {settings.engine.system_region}")
    print(f"Default page load timeout: {settings.engine.default_page_load_timeout}ms")
    print(f"Min page load timeout: {settings.engine.min_page_load_timeout}ms")
    print(f"Fields schema: {settings.engine.get_fields_schema_path()}")
    print(f"Headless: {settings.browser.headless}")
    print(f"CDP URL: {settings.browser.cdp_url or '(launch local browser)'}")


if __name__ == "__main__":
    app()
