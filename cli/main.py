"""critical-css CLI — generate critical CSS files for configured pages.

Usage:
    critical-css --help

Commands:
    generate  → fetch every configured page and write its critical CSS
    init      → write a starter critical-css.toml
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from cli.rendering import render_summary
from critical_css.assets import AssetNotFoundError
from critical_css.config import (
    CONFIG_FILENAME,
    EXAMPLE_CONFIG,
    ConfigError,
    Settings,
    load_user_config,
    resolve_config,
)
from critical_css.logging_config import setup_logging
from critical_css.pipeline import generate_critical_css

app = typer.Typer(
    name="critical-css",
    help="Generate critical CSS for Craft CMS + Vite sites.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------
@app.command("generate")
def generate(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=f"Config file (default: ./{CONFIG_FILENAME})."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Site to fetch pages from (overrides CRITICAL_URL)."
    ),
    project_root: Path = typer.Option(
        Path("."), "--project-root", help="Project root the config paths are relative to."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Fetch every configured page and write its critical CSS."""
    setup_logging(verbose)
    root = project_root.resolve()
    load_dotenv(root / ".env", override=False)

    try:
        settings = Settings()
        user_config = load_user_config(config_path or root / CONFIG_FILENAME)
        config = resolve_config(
            user_config,
            project_root=root,
            base_url=base_url or settings.critical_url,
            request_timeout=settings.request_timeout,
        )
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        typer.echo("", err=True)
        typer.echo(f"Example {CONFIG_FILENAME}:", err=True)
        typer.echo("", err=True)
        typer.echo(EXAMPLE_CONFIG, err=True)
        typer.echo("Set CRITICAL_URL in .env, e.g. CRITICAL_URL=https://your-site.ddev.site", err=True)
        raise typer.Exit(code=1)

    try:
        summary = generate_critical_css(config)
    except (AssetNotFoundError, OSError) as e:
        typer.echo(f"Fatal error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo("")
    typer.echo(render_summary(summary))
    if summary.failed:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------
@app.command("init")
def init(
    project_root: Path = typer.Option(Path("."), "--project-root", help="Where to write the config."),
) -> None:
    """Write a starter critical-css.toml."""
    target = project_root / CONFIG_FILENAME
    if target.exists():
        typer.echo(f"{target} already exists, not overwriting.", err=True)
        raise typer.Exit(code=1)
    target.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    typer.echo(f"Created {target}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
