"""Command-line interface for PitchMatch.

This module provides a Typer-based CLI for operating a PitchMatch database.

Commands:
- init: Create the database schema
- status: Show configuration and table statistics
- recommend: Rank recommended profiles for a viewer
- analytics: Show engagement analytics for a profile
- metrics: Print Prometheus metrics

Example:
    $ pitchmatch init
    $ pitchmatch status
    $ pitchmatch recommend 42 --limit 5
    $ pitchmatch analytics 42 --range 30d
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pitchmatch.config import TimeRange, settings
from pitchmatch.errors import PitchMatchError
from pitchmatch.logging import setup_logging
from pitchmatch.metrics import generate_metrics_output
from pitchmatch.service import PitchMatchService

# Initialize CLI app
app     = typer.Typer(
    name="pitchmatch",
    help="PitchMatch entrepreneur and investor matching platform",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise the configured level
    """
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        colorize=not settings.log_json,
    )


def fail(action: str, error: Exception) -> None:
    """Print a failure line and exit with code 1.

    Domain errors are reported with their stable error code.
    """
    if isinstance(error, PitchMatchError):
        code = escape(f"[{error.code}]")
        console.print(f"\n❌ [bold red]{action} failed {code}: {escape(error.message)}[/bold red]")
    else:
        console.print(f"\n❌ [bold red]{action} failed: {escape(str(error))}[/bold red]")
    raise typer.Exit(code=1)


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Force re-initialization (drop and recreate all tables)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Initialize the database schema.

    Examples:
        # Initialize database
        $ pitchmatch init

        # Drop and recreate every table
        $ pitchmatch init --force
    """
    configure_logging(verbose)

    console.print("🏗️  [bold cyan]PitchMatch Initialization[/bold cyan]\n")

    db_path = Path(str(settings.database_path))
    if not settings.is_in_memory and db_path.exists() and not force:
        console.print(
            f"⚠️  Database already exists at {settings.database_path}\n"
            "Use --force to recreate it."
        )
        return

    service = PitchMatchService()
    try:
        service.initialize(force=force)
        console.print(f"✅ Database ready at [yellow]{settings.database_url}[/yellow]")

        console.print("\n📋 Configuration:")
        console.print(f"  • Environment: {settings.environment.value}")
        console.print(f"  • Default Page Size: {settings.default_page_size}")
        console.print(f"  • Max Page Size: {settings.max_page_size}")
        console.print(f"  • Max Video Size: {settings.max_video_size_bytes // (1024 * 1024)} MB")
        console.print("\n✅ [bold green]Initialization complete![/bold green]")
    except Exception as e:
        fail("Initialization", e)
    finally:
        service.close()


@app.command()
def status(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Show configuration and row counts for every table.

    Examples:
        $ pitchmatch status
    """
    configure_logging(verbose)

    console.print("📊 [bold cyan]PitchMatch Status[/bold cyan]\n")

    service = PitchMatchService()
    try:
        service.initialize()

        config_table = Table(title="Configuration", show_header=False)
        config_table.add_column("Key", style="cyan")
        config_table.add_column("Value", style="yellow")

        config_table.add_row("Environment", settings.environment.value)
        config_table.add_row("Database", settings.database_url)
        config_table.add_row("Default Page Size", str(settings.default_page_size))
        config_table.add_row("Max Page Size", str(settings.max_page_size))
        config_table.add_row("Tracing", "enabled" if settings.enable_tracing else "disabled")
        config_table.add_row("Metrics", "enabled" if settings.metrics_enabled else "disabled")

        console.print(config_table)
        console.print()

        stats = service.get_statistics()

        stats_table = Table(title="Database Statistics")
        stats_table.add_column("Entity", style="cyan")
        stats_table.add_column("Count", justify="right", style="green")

        for label, count in stats.items():
            stats_table.add_row(label.replace("_", " ").title(), f"{count:,}")

        console.print(stats_table)
    except Exception as e:
        fail("Status", e)
    finally:
        service.close()


@app.command()
def recommend(
    profile_id: int = typer.Argument(..., help="Viewer profile id"),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        help="Maximum recommendations to show",
    ),
    offset: Optional[int] = typer.Option(
        None,
        "--offset",
        help="Recommendations to skip",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Rank opposite-role profiles for a viewer.

    Examples:
        $ pitchmatch recommend 42
        $ pitchmatch recommend 42 --limit 5 --offset 5
    """
    configure_logging(verbose)

    service = PitchMatchService()
    try:
        service.initialize()
        with service.session_scope() as services:
            ranked = services.recommendations.recommend(profile_id, limit=limit, offset=offset)

        table = Table(title=f"Recommendations for profile {profile_id}")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Profile", justify="right", style="cyan")
        table.add_column("User", style="cyan")
        table.add_column("Role", style="magenta")
        table.add_column("Industry", style="yellow")
        table.add_column("Location", style="yellow")
        table.add_column("Score", justify="right", style="green")

        start = offset or 0
        for rank, entry in enumerate(ranked, start=start + 1):
            extension = entry["extension"] or {}
            industry = extension.get("industry") or extension.get("industry_focus")
            table.add_row(
                str(rank),
                str(entry["profile"]["id"]),
                entry["profile"]["user_id"],
                entry["profile"]["role"],
                industry or "-",
                extension.get("location") or "-",
                str(entry["relevance_score"]),
            )

        console.print(table)
        if not ranked:
            console.print("📭 No recommendations found")
    except Exception as e:
        fail("Recommendation", e)
    finally:
        service.close()


@app.command()
def analytics(
    profile_id: int = typer.Argument(..., help="Profile id to summarize"),
    time_range: str = typer.Option(
        TimeRange.ALL.value,
        "--range",
        "-r",
        help="Window for profile views: 7d, 30d or all",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Show engagement analytics for a profile.

    Examples:
        $ pitchmatch analytics 42
        $ pitchmatch analytics 42 --range 7d
    """
    configure_logging(verbose)

    service = PitchMatchService()
    try:
        service.initialize()
        with service.session_scope() as services:
            summary = services.analytics.profile_analytics(profile_id, time_range)

        table = Table(title=f"Analytics for profile {profile_id} ({summary['time_range']})")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="green")

        table.add_row("Profile Views", f"{summary['total_profile_views']:,}")
        table.add_row("Connections", f"{summary['total_connections']:,}")
        table.add_row("Pending Requests", f"{summary['pending_connection_requests']:,}")
        table.add_row("Video Uploads", f"{summary['total_video_uploads']:,}")
        table.add_row("Video Views", f"{summary['total_video_views']:,}")
        table.add_row("Favorited By", f"{summary['favorited_by_count']:,}")

        console.print(table)

        if summary["recent_profile_views"]:
            views_table = Table(title="Recent Profile Views")
            views_table.add_column("Viewed At", style="yellow")
            views_table.add_column("Viewer", style="cyan")
            for view in summary["recent_profile_views"]:
                viewer = view["viewer"]
                views_table.add_row(
                    view["created_at"],
                    viewer["user_id"] if viewer else "anonymous",
                )
            console.print(views_table)
    except Exception as e:
        fail("Analytics", e)
    finally:
        service.close()


@app.command()
def metrics() -> None:
    """Print Prometheus metrics collected in this process.

    Examples:
        $ pitchmatch metrics
    """
    console.print(generate_metrics_output().decode("utf-8"), markup=False, highlight=False)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
