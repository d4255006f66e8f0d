"""CLI entrypoint for site-lifecycle."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from site_lifecycle import __version__
from site_lifecycle.config import Settings
from site_lifecycle.roadmap.controllers import (
    JobListCommand,
    LifecycleCliController,
    RoadmapCommand,
    SchedulerRunCommand,
    SiteAddCommand,
    SiteListCommand,
    SitePauseCommand,
)
from site_lifecycle.roadmap.models import ExecutionMode, JobStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = LifecycleCliController()


@click.group()
@click.version_option(version=__version__, prog_name="site-lifecycle")
def site_lifecycle() -> None:
    """Site lifecycle roadmap orchestrator.

    Reconciles each site's roadmap against real artifacts and queues the
    next ready steps.
    """

    try:
        logging.basicConfig(
            level=Settings.from_env().log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    except ValueError as error:
        raise click.ClickException(f"Invalid SITE_LIFECYCLE_LOG_LEVEL: {error}") from error


@site_lifecycle.group()
def sites() -> None:
    """Site registration commands."""


@sites.command("add")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--name", required=True, help="Site display name.")
@click.option("--site-id", default=None, help="Explicit site id (generated when omitted).")
@click.option("--seo-config", default=None, help="SEO config as a JSON object.")
@click.option("--homepage-config", default=None, help="Homepage config as a JSON object.")
def sites_add(
    db_path: Path | None,
    name: str,
    site_id: str | None,
    seo_config: str | None,
    homepage_config: str | None,
) -> None:
    """Register a new site in DRAFT status."""

    _run(
        lambda: CONTROLLER.add_site(
            SiteAddCommand(
                db_path=db_path,
                name=name,
                site_id=site_id,
                seo_config=seo_config,
                homepage_config=homepage_config,
            ),
        ),
    )


@sites.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=100,
    show_default=True,
    help="Max number of sites to print.",
)
def sites_list(db_path: Path | None, limit: int) -> None:
    """List registered sites."""

    _run(lambda: CONTROLLER.list_sites(SiteListCommand(db_path=db_path, limit=limit)))


@sites.command("pause")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def sites_pause(db_path: Path | None, site_id: str) -> None:
    """Suppress autonomous processing for a site."""

    _run(
        lambda: CONTROLLER.set_paused(
            SitePauseCommand(db_path=db_path, site_id=site_id, paused=True),
        ),
    )


@sites.command("resume")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def sites_resume(db_path: Path | None, site_id: str) -> None:
    """Re-enable autonomous processing for a site."""

    _run(
        lambda: CONTROLLER.set_paused(
            SitePauseCommand(db_path=db_path, site_id=site_id, paused=False),
        ),
    )


@site_lifecycle.group()
def roadmap() -> None:
    """Per-site roadmap commands."""


@roadmap.command("init")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def roadmap_init(db_path: Path | None, site_id: str) -> None:
    """Create planned placeholders for every roadmap step."""

    _run(lambda: CONTROLLER.init_roadmap(RoadmapCommand(db_path=db_path, site_id=site_id)))


@roadmap.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def roadmap_show(db_path: Path | None, site_id: str) -> None:
    """Show per-phase roadmap status with artifact validation."""

    _run(lambda: CONTROLLER.show_roadmap(RoadmapCommand(db_path=db_path, site_id=site_id)))


@roadmap.command("execute")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def roadmap_execute(db_path: Path | None, site_id: str) -> None:
    """Run one autonomous reconciliation pass for a site."""

    _run(
        lambda: CONTROLLER.execute_roadmap(
            RoadmapCommand(db_path=db_path, site_id=site_id),
            mode=ExecutionMode.AUTONOMOUS,
        ),
    )


@roadmap.command("retry")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", required=True, help="Site id.")
def roadmap_retry(db_path: Path | None, site_id: str) -> None:
    """Manual retry: clear failed, pending and stale tasks, then queue again."""

    _run(
        lambda: CONTROLLER.execute_roadmap(
            RoadmapCommand(db_path=db_path, site_id=site_id),
            mode=ExecutionMode.MANUAL,
        ),
    )


@site_lifecycle.group()
def scheduler() -> None:
    """Autonomous scheduler commands."""


@scheduler.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--once", is_flag=True, default=False, help="Run a single pass and exit.")
@click.option(
    "--max-passes",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many passes (runs until SIGINT/SIGTERM when omitted).",
)
def scheduler_run(db_path: Path | None, once: bool, max_passes: int | None) -> None:
    """Run autonomous passes over every site in scope under the shared lease."""

    _run(
        lambda: CONTROLLER.run_scheduler(
            SchedulerRunCommand(db_path=db_path, once=once, max_passes=max_passes),
        ),
    )


@site_lifecycle.group()
def jobs() -> None:
    """Task record inspection commands."""


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--site-id", default=None, help="Only jobs of this site.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus], case_sensitive=False),
    default=None,
    help="Only jobs in this status.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of jobs to print.",
)
def jobs_list(db_path: Path | None, site_id: str | None, status: str | None, limit: int) -> None:
    """List task records, newest first."""

    _run(
        lambda: CONTROLLER.list_jobs(
            JobListCommand(db_path=db_path, site_id=site_id, status=status, limit=limit),
        ),
    )


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except (ValueError, RuntimeError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    site_lifecycle()
