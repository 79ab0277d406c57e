"""Command line entry point for the collector."""

import asyncio
import json
import logging
import signal
from dataclasses import asdict
from typing import List, Optional

import typer

from collector.config.database import init_db
from collector.config.settings import settings
from collector.crawlers.github_trending import GitHubTrendingSource
from collector.health import HealthServer
from collector.jobs.daily import collect_trending
from collector.models.sync_log import JobType
from collector.orchestrator import JobOrchestrator
from collector.scheduler import JobScheduler
from collector.utils.logger import setup_logger

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Collect trending GitHub repositories and developers.")


def configure_logging(level: Optional[str] = None) -> None:
    setup_logger(level=level or settings.LOG_LEVEL)


def _run_once(job_type: JobType) -> None:
    sync_log = asyncio.run(JobOrchestrator().run_job(job_type))
    typer.echo(
        f"{job_type.value}: {sync_log.status} "
        f"(processed={sync_log.records_processed}, failed={sync_log.records_failed})"
    )


@app.command("daily")
def daily(log_level: Optional[str] = typer.Option(None, help="Logging level")) -> None:
    """Ingest today's trending repositories and their owners."""
    configure_logging(log_level)
    _run_once(JobType.DAILY)


@app.command("ai")
def ai(log_level: Optional[str] = typer.Option(None, help="Logging level")) -> None:
    """Generate AI analyses for today's top repositories."""
    configure_logging(log_level)
    _run_once(JobType.AI)


@app.command("warm-cache")
def warm_cache(log_level: Optional[str] = typer.Option(None, help="Logging level")) -> None:
    """Prime the serving API's cache."""
    configure_logging(log_level)
    _run_once(JobType.WARM_CACHE)


@app.command("init-db")
def init_db_command(log_level: Optional[str] = typer.Option(None, help="Logging level")) -> None:
    """Create database tables."""
    configure_logging(log_level)
    init_db()
    typer.echo("Database schema created")


@app.command("trending")
def trending(
    since: Optional[str] = typer.Option(None, help="Trending window: daily, weekly or monthly"),
    language: Optional[List[str]] = typer.Option(None, "--language", "-l", help="Language slug (repeatable)"),
    top: Optional[int] = typer.Option(None, help="Number of candidates to keep"),
    log_level: Optional[str] = typer.Option(None, help="Logging level"),
) -> None:
    """Fetch and merge trending lists without touching the database."""
    configure_logging(log_level)

    async def runner():
        async with GitHubTrendingSource() as source:
            return await collect_trending(source, since=since, languages=language or None, top_n=top)

    candidates = asyncio.run(runner())
    typer.echo(json.dumps([asdict(candidate) for candidate in candidates], indent=2, ensure_ascii=False))


@app.command("schedule")
def schedule(log_level: Optional[str] = typer.Option(None, help="Logging level")) -> None:
    """Run the daily schedules and the health endpoint until interrupted."""
    configure_logging(log_level)
    asyncio.run(serve())


async def serve() -> None:
    """Scheduler plus health server, stopped by SIGINT or SIGTERM"""
    orchestrator = JobOrchestrator()
    health = HealthServer(orchestrator.registry)
    scheduler = JobScheduler(orchestrator.run_job)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signame in ("SIGINT", "SIGTERM"):
        try:
            loop.add_signal_handler(getattr(signal, signame), stop.set)
        except (NotImplementedError, AttributeError):
            logger.warning(f"Signal {signame} handling is not supported on this platform")

    await health.start()
    scheduler.start()
    logger.info("Collector scheduler started (UTC)")

    try:
        await stop.wait()
        logger.info("Shutdown requested, stopping scheduler")
    finally:
        await scheduler.stop()
        await health.stop()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
