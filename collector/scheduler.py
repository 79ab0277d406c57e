"""Daily UTC schedules for the collector jobs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from typing import Awaitable, Callable, Optional, Sequence

from collector.config.settings import settings
from collector.models.sync_log import JobType
from collector.utils.helpers import utc_now

logger = logging.getLogger(__name__)


def parse_time_of_day(raw: str) -> time:
    """Parse "HH:MM" (24h, UTC)"""
    try:
        hours, minutes = (int(part) for part in raw.strip().split(":"))
        return time(hour=hours, minute=minutes, tzinfo=UTC)
    except ValueError as exc:
        raise ValueError(f"Invalid time of day {raw!r}, expected HH:MM") from exc


def next_run(at: time, now: datetime) -> datetime:
    """First moment strictly after ``now`` that matches the daily time ``at``"""
    now = now.astimezone(UTC)
    candidate = datetime.combine(now.date(), at.replace(tzinfo=None), tzinfo=UTC)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass(frozen=True)
class Schedule:
    job_type: JobType
    at: time


def default_schedules() -> list[Schedule]:
    return [
        Schedule(JobType.DAILY, parse_time_of_day(settings.DAILY_JOB_TIME)),
        Schedule(JobType.AI, parse_time_of_day(settings.AI_JOB_TIME)),
        Schedule(JobType.WARM_CACHE, parse_time_of_day(settings.WARM_CACHE_JOB_TIME)),
    ]


class JobScheduler:
    """
    Fires each job once a day at its UTC time

    Every trigger spawns an independent run: a slow run does not delay or
    block the next trigger of the same job. Run errors are logged and the
    schedule keeps going.
    """

    def __init__(
        self,
        runner: Callable[[JobType], Awaitable[object]],
        schedules: Optional[Sequence[Schedule]] = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self.schedules = list(schedules) if schedules is not None else default_schedules()
        self._clock = clock
        self._sleep = sleep
        self._loops: list[asyncio.Task] = []
        self._runs: set[asyncio.Task] = set()

    def start(self) -> None:
        for schedule in self.schedules:
            self._loops.append(asyncio.create_task(self._loop(schedule), name=f"schedule-{schedule.job_type.value}"))
            logger.info(f"Scheduled {schedule.job_type.value} daily at {schedule.at.strftime('%H:%M')} UTC")

    async def stop(self) -> None:
        """Cancel the schedule loops and any in-flight runs"""
        tasks = [*self._loops, *self._runs]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._runs.clear()

    def trigger(self, job_type: JobType) -> asyncio.Task:
        """Spawn one run of ``job_type`` without waiting for it"""
        task = asyncio.create_task(self._run(job_type), name=f"run-{job_type.value}")
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _loop(self, schedule: Schedule) -> None:
        target = next_run(schedule.at, self._clock())
        while True:
            delay = (target - self._clock()).total_seconds()
            await self._sleep(max(delay, 0))
            self.trigger(schedule.job_type)
            target += timedelta(days=1)
            now = self._clock()
            # Clock jumped past the next target
            if target <= now:
                target = next_run(schedule.at, now)

    async def _run(self, job_type: JobType) -> None:
        try:
            await self._runner(job_type)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(f"Scheduled {job_type.value} run failed: {exc}")


__all__ = ["JobScheduler", "Schedule", "default_schedules", "next_run", "parse_time_of_day"]
