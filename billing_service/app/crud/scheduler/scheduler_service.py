"""
Billing scheduler.

Drives three periodic jobs on the running event loop:

* ``monthly_bill_generation`` - day 1 of every month, generates the period's bills
* ``missed_bill_check`` - daily backup sweep, and once shortly after startup
* ``overdue_bill_check`` - daily, flags PENDING bills whose due date has passed

Every generation path (scheduled, backup sweep, manual trigger) goes through
one process-local ``SingleFlight`` guard, so two generation runs never overlap.
A contended trigger is skipped, never queued.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Dict, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Request
from sqlalchemy.orm import Session

from shared.core.config import settings
from shared.core.database import BillingSessionLocal

from .schedules import DailySchedule, MonthlySchedule
from ..financials.bill_generation_service import count_missing_bills, generate_for_period, parse_period
from ..financials.bill_lifecycle_service import sweep_overdue_bills
from ..system.notification_service import NotificationService
from ...schemas.financials.bills_schemas import GenerationResult
from ...schemas.system.scheduler_schemas import JobStatus, SchedulerStatus

logger = logging.getLogger(__name__)

MONTHLY_GENERATION_JOB = "monthly_bill_generation"
MISSED_BILL_CHECK_JOB = "missed_bill_check"
OVERDUE_CHECK_JOB = "overdue_bill_check"


def seconds_until(target: datetime, now: datetime) -> float:
    """Elapsed seconds from ``now`` to ``target``, never negative. Offsets are honoured across DST changes."""
    delta = target.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    return max(delta.total_seconds(), 0)


class SingleFlight:
    """At most one holder at a time. Acquire is a synchronous check-and-set on the event loop thread."""

    def __init__(self, name: str):
        self.name = name
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def try_acquire(self) -> bool:
        if self._running:
            return False
        self._running = True
        return True

    def release(self):
        self._running = False


@dataclass
class ScheduledJob:
    name: str
    schedule: object
    handler: Callable[[], Awaitable[object]]
    task: Optional[asyncio.Task] = None
    running: bool = False
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None

    @property
    def scheduled(self) -> bool:
        return self.task is not None and not self.task.done()


class BillingScheduler:

    def __init__(
        self,
        session_factory: Callable[[], Session] = BillingSessionLocal,
        notifier: Optional[NotificationService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        run_timeout: Optional[float] = None,
        lease_timeout: Optional[float] = None,
        startup_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or NotificationService()
        self.timezone = ZoneInfo(settings.BILLING_TIMEZONE)
        self.clock = clock or (lambda: datetime.now(self.timezone))
        self.sleep = sleep
        self.run_timeout = run_timeout or settings.BILLING_RUN_TIMEOUT_SECONDS
        self.lease_timeout = lease_timeout or settings.BILLING_LEASE_TIMEOUT_SECONDS
        self.startup_delay = settings.BILLING_STARTUP_DELAY_SECONDS if startup_delay is None else startup_delay

        self.generation_guard = SingleFlight("bill_generation")
        self.overdue_guard = SingleFlight("overdue_check")

        self.jobs: Dict[str, ScheduledJob] = {
            MONTHLY_GENERATION_JOB: ScheduledJob(
                name=MONTHLY_GENERATION_JOB,
                schedule=MonthlySchedule(day=1, hour=settings.BILLING_MONTHLY_HOUR),
                handler=self.trigger_monthly_generation,
            ),
            MISSED_BILL_CHECK_JOB: ScheduledJob(
                name=MISSED_BILL_CHECK_JOB,
                schedule=DailySchedule(hour=settings.BILLING_MISSED_CHECK_HOUR),
                handler=self.check_missed_bills,
            ),
            OVERDUE_CHECK_JOB: ScheduledJob(
                name=OVERDUE_CHECK_JOB,
                schedule=DailySchedule(hour=settings.BILLING_OVERDUE_CHECK_HOUR),
                handler=self.check_overdue_bills,
            ),
        }
        self.initialized = False
        self._startup_task: Optional[asyncio.Task] = None

    def today(self) -> date:
        return self.clock().date()

    # ----------------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------------

    def start(self):
        """Schedule every job. Must be called from inside the running event loop."""
        if self.initialized:
            logger.info("Billing scheduler already started")
            return

        for name in self.jobs:
            self.start_job(name)

        self._startup_task = asyncio.create_task(self._startup_check())
        self.initialized = True
        logger.info(
            f"Billing scheduler started (timezone {settings.BILLING_TIMEZONE}), "
            f"startup missed-bill check in {self.startup_delay}s")

    async def stop(self):
        tasks = [job.task for job in self.jobs.values() if job.task]
        if self._startup_task:
            tasks.append(self._startup_task)

        for name in self.jobs:
            self.stop_job(name)
        if self._startup_task:
            self._startup_task.cancel()
            self._startup_task = None

        await asyncio.gather(*tasks, return_exceptions=True)
        self.initialized = False
        logger.info("Billing scheduler stopped")

    async def restart(self):
        await self.stop()
        self.start()

    def start_job(self, name: str) -> bool:
        job = self._get_job(name)
        if job.scheduled:
            return False
        job.task = asyncio.create_task(self._job_loop(job), name=f"billing:{name}")
        logger.info(f"Scheduled job '{name}'")
        return True

    def stop_job(self, name: str) -> bool:
        job = self._get_job(name)
        if not job.scheduled:
            return False
        job.task.cancel()
        job.task = None
        job.next_run = None
        logger.info(f"Stopped job '{name}'")
        return True

    def get_job_statuses(self) -> SchedulerStatus:
        return SchedulerStatus(
            initialized=self.initialized,
            generation_running=self.generation_guard.running,
            jobs={
                name: JobStatus(
                    scheduled=job.scheduled,
                    running=job.running,
                    last_run=job.last_run,
                    next_run=job.next_run,
                )
                for name, job in self.jobs.items()
            }
        )

    def _get_job(self, name: str) -> ScheduledJob:
        if name not in self.jobs:
            raise KeyError(f"Unknown scheduler job '{name}'")
        return self.jobs[name]

    async def _job_loop(self, job: ScheduledJob):
        while True:
            now = self.clock()
            job.next_run = job.schedule.next_fire(now)
            await self.sleep(seconds_until(job.next_run, now))
            await self._run_job(job)

    async def _startup_check(self):
        await self.sleep(self.startup_delay)
        logger.info("Running initial missed-bill check on startup")
        await self._run_job(self.jobs[MISSED_BILL_CHECK_JOB])

    async def _run_job(self, job: ScheduledJob):
        # a tick never raises into the loop
        job.running = True
        try:
            await job.handler()
        except Exception:
            logger.exception(f"Scheduler job '{job.name}' failed")
        finally:
            job.running = False
            job.last_run = self.clock()

    # ----------------------------------------------------------------------
    # Generation
    # ----------------------------------------------------------------------

    async def trigger_monthly_generation(self, period: Optional[str] = None) -> GenerationResult:
        """All-owner generation for ``period`` (default: current month), notifying every owner."""
        billing_period = parse_period(period, today=self.today())

        if not self.generation_guard.try_acquire():
            logger.warning("Bill generation already in progress, skipping")
            return GenerationResult(period=billing_period.month, already_running=True)

        try:
            return await self._run_generation(billing_period.month)
        finally:
            self.generation_guard.release()

    async def trigger_owner_generation(self, owner_id: UUID, period: Optional[str] = None) -> GenerationResult:
        billing_period = parse_period(period, today=self.today())

        if not self.generation_guard.try_acquire():
            logger.warning(
                f"Bill generation already in progress, skipping owner {owner_id}")
            return GenerationResult(period=billing_period.month, owner_id=owner_id, already_running=True)

        try:
            return await self._run_generation(billing_period.month, owner_id=owner_id, notify=False)
        finally:
            self.generation_guard.release()

    async def check_missed_bills(self) -> Optional[GenerationResult]:
        """
        Backup sweep for the current month. When any ACTIVE lease still lacks its
        bill, the full generation runs while this sweep keeps holding the guard.
        """
        if not self.generation_guard.try_acquire():
            logger.info("Bill generation in progress, skipping missed-bill check")
            return None

        try:
            period = self.today().strftime("%Y-%m")
            missing = await asyncio.to_thread(self._count_missing, period)

            if not missing:
                logger.info(f"All tenants have bills for {period}")
                return None

            logger.warning(
                f"Found {missing} tenants without bills for {period}, triggering full bill generation")
            return await self._run_generation(period)
        finally:
            self.generation_guard.release()

    async def _run_generation(self, period: str, owner_id: Optional[UUID] = None,
                              notify: bool = True) -> GenerationResult:
        """
        Unguarded run. Callers hold ``generation_guard``.

        On timeout or cancellation the run stops after the lease in flight, and
        returns only once that lease's worker thread has finished.
        """
        run = asyncio.ensure_future(generate_for_period(
            period,
            owner_id=owner_id,
            session_factory=self.session_factory,
            lease_timeout=self.lease_timeout,
            today=self.today(),
        ))
        try:
            result = await asyncio.wait_for(asyncio.shield(run), timeout=self.run_timeout)
        except asyncio.TimeoutError:
            await self._stop_run(run)
            message = f"Generation for {period} timed out after {self.run_timeout}s"
            logger.error(message)
            if notify:
                await self._notify_failure(period, message)
            raise
        except asyncio.CancelledError:
            await self._stop_run(run)
            raise
        except Exception as e:
            logger.exception(f"Error in bill generation process for {period}")
            if notify:
                await self._notify_failure(period, str(e))
            raise

        if notify:
            await self._notify_result(result)
        return result

    @staticmethod
    async def _stop_run(run: asyncio.Future):
        run.cancel()
        await asyncio.gather(run, return_exceptions=True)

    # ----------------------------------------------------------------------
    # Overdue
    # ----------------------------------------------------------------------

    async def check_overdue_bills(self) -> int:
        if not self.overdue_guard.try_acquire():
            logger.info("Overdue check already in progress, skipping")
            return 0

        try:
            updated = await asyncio.to_thread(self._sweep_overdue, self.today())
            logger.info(f"Marked {updated} bills as overdue")
            return updated
        finally:
            self.overdue_guard.release()

    # ----------------------------------------------------------------------
    # Session-bound helpers (worker thread)
    # ----------------------------------------------------------------------

    def _count_missing(self, period: str) -> int:
        with self.session_factory() as db:
            return count_missing_bills(db, period)

    def _sweep_overdue(self, today: date) -> int:
        with self.session_factory() as db:
            return sweep_overdue_bills(db, today=today)

    async def _notify_result(self, result: GenerationResult):
        try:
            await asyncio.to_thread(self._send_result, result)
        except Exception:
            logger.exception("Error sending generation notification")

    async def _notify_failure(self, period: str, error: str):
        try:
            await asyncio.to_thread(self._send_failure, period, error)
        except Exception:
            logger.exception("Error sending generation failure notification")

    def _send_result(self, result: GenerationResult):
        with self.session_factory() as db:
            self.notifier.notify_generation_result(db, result)

    def _send_failure(self, period: str, error: str):
        with self.session_factory() as db:
            self.notifier.notify_generation_failure(db, period, error)


def get_scheduler(request: Request) -> BillingScheduler:
    """FastAPI dependency returning the app-owned scheduler."""
    return request.app.state.scheduler
