# Internal
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

# External
import schedule

# Project
from welfare.data_structures.run_summary import RunSummary
from welfare.engine.constants.constants import DEFAULT_DAILY_TIME
from welfare.engine.exceptions import RunInProgressError
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.reminder_engine import ReminderEngine


def _local_utc_offset_hours() -> float:
    return datetime.now(timezone.utc).astimezone().utcoffset().total_seconds() / 3600


def _convert_hour_if_needed(time_str: str, utc_offset_hours: float) -> str:
    """Translate a wall-clock time in the operating timezone to the host's local time."""
    local_tz_offset = _local_utc_offset_hours()

    hours, minutes = map(int, time_str.split(':'))
    if abs(local_tz_offset - utc_offset_hours) < 0.1:
        logging.info(f"No timezone conversion needed, system already in UTC{utc_offset_hours:+g} (offset: {local_tz_offset})")
        return f"{hours:02d}:{minutes:02d}"

    logging.info(f"Converting from UTC{utc_offset_hours:+g} to system time (system timezone offset: {local_tz_offset})")
    total_minutes = (hours * 60 + minutes + round((local_tz_offset - utc_offset_hours) * 60)) % (24 * 60)

    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def call_async_function(func):
    asyncio.get_running_loop().create_task(func())


class Scheduler:
    """
    Drives the reminder engine: a daily run at a fixed time in the operating
    timezone plus a periodic retry sweep.

    Scheduled jobs and manual triggers share one gate, so at most one run is in
    progress at any time. A run requested while another is in progress is
    rejected with RunInProgressError, never queued.
    """
    def __init__(
            self,
            engine: ReminderEngine,
            datetime_manager: Optional[DatetimeManager] = None,
            poll_interval: float = 1
    ):
        self.engine = engine
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.poll_interval = poll_interval
        self.jobs = schedule.Scheduler()
        self.running = False
        self.last_summary: Optional[RunSummary] = None

        self._gate = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> str:
        return "Running" if self._gate.locked() else "Idle"

    async def run_once(self) -> RunSummary:
        """
        Run the reminder pipeline now and wait for it to finish.

        Raises:
            RunInProgressError: If another run is in progress
        """
        if self._gate.locked():
            raise RunInProgressError("A reminder run is already in progress")

        async with self._gate:
            summary = await self.engine.process_reminders()
            self.last_summary = summary

        return summary

    async def run_retries(self) -> RunSummary:
        if self._gate.locked():
            raise RunInProgressError("A reminder run is already in progress")

        async with self._gate:
            return await self.engine.process_retries()

    async def _run_daily_reminders(self):
        logging.info(f"Running scheduled task: daily_reminders at {self.datetime_manager.now()}")
        try:
            await self.run_once()
        except RunInProgressError as exc:
            logging.warning(f"Scheduled reminder run rejected: {exc}")
        except Exception as exc:
            logging.exception(f"Scheduled reminder run failed: {exc}")

    async def _run_retry_sweep(self):
        try:
            summary = await self.run_retries()
        except RunInProgressError as exc:
            logging.warning(f"Retry sweep rejected: {exc}")
            return
        except Exception as exc:
            logging.exception(f"Retry sweep failed: {exc}")
            return

        if summary.retried:
            logging.info(f"Retry sweep: {summary.retried} reminder(s) retried, {summary.sent} sent, {summary.failed} failed")

    async def run_scheduler(self):
        while self.running:
            self.jobs.run_pending()
            await asyncio.sleep(self.poll_interval)

    def start(
            self,
            daily_time: str = DEFAULT_DAILY_TIME,
            utc_offset_hours: Optional[float] = None,
            retry_sweep_minutes: int = 60
    ):
        if self.running:
            logging.warning("Scheduler is already running")
            return

        if utc_offset_hours is None:
            utc_offset_hours = self.datetime_manager.utc_offset_hours

        self.jobs.every().day.at(
            _convert_hour_if_needed(daily_time, utc_offset_hours)).do(
                call_async_function,
                self._run_daily_reminders
        )

        if retry_sweep_minutes:
            self.jobs.every(retry_sweep_minutes).minutes.do(
                call_async_function,
                self._run_retry_sweep
            )

        self.running = True

        self._task = asyncio.create_task(self.run_scheduler())

        logging.info(f"Scheduler started. Will run daily at {daily_time} UTC{utc_offset_hours:+g}")

    def stop(self):
        self.running = False
        self.jobs.clear()

        if self._task and not self._task.done():
            self._task.cancel()

        logging.info("Scheduler stopped")
