"""
Cleanup Sweeper
===============
Periodic purge of expired OTP and pending-registration records, plus
rate-limiter pruning.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from otpgate.audit import EventLog, EventType
from otpgate.clock import Clock, SystemClock
from otpgate.errors import StoreFailure
from otpgate.models import OTP_KIND, PENDING_KIND
from otpgate.store import RecordStore

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    otp_records_removed: int = 0
    pending_registrations_removed: int = 0
    rate_limit_entries_removed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total_removed(self) -> int:
        return (
            self.otp_records_removed
            + self.pending_registrations_removed
            + self.rate_limit_entries_removed
        )


class CleanupSweeper:
    """
    Deletes records whose expires_at is in the past.

    Idempotent: a sweep with nothing expired changes nothing. A store
    failure for one kind is logged and left for the next sweep.
    """

    def __init__(
        self,
        store: RecordStore,
        rate_limiter=None,
        clock: Optional[Clock] = None,
        interval_seconds: float = 3600.0,
        run_on_start: bool = True,
        event_log: Optional[EventLog] = None,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.event_log = event_log
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def _purge(self, kind: str, report: SweepReport) -> int:
        now = self.clock.now()
        try:
            return await self.store.delete_where(
                kind,
                lambda doc: doc.get("expires_at") is not None and doc["expires_at"] < now,
            )
        except StoreFailure as e:
            logger.error("Sweep failed for kind", kind=kind, error=str(e))
            report.errors.append(f"{kind}: {e}")
            return 0

    async def sweep(self) -> SweepReport:
        """Run one cleanup pass."""
        report = SweepReport()
        report.otp_records_removed = await self._purge(OTP_KIND, report)
        report.pending_registrations_removed = await self._purge(PENDING_KIND, report)
        if self.rate_limiter is not None:
            report.rate_limit_entries_removed = await self.rate_limiter.prune()

        if report.total_removed:
            logger.info(
                "Cleanup sweep completed",
                otps=report.otp_records_removed,
                pending=report.pending_registrations_removed,
                rate_limit_entries=report.rate_limit_entries_removed,
            )
            if self.event_log is not None:
                await self.event_log.record(
                    EventType.SWEEP_COMPLETED,
                    {
                        "otps": report.otp_records_removed,
                        "pending": report.pending_registrations_removed,
                        "rate_limit_entries": report.rate_limit_entries_removed,
                    },
                )
        return report

    async def start(self) -> None:
        """Start the periodic sweep."""
        if self.running:
            logger.warning("Cleanup sweeper is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info("Cleanup sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Cleanup sweeper stopped")

    async def _run(self) -> None:
        """Main sweeper loop."""
        first = True
        while self.running:
            try:
                if not (first and self.run_on_start):
                    await asyncio.sleep(self.interval_seconds)
                first = False
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in cleanup sweeper", error=str(e), exc_info=True)
                await asyncio.sleep(self.interval_seconds)
