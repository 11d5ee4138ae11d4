"""Time-based retention: per-file one-shot deletions plus a recurring sweep."""
import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from pydantic import BaseModel

from vidrelay.storage import DeleteOutcome, FileStore, InvalidFilenameError
from vidrelay.utils import run_in_threadpool

_logger = logging.getLogger("vidrelay")

SWEEP_JOB_ID = "retention-sweep"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SWEEP_CRON = "0 * * * *"


class SweepReport(BaseModel):
    scanned: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: int = 0


class SchedulerNotRunningError(RuntimeError):
    pass


class RetentionScheduler:
    """
    Deletes stored files once they are older than the TTL.

    Two triggers target the same files and may race: a one-shot job created by
    ``register_file`` and the recurring ``sweep``. Whichever runs second sees
    ``DeleteOutcome.not_found`` and moves on.

    One-shot jobs live in memory only; after a restart the sweep picks up
    whatever was left behind.
    """

    def __init__(
        self,
        store: FileStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_cron: str = DEFAULT_SWEEP_CRON,
        sweep_enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.sweep_cron = sweep_cron
        self.sweep_enabled = sweep_enabled
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._pending: Dict[str, datetime] = {}

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler on the running event loop. Idempotent."""
        if self.running:
            return

        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        if self.sweep_enabled:
            scheduler.add_job(
                self.sweep,
                CronTrigger.from_crontab(self.sweep_cron, timezone=timezone.utc),
                id=SWEEP_JOB_ID,
                name="Delete files older than the retention TTL",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        _logger.info(
            "Retention scheduler started ttl_seconds=%d sweep_enabled=%s sweep_cron=%r",
            self.ttl_seconds,
            self.sweep_enabled,
            self.sweep_cron,
        )

    def stop(self) -> None:
        """Stop the scheduler; pending one-shot deletions are dropped."""
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        dropped = len(self._pending)
        self._pending.clear()
        _logger.info("Retention scheduler stopped dropped_pending=%d", dropped)

    def pending(self) -> Dict[str, datetime]:
        """Snapshot of one-shot job id -> fire time."""
        return dict(self._pending)

    def next_sweep_at(self) -> Optional[datetime]:
        if not self.running:
            return None
        job = self._scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None

    def register_file(self, path: Path) -> str:
        """Schedule deletion of ``path`` one TTL from now and return the job id."""
        if not self.running:
            raise SchedulerNotRunningError("Retention scheduler is not running")

        job_id = f"expire-{uuid.uuid4().hex}"
        fire_at = datetime.fromtimestamp(self._clock() + self.ttl_seconds, tz=timezone.utc)
        self._scheduler.add_job(
            self.expire_file,
            DateTrigger(run_date=fire_at),
            args=[path, job_id],
            id=job_id,
            name=f"Expire {Path(path).name}",
            misfire_grace_time=None,
        )
        self._pending[job_id] = fire_at
        _logger.info("Registered file for deletion job_id=%s path=%s fire_at=%s", job_id, path, fire_at.isoformat())
        return job_id

    async def expire_file(self, path: Path, job_id: Optional[str] = None) -> DeleteOutcome:
        """One-shot deletion body. A missing file is logged, not raised."""
        if job_id is not None:
            self._pending.pop(job_id, None)
        outcome = await run_in_threadpool(self.store.delete, Path(path))
        _logger.info("One-shot deletion finished job_id=%s path=%s outcome=%s", job_id, path, outcome.value)
        return outcome

    async def _sweep_one(self, filename: str, now: float) -> str:
        try:
            stat = await run_in_threadpool(self.store.stat, filename)
        except FileNotFoundError:
            _logger.debug("Sweep skip, file vanished filename=%s", filename)
            return "skipped"
        except InvalidFilenameError:
            return await self._sweep_entry(filename, now)
        except OSError as exc:
            _logger.error("Sweep stat failed filename=%s error=%s", filename, exc)
            return "failed"

        age = now - stat.mtime
        if age <= self.ttl_seconds:
            return "skipped"

        outcome = await run_in_threadpool(self.store.delete, filename)
        if outcome is DeleteOutcome.deleted:
            _logger.info("Sweep deleted expired file filename=%s age_s=%d", filename, age)
            return "deleted"
        if outcome is DeleteOutcome.not_found:
            return "skipped"
        return "failed"

    async def _sweep_entry(self, filename: str, now: float) -> str:
        # Aged by the entry itself; a symlink is removed, never its target.
        path = self.store.entry_path(filename)
        try:
            st = await run_in_threadpool(path.lstat)
            if now - st.st_mtime <= self.ttl_seconds:
                return "skipped"
            await run_in_threadpool(path.unlink)
        except FileNotFoundError:
            return "skipped"
        except OSError as exc:
            _logger.error("Sweep failed to remove entry path=%s error=%s", path, exc)
            return "failed"

        _logger.warning("Sweep removed expired entry outside the served names path=%s", path)
        return "deleted"

    async def sweep(self) -> SweepReport:
        """Delete every stored file whose mtime is older than the TTL."""
        report = SweepReport()
        start = time.monotonic()
        try:
            filenames = await run_in_threadpool(self.store.list_files)
        except OSError as exc:
            _logger.error("Sweep could not list store root=%s error=%s", self.store.root, exc)
            return report

        now = self._clock()
        results = await asyncio.gather(
            *(self._sweep_one(name, now) for name in filenames),
            return_exceptions=True,
        )
        report.scanned = len(filenames)
        for name, result in zip(filenames, results):
            if isinstance(result, BaseException):
                _logger.error("Sweep failed filename=%s error=%r", name, result)
                report.failed += 1
            else:
                setattr(report, result, getattr(report, result) + 1)

        _logger.info(
            "Sweep done scanned=%d deleted=%d skipped=%d failed=%d elapsed_ms=%d",
            report.scanned,
            report.deleted,
            report.skipped,
            report.failed,
            int((time.monotonic() - start) * 1000),
        )
        return report
