import asyncio
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from . import render
from .config import BrandConfig
from .core import BrandkitPipeline
from .cost import CostInfo
from .errors import ConfigError, InvalidTransition, JobNotFound, UploadError, error_message
from .events import CostEvent, Event, ProgressEvent
from .scheduler import CancelToken

log = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.ERROR}

_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.ERROR},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.ERROR},
}


@dataclass
class Job:
    id: str
    config: BrandConfig
    logo_path: Path
    job_dir: Path
    status: JobStatus = JobStatus.PENDING
    output_dir: Optional[Path] = None
    manifest_path: Optional[Path] = None
    files: List[str] = field(default_factory=list)
    error: Optional[str] = None
    progress: List[str] = field(default_factory=list)
    cost: CostInfo = field(default_factory=CostInfo)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Append-only record of everything a streaming client should see.
    events: List[Dict[str, Any]] = field(default_factory=list, repr=False)
    cancel_token: CancelToken = field(default_factory=CancelToken, repr=False)
    _changed: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "config": self.config.as_dict(),
            "progress": list(self.progress),
            "cost": self.cost.to_dict(),
            "error": self.error,
            "outputDir": str(self.output_dir) if self.output_dir else None,
            "manifestPath": str(self.manifest_path) if self.manifest_path else None,
            "files": list(self.files),
            "createdAt": self.created_at.isoformat(),
        }


class _JobSink:
    """Applies pipeline events to one job."""

    def __init__(self, manager: "JobManager", job: Job) -> None:
        self.manager = manager
        self.job = job

    def emit(self, event: Event) -> None:
        if isinstance(event, ProgressEvent):
            self.manager._add_progress(self.job, event.message)
        elif isinstance(event, CostEvent):
            self.manager._set_cost(self.job, event.cost)


class JobManager:
    """
    In-memory registry of brand kit jobs.

    `submit` launches each job as its own asyncio task and returns at once.
    Only the manager mutates a Job; callers read snapshots via `get`, or
    follow the event log with `stream`.
    """

    def __init__(self, pipeline: BrandkitPipeline, jobs_dir: Path) -> None:
        self.pipeline = pipeline
        self.jobs_dir = Path(jobs_dir)
        self._jobs: Dict[str, Job] = {}
        self._tasks: Set[asyncio.Task] = set()

    async def submit(self, logo: bytes, config: BrandConfig) -> str:
        if not isinstance(config, BrandConfig):
            raise ConfigError("A normalized BrandConfig is required")
        if not logo:
            raise UploadError("Logo file is empty")
        try:
            await asyncio.to_thread(render.load_image, logo)
        except Exception as exc:
            raise UploadError(f"Logo is not a readable image: {exc}") from exc

        job_id = str(uuid.uuid4())
        job_dir = self.jobs_dir / job_id
        logo_path = job_dir / "logo.png"
        await asyncio.to_thread(_write_logo, logo_path, logo)

        job = Job(id=job_id, config=config, logo_path=logo_path, job_dir=job_dir)
        self._jobs[job_id] = job
        self._record(job, {"status": job.status.value})

        task = asyncio.create_task(self._run(job), name=f"brandkit-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        log.info("Job submitted", extra={"job_id": job_id, "stage": "-"})
        return job_id

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def get_or_raise(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list_jobs(self) -> List[Job]:
        return list(self._jobs.values())

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False if the job already finished."""
        job = self.get_or_raise(job_id)
        if job.is_terminal:
            return False
        job.cancel_token.cancel()
        log.info("Cancellation requested", extra={"job_id": job_id, "stage": job.status.value})
        return True

    async def cleanup(self, job_id: str) -> None:
        job = self.get_or_raise(job_id)
        if not job.is_terminal:
            raise InvalidTransition(f"Job {job_id} is still {job.status.value}")
        await asyncio.to_thread(shutil.rmtree, job.job_dir, True)
        self._jobs.pop(job_id, None)

    async def wait(self, job_id: str) -> Job:
        job = self.get_or_raise(job_id)
        while not job.is_terminal:
            await job._changed.wait()
        return job

    async def stream(self, job_id: str, since: int = 0) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield job event records in append order, starting at index `since`,
        until the terminal status record has been delivered.
        """
        job = self.get_or_raise(job_id)
        index = max(0, since)
        while True:
            changed = job._changed
            while index < len(job.events):
                record = job.events[index]
                index += 1
                yield record
            if job.is_terminal:
                return
            await changed.wait()

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        # A task cancelled before its first step never reached _run.
        for job in self._jobs.values():
            if not job.is_terminal:
                self._fail(job, "Job cancelled")

    async def _run(self, job: Job) -> None:
        extra = {"job_id": job.id, "stage": "-"}
        self._transition(job, JobStatus.PROCESSING)
        self._add_progress(job, "Job started...")
        try:
            result = await self.pipeline.run(
                job.config,
                job.logo_path,
                job.job_dir / "output",
                sink=_JobSink(self, job),
                cancel=job.cancel_token,
            )
        except asyncio.CancelledError:
            self._fail(job, "Job cancelled")
            raise
        except Exception as exc:
            log.exception("Job failed", extra=extra)
            self._fail(job, error_message(exc))
            return

        job.output_dir = result.output_dir
        job.manifest_path = result.manifest_path
        job.files = list(result.files)
        self._set_cost(job, result.cost)
        self._add_progress(job, "Job completed!")
        self._transition(job, JobStatus.COMPLETED)
        log.info("Job completed", extra=extra)

    def _fail(self, job: Job, message: str) -> None:
        job.error = message
        self._add_progress(job, f"Error: {message}")
        self._transition(job, JobStatus.ERROR)

    def _transition(self, job: Job, status: JobStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS.get(job.status, set()):
            raise InvalidTransition(
                f"Job {job.id} cannot move from {job.status.value} to {status.value}"
            )
        job.status = status
        self._record(job, {"status": status.value})

    def _add_progress(self, job: Job, message: str) -> None:
        job.progress.append(message)
        self._record(job, {"message": message})

    def _set_cost(self, job: Job, cost: CostInfo) -> None:
        job.cost = cost
        self._record(job, {"cost": cost.to_dict()})

    def _record(self, job: Job, record: Dict[str, Any]) -> None:
        job.events.append(record)
        changed, job._changed = job._changed, asyncio.Event()
        changed.set()


def _write_logo(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
