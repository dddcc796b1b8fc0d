"""Job management for background operations such as project setup."""

import logging
import os
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Job execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(Enum):
    """Types of jobs that can be executed."""
    PROJECT_SETUP = "project_setup"


@dataclass
class JobProgress:
    """Progress information for a job."""
    current_step: str
    steps_completed: int
    total_steps: int
    percentage: float = 0.0

    def __post_init__(self):
        if self.total_steps > 0:
            self.percentage = (self.steps_completed / self.total_steps) * 100


@dataclass
class Job:
    """A submitted unit of background work and its outcome."""
    id: str
    job_type: JobType
    title: str
    status: JobStatus = JobStatus.PENDING
    progress: JobProgress = field(default_factory=lambda: JobProgress("Queued", 0, 1))
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at:
            end_time = self.completed_at or datetime.utcnow()
            return (end_time - self.started_at).total_seconds()
        return None


class JobManager:
    """Runs jobs on a thread pool and tracks their status for polling."""

    def __init__(self, max_concurrent_jobs: int = 2):
        self.jobs: Dict[str, Job] = {}
        self.executor = ThreadPoolExecutor(max_workers=max_concurrent_jobs)
        self.running_futures: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def create_job(self, job_type: JobType, title: str, total_steps: int = 1,
                   created_by: Optional[str] = None) -> str:
        """Create a new job and return its ID."""
        job_id = str(uuid.uuid4())
        job = Job(
            id=job_id,
            job_type=job_type,
            title=title,
            progress=JobProgress("Queued", 0, total_steps),
            created_by=created_by,
        )
        with self._lock:
            self.jobs[job_id] = job

        logger.info(f"Created job {job_id}: {title}")
        return job_id

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.jobs.get(job_id)

    def list_jobs(self, job_type: Optional[JobType] = None,
                  status: Optional[JobStatus] = None, limit: int = 50) -> List[Job]:
        """List jobs with optional filtering, newest first."""
        jobs = list(self.jobs.values())
        if job_type:
            jobs = [j for j in jobs if j.job_type == job_type]
        if status:
            jobs = [j for j in jobs if j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def start_job(self, job_id: str, job_function: Callable, *args, **kwargs) -> bool:
        """Submit a pending job.

        ``job_function`` is called as ``job_function(progress_callback, *args,
        **kwargs)``; its return value becomes the job result and any exception
        it raises becomes the job error.
        """
        job = self.jobs.get(job_id)
        if not job:
            logger.error(f"Job {job_id} not found")
            return False

        if job.status != JobStatus.PENDING:
            logger.error(f"Job {job_id} is not in pending status")
            return False

        def progress_callback(current_step: str, steps_completed: int, total_steps: int):
            self.update_job_progress(job_id, current_step, steps_completed, total_steps)

        def job_wrapper():
            with self._lock:
                job.status = JobStatus.RUNNING
                job.started_at = datetime.utcnow()
            try:
                result = job_function(progress_callback, *args, **kwargs)
            except Exception as e:
                with self._lock:
                    job.error = str(e)
                    job.status = JobStatus.FAILED
                    job.completed_at = datetime.utcnow()
                    job.progress.current_step = "Failed"
                logger.error(f"Job {job_id} failed: {e}")
                raise

            with self._lock:
                job.result = result
                job.status = JobStatus.COMPLETED
                job.completed_at = datetime.utcnow()
                job.progress.current_step = "Completed"
                job.progress.percentage = 100.0
            logger.info(f"Job {job_id} completed successfully")
            return result

        future = self.executor.submit(job_wrapper)
        with self._lock:
            self.running_futures[job_id] = future

        logger.info(f"Started job {job_id}")
        return True

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Job]:
        """Block until a job finishes (or ``timeout`` elapses) and return it."""
        future = self.running_futures.get(job_id)
        if future is not None:
            # The outcome is recorded on the job; the future only signals completion
            future.exception(timeout=timeout)
        return self.jobs.get(job_id)

    def update_job_progress(self, job_id: str, current_step: str, steps_completed: int, total_steps: int):
        job = self.jobs.get(job_id)
        if not job:
            return
        with self._lock:
            job.progress = JobProgress(
                current_step=current_step,
                steps_completed=steps_completed,
                total_steps=total_steps,
            )

    def cleanup_finished_jobs(self, max_age_hours: int = 24) -> int:
        """Drop finished jobs older than ``max_age_hours``."""
        cutoff = datetime.utcnow().timestamp() - (max_age_hours * 3600)
        with self._lock:
            to_remove = [
                job_id for job_id, job in self.jobs.items()
                if job.is_finished and job.completed_at and job.completed_at.timestamp() < cutoff
            ]
            for job_id in to_remove:
                del self.jobs[job_id]
                self.running_futures.pop(job_id, None)

        if to_remove:
            logger.info(f"Cleaned up {len(to_remove)} old jobs")
        return len(to_remove)

    def shutdown(self):
        logger.info("Shutting down job manager...")
        self.executor.shutdown(wait=True)
        logger.info("Job manager shutdown complete")


# Global job manager instance
job_manager = JobManager(max_concurrent_jobs=int(os.getenv("METAPORTAL_MAX_JOBS", "2")))


def get_job_manager() -> JobManager:
    return job_manager
