"""Admin project setup: submit, run against the backend, persist the result."""

import logging
import threading
from typing import Optional

from ..models import DatabaseType, ProjectStatus
from ..services.job_manager import JobManager, JobStatus, JobType
from ..services.metadata_backend import METADATA_TABLE_KINDS, MetadataBackend
from .errors import SetupFailedError, ValidationError
from .state_store import PortalStateStore, ProjectConfig

logger = logging.getLogger(__name__)

SETUP_FAILED_MESSAGE = "Failed to setup project. Please check your connection string and try again."

# Serialises the configured/in-flight check with job creation across requests
_setup_lock = threading.Lock()


class AdminService:
    """Runs the one-off project setup as a background job."""

    def __init__(self, state_store: PortalStateStore, backend: MetadataBackend, jobs: JobManager):
        self.state = state_store
        self.backend = backend
        self.jobs = jobs

    def current_project(self) -> Optional[ProjectConfig]:
        return self.state.get_project_config()

    def submit_setup(self, project_name: str, connection_string: str,
                     database_type: DatabaseType = DatabaseType.ORACLE,
                     project_description: str = "", created_by: Optional[str] = None) -> str:
        """Queue project setup and return the job id to poll."""
        if not project_name or not project_name.strip():
            raise ValidationError("Project name is required")
        if not connection_string or not connection_string.strip():
            raise ValidationError("Connection string is required")

        self.jobs.cleanup_finished_jobs()
        with _setup_lock:
            existing = self.state.get_project_config()
            if existing is not None:
                raise ValidationError(f'Project "{existing.project_name}" is already configured. Reset it first.')
            if self.setup_in_progress():
                raise ValidationError("A project setup is already in progress")

            job_id = self.jobs.create_job(
                JobType.PROJECT_SETUP,
                title=f"Setup project {project_name.strip()}",
                total_steps=2,
                created_by=created_by,
            )
        self.jobs.start_job(
            job_id,
            self._run_setup,
            project_name.strip(),
            DatabaseType(database_type),
            connection_string,
            project_description or "",
        )
        return job_id

    def setup_in_progress(self) -> bool:
        active = (JobStatus.PENDING, JobStatus.RUNNING)
        return any(job.status in active for job in self.jobs.list_jobs(job_type=JobType.PROJECT_SETUP))

    def _run_setup(self, progress_callback, project_name: str, database_type: DatabaseType,
                   connection_string: str, project_description: str) -> dict:
        progress_callback(f"Creating {len(METADATA_TABLE_KINDS)} metadata tables", 0, 2)
        try:
            tables = self.backend.provision_project(project_name, database_type, connection_string)
        except Exception as e:
            logger.error(f"Project setup failed for {project_name}: {e}")
            raise SetupFailedError(SETUP_FAILED_MESSAGE) from e

        progress_callback("Saving project configuration", 1, 2)
        config = ProjectConfig(
            project_name=project_name,
            project_description=project_description,
            database_type=database_type,
            connection_string=connection_string,
            tables=tables,
            status=ProjectStatus.ACTIVE,
        )
        self.state.save_project_config(config)
        logger.info(f"Project {project_name} set up with tables: {', '.join(tables)}")
        return config.model_dump(by_alias=True, mode="json", exclude={"connection_string"})

    def reset_project(self) -> bool:
        """Forget the configured project."""
        return self.state.clear_project_config()
