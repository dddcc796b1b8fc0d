"""Services for MetaPortal."""

from .job_manager import JobManager, JobStatus, JobType, job_manager
from .metadata_backend import MetadataBackend, StubMetadataBackend

__all__ = ["JobManager", "JobStatus", "JobType", "job_manager", "MetadataBackend", "StubMetadataBackend"]
