"""Backend interface that provisions a project's metadata tables.

No real database is contacted: ``StubMetadataBackend`` waits for a
configurable delay and reports the tables it would have created.
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import DatabaseType

logger = logging.getLogger(__name__)

METADATA_TABLE_KINDS = ("schema", "Table", "column", "Lineage", "User")

# Audit columns carried by every metadata table
METADATA_AUDIT_COLUMNS = ("Object_ID", "created_ts", "updated_ts", "rec_flg")


def metadata_table_names(project_name: str) -> List[str]:
    """Names of the versioned metadata tables for a project."""
    return [f"{project_name}_{kind}_metadata_version" for kind in METADATA_TABLE_KINDS]


class MetadataBackend(ABC):
    """Creates the storage a project's metadata lives in."""

    @abstractmethod
    def provision_project(self, project_name: str, database_type: DatabaseType,
                          connection_string: str) -> List[str]:
        """Create the metadata tables and return their names."""


class StubMetadataBackend(MetadataBackend):
    """Pretends to provision tables after ``delay_seconds``."""

    def __init__(self, delay_seconds: Optional[float] = None, fail_with: Optional[Exception] = None):
        if delay_seconds is None:
            delay_seconds = float(os.getenv("METAPORTAL_SIMULATED_DELAY", "3.0"))
        self.delay_seconds = delay_seconds
        self.fail_with = fail_with

    def provision_project(self, project_name: str, database_type: DatabaseType,
                          connection_string: str) -> List[str]:
        logger.info(f"Provisioning metadata tables for {project_name} on {DatabaseType(database_type).value}")
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

        if self.fail_with is not None:
            raise self.fail_with

        tables = metadata_table_names(project_name)
        logger.info(f"Provisioned {len(tables)} tables with columns {', '.join(METADATA_AUDIT_COLUMNS)}")
        return tables


_backend_instance: Optional[MetadataBackend] = None


def get_metadata_backend() -> MetadataBackend:
    """Return the process-wide metadata backend."""
    global _backend_instance

    if _backend_instance is None:
        _backend_instance = StubMetadataBackend()
    return _backend_instance
