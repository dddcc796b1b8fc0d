"""Core business logic for MetaPortal."""

from .catalog_manager import CatalogManager, ProjectStats
from .lineage_form import LineageForm, SourceRow
from .filters import (
    ChangeFilter,
    LineageFilter,
    filter_changes,
    filter_columns,
    filter_lineage,
    filter_tables,
)

__all__ = [
    "CatalogManager",
    "ProjectStats",
    "LineageForm",
    "SourceRow",
    "ChangeFilter",
    "LineageFilter",
    "filter_changes",
    "filter_columns",
    "filter_lineage",
    "filter_tables",
]
