"""Database models for MetaPortal."""

from .base import Base
from .catalog import Schema, Table, Column, DataType
from .lineage import LineageMapping, LineageSource, MappingType, TransformationType
from .governance import (
    Project,
    ProjectStatus,
    ChangeRecord,
    ChangeType,
    DatabaseType,
    DatabaseConnection,
    ConnectionStatus,
    PortalUser,
    UserRole,
    UserStatus,
)

__all__ = [
    "Base",
    "Schema",
    "Table",
    "Column",
    "DataType",
    "LineageMapping",
    "LineageSource",
    "MappingType",
    "TransformationType",
    "Project",
    "ProjectStatus",
    "ChangeRecord",
    "ChangeType",
    "DatabaseType",
    "DatabaseConnection",
    "ConnectionStatus",
    "PortalUser",
    "UserRole",
    "UserStatus",
]
