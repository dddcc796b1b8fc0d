"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import (
    ChangeType,
    ConnectionStatus,
    DatabaseType,
    DataType,
    MappingType,
    ProjectStatus,
    TransformationType,
    UserRole,
    UserStatus,
)


# Auth Schemas
class LoginRequest(BaseModel):
    """Credentials; any non-empty pair is accepted."""
    username: str
    password: str


class AuthStatusResponse(BaseModel):
    is_authenticated: bool
    username: Optional[str] = None


# Schema Schemas
class SchemaCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""


class SchemaUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class SchemaResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    updated_at: Optional[datetime]
    table_count: int = 0

    class Config:
        from_attributes = True


# Table Schemas
class TableCreate(BaseModel):
    schema_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    business_definition: str = ""


class TableUpdate(BaseModel):
    schema_name: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1)
    business_definition: Optional[str] = None


class TableResponse(BaseModel):
    id: int
    schema_name: str
    name: str
    business_definition: Optional[str]
    updated_at: Optional[datetime]
    column_count: int = 0

    class Config:
        from_attributes = True


# Column Schemas
class ColumnCreate(BaseModel):
    table_id: int
    name: str = Field(..., min_length=1)
    data_type: DataType = DataType.VARCHAR2
    length: Optional[int] = Field(default=None, ge=1)
    precision: Optional[int] = Field(default=None, ge=1)
    scale: Optional[int] = Field(default=None, ge=0)
    nullable: bool = True
    primary_key: bool = False
    partition_column: bool = False
    default_value: str = ""
    definition: str = ""


class ColumnUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    data_type: Optional[DataType] = None
    length: Optional[int] = Field(default=None, ge=1)
    precision: Optional[int] = Field(default=None, ge=1)
    scale: Optional[int] = Field(default=None, ge=0)
    nullable: Optional[bool] = None
    primary_key: Optional[bool] = None
    partition_column: Optional[bool] = None
    default_value: Optional[str] = None
    definition: Optional[str] = None


class ColumnResponse(BaseModel):
    id: int
    table_id: int
    name: str
    data_type: DataType
    type_label: str
    length: Optional[int]
    precision: Optional[int]
    scale: Optional[int]
    nullable: bool
    primary_key: bool
    partition_column: bool
    default_value: Optional[str]
    definition: Optional[str]

    class Config:
        from_attributes = True


class PullSchemaResponse(BaseModel):
    tables_added: int
    columns_added: int
    message: str


# Lineage Schemas
class LineageSourceIn(BaseModel):
    schema_name: str = ""
    table_name: str = ""
    column_name: str = ""
    transformation_type: TransformationType = TransformationType.DIRECT


class LineageCreate(BaseModel):
    """A submitted lineage form."""
    target_schema: str
    target_table: str
    target_column: str
    mapping_type: MappingType = MappingType.ONE_TO_ONE
    transformation_type: TransformationType = TransformationType.DIRECT
    transformation_logic: str = ""
    sources: List[LineageSourceIn] = Field(default_factory=list)


class LineageSourceResponse(BaseModel):
    position: int
    schema_name: str
    table_name: str
    column_name: str
    transformation_type: TransformationType

    class Config:
        from_attributes = True


class LineageResponse(BaseModel):
    id: int
    target_schema: str
    target_table: str
    target_column: str
    mapping_type: MappingType
    transformation_type: TransformationType
    transformation_logic: Optional[str]
    sources: List[LineageSourceResponse]
    change_ref_number: str
    created_at: datetime
    created_by: Optional[str]

    class Config:
        from_attributes = True


# Project Schemas
class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    schemas: List[str] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.ACTIVE


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    schemas: Optional[List[str]] = None
    status: Optional[ProjectStatus] = None


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    schemas: List[str]
    status: ProjectStatus
    last_updated: Optional[datetime]

    class Config:
        from_attributes = True


class ProjectStatsResponse(BaseModel):
    project_id: int
    total_tables: int
    total_columns: int
    lineage_mappings: int
    recent_changes: int


# Change Log Schemas
class ChangeRecordCreate(BaseModel):
    change_type: ChangeType
    table_name: str = ""
    column_name: str = ""
    description: str = ""
    change_ref_number: Optional[str] = None


class ChangeRecordResponse(BaseModel):
    id: int
    project_id: int
    change_ref_number: Optional[str]
    timestamp: datetime
    user: Optional[str]
    change_type: ChangeType
    table_name: Optional[str]
    column_name: Optional[str]
    description: Optional[str]

    class Config:
        from_attributes = True


# Report Schemas
class LineageCoverageRow(BaseModel):
    schema_name: str
    table: str
    total_columns: int
    mapped_columns: int
    coverage: int


class ImpactAnalysisRow(BaseModel):
    source_schema: str
    source_table: str
    source_column: str
    impacted_tables: List[str]
    dependencies: int
    risk_level: str


# Admin Schemas
class ProjectSetupRequest(BaseModel):
    project_name: str
    project_description: str = ""
    database_type: DatabaseType = DatabaseType.ORACLE
    connection_string: str


class SetupJobResponse(BaseModel):
    job_id: str


class JobStatus(str, Enum):
    """Job status types."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatusResponse(BaseModel):
    """Response for job status."""
    job_id: str
    status: JobStatus
    progress: float  # 0.0 to 100.0
    current_step: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ProjectConfigResponse(BaseModel):
    """The configured project, without its connection string."""
    project_name: str
    project_description: str
    database_type: DatabaseType
    tables: List[str]
    setup_date: datetime
    status: ProjectStatus

    class Config:
        from_attributes = True


# Settings Schemas
class ConnectionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    database_type: DatabaseType = DatabaseType.ORACLE
    host: str = ""
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    database: str = ""
    username: str = ""


class ConnectionResponse(BaseModel):
    id: int
    name: str
    database_type: DatabaseType
    host: Optional[str]
    port: Optional[int]
    database: Optional[str]
    username: Optional[str]
    status: ConnectionStatus
    last_tested: Optional[datetime]

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    email: str = ""
    role: UserRole = UserRole.VIEWER


class UserResponse(BaseModel):
    id: int
    username: str
    email: Optional[str]
    role: UserRole
    status: UserStatus
    last_login: Optional[datetime]

    class Config:
        from_attributes = True
