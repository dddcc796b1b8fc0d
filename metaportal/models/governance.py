"""Models for projects, the change log, and portal administration."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import List

from sqlalchemy import Column as SQLColumn, Integer, String, DateTime, Text, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship

from .base import Base


class ProjectStatus(PyEnum):
    """Lifecycle state of a project."""
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class ChangeType(PyEnum):
    """Kind of metadata edit recorded in the change log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    ALTER = "ALTER"
    DELETE = "DELETE"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().upper()
            for member in cls:
                if member.value == key:
                    return member
        return None


class DatabaseType(PyEnum):
    """Database engines a project or connection can target."""
    ORACLE = "Oracle"
    POSTGRESQL = "PostgreSQL"
    MYSQL = "MySQL"
    SQL_SERVER = "SQL Server"


class ConnectionStatus(PyEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class UserRole(PyEnum):
    ADMINISTRATOR = "Administrator"
    DATA_ENGINEER = "Data Engineer"
    DATA_ANALYST = "Data Analyst"
    VIEWER = "Viewer"


class UserStatus(PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Project(Base):
    """A project scopes which schemas, changes and statistics are visible."""

    __tablename__ = "projects"

    id = SQLColumn(Integer, primary_key=True, index=True)
    name = SQLColumn(String(255), unique=True, index=True, nullable=False)
    description = SQLColumn(Text, default="")
    schemas = SQLColumn(JSON, default=list)  # Sorted list of schema names
    status = SQLColumn(Enum(ProjectStatus), nullable=False, default=ProjectStatus.ACTIVE)
    last_updated = SQLColumn(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    changes = relationship("ChangeRecord", back_populates="project", cascade="all, delete-orphan")

    @property
    def schema_set(self) -> set:
        return set(self.schemas or [])

    @staticmethod
    def normalize_schemas(schemas) -> List[str]:
        """Deduplicate and sort schema names, dropping blanks."""
        return sorted({s.strip() for s in (schemas or []) if s and s.strip()})


class ChangeRecord(Base):
    """An audit-like record of one metadata edit within a project."""

    __tablename__ = "change_records"

    id = SQLColumn(Integer, primary_key=True, index=True)
    project_id = SQLColumn(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    change_ref_number = SQLColumn(String(50), index=True)
    timestamp = SQLColumn(DateTime, default=datetime.utcnow, index=True)
    user = SQLColumn(String(255))
    change_type = SQLColumn(Enum(ChangeType), nullable=False)
    table_name = SQLColumn(String(255), default="")
    column_name = SQLColumn(String(255), default="")
    description = SQLColumn(Text, default="")

    project = relationship("Project", back_populates="changes")


class DatabaseConnection(Base):
    """A registered database connection (registry only, never dialled)."""

    __tablename__ = "database_connections"

    id = SQLColumn(Integer, primary_key=True, index=True)
    name = SQLColumn(String(255), unique=True, nullable=False)
    database_type = SQLColumn(Enum(DatabaseType), nullable=False, default=DatabaseType.ORACLE)
    host = SQLColumn(String(255), default="")
    port = SQLColumn(Integer)
    database = SQLColumn(String(255), default="")
    username = SQLColumn(String(255), default="")
    status = SQLColumn(Enum(ConnectionStatus), nullable=False, default=ConnectionStatus.DISCONNECTED)
    last_tested = SQLColumn(DateTime)


class PortalUser(Base):
    """A portal user account record."""

    __tablename__ = "portal_users"

    id = SQLColumn(Integer, primary_key=True, index=True)
    username = SQLColumn(String(255), unique=True, nullable=False)
    email = SQLColumn(String(255), default="")
    role = SQLColumn(Enum(UserRole), nullable=False, default=UserRole.VIEWER)
    status = SQLColumn(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    last_login = SQLColumn(DateTime)
