"""Per-entity repositories over a SQLAlchemy session.

Each repository exposes create/list/filter/delete for one entity type and is
handed its session explicitly. ``list()`` returns newest records first, so a
freshly created record appears at the head of the list.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import (
    Schema,
    Table,
    Column,
    DataType,
    LineageMapping,
    LineageSource,
    Project,
    ProjectStatus,
    ChangeRecord,
    ChangeType,
    DatabaseConnection,
    DatabaseType,
    PortalUser,
    UserRole,
)
from .errors import DuplicateError, NotFoundError, ValidationError
from .filters import (
    ChangeFilter,
    LineageFilter,
    filter_changes,
    filter_columns,
    filter_lineage,
    filter_schemas,
    filter_tables,
)
from .lineage_form import LineageForm

logger = logging.getLogger(__name__)

CHANGE_REF_PREFIX = "CHG-2024-"


def format_change_ref(sequence: int) -> str:
    """Change reference for the ``sequence``-th lineage mapping."""
    return f"{CHANGE_REF_PREFIX}{sequence:03d}"


class BaseRepository:
    """Common lookups and commit handling for one model."""

    model = None
    label = "Record"
    # Fields that may be left out of an update but never set to None
    required_fields = ()

    def __init__(self, db: Session):
        self.db = db

    def get(self, record_id: int):
        record = self.db.query(self.model).filter(self.model.id == record_id).first()
        if not record:
            raise NotFoundError(f"{self.label} {record_id} not found")
        return record

    def list(self) -> List:
        return self.db.query(self.model).order_by(self.model.id.desc()).all()

    def count(self) -> int:
        return self.db.query(self.model).count()

    def update(self, record_id: int, **fields):
        self._check_required(fields)
        record = self.get(record_id)
        for name, value in fields.items():
            setattr(record, name, value)
        self._commit(f"{self.label} {record_id}")
        self.db.refresh(record)
        logger.info(f"Updated {self.label.lower()} {record_id}: {sorted(fields)}")
        return record

    def delete(self, record_id: int):
        record = self.get(record_id)
        self.db.delete(record)
        self._commit(f"{self.label} {record_id}")
        logger.info(f"Deleted {self.label.lower()} {record_id}")
        return record

    def _check_required(self, fields):
        missing = sorted(name for name in self.required_fields if name in fields and fields[name] is None)
        if missing:
            raise ValidationError(f"{self.label} fields cannot be empty: {', '.join(missing)}")

    def _add(self, record, description: str):
        self.db.add(record)
        self._commit(description)
        self.db.refresh(record)
        logger.info(f"Created {self.label.lower()} {record.id}: {description}")
        return record

    def _commit(self, description: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error while saving {description}: {e.orig}")
            raise DuplicateError(f"{description} already exists") from e


class SchemaRepository(BaseRepository):
    model = Schema
    label = "Schema"
    required_fields = ("name",)

    def create(self, name: str, description: str = "") -> Schema:
        return self._add(Schema(name=name, description=description or ""), f"Schema '{name}'")

    def get_by_name(self, name: str) -> Schema:
        schema = self.db.query(Schema).filter(Schema.name == name).first()
        if not schema:
            raise NotFoundError(f"Schema '{name}' not found")
        return schema

    def filter(self, search: Optional[str] = None) -> List[Schema]:
        return filter_schemas(self.list(), search)


class TableRepository(BaseRepository):
    model = Table
    label = "Table"
    required_fields = ("schema_name", "name")

    def create(self, schema_name: str, name: str, business_definition: str = "") -> Table:
        SchemaRepository(self.db).get_by_name(schema_name)
        table = Table(schema_name=schema_name, name=name, business_definition=business_definition or "")
        return self._add(table, f"Table '{schema_name}.{name}'")

    def filter(self, schema: Optional[str] = None) -> List[Table]:
        return filter_tables(self.list(), schema)

    def in_schemas(self, schema_names) -> List[Table]:
        names = [name.lower() for name in schema_names]
        if not names:
            return []
        return self.db.query(Table).filter(func.lower(Table.schema_name).in_(names)).order_by(Table.id.desc()).all()


class ColumnRepository(BaseRepository):
    model = Column
    label = "Column"
    required_fields = ("name", "data_type", "nullable", "primary_key", "partition_column")

    def create(self, table_id: int, name: str, data_type: DataType = DataType.VARCHAR2, **fields) -> Column:
        table = TableRepository(self.db).get(table_id)
        column = Column(table_id=table.id, name=name, data_type=DataType(data_type), **fields)
        if column.nullable is None:
            column.nullable = True
        if column.primary_key is None:
            column.primary_key = False
        if column.partition_column is None:
            column.partition_column = False
        if column.apply_type_rules():
            logger.warning(f"Normalised size/nullability of column '{name}' for type {column.data_type.value}")
        return self._add(column, f"Column '{table.full_name}.{name}'")

    def update(self, record_id: int, **fields) -> Column:
        self._check_required(fields)
        column = self.get(record_id)
        if "data_type" in fields:
            fields["data_type"] = DataType(fields["data_type"])
        for name, value in fields.items():
            setattr(column, name, value)
        if column.apply_type_rules():
            logger.warning(f"Normalised size/nullability of column {record_id} for type {column.data_type.value}")
        self._commit(f"Column {record_id}")
        self.db.refresh(column)
        logger.info(f"Updated column {record_id}: {sorted(fields)}")
        return column

    def filter(self, table=None) -> List[Column]:
        return filter_columns(self.list(), table)


class LineageRepository(BaseRepository):
    model = LineageMapping
    label = "Lineage mapping"

    def create(self, form: LineageForm, created_by: Optional[str] = None) -> LineageMapping:
        """Store a submitted form as a new mapping with the next change reference."""
        form.validate()
        sequence = self.count() + 1

        mapping = LineageMapping(
            target_schema=form.target_schema,
            target_table=form.target_table,
            target_column=form.target_column,
            mapping_type=form.mapping_type,
            transformation_type=form.transformation_type,
            transformation_logic=form.transformation_logic or "",
            change_ref_number=format_change_ref(sequence),
            created_at=datetime.utcnow(),
            created_by=created_by or "user",
        )
        mapping.sources = [
            LineageSource(
                position=position,
                schema_name=row.schema,
                table_name=row.table,
                column_name=row.column,
                transformation_type=row.transformation_type,
            )
            for position, row in enumerate(form.sources)
        ]
        return self._add(mapping, f"Lineage {mapping.change_ref_number} -> {form.target_schema}.{form.target_table}.{form.target_column}")

    def filter(self, filters: Optional[LineageFilter] = None) -> List[LineageMapping]:
        return filter_lineage(self.list(), filters)

    def targeting_schemas(self, schema_names) -> List[LineageMapping]:
        names = [name.lower() for name in schema_names]
        if not names:
            return []
        return self.db.query(LineageMapping).filter(func.lower(LineageMapping.target_schema).in_(names)).all()


class ProjectRepository(BaseRepository):
    model = Project
    label = "Project"
    required_fields = ("name", "status")

    def create(self, name: str, description: str = "", schemas=None,
               status: ProjectStatus = ProjectStatus.ACTIVE) -> Project:
        project = Project(
            name=name,
            description=description or "",
            schemas=Project.normalize_schemas(schemas),
            status=ProjectStatus(status),
            last_updated=datetime.utcnow(),
        )
        return self._add(project, f"Project '{name}'")

    def update(self, record_id: int, **fields) -> Project:
        self._check_required(fields)
        if "schemas" in fields:
            fields["schemas"] = Project.normalize_schemas(fields["schemas"])
        if "status" in fields:
            fields["status"] = ProjectStatus(fields["status"])
        fields["last_updated"] = datetime.utcnow()
        return super().update(record_id, **fields)

    def add_schema(self, project_id: int, schema_name: str) -> Project:
        project = self.get(project_id)
        return self.update(project_id, schemas=list(project.schema_set | {schema_name}))


class ChangeLogRepository(BaseRepository):
    model = ChangeRecord
    label = "Change record"

    def record(self, project_id: int, change_type: ChangeType, table_name: str = "",
               column_name: str = "", description: str = "", user: Optional[str] = None,
               change_ref_number: Optional[str] = None,
               timestamp: Optional[datetime] = None) -> ChangeRecord:
        ProjectRepository(self.db).get(project_id)
        change = ChangeRecord(
            project_id=project_id,
            change_type=ChangeType(change_type),
            table_name=table_name or "",
            column_name=column_name or "",
            description=description or "",
            user=user or "system",
            change_ref_number=change_ref_number or "",
            timestamp=timestamp or datetime.utcnow(),
        )
        return self._add(change, f"{change.change_type.value} on {table_name or '-'} in project {project_id}")

    def for_project(self, project_id: int) -> List[ChangeRecord]:
        return (
            self.db.query(ChangeRecord)
            .filter(ChangeRecord.project_id == project_id)
            .order_by(ChangeRecord.timestamp.desc(), ChangeRecord.id.desc())
            .all()
        )

    def filter(self, project_id: int, filters: Optional[ChangeFilter] = None) -> List[ChangeRecord]:
        return filter_changes(self.for_project(project_id), filters)

    def count_since(self, project_id: int, since: datetime) -> int:
        return (
            self.db.query(ChangeRecord)
            .filter(ChangeRecord.project_id == project_id, ChangeRecord.timestamp >= since)
            .count()
        )


class ConnectionRepository(BaseRepository):
    model = DatabaseConnection
    label = "Connection"

    def create(self, name: str, database_type: DatabaseType = DatabaseType.ORACLE, **fields) -> DatabaseConnection:
        connection = DatabaseConnection(name=name, database_type=DatabaseType(database_type), **fields)
        return self._add(connection, f"Connection '{name}'")


class UserRepository(BaseRepository):
    model = PortalUser
    label = "User"

    def create(self, username: str, email: str = "", role: UserRole = UserRole.VIEWER) -> PortalUser:
        user = PortalUser(username=username, email=email or "", role=UserRole(role))
        return self._add(user, f"User '{username}'")
