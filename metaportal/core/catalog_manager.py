"""Core business logic for managing the metadata catalog."""

import logging
import os
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import (
    Schema,
    Table,
    Column,
    LineageMapping,
    LineageSource,
    ChangeRecord,
    ChangeType,
)
from .filters import LineageFilter
from .lineage_form import LineageForm
from .repositories import (
    ChangeLogRepository,
    ColumnRepository,
    LineageRepository,
    ProjectRepository,
    SchemaRepository,
    TableRepository,
)

logger = logging.getLogger(__name__)

# Column fields whose change alters the physical definition
ALTER_FIELDS = {"data_type", "length", "precision", "scale", "nullable", "primary_key", "partition_column"}


@dataclass
class ProjectStats:
    """Counts shown on a project's dashboard, derived from the stores."""
    project_id: int
    total_tables: int
    total_columns: int
    lineage_mappings: int
    recent_changes: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def recent_change_window() -> timedelta:
    return timedelta(days=int(os.getenv("METAPORTAL_RECENT_CHANGE_DAYS", "30")))


class CatalogManager:
    """Manages catalog, lineage and change-log operations for one session."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session
        self.schemas = SchemaRepository(db_session)
        self.tables = TableRepository(db_session)
        self.columns = ColumnRepository(db_session)
        self.lineage = LineageRepository(db_session)
        self.projects = ProjectRepository(db_session)
        self.changes = ChangeLogRepository(db_session)

    # Schemas

    def create_schema(self, name: str, description: str = "",
                      project_id: Optional[int] = None, user: Optional[str] = None) -> Schema:
        self._require_project(project_id)
        schema = self.schemas.create(name, description)
        if project_id is not None:
            self.projects.add_schema(project_id, schema.name)
        self._record_change(project_id, ChangeType.CREATE, user, description=f"Created schema {name}")
        return schema

    def update_schema(self, schema_id: int, project_id: Optional[int] = None,
                      user: Optional[str] = None, **fields) -> Schema:
        self._require_project(project_id)
        old_name = self.schemas.get(schema_id).name
        fields["updated_at"] = datetime.utcnow()
        schema = self.schemas.update(schema_id, **fields)
        if schema.name != old_name:
            self._rename_schema_references(old_name, schema.name)
        self._record_change(project_id, ChangeType.UPDATE, user, description=f"Updated schema {schema.name}")
        return schema

    def delete_schema(self, schema_id: int, project_id: Optional[int] = None,
                      user: Optional[str] = None) -> Dict[str, Any]:
        """Remove a schema with its tables and their columns."""
        self._require_project(project_id)
        schema = self.schemas.get(schema_id)
        name = schema.name
        tables_count = len(schema.tables)
        columns_count = sum(len(table.columns) for table in schema.tables)

        self.schemas.delete(schema_id)
        self._record_change(
            project_id, ChangeType.DELETE, user,
            description=f"Dropped schema {name} ({tables_count} tables, {columns_count} columns)",
        )
        logger.info(f"Removed schema: {name} ({tables_count} tables, {columns_count} columns)")
        return {"name": name, "tables_removed": tables_count, "columns_removed": columns_count}

    # Tables

    def create_table(self, schema_name: str, name: str, business_definition: str = "",
                     project_id: Optional[int] = None, user: Optional[str] = None) -> Table:
        self._require_project(project_id)
        table = self.tables.create(schema_name, name, business_definition)
        self._touch_schema(schema_name)
        self._record_change(project_id, ChangeType.CREATE, user, table=name,
                            description=f"Created table {table.full_name}")
        return table

    def update_table(self, table_id: int, project_id: Optional[int] = None,
                     user: Optional[str] = None, **fields) -> Table:
        self._require_project(project_id)
        if fields.get("schema_name") is not None:
            self.schemas.get_by_name(fields["schema_name"])
        fields["updated_at"] = datetime.utcnow()
        table = self.tables.update(table_id, **fields)
        self._record_change(project_id, ChangeType.UPDATE, user, table=table.name,
                            description=f"Updated table {table.full_name}")
        return table

    def delete_table(self, table_id: int, project_id: Optional[int] = None,
                     user: Optional[str] = None) -> Dict[str, Any]:
        self._require_project(project_id)
        table = self.tables.get(table_id)
        full_name = table.full_name
        table_name = table.name
        columns_count = len(table.columns)

        self.tables.delete(table_id)
        self._record_change(project_id, ChangeType.DELETE, user, table=table_name,
                            description=f"Dropped table {full_name}")
        return {"name": full_name, "columns_removed": columns_count}

    # Columns

    def create_column(self, table_id: int, name: str, project_id: Optional[int] = None,
                      user: Optional[str] = None, **fields) -> Column:
        self._require_project(project_id)
        column = self.columns.create(table_id, name, **fields)
        table = column.table
        self._touch_table(table)
        self._record_change(project_id, ChangeType.CREATE, user, table=table.name, column=name,
                            description=f"Added column {name} {column.type_label}")
        return column

    def update_column(self, column_id: int, project_id: Optional[int] = None,
                      user: Optional[str] = None, **fields) -> Column:
        self._require_project(project_id)
        before = self.columns.get(column_id).type_label
        column = self.columns.update(column_id, **fields)
        self._touch_table(column.table)

        if ALTER_FIELDS & set(fields):
            change_type = ChangeType.ALTER
            description = f"Changed definition of {column.name} from {before} to {column.type_label}"
        else:
            change_type = ChangeType.UPDATE
            description = f"Updated column {column.name}"
        self._record_change(project_id, change_type, user, table=column.table.name,
                            column=column.name, description=description)
        return column

    def delete_column(self, column_id: int, project_id: Optional[int] = None,
                      user: Optional[str] = None) -> Dict[str, Any]:
        self._require_project(project_id)
        column = self.columns.get(column_id)
        table = column.table
        name = column.name

        self.columns.delete(column_id)
        self._touch_table(table)
        self._record_change(project_id, ChangeType.DELETE, user, table=table.name, column=name,
                            description=f"Dropped column {name}")
        return {"name": f"{table.full_name}.{name}"}

    def pull_schema(self, connection_string: Optional[str] = None) -> Dict[str, Any]:
        """Pulling a schema from a live database is not wired up; nothing is requested."""
        logger.info("Schema pull requested; live database import is disabled")
        return {"tables_added": 0, "columns_added": 0, "message": "Schema import from a live database is not available"}

    # Lineage

    def create_lineage(self, form: LineageForm, created_by: Optional[str] = None,
                       project_id: Optional[int] = None) -> LineageMapping:
        self._require_project(project_id)
        mapping = self.lineage.create(form, created_by=created_by)
        self._record_change(
            project_id, ChangeType.CREATE, created_by,
            table=mapping.target_table, column=mapping.target_column,
            description=f"Added {mapping.mapping_type.label} lineage to {mapping.target_full_name}",
            change_ref=mapping.change_ref_number,
        )
        return mapping

    def find_lineage(self, schema: Optional[str] = None, table: Optional[str] = None,
                     column: Optional[str] = None, change_ref: Optional[str] = None) -> List[LineageMapping]:
        return self.lineage.filter(LineageFilter(schema=schema, table=table, column=column, change_ref=change_ref))

    def delete_lineage(self, mapping_id: int, project_id: Optional[int] = None,
                       user: Optional[str] = None) -> Dict[str, Any]:
        self._require_project(project_id)
        mapping = self.lineage.get(mapping_id)
        target = mapping.target_full_name
        target_table, target_column = mapping.target_table, mapping.target_column
        change_ref = mapping.change_ref_number

        self.lineage.delete(mapping_id)
        self._record_change(project_id, ChangeType.DELETE, user,
                            table=target_table, column=target_column,
                            description=f"Removed lineage to {target}", change_ref=change_ref)
        return {"target": target, "change_ref_number": change_ref}

    # Views

    def get_tables(self, schema: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get tables, optionally narrowed to one schema, with column counts."""
        result = []
        for table in self.tables.filter(schema):
            result.append({
                'id': table.id,
                'schema_name': table.schema_name,
                'name': table.name,
                'full_name': table.full_name,
                'business_definition': table.business_definition,
                'column_count': len(table.columns),
                'primary_keys': [c.name for c in table.columns if c.primary_key],
                'partition_columns': [c.name for c in table.columns if c.partition_column],
                'updated_at': table.updated_at,
            })
        return result

    def get_table_details(self, table_id: int) -> Dict[str, Any]:
        """Get detailed information about a table including columns and lineage."""
        table = self.tables.get(table_id)

        columns = []
        for col in sorted(table.columns, key=lambda c: c.id):
            columns.append({
                'id': col.id,
                'name': col.name,
                'data_type': col.data_type.value,
                'type_label': col.type_label,
                'nullable': col.nullable,
                'primary_key': col.primary_key,
                'partition_column': col.partition_column,
                'default_value': col.default_value,
                'definition': col.definition,
            })

        lineage = self.find_lineage(schema=table.schema_name, table=table.name)

        return {
            'id': table.id,
            'schema_name': table.schema_name,
            'name': table.name,
            'full_name': table.full_name,
            'business_definition': table.business_definition,
            'updated_at': table.updated_at,
            'columns': columns,
            'lineage_count': len(lineage),
        }

    def stats_for_project(self, project_id: int, now: Optional[datetime] = None) -> ProjectStats:
        """Aggregate dashboard counts for the project's schemas and change log."""
        project = self.projects.get(project_id)
        schema_names = project.schema_set

        tables = self.tables.in_schemas(schema_names)
        total_columns = sum(len(table.columns) for table in tables)
        mappings = self.lineage.targeting_schemas(schema_names)
        since = (now or datetime.utcnow()) - recent_change_window()

        return ProjectStats(
            project_id=project.id,
            total_tables=len(tables),
            total_columns=total_columns,
            lineage_mappings=len(mappings),
            recent_changes=self.changes.count_since(project.id, since),
        )

    def lineage_coverage(self, schema: Optional[str] = None) -> List[Dict[str, Any]]:
        """Share of each table's columns that are the target of a lineage mapping."""
        mapped = {
            (m.target_schema.lower(), m.target_table.lower(), m.target_column.lower())
            for m in self.lineage.list()
        }

        report = []
        for table in self.tables.filter(schema):
            total = len(table.columns)
            covered = sum(
                1 for col in table.columns
                if (table.schema_name.lower(), table.name.lower(), col.name.lower()) in mapped
            )
            report.append({
                'schema_name': table.schema_name,
                'table': table.name,
                'total_columns': total,
                'mapped_columns': covered,
                'coverage': round(covered * 100 / total) if total else 0,
            })
        return report

    def impact_analysis(self) -> List[Dict[str, Any]]:
        """Downstream tables affected by a change to each source column."""
        impacts: Dict[tuple, Dict[str, Any]] = {}
        sources = self.db.query(LineageSource).order_by(LineageSource.id).all()

        for source in sources:
            key = (source.schema_name, source.table_name, source.column_name)
            entry = impacts.setdefault(key, {
                'source_schema': source.schema_name,
                'source_table': source.table_name,
                'source_column': source.column_name,
                'impacted_tables': [],
                'dependencies': 0,
            })
            target = f"{source.mapping.target_schema}.{source.mapping.target_table}"
            if target not in entry['impacted_tables']:
                entry['impacted_tables'].append(target)
            entry['dependencies'] += 1

        report = []
        for entry in impacts.values():
            entry['risk_level'] = self._risk_level(len(entry['impacted_tables']))
            report.append(entry)
        report.sort(key=lambda e: (-len(e['impacted_tables']), -e['dependencies']))
        return report

    def reset_catalog(self) -> Dict[str, int]:
        """Delete every catalog, lineage and change record."""
        counts = {
            'schemas': self.schemas.count(),
            'tables': self.tables.count(),
            'columns': self.columns.count(),
            'lineage_mappings': self.lineage.count(),
            'change_records': self.changes.count(),
        }
        try:
            self.db.query(LineageSource).delete()
            self.db.query(LineageMapping).delete()
            self.db.query(ChangeRecord).delete()
            self.db.query(Column).delete()
            self.db.query(Table).delete()
            self.db.query(Schema).delete()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to reset catalog: {e}")
            raise

        logger.info(f"Catalog reset: {counts}")
        return counts

    @staticmethod
    def _risk_level(impacted_tables: int) -> str:
        if impacted_tables >= 3:
            return "high"
        if impacted_tables == 2:
            return "medium"
        return "low"

    def _require_project(self, project_id: Optional[int]):
        if project_id is not None:
            self.projects.get(project_id)

    def _rename_schema_references(self, old_name: str, new_name: str):
        """Point project scopes and lineage at a renamed schema."""
        for project in self.projects.list():
            if old_name in project.schema_set:
                self.projects.update(project.id, schemas=[new_name if s == old_name else s for s in project.schemas])

        mappings = self.db.query(LineageMapping).filter(LineageMapping.target_schema == old_name).all()
        for mapping in mappings:
            mapping.target_schema = new_name
        sources = self.db.query(LineageSource).filter(LineageSource.schema_name == old_name).all()
        for source in sources:
            source.schema_name = new_name
        self.db.commit()
        logger.info(f"Renamed schema {old_name} to {new_name} in {len(mappings)} lineage targets "
                    f"and {len(sources)} lineage sources")

    def _touch_schema(self, schema_name: str):
        schema = self.schemas.get_by_name(schema_name)
        schema.updated_at = datetime.utcnow()
        self.db.commit()

    def _touch_table(self, table: Table):
        table.updated_at = datetime.utcnow()
        self.db.commit()

    def _record_change(self, project_id: Optional[int], change_type: ChangeType, user: Optional[str],
                       table: str = "", column: str = "", description: str = "",
                       change_ref: Optional[str] = None) -> Optional[ChangeRecord]:
        if project_id is None:
            return None
        return self.changes.record(
            project_id,
            change_type,
            table_name=table,
            column_name=column,
            description=description,
            user=user,
            change_ref_number=change_ref,
        )
