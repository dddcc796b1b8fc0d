"""Tests for the per-entity repositories."""

import re

import pytest

from metaportal.core import LineageForm, SourceRow
from metaportal.core.errors import DuplicateError, NotFoundError, ValidationError
from metaportal.core.filters import LineageFilter
from metaportal.core.repositories import (
    ChangeLogRepository,
    ColumnRepository,
    ConnectionRepository,
    LineageRepository,
    ProjectRepository,
    SchemaRepository,
    TableRepository,
    UserRepository,
    format_change_ref,
)
from metaportal.models import (
    ChangeType,
    ConnectionStatus,
    DatabaseType,
    DataType,
    MappingType,
    ProjectStatus,
    UserRole,
    UserStatus,
)


def payroll_form(column="total_salary", mapping_type=MappingType.ONE_TO_ONE, sources=None):
    return LineageForm(
        target_schema="FINANCE_SCHEMA",
        target_table="payroll_summary",
        target_column=column,
        mapping_type=mapping_type,
        sources=sources if sources is not None else [SourceRow("HR_SCHEMA", "employees", "salary")],
    )


def test_format_change_ref():
    assert format_change_ref(1) == "CHG-2024-001"
    assert format_change_ref(42) == "CHG-2024-042"
    assert format_change_ref(1234) == "CHG-2024-1234"


def test_schema_names_are_unique(db_session):
    schemas = SchemaRepository(db_session)
    schemas.create("HR_SCHEMA")
    with pytest.raises(DuplicateError):
        schemas.create("HR_SCHEMA")
    # The session is usable again after the rollback
    assert schemas.create("FINANCE_SCHEMA").name == "FINANCE_SCHEMA"


def test_get_unknown_id_raises(db_session):
    with pytest.raises(NotFoundError):
        SchemaRepository(db_session).get(999)
    with pytest.raises(NotFoundError):
        SchemaRepository(db_session).get_by_name("NOPE")


def test_list_returns_newest_first(db_session):
    schemas = SchemaRepository(db_session)
    first = schemas.create("A_SCHEMA")
    second = schemas.create("B_SCHEMA")
    assert schemas.list() == [second, first]


def test_schema_search_matches_name_or_description(db_session):
    schemas = SchemaRepository(db_session)
    schemas.create("HR_SCHEMA", "Human resources")
    schemas.create("FINANCE_SCHEMA", "Ledger")
    assert [s.name for s in schemas.filter("human")] == ["HR_SCHEMA"]
    assert [s.name for s in schemas.filter("schema")] == ["FINANCE_SCHEMA", "HR_SCHEMA"]


def test_table_requires_existing_schema(db_session):
    with pytest.raises(NotFoundError):
        TableRepository(db_session).create("MISSING", "employees")


def test_table_names_unique_within_schema(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    SchemaRepository(db_session).create("FINANCE_SCHEMA")
    tables = TableRepository(db_session)
    tables.create("HR_SCHEMA", "employees")
    tables.create("FINANCE_SCHEMA", "employees")
    with pytest.raises(DuplicateError):
        tables.create("HR_SCHEMA", "employees")
    assert [t.schema_name for t in tables.filter("hr_schema")] == ["HR_SCHEMA"]


def test_column_size_fields_follow_data_type(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    table = TableRepository(db_session).create("HR_SCHEMA", "employees")
    columns = ColumnRepository(db_session)

    name = columns.create(table.id, "first_name", DataType.VARCHAR2, length=50, precision=5)
    assert (name.length, name.precision, name.scale) == (50, None, None)
    assert name.type_label == "VARCHAR2(50)"

    salary = columns.create(table.id, "salary", "NUMBER", length=20, precision=10, scale=2)
    assert (salary.length, salary.precision, salary.scale) == (None, 10, 2)
    assert salary.type_label == "NUMBER(10,2)"

    hired = columns.create(table.id, "hire_date", DataType.DATE, length=7)
    assert hired.length is None
    assert hired.type_label == "DATE"


def test_primary_key_columns_are_not_nullable(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    table = TableRepository(db_session).create("HR_SCHEMA", "employees")
    columns = ColumnRepository(db_session)

    key = columns.create(table.id, "employee_id", DataType.NUMBER, precision=10, scale=0,
                         primary_key=True, nullable=True)
    assert key.nullable is False

    other = columns.create(table.id, "email", DataType.VARCHAR2, length=100)
    assert other.nullable is True
    updated = columns.update(other.id, primary_key=True)
    assert updated.nullable is False


def test_column_update_to_new_type_clears_old_size(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    table = TableRepository(db_session).create("HR_SCHEMA", "employees")
    columns = ColumnRepository(db_session)
    column = columns.create(table.id, "code", DataType.NUMBER, precision=4)

    updated = columns.update(column.id, data_type="LONG_RAW")
    assert updated.data_type is DataType.LONG_RAW
    assert updated.precision is None
    assert updated.type_label == "LONG RAW"


def test_lineage_change_refs_follow_prior_count(db_session):
    lineage = LineageRepository(db_session)
    first = lineage.create(payroll_form("department_id"))
    second = lineage.create(payroll_form("total_salary"))

    assert first.change_ref_number == "CHG-2024-001"
    assert second.change_ref_number == "CHG-2024-002"
    assert first.id != second.id
    assert re.fullmatch(r"CHG-2024-\d{3,}", second.change_ref_number)


def test_lineage_create_adds_exactly_one_record(db_session):
    lineage = LineageRepository(db_session)
    lineage.create(payroll_form("department_id"))
    before = lineage.list()

    created = lineage.create(payroll_form("total_salary"))
    after = lineage.list()

    assert len(after) == len(before) + 1
    assert after[0] is created
    assert after[1:] == before


def test_lineage_created_by_defaults_to_user(db_session):
    mapping = LineageRepository(db_session).create(payroll_form())
    assert mapping.created_by == "user"
    other = LineageRepository(db_session).create(payroll_form("x"), created_by="jane.smith")
    assert other.created_by == "jane.smith"


def test_lineage_sources_are_stored_in_order(db_session):
    sources = [SourceRow("HR_SCHEMA", "employees", "salary"),
               SourceRow("HR_SCHEMA", "employees", "bonus", "conditional")]
    mapping = LineageRepository(db_session).create(
        payroll_form(mapping_type=MappingType.MANY_TO_ONE, sources=sources)
    )
    assert [(s.position, s.column_name) for s in mapping.sources] == [(0, "salary"), (1, "bonus")]


def test_system_field_mapping_has_no_sources(db_session):
    mapping = LineageRepository(db_session).create(payroll_form("load_ts", mapping_type="System Field"))
    assert mapping.mapping_type is MappingType.SYSTEM_FIELD
    assert mapping.sources == []


def test_incomplete_lineage_is_rejected(db_session):
    lineage = LineageRepository(db_session)
    with pytest.raises(ValidationError):
        lineage.create(LineageForm(target_schema="FINANCE_SCHEMA"))
    assert lineage.count() == 0


def test_lineage_filter_by_change_ref(db_session):
    lineage = LineageRepository(db_session)
    lineage.create(payroll_form("department_id"))
    second = lineage.create(payroll_form("total_salary"))

    assert lineage.filter(LineageFilter(change_ref="002")) == [second]
    assert len(lineage.filter(LineageFilter(change_ref="chg-2024"))) == 2


def test_project_schemas_are_normalised(db_session):
    projects = ProjectRepository(db_session)
    project = projects.create("Payroll", schemas=["HR_SCHEMA", " FINANCE_SCHEMA ", "HR_SCHEMA", ""])
    assert project.schemas == ["FINANCE_SCHEMA", "HR_SCHEMA"]
    assert project.status is ProjectStatus.ACTIVE

    project = projects.add_schema(project.id, "INVENTORY_SCHEMA")
    assert project.schemas == ["FINANCE_SCHEMA", "HR_SCHEMA", "INVENTORY_SCHEMA"]

    project = projects.update(project.id, status="maintenance")
    assert project.status is ProjectStatus.MAINTENANCE


def test_change_log_requires_project(db_session):
    with pytest.raises(NotFoundError):
        ChangeLogRepository(db_session).record(1, ChangeType.CREATE, "employees")


def test_change_log_defaults_and_order(db_session):
    project = ProjectRepository(db_session).create("Payroll")
    changes = ChangeLogRepository(db_session)
    first = changes.record(project.id, "create", "employees")
    second = changes.record(project.id, ChangeType.ALTER, "employees", "salary", user="jane.smith")

    assert first.user == "system"
    assert first.change_type is ChangeType.CREATE
    assert changes.for_project(project.id)[0].id == second.id


def test_connection_and_user_registries(db_session):
    connection = ConnectionRepository(db_session).create("warehouse", "PostgreSQL", host="db", port=5432)
    assert connection.database_type is DatabaseType.POSTGRESQL
    assert connection.status is ConnectionStatus.DISCONNECTED

    user = UserRepository(db_session).create("jane.smith", "jane@example.com", UserRole.DATA_ENGINEER)
    assert user.status is UserStatus.ACTIVE
    with pytest.raises(DuplicateError):
        UserRepository(db_session).create("jane.smith")


def test_update_rejects_none_for_required_fields(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    table = TableRepository(db_session).create("HR_SCHEMA", "employees")
    columns = ColumnRepository(db_session)
    column = columns.create(table.id, "salary", DataType.NUMBER, precision=10, scale=2)

    with pytest.raises(ValidationError, match="data_type"):
        columns.update(column.id, data_type=None)
    with pytest.raises(ValidationError, match="nullable"):
        columns.update(column.id, nullable=None)
    with pytest.raises(ValidationError, match="name"):
        TableRepository(db_session).update(table.id, name=None)
    with pytest.raises(ValidationError, match="status"):
        ProjectRepository(db_session).update(ProjectRepository(db_session).create("P").id, status=None)

    assert columns.update(column.id, scale=None).type_label == "NUMBER(10)"


def test_project_scope_lookups_ignore_case(db_session):
    SchemaRepository(db_session).create("HR_SCHEMA")
    TableRepository(db_session).create("HR_SCHEMA", "employees")
    LineageRepository(db_session).create(
        LineageForm(target_schema="hr_schema", target_table="employees", target_column="id",
                    mapping_type=MappingType.SYSTEM_FIELD)
    )
    assert len(TableRepository(db_session).in_schemas({"Hr_Schema"})) == 1
    assert len(LineageRepository(db_session).targeting_schemas(["HR_SCHEMA"])) == 1
