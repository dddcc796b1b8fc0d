"""Tests for the lineage form's dependent-field rules."""

import pytest

from metaportal.core import LineageForm, SourceRow
from metaportal.core.errors import ValidationError
from metaportal.models import MappingType, TransformationType


def complete_form(**kwargs):
    defaults = dict(
        target_schema="FINANCE_SCHEMA",
        target_table="payroll_summary",
        target_column="total_salary",
        sources=[SourceRow("HR_SCHEMA", "employees", "salary")],
    )
    defaults.update(kwargs)
    return LineageForm(**defaults)


def test_new_form_has_one_empty_source_row():
    form = LineageForm()
    assert form.mapping_type is MappingType.ONE_TO_ONE
    assert len(form.sources) == 1
    assert not form.is_submittable


def test_target_schema_selection_resets_table_and_column():
    form = complete_form()
    form.select_target_schema("HR_SCHEMA")
    assert form.target_schema == "HR_SCHEMA"
    assert form.target_table == ""
    assert form.target_column == ""


def test_target_table_selection_resets_column():
    form = complete_form()
    form.select_target_table("accounts")
    assert form.target_schema == "FINANCE_SCHEMA"
    assert form.target_column == ""


def test_source_schema_selection_resets_table_and_column():
    form = complete_form()
    form.select_source_schema(0, "FINANCE_SCHEMA")
    row = form.sources[0]
    assert (row.schema, row.table, row.column) == ("FINANCE_SCHEMA", "", "")

    form.select_source_table(0, "accounts")
    form.select_source_column(0, "balance")
    form.select_source_table(0, "ledger")
    assert form.sources[0].column == ""


def test_system_field_needs_no_sources():
    form = complete_form()
    form.set_mapping_type("System Field")
    assert form.mapping_type is MappingType.SYSTEM_FIELD
    assert form.sources == []
    assert form.is_submittable


def test_many_to_one_back_to_one_to_one_keeps_first_row():
    form = complete_form(mapping_type=MappingType.MANY_TO_ONE)
    form.add_source()
    form.select_source_schema(1, "HR_SCHEMA")
    assert len(form.sources) == 2

    form.set_mapping_type(MappingType.ONE_TO_ONE)
    assert len(form.sources) == 1
    assert form.sources[0].column == "salary"


def test_switching_from_system_field_restores_a_source_row():
    form = complete_form(mapping_type="system-field")
    form.set_mapping_type("Many-to-One")
    assert len(form.sources) == 1
    assert not form.sources[0].is_complete


def test_add_source_only_for_many_to_one():
    form = complete_form()
    with pytest.raises(ValidationError):
        form.add_source()


def test_remove_source_keeps_at_least_one_row():
    form = complete_form(mapping_type=MappingType.MANY_TO_ONE)
    with pytest.raises(ValidationError):
        form.remove_source(0)
    form.add_source()
    removed = form.remove_source(1)
    assert not removed.is_complete
    assert len(form.sources) == 1


def test_sources_accept_dicts():
    form = complete_form(sources=[{"schema": "HR_SCHEMA", "table": "employees", "column": "salary",
                                   "transformation_type": "conditional"}])
    assert form.sources[0].transformation_type is TransformationType.CONDITIONAL


def test_incomplete_form_lists_problems():
    form = LineageForm(target_schema="FINANCE_SCHEMA")
    problems = form.problems()
    assert "target table is required" in problems
    assert "source row 1 needs a schema, table and column" in problems
    with pytest.raises(ValidationError):
        form.validate()


def test_set_source_transformation():
    form = complete_form()
    form.set_source_transformation(0, "conditional")
    assert form.sources[0].transformation_type is TransformationType.CONDITIONAL
    with pytest.raises(ValidationError):
        form.set_source_transformation(3, "direct")
