"""Pure filter predicates over catalog, lineage and change-log records.

Every filter takes a sequence and returns a new list in the original order.
An unset criterion (None, an empty string, or "all") matches everything, so
an empty filter returns the input unchanged. Name matches are
case-insensitive equality; free-text matches are case-insensitive
substring.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union

from ..models import ChangeType

ALL = "all"


def is_unset(value: Any) -> bool:
    """True when a filter criterion should match everything."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip().lower() == ALL
    return False


def _text(value: Any) -> str:
    if value is None:
        return ""
    # Enum members compare by their value
    return str(getattr(value, "value", value))


def matches_name(actual: Any, wanted: Optional[str]) -> bool:
    if is_unset(wanted):
        return True
    return _text(actual).lower() == wanted.strip().lower()


def contains_text(actual: Any, needle: Optional[str]) -> bool:
    if is_unset(needle):
        return True
    return needle.strip().lower() in _text(actual).lower()


@dataclass
class LineageFilter:
    """Criteria for narrowing a list of lineage mappings."""
    schema: Optional[str] = None
    table: Optional[str] = None
    column: Optional[str] = None
    change_ref: Optional[str] = None

    def matches(self, record) -> bool:
        return (
            matches_name(record.target_schema, self.schema)
            and matches_name(record.target_table, self.table)
            and contains_text(record.target_column, self.column)
            and contains_text(record.change_ref_number, self.change_ref)
        )


@dataclass
class ChangeFilter:
    """Criteria for narrowing a project's change log."""
    search: Optional[str] = None
    table: Optional[str] = None
    column: Optional[str] = None
    change_type: Optional[Union[ChangeType, str]] = None
    change_ref: Optional[str] = None

    def matches(self, record) -> bool:
        return (
            self._matches_search(record)
            and matches_name(record.table_name, self.table)
            and contains_text(record.column_name, self.column)
            and self._matches_change_type(record)
            and contains_text(record.change_ref_number, self.change_ref)
        )

    def _matches_search(self, record) -> bool:
        if is_unset(self.search):
            return True
        fields = (
            record.table_name,
            record.column_name,
            record.description,
            record.user,
            record.change_ref_number,
        )
        return any(contains_text(field, self.search) for field in fields)

    def _matches_change_type(self, record) -> bool:
        if is_unset(self.change_type):
            return True
        wanted = ChangeType(self.change_type)
        return record.change_type == wanted


def filter_schemas(schemas: Iterable, search: Optional[str] = None) -> List:
    """Schemas whose name or description contains ``search``."""
    if is_unset(search):
        return list(schemas)
    return [s for s in schemas if contains_text(s.name, search) or contains_text(s.description, search)]


def filter_tables(tables: Iterable, schema: Optional[str] = None) -> List:
    """Tables in ``schema`` if given; otherwise all tables."""
    if is_unset(schema):
        return list(tables)
    return [t for t in tables if matches_name(t.schema_name, schema)]


def filter_columns(columns: Iterable, table=None) -> List:
    """Columns of ``table`` (an id or a Table) if given; otherwise all columns."""
    if table is None or is_unset(table):
        return list(columns)
    table_id = getattr(table, "id", table)
    return [c for c in columns if c.table_id == int(table_id)]


def filter_lineage(records: Iterable, filters: Optional[LineageFilter] = None) -> List:
    """Lineage mappings matching every set criterion."""
    if filters is None:
        return list(records)
    return [r for r in records if filters.matches(r)]


def filter_changes(changes: Iterable, filters: Optional[ChangeFilter] = None) -> List:
    """Change records matching every set criterion."""
    if filters is None:
        return list(changes)
    return [c for c in changes if filters.matches(c)]
