"""State of the create-lineage form and its dependent-field rules."""

import logging
from dataclasses import dataclass, field
from typing import List, Union

from ..models import MappingType, TransformationType
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class SourceRow:
    """One source column row on the lineage form."""
    schema: str = ""
    table: str = ""
    column: str = ""
    transformation_type: TransformationType = TransformationType.DIRECT

    def __post_init__(self):
        self.transformation_type = TransformationType(self.transformation_type)

    def select_schema(self, schema: str):
        self.schema = schema
        self.table = ""
        self.column = ""

    def select_table(self, table: str):
        self.table = table
        self.column = ""

    def select_column(self, column: str):
        self.column = column

    @property
    def is_complete(self) -> bool:
        return bool(self.schema and self.table and self.column)


@dataclass
class LineageForm:
    """Form model for a new lineage mapping.

    Choosing a schema resets the table and column on the same side;
    choosing a table resets the column. The source rows always agree with
    the mapping type: none for a system field, exactly one for one-to-one,
    at least one for many-to-one.
    """
    target_schema: str = ""
    target_table: str = ""
    target_column: str = ""
    mapping_type: MappingType = MappingType.ONE_TO_ONE
    transformation_type: TransformationType = TransformationType.DIRECT
    transformation_logic: str = ""
    sources: List[SourceRow] = field(default_factory=list)

    def __post_init__(self):
        self.mapping_type = MappingType(self.mapping_type)
        self.transformation_type = TransformationType(self.transformation_type)
        self._fit_sources()

    # Target side

    def select_target_schema(self, schema: str):
        self.target_schema = schema
        self.target_table = ""
        self.target_column = ""

    def select_target_table(self, table: str):
        self.target_table = table
        self.target_column = ""

    def select_target_column(self, column: str):
        self.target_column = column

    # Source side

    def select_source_schema(self, index: int, schema: str):
        self._source(index).select_schema(schema)

    def select_source_table(self, index: int, table: str):
        self._source(index).select_table(table)

    def select_source_column(self, index: int, column: str):
        self._source(index).select_column(column)

    def set_source_transformation(self, index: int, transformation_type: Union[TransformationType, str]):
        self._source(index).transformation_type = TransformationType(transformation_type)

    def add_source(self) -> SourceRow:
        """Append an empty source row (many-to-one only)."""
        if self.mapping_type is not MappingType.MANY_TO_ONE:
            raise ValidationError(f"{self.mapping_type.label} mappings take a single source row")
        row = SourceRow()
        self.sources.append(row)
        return row

    def remove_source(self, index: int) -> SourceRow:
        """Remove a source row, keeping at least one for many-to-one."""
        if self.mapping_type is not MappingType.MANY_TO_ONE:
            raise ValidationError(f"{self.mapping_type.label} mappings cannot remove source rows")
        if len(self.sources) <= 1:
            raise ValidationError("Many-to-One mappings need at least one source row")
        self._source(index)
        return self.sources.pop(index)

    def set_mapping_type(self, mapping_type: Union[MappingType, str]):
        self.mapping_type = MappingType(mapping_type)
        self._fit_sources()

    # Submission

    def problems(self) -> List[str]:
        """Reasons the form cannot be submitted; empty when submittable."""
        problems = []
        if not self.target_schema:
            problems.append("target schema is required")
        if not self.target_table:
            problems.append("target table is required")
        if not self.target_column:
            problems.append("target column is required")
        for index, row in enumerate(self.sources):
            if not row.is_complete:
                problems.append(f"source row {index + 1} needs a schema, table and column")
        return problems

    @property
    def is_submittable(self) -> bool:
        return not self.problems()

    def validate(self):
        problems = self.problems()
        if problems:
            raise ValidationError("Lineage form incomplete: " + "; ".join(problems))

    def _source(self, index: int) -> SourceRow:
        try:
            return self.sources[index]
        except IndexError:
            raise ValidationError(f"No source row at position {index}")

    def _fit_sources(self):
        self.sources = [row if isinstance(row, SourceRow) else SourceRow(**row) for row in self.sources]

        if self.mapping_type is MappingType.SYSTEM_FIELD:
            if self.sources:
                logger.debug(f"Dropping {len(self.sources)} source rows for system field mapping")
            self.sources = []
        elif self.mapping_type is MappingType.ONE_TO_ONE:
            # Stale rows from a previous many-to-one selection are discarded
            self.sources = self.sources[:1] or [SourceRow()]
        elif not self.sources:
            self.sources = [SourceRow()]
