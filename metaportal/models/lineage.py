"""Models for column-level lineage mappings."""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column as SQLColumn, Integer, String, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship

from .base import Base


class MappingType(PyEnum):
    """How source columns combine into the target column."""
    ONE_TO_ONE = "one-to-one"
    MANY_TO_ONE = "many-to-one"
    SYSTEM_FIELD = "system-field"

    @property
    def label(self) -> str:
        return _MAPPING_LABELS[self]

    @classmethod
    def _missing_(cls, value):
        # Accept display labels ("System Field") and enum names
        if isinstance(value, str):
            key = value.strip().lower().replace(" ", "-").replace("_", "-")
            for member in cls:
                if member.value == key:
                    return member
        return None


_MAPPING_LABELS = {
    MappingType.ONE_TO_ONE: "One-to-One",
    MappingType.MANY_TO_ONE: "Many-to-One",
    MappingType.SYSTEM_FIELD: "System Field",
}


class TransformationType(PyEnum):
    """Whether a value is copied as-is or derived under a condition."""
    DIRECT = "direct"
    CONDITIONAL = "conditional"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        return None


class LineageMapping(Base):
    """A mapping from one or more source columns to a target column."""

    __tablename__ = "lineage_mappings"

    id = SQLColumn(Integer, primary_key=True, index=True)
    target_schema = SQLColumn(String(255), nullable=False, index=True)
    target_table = SQLColumn(String(255), nullable=False, index=True)
    target_column = SQLColumn(String(255), nullable=False)

    mapping_type = SQLColumn(Enum(MappingType), nullable=False, default=MappingType.ONE_TO_ONE)
    transformation_type = SQLColumn(Enum(TransformationType), nullable=False, default=TransformationType.DIRECT)
    transformation_logic = SQLColumn(Text, default="")  # Free text or SQL

    change_ref_number = SQLColumn(String(50), nullable=False, index=True)
    created_at = SQLColumn(DateTime, default=datetime.utcnow)
    created_by = SQLColumn(String(255))

    sources = relationship(
        "LineageSource",
        back_populates="mapping",
        cascade="all, delete-orphan",
        order_by="LineageSource.position",
    )

    @property
    def target_full_name(self) -> str:
        return f"{self.target_schema}.{self.target_table}.{self.target_column}"


class LineageSource(Base):
    """One ordered source row of a lineage mapping."""

    __tablename__ = "lineage_sources"

    id = SQLColumn(Integer, primary_key=True, index=True)
    mapping_id = SQLColumn(Integer, ForeignKey("lineage_mappings.id"), nullable=False, index=True)
    position = SQLColumn(Integer, nullable=False, default=0)
    schema_name = SQLColumn(String(255), nullable=False)
    table_name = SQLColumn(String(255), nullable=False)
    column_name = SQLColumn(String(255), nullable=False)
    transformation_type = SQLColumn(Enum(TransformationType), nullable=False, default=TransformationType.DIRECT)

    mapping = relationship("LineageMapping", back_populates="sources")
