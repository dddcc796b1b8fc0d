"""Core catalog models for schemas, tables, and columns."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column as SQLColumn, Integer, String, DateTime, Boolean, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class DataType(PyEnum):
    """Column data types supported by the catalog."""
    VARCHAR2 = "VARCHAR2"
    CHAR = "CHAR"
    NUMBER = "NUMBER"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    CLOB = "CLOB"
    BLOB = "BLOB"
    LONG = "LONG"
    RAW = "RAW"
    LONG_RAW = "LONG RAW"

    @property
    def size_kind(self) -> Optional[str]:
        """Which size fields are meaningful: "length", "precision" or None."""
        if self in (DataType.VARCHAR2, DataType.CHAR):
            return "length"
        if self is DataType.NUMBER:
            return "precision"
        return None

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper().replace("_", " ")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class Schema(Base):
    """Represents a catalogued database schema."""

    __tablename__ = "schemas"

    id = SQLColumn(Integer, primary_key=True, index=True)
    name = SQLColumn(String(255), unique=True, index=True, nullable=False)
    description = SQLColumn(Text, default="")
    updated_at = SQLColumn(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # ORM keeps Table.schema_name in step when a schema is renamed
    tables = relationship(
        "Table",
        back_populates="schema",
        cascade="all, delete-orphan",
        passive_updates=False,
    )


class Table(Base):
    """Represents a catalogued table within a schema."""

    __tablename__ = "tables"
    __table_args__ = (UniqueConstraint("schema_name", "name", name="uq_table_schema_name"),)

    id = SQLColumn(Integer, primary_key=True, index=True)
    schema_name = SQLColumn(String(255), ForeignKey("schemas.name"), nullable=False, index=True)
    name = SQLColumn(String(255), nullable=False, index=True)
    business_definition = SQLColumn(Text, default="")
    updated_at = SQLColumn(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    schema = relationship("Schema", back_populates="tables")
    columns = relationship("Column", back_populates="table", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        """Get fully qualified table name."""
        return f"{self.schema_name}.{self.name}"


class Column(Base):
    """Represents a catalogued column."""

    __tablename__ = "columns"
    __table_args__ = (UniqueConstraint("table_id", "name", name="uq_column_table_name"),)

    id = SQLColumn(Integer, primary_key=True, index=True)
    table_id = SQLColumn(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    name = SQLColumn(String(255), nullable=False, index=True)
    data_type = SQLColumn(Enum(DataType), nullable=False, default=DataType.VARCHAR2)

    # Size: length for character types, precision/scale for NUMBER
    length = SQLColumn(Integer)
    precision = SQLColumn(Integer)
    scale = SQLColumn(Integer)

    nullable = SQLColumn(Boolean, nullable=False, default=True)
    primary_key = SQLColumn(Boolean, nullable=False, default=False)
    partition_column = SQLColumn(Boolean, nullable=False, default=False)
    default_value = SQLColumn(String(255), default="")
    definition = SQLColumn(Text, default="")
    updated_at = SQLColumn(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    table = relationship("Table", back_populates="columns")

    @property
    def type_label(self) -> str:
        """Data type rendered with its size, e.g. NUMBER(10,2)."""
        kind = self.data_type.size_kind
        if kind == "length" and self.length:
            return f"{self.data_type.value}({self.length})"
        if kind == "precision" and self.precision:
            if self.scale is not None:
                return f"{self.data_type.value}({self.precision},{self.scale})"
            return f"{self.data_type.value}({self.precision})"
        return self.data_type.value

    def apply_type_rules(self) -> bool:
        """Clear size fields the data type does not use and keep keys non-null.

        Returns True if any field was changed.
        """
        changed = False
        kind = self.data_type.size_kind
        if kind != "length" and self.length is not None:
            self.length = None
            changed = True
        if kind != "precision" and (self.precision is not None or self.scale is not None):
            self.precision = None
            self.scale = None
            changed = True
        if self.primary_key and self.nullable:
            self.nullable = False
            changed = True
        return changed
