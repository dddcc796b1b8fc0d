"""MetaPortal: a metadata catalogue with column-level lineage."""

__version__ = "0.1.0"
