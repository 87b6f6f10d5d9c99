"""models/__init__.py"""
from models.catalog import (
    ColumnDescriptor,
    TableDescriptor,
    ConstraintKind,
    ConstraintRecord,
    CheckConstraintRecord,
    SequenceDescriptor,
    TargetType,
    split_qualified_name,
)
from models.connection import SourceConnection, TargetConnection

__all__ = [
    "ColumnDescriptor",
    "TableDescriptor",
    "ConstraintKind",
    "ConstraintRecord",
    "CheckConstraintRecord",
    "SequenceDescriptor",
    "TargetType",
    "split_qualified_name",
    "SourceConnection",
    "TargetConnection",
]
