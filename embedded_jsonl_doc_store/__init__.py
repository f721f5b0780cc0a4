from .database import Database
from .errors import DocStoreError, IncomparableTypesError, IOCorruptionError, ValidationError
from .matcher import matches
from .pipeline import SortOrder, project, sort_records
from .query import And, Eq, FieldMap, Gt, In, Lt, Or, Text, UnknownOp, parse_query
from .storage import Entry, EntryStatus, FileStorage

__all__ = [
    "Database",
    "DocStoreError", "IncomparableTypesError", "IOCorruptionError", "ValidationError",
    "matches", "SortOrder", "project", "sort_records",
    "And", "Or", "Text", "FieldMap", "Eq", "Gt", "Lt", "In", "UnknownOp", "parse_query",
    "Entry", "EntryStatus", "FileStorage",
]
