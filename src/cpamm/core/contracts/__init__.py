"""
Contract Validation Module

JSON Schema контракты снапшота пула и записи журнала.
"""

from .validators import (
    SCHEMA_DIR,
    ContractValidator,
    EventRecordValidator,
    PoolSnapshotValidator,
    SchemaLoader,
    format_error,
    validate_event_record,
    validate_pool_snapshot,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "PoolSnapshotValidator",
    "EventRecordValidator",
    # Functions
    "format_error",
    "validate_pool_snapshot",
    "validate_event_record",
    # Constants
    "SCHEMA_DIR",
]
