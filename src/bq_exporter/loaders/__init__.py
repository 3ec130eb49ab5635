"""
Relational loading of warehouse query results into StarRocks.
"""

from .batch import BatchLoader, build_batch_insert, convert_value
from .pool import StarRocksConnectionPool
from .schema import SchemaReconciler, resolve_table
from .starrocks import StarRocksService
from .type_mapping import STARROCKS_TYPE_MAPPING, column_definition, map_field
from .types import DestinationColumn, DestinationTable, LoadConfig, LoadResult

__all__ = [
    'BatchLoader',
    'DestinationColumn',
    'DestinationTable',
    'LoadConfig',
    'LoadResult',
    'STARROCKS_TYPE_MAPPING',
    'SchemaReconciler',
    'StarRocksConnectionPool',
    'StarRocksService',
    'build_batch_insert',
    'column_definition',
    'convert_value',
    'map_field',
    'resolve_table',
]
