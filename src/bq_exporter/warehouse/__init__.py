"""
BigQuery query execution and result model.
"""

from .bigquery import BigQueryService, QueryResult, detect_project_id
from .export import build_export_uri
from .iterator import RowStream
from .types import Field, LogicalType, Row, Schema

__all__ = [
    'BigQueryService',
    'Field',
    'LogicalType',
    'QueryResult',
    'Row',
    'RowStream',
    'Schema',
    'build_export_uri',
    'detect_project_id',
]
