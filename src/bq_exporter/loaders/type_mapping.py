"""
Warehouse to StarRocks column type mapping.
"""

from typing import Dict

from ..errors import UnsupportedTypeError
from ..warehouse.types import Field, LogicalType

STARROCKS_TYPE_MAPPING: Dict[LogicalType, str] = {
    # String types
    LogicalType.STRING: 'VARCHAR(1024)',
    LogicalType.GEOGRAPHY: 'VARCHAR(2048)',  # WKT text
    LogicalType.JSON: 'JSON',
    # Binary
    LogicalType.BYTES: 'VARBINARY(1024)',
    # Numeric types
    LogicalType.INTEGER: 'BIGINT',
    LogicalType.FLOAT: 'DOUBLE',
    LogicalType.NUMERIC: 'DECIMAL(38,9)',
    LogicalType.BOOLEAN: 'BOOLEAN',
    # Date and time types
    LogicalType.TIMESTAMP: 'DATETIME',
    LogicalType.DATETIME: 'DATETIME',
    LogicalType.DATE: 'DATE',
    LogicalType.TIME: 'VARCHAR(64)',
    # Fallback
    LogicalType.OTHER: 'VARCHAR(1024)',
}

DEFAULT_STARROCKS_TYPE = 'VARCHAR(1024)'


def map_field(field: Field) -> str:
    """
    Return the StarRocks column type for a result field.

    Raises:
        UnsupportedTypeError: The field is repeated or nested
    """
    if field.is_complex:
        raise UnsupportedTypeError(field.name)
    return STARROCKS_TYPE_MAPPING.get(field.logical_type, DEFAULT_STARROCKS_TYPE)


def base_type(column_type: str) -> str:
    """'DECIMAL(38,9)' -> 'decimal', matching information_schema.columns.data_type"""
    return column_type.split('(', 1)[0].strip().lower()


def quote_identifier(identifier: str) -> str:
    return '`' + identifier.replace('`', '``') + '`'


def column_definition(field: Field) -> str:
    return f'{quote_identifier(field.name)} {map_field(field)}'
