"""
Core types describing a warehouse query result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple

from ..errors import SchemaUnavailableError

Row = Tuple[Any, ...]


class LogicalType(Enum):
    STRING = 'STRING'
    BYTES = 'BYTES'
    INTEGER = 'INTEGER'
    FLOAT = 'FLOAT'
    BOOLEAN = 'BOOLEAN'
    TIMESTAMP = 'TIMESTAMP'
    DATETIME = 'DATETIME'
    DATE = 'DATE'
    TIME = 'TIME'
    NUMERIC = 'NUMERIC'
    GEOGRAPHY = 'GEOGRAPHY'
    JSON = 'JSON'
    OTHER = 'OTHER'

    @classmethod
    def from_bigquery(cls, field_type: Optional[str]) -> 'LogicalType':
        """Map a BigQuery field type name (legacy or standard SQL spelling) to a LogicalType"""
        if not field_type:
            return cls.OTHER
        return _BIGQUERY_ALIASES.get(field_type.upper(), cls.OTHER)


_BIGQUERY_ALIASES = {
    'STRING': LogicalType.STRING,
    'BYTES': LogicalType.BYTES,
    'INTEGER': LogicalType.INTEGER,
    'INT64': LogicalType.INTEGER,
    'FLOAT': LogicalType.FLOAT,
    'FLOAT64': LogicalType.FLOAT,
    'BOOLEAN': LogicalType.BOOLEAN,
    'BOOL': LogicalType.BOOLEAN,
    'TIMESTAMP': LogicalType.TIMESTAMP,
    'DATETIME': LogicalType.DATETIME,
    'DATE': LogicalType.DATE,
    'TIME': LogicalType.TIME,
    'NUMERIC': LogicalType.NUMERIC,
    'GEOGRAPHY': LogicalType.GEOGRAPHY,
    'JSON': LogicalType.JSON,
}

NESTED_BIGQUERY_TYPES = ('RECORD', 'STRUCT')


@dataclass(frozen=True)
class Field:
    """A single column of a query result"""

    name: str
    logical_type: LogicalType
    repeated: bool = False
    nested: bool = False

    @property
    def is_complex(self) -> bool:
        return self.repeated or self.nested

    @classmethod
    def from_bigquery(cls, schema_field: Any) -> 'Field':
        """Create a Field from a google.cloud.bigquery.SchemaField"""
        field_type = (schema_field.field_type or '').upper()
        mode = (schema_field.mode or 'NULLABLE').upper()
        return cls(
            name=schema_field.name,
            logical_type=LogicalType.from_bigquery(field_type),
            repeated=mode == 'REPEATED',
            nested=field_type in NESTED_BIGQUERY_TYPES,
        )


class Schema(Sequence[Field]):
    """
    Ordered, immutable sequence of fields.

    Field order defines the positional correspondence with row values.
    Names are unique, compared case-insensitively.
    """

    def __init__(self, fields: Iterable[Field] = ()):
        self._fields: Tuple[Field, ...] = tuple(fields)
        seen = set()
        for f in self._fields:
            key = f.name.lower()
            if key in seen:
                raise SchemaUnavailableError(f'duplicate column name in query result: {f.name!r}')
            seen.add(key)

    @classmethod
    def from_bigquery(cls, schema_fields: Optional[Iterable[Any]]) -> 'Schema':
        return cls(Field.from_bigquery(sf) for sf in (schema_fields or ()))

    @property
    def names(self) -> list[str]:
        return [f.name for f in self._fields]

    def require_columns(self) -> 'Schema':
        """Return self, or raise SchemaUnavailableError when there is nothing to describe"""
        if not self._fields:
            raise SchemaUnavailableError()
        return self

    def __getitem__(self, index):
        return self._fields[index]

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Schema):
            return self._fields == other._fields
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        cols = ', '.join(f'{f.name}:{f.logical_type.value}' for f in self._fields)
        return f'Schema({cols})'
