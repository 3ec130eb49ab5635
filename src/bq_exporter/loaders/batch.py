"""
Batched, transactional row loading into StarRocks.

All batches of one load_all call share one transaction: either every row is
committed or none is.
"""

import json
import logging
import threading
import time
from datetime import date, datetime, time as dt_time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ..cancellation import CancellationToken, check
from ..errors import (
    DatabaseError,
    ExporterError,
    LoadCancelledError,
    QueryExecutionError,
    UnsupportedTypeError,
    ValueConversionError,
)
from ..warehouse.types import Field, LogicalType, Row, Schema
from .pool import StarRocksConnectionPool
from .type_mapping import quote_identifier
from .types import LoadConfig, LoadResult


def _to_timestamp(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise TypeError('expected datetime')
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_datetime(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise TypeError('expected datetime')
    return value


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError('expected date')


def _to_time(value: Any) -> str:
    if isinstance(value, dt_time):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise TypeError('expected time')


def _to_json(value: Any) -> str:
    return json.dumps(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError('bool is not numeric')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        result = Decimal(str(value))
        if not result.is_finite():
            raise ValueError('non-finite numeric')
        return result
    raise TypeError('expected numeric')


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError('bool is not an integer')
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError('fractional value')
        return int(value)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValueError('fractional value')
        return int(value)
    if isinstance(value, str):
        return int(value)
    raise TypeError('expected integer')


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError('bool is not a float')
    if isinstance(value, (int, float, Decimal, str)):
        return float(value)
    raise TypeError('expected float')


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise TypeError('expected bool')


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError('expected bytes')


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8')
    return str(value)


VALUE_CONVERTERS: Dict[LogicalType, Callable[[Any], Any]] = {
    LogicalType.TIMESTAMP: _to_timestamp,
    LogicalType.DATETIME: _to_datetime,
    LogicalType.DATE: _to_date,
    LogicalType.TIME: _to_time,
    LogicalType.JSON: _to_json,
    LogicalType.NUMERIC: _to_decimal,
    LogicalType.INTEGER: _to_int,
    LogicalType.FLOAT: _to_float,
    LogicalType.BOOLEAN: _to_bool,
    LogicalType.BYTES: _to_bytes,
    LogicalType.STRING: _to_str,
    LogicalType.GEOGRAPHY: _to_str,
    LogicalType.OTHER: _to_str,
}


def convert_value(value: Any, field: Field) -> Any:
    """
    Convert a warehouse value into the Python type bound for its column.

    Raises:
        TypeError, ValueError, ArithmeticError: The value cannot be represented
    """
    if value is None:
        return None
    return VALUE_CONVERTERS.get(field.logical_type, _to_str)(value)


def build_batch_insert(database: str, table: str, columns: Sequence[str], row_count: int) -> str:
    """
    Build a multi-row parameterised INSERT for row_count rows.

    Identifiers are escaped for pymysql's %-style parameter substitution.
    """
    column_list = ', '.join(quote_identifier(c) for c in columns)
    placeholders = '(' + ', '.join(['%s'] * len(columns)) + ')'
    prefix = f'INSERT INTO {database}.{table} ({column_list}) VALUES '.replace('%', '%%')
    return prefix + ', '.join([placeholders] * row_count)


class BatchLoader:
    """
    Streams rows into a StarRocks table in bounded batches within one transaction.

    Example:
        loader = BatchLoader(pool, LoadConfig(batch_size=500))
        result = loader.load_all(result.stream, result.schema, 'analytics', 'events',
                                 prefetched_row=result.prefetched_row)
    """

    def __init__(self, pool: StarRocksConnectionPool, config: Optional[LoadConfig] = None):
        self.pool = pool
        self.config = config or LoadConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

    def load_all(
        self,
        stream: Iterable[Row],
        schema: Schema,
        database: str,
        table: str,
        prefetched_row: Optional[Row] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> LoadResult:
        """
        Insert every row from stream (prefetched_row first) and commit once.

        Raises:
            DatabaseError: An insert or the commit failed; nothing was committed
            QueryExecutionError: Reading the stream failed; nothing was committed
            ValueConversionError: Strict mode and a value could not be converted
            UnsupportedTypeError: A field is repeated or nested
            LoadCancelledError: cancel fired before the commit; a running INSERT is killed
        """
        schema.require_columns()
        for f in schema:
            if f.is_complex:
                raise UnsupportedTypeError(f.name)

        start_time = time.time()
        batch_size = self.config.batch_size
        state = _LoadState()

        with self.pool.connection() as conn:
            try:
                conn.begin()
                with _StatementInterrupter(self.pool, conn, cancel), conn.cursor() as cursor:
                    batch: List[tuple] = []
                    rows = _chain_prefetched(prefetched_row, stream)
                    for row in rows:
                        batch.append(self._convert_row(row, schema, state))
                        if len(batch) >= batch_size:
                            self._flush(cursor, database, table, schema, batch, state, cancel)
                            batch = []
                    if batch:
                        self._flush(cursor, database, table, schema, batch, state, cancel)

                check(cancel)
                conn.commit()
            except Exception as e:
                self._rollback(conn, database, table)
                if isinstance(e, LoadCancelledError):
                    raise
                if cancel is not None and cancel.cancelled:
                    raise LoadCancelledError(f'load into {database}.{table} interrupted: {cancel.reason}') from e
                if isinstance(e, ExporterError):
                    raise
                raise DatabaseError(f'load into {database}.{table} failed: {e}') from e

        duration = time.time() - start_time
        result = LoadResult(
            table=f'{database}.{table}',
            rows_loaded=state.rows_loaded,
            duration=duration,
            batches=state.batches,
            nulled_values=state.nulled_values,
        )
        self.logger.info(str(result))
        if state.nulled_values:
            self.logger.warning(f'{state.nulled_values} values could not be converted and were loaded as NULL')
        return result

    def _convert_row(self, row: Row, schema: Schema, state: '_LoadState') -> tuple:
        if len(row) != len(schema):
            raise QueryExecutionError(f'row has {len(row)} values but the schema has {len(schema)} columns')

        converted = []
        for value, f in zip(row, schema):
            try:
                converted.append(convert_value(value, f))
            except (TypeError, ValueError, ArithmeticError, InvalidOperation):
                if self.config.strict_values:
                    raise ValueConversionError(f.name, value, f.logical_type.value)
                state.nulled_values += 1
                self.logger.debug(f'Loading NULL for {f.name}: cannot convert {type(value).__name__}')
                converted.append(None)
        return tuple(converted)

    def _flush(
        self,
        cursor: Any,
        database: str,
        table: str,
        schema: Schema,
        batch: List[tuple],
        state: '_LoadState',
        cancel: Optional[CancellationToken],
    ) -> None:
        check(cancel)
        sql = build_batch_insert(database, table, schema.names, len(batch))
        params = [value for row in batch for value in row]
        try:
            cursor.execute(sql, params)
        except Exception as e:
            raise DatabaseError(f'insert batch {state.batches + 1} into {database}.{table} failed: {e}') from e
        state.batches += 1
        state.rows_loaded += len(batch)
        self.logger.debug(f'Inserted batch {state.batches} ({len(batch)} rows, {state.rows_loaded} total)')

    def _rollback(self, conn: Any, database: str, table: str) -> None:
        try:
            conn.rollback()
            self.logger.warning(f'Rolled back load into {database}.{table}')
        except Exception as e:
            self.logger.error(f'Rollback of load into {database}.{table} failed: {e}')


class _LoadState:
    __slots__ = ('rows_loaded', 'batches', 'nulled_values')

    def __init__(self):
        self.rows_loaded = 0
        self.batches = 0
        self.nulled_values = 0


def _chain_prefetched(prefetched_row: Optional[Row], stream: Iterable[Row]) -> Iterable[Row]:
    if prefetched_row is not None:
        yield prefetched_row
    yield from stream


class _StatementInterrupter:
    """
    Kills the statement running on conn when cancel fires while active.

    While active, a timer also cancels the token once its deadline passes,
    which interrupts an INSERT that is still running at that point.
    """

    def __init__(self, pool: StarRocksConnectionPool, conn: Any, cancel: Optional[CancellationToken]):
        self.pool = pool
        self.conn = conn
        self.cancel = cancel
        self._timer: Optional[threading.Timer] = None
        self.logger = logging.getLogger(BatchLoader.__name__)

    def __enter__(self) -> '_StatementInterrupter':
        if self.cancel is None:
            return self
        self.cancel.raise_if_cancelled()
        self.cancel.add_callback(self._interrupt)
        remaining = self.cancel.remaining()
        if remaining is not None:
            self._timer = threading.Timer(remaining, self.cancel.cancel, args=('deadline exceeded',))
            self._timer.daemon = True
            self._timer.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._timer is not None:
            self._timer.cancel()
        if self.cancel is not None:
            self.cancel.remove_callback(self._interrupt)

    def _interrupt(self, reason: str) -> None:
        try:
            thread_id = self.conn.thread_id()
            self.logger.warning(f'Load cancelled ({reason}), killing query on connection {thread_id}')
            self.pool.kill_query(thread_id)
        except Exception as e:
            self.logger.error(f'Could not interrupt running insert: {e}')
