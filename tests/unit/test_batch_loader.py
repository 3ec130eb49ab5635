# tests/unit/test_batch_loader.py
"""
Unit tests for BatchLoader: batching, transaction atomicity, prefetched row
ordering and value conversion.
"""

import dataclasses
import json
import threading
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from bq_exporter.cancellation import CancellationToken
from bq_exporter.errors import (
    DatabaseError,
    LoadCancelledError,
    QueryExecutionError,
    UnsupportedTypeError,
    ValueConversionError,
)
from bq_exporter.loaders.batch import BatchLoader, build_batch_insert, convert_value
from bq_exporter.loaders.types import LoadConfig
from bq_exporter.warehouse.iterator import RowStream
from bq_exporter.warehouse.types import Field, LogicalType, Schema

SCHEMA = Schema([Field('id', LogicalType.INTEGER), Field('name', LogicalType.STRING)])


def _rows(n):
    return [(i, f'row-{i}') for i in range(n)]


@pytest.mark.unit
class TestBuildBatchInsert:
    def test_multi_row_placeholders(self):
        sql = build_batch_insert('analytics', 'events', ['id', 'name'], 2)
        assert sql == 'INSERT INTO analytics.events (`id`, `name`) VALUES (%s, %s), (%s, %s)'

    def test_percent_in_identifier_escaped(self):
        sql = build_batch_insert('analytics', 'events', ['pct%'], 1)
        assert sql == 'INSERT INTO analytics.events (`pct%%`) VALUES (%s)'


@pytest.mark.unit
class TestLoadAll:
    def test_batches_and_row_count(self, pool, fake_starrocks, load_config):
        batch_size = load_config.batch_size
        n = 3 * batch_size + 7

        result = BatchLoader(pool, load_config).load_all(iter(_rows(n)), SCHEMA, 'analytics', 'events')

        assert result.rows_loaded == n
        assert result.table == 'analytics.events'
        assert len(fake_starrocks.inserts) == -(-n // batch_size)
        assert result.batches == len(fake_starrocks.inserts)
        assert fake_starrocks.commits == 1
        assert fake_starrocks.rollbacks == 0

    def test_load_result_reports_counts_only(self, pool, load_config):
        result = BatchLoader(pool, load_config).load_all(iter(_rows(4)), SCHEMA, 'analytics', 'events')

        assert [f.name for f in dataclasses.fields(result)] == [
            'table',
            'rows_loaded',
            'duration',
            'batches',
            'nulled_values',
        ]
        assert str(result).startswith('✅ Loaded 4 rows to analytics.events in ')
        assert str(result).endswith('(2 batches)')

    def test_exact_multiple_of_batch_size_has_no_empty_flush(self, pool, fake_starrocks):
        BatchLoader(pool, LoadConfig(batch_size=5)).load_all(iter(_rows(10)), SCHEMA, 'analytics', 'events')
        assert len(fake_starrocks.inserts) == 2

    def test_rows_bound_in_schema_order(self, pool, fake_starrocks):
        BatchLoader(pool, LoadConfig(batch_size=10)).load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events')

        sql, params = fake_starrocks.inserts[0]
        assert sql.startswith('INSERT INTO analytics.events (`id`, `name`) VALUES')
        assert params == [0, 'row-0', 1, 'row-1']

    def test_prefetched_row_loaded_first(self, pool, fake_starrocks):
        stream = RowStream(_rows(5))
        prefetched = stream.peek()
        stream.take_prefetched()

        result = BatchLoader(pool, LoadConfig(batch_size=2)).load_all(
            stream, SCHEMA, 'analytics', 'events', prefetched_row=prefetched
        )

        assert result.rows_loaded == 5
        bound = [p for _, params in fake_starrocks.inserts for p in params]
        assert bound[:2] == [0, 'row-0']
        assert bound[0::2] == [0, 1, 2, 3, 4]

    def test_prefetched_row_with_batch_size_one(self, pool, fake_starrocks):
        BatchLoader(pool, LoadConfig(batch_size=1)).load_all(
            iter([(2, 'b')]), SCHEMA, 'analytics', 'events', prefetched_row=(1, 'a')
        )
        assert [params for _, params in fake_starrocks.inserts] == [[1, 'a'], [2, 'b']]

    def test_empty_stream_commits_nothing_inserted(self, pool, fake_starrocks):
        result = BatchLoader(pool).load_all(iter([]), SCHEMA, 'analytics', 'events')

        assert result.rows_loaded == 0
        assert fake_starrocks.inserts == []
        assert fake_starrocks.commits == 1

    def test_insert_failure_rolls_back_everything(self, pool, fake_starrocks):
        fake_starrocks.fail_on_insert = 3

        with pytest.raises(DatabaseError, match='insert batch 3'):
            BatchLoader(pool, LoadConfig(batch_size=2)).load_all(iter(_rows(8)), SCHEMA, 'analytics', 'events')

        assert fake_starrocks.commits == 0
        assert fake_starrocks.rollbacks == 1
        assert 'COMMIT' not in fake_starrocks.statements

    def test_commit_failure_rolls_back(self, pool, fake_starrocks):
        fake_starrocks.fail_commit = True

        with pytest.raises(DatabaseError, match='load into analytics.events failed'):
            BatchLoader(pool).load_all(iter(_rows(3)), SCHEMA, 'analytics', 'events')
        assert fake_starrocks.rollbacks == 1

    def test_stream_failure_rolls_back(self, pool, fake_starrocks):
        def broken():
            yield (1, 'a')
            raise ConnectionError('read timed out')

        with pytest.raises(QueryExecutionError):
            BatchLoader(pool, LoadConfig(batch_size=1)).load_all(RowStream(broken()), SCHEMA, 'analytics', 'events')

        assert fake_starrocks.commits == 0
        assert fake_starrocks.rollbacks == 1

    def test_cancellation_rolls_back(self, pool, fake_starrocks):
        cancel = CancellationToken()
        cancel.cancel('client disconnected')

        with pytest.raises(LoadCancelledError):
            BatchLoader(pool).load_all(iter(_rows(3)), SCHEMA, 'analytics', 'events', cancel=cancel)

        assert fake_starrocks.inserts == []
        assert not any(s.startswith('KILL') for s in fake_starrocks.statements)
        assert fake_starrocks.rollbacks == 1

    def test_complex_field_rejected(self, pool, fake_starrocks):
        schema = Schema([Field('tags', LogicalType.STRING, repeated=True)])

        with pytest.raises(UnsupportedTypeError):
            BatchLoader(pool).load_all(iter([(['a'],)]), schema, 'analytics', 'events')
        assert fake_starrocks.inserts == []

    def test_nested_field_rejected_before_connecting(self, pool, fake_starrocks):
        schema = Schema([Field('id', LogicalType.INTEGER), Field('attrs', LogicalType.OTHER, nested=True)])

        with pytest.raises(UnsupportedTypeError) as exc_info:
            BatchLoader(pool).load_all(iter([(1, {})]), schema, 'analytics', 'events')

        assert exc_info.value.field_name == 'attrs'
        assert fake_starrocks.connections == []

    def test_deadline_kills_running_insert(self, pool, fake_starrocks):
        fake_starrocks.block_inserts = True
        cancel = CancellationToken(timeout=0.2)

        with pytest.raises(LoadCancelledError, match='deadline exceeded') as exc_info:
            BatchLoader(pool).load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events', cancel=cancel)

        assert 'KILL QUERY 1' in fake_starrocks.statements
        assert isinstance(exc_info.value.__cause__, DatabaseError)
        assert fake_starrocks.inserts == []
        assert fake_starrocks.commits == 0
        assert fake_starrocks.rollbacks == 1

    def test_explicit_cancel_kills_running_insert(self, pool, fake_starrocks):
        fake_starrocks.block_inserts = True
        cancel = CancellationToken()
        timer = threading.Timer(0.2, cancel.cancel, args=('client disconnected',))
        timer.start()

        try:
            with pytest.raises(LoadCancelledError, match='client disconnected'):
                BatchLoader(pool).load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events', cancel=cancel)
        finally:
            timer.cancel()

        assert 'KILL QUERY 1' in fake_starrocks.statements
        assert fake_starrocks.rollbacks == 1

    def test_finished_load_leaves_no_cancel_hook(self, pool, fake_starrocks):
        cancel = CancellationToken(timeout=60)

        BatchLoader(pool).load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events', cancel=cancel)
        cancel.cancel()

        assert not any(s.startswith('KILL') for s in fake_starrocks.statements)
        assert fake_starrocks.commits == 1

    def test_lenient_conversion_loads_null(self, pool, fake_starrocks):
        schema = Schema([Field('id', LogicalType.INTEGER), Field('ts', LogicalType.TIMESTAMP)])

        result = BatchLoader(pool).load_all(iter([(1, 'not a timestamp')]), schema, 'analytics', 'events')

        assert result.nulled_values == 1
        assert fake_starrocks.inserts[0][1] == [1, None]

    def test_strict_conversion_fails(self, pool, fake_starrocks):
        schema = Schema([Field('id', LogicalType.INTEGER), Field('ts', LogicalType.TIMESTAMP)])

        with pytest.raises(ValueConversionError) as exc_info:
            BatchLoader(pool, LoadConfig(strict_values=True)).load_all(
                iter([(1, 'not a timestamp')]), schema, 'analytics', 'events'
            )

        assert exc_info.value.field_name == 'ts'
        assert fake_starrocks.commits == 0
        assert fake_starrocks.rollbacks == 1

    def test_row_width_mismatch(self, pool):
        with pytest.raises(QueryExecutionError, match='schema has 2 columns'):
            BatchLoader(pool).load_all(iter([(1,)]), SCHEMA, 'analytics', 'events')

    def test_connection_returned_to_pool(self, pool, fake_starrocks):
        loader = BatchLoader(pool)
        loader.load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events')
        loader.load_all(iter(_rows(2)), SCHEMA, 'analytics', 'events')

        assert len(fake_starrocks.connections) == 1


def _field(logical_type):
    return Field('col', logical_type)


@pytest.mark.unit
class TestConvertValue:
    def test_none_passes_through(self):
        for logical_type in LogicalType:
            assert convert_value(None, _field(logical_type)) is None

    def test_aware_timestamp_normalised_to_utc(self):
        value = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert convert_value(value, _field(LogicalType.TIMESTAMP)) == datetime(2024, 5, 1, 10, 0)

    def test_non_datetime_timestamp_rejected(self):
        with pytest.raises(TypeError):
            convert_value('2024-05-01', _field(LogicalType.TIMESTAMP))

    def test_date_narrowed_from_datetime(self):
        assert convert_value(datetime(2024, 5, 1, 9, 30), _field(LogicalType.DATE)) == date(2024, 5, 1)

    def test_time_as_iso_string(self):
        assert convert_value(time(8, 15, 30), _field(LogicalType.TIME)) == '08:15:30'

    def test_json_serialised(self):
        value = convert_value({'a': [1, 2]}, _field(LogicalType.JSON))
        assert json.loads(value) == {'a': [1, 2]}
        assert convert_value('abc', _field(LogicalType.JSON)) == '"abc"'
        assert convert_value(None, _field(LogicalType.JSON)) is None

    def test_numeric_as_decimal(self):
        assert convert_value('12.500000001', _field(LogicalType.NUMERIC)) == Decimal('12.500000001')
        assert convert_value(7, _field(LogicalType.NUMERIC)) == Decimal(7)

    def test_integer_rejects_bool_and_fractions(self):
        with pytest.raises(TypeError):
            convert_value(True, _field(LogicalType.INTEGER))
        with pytest.raises(ValueError):
            convert_value(1.5, _field(LogicalType.INTEGER))
        assert convert_value(3.0, _field(LogicalType.INTEGER)) == 3

    def test_integer_rejects_fractional_decimal(self):
        with pytest.raises(ValueError):
            convert_value(Decimal('1.5'), _field(LogicalType.INTEGER))
        with pytest.raises(ValueError):
            convert_value(Decimal('NaN'), _field(LogicalType.INTEGER))
        assert convert_value(Decimal('42.000'), _field(LogicalType.INTEGER)) == 42

    def test_fractional_decimal_loads_null_when_lenient(self, pool, fake_starrocks):
        schema = Schema([Field('id', LogicalType.INTEGER)])

        result = BatchLoader(pool).load_all(iter([(Decimal('1.5'),)]), schema, 'analytics', 'events')

        assert result.nulled_values == 1
        assert fake_starrocks.inserts[0][1] == [None]

    def test_bytes(self):
        assert convert_value(bytearray(b'\x00\x01'), _field(LogicalType.BYTES)) == b'\x00\x01'
        with pytest.raises(TypeError):
            convert_value('text', _field(LogicalType.BYTES))

    def test_other_types_stringified(self):
        assert convert_value(Decimal('1e40'), _field(LogicalType.OTHER)) == '1E+40'
        assert convert_value('POINT(1 2)', _field(LogicalType.GEOGRAPHY)) == 'POINT(1 2)'
