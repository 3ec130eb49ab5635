# tests/unit/test_type_mapping.py
"""
Unit tests for warehouse field types and the StarRocks type mapping.
"""

import pytest
from google.cloud.bigquery import SchemaField

from bq_exporter.errors import SchemaUnavailableError, UnsupportedTypeError
from bq_exporter.loaders.type_mapping import base_type, column_definition, map_field, quote_identifier
from bq_exporter.warehouse.types import Field, LogicalType, Schema


@pytest.mark.unit
class TestLogicalType:
    @pytest.mark.parametrize(
        'field_type,expected',
        [
            ('INT64', LogicalType.INTEGER),
            ('integer', LogicalType.INTEGER),
            ('FLOAT64', LogicalType.FLOAT),
            ('BOOL', LogicalType.BOOLEAN),
            ('BIGNUMERIC', LogicalType.OTHER),
            ('INTERVAL', LogicalType.OTHER),
            (None, LogicalType.OTHER),
        ],
    )
    def test_bigquery_aliases(self, field_type, expected):
        assert LogicalType.from_bigquery(field_type) is expected


@pytest.mark.unit
class TestSchema:
    def test_from_bigquery_schema_fields(self):
        schema = Schema.from_bigquery(
            [
                SchemaField('id', 'INTEGER'),
                SchemaField('tags', 'STRING', mode='REPEATED'),
                SchemaField('meta', 'RECORD', fields=[SchemaField('k', 'STRING')]),
            ]
        )

        assert schema.names == ['id', 'tags', 'meta']
        assert not schema[0].is_complex
        assert schema[1].repeated
        assert schema[2].nested

    def test_duplicate_names_rejected_case_insensitively(self):
        with pytest.raises(SchemaUnavailableError, match='duplicate column name') as exc_info:
            Schema([Field('id', LogicalType.INTEGER), Field('ID', LogicalType.STRING)])
        assert exc_info.value.status_code == 422

    def test_empty_schema_requires_columns(self):
        with pytest.raises(SchemaUnavailableError, match='empty BigQuery schema'):
            Schema().require_columns()

    def test_schema_equality(self):
        a = Schema([Field('id', LogicalType.INTEGER)])
        b = Schema([Field('id', LogicalType.INTEGER)])
        assert a == b
        assert hash(a) == hash(b)


@pytest.mark.unit
class TestMapField:
    @pytest.mark.parametrize(
        'logical_type,expected',
        [
            (LogicalType.STRING, 'VARCHAR(1024)'),
            (LogicalType.BYTES, 'VARBINARY(1024)'),
            (LogicalType.INTEGER, 'BIGINT'),
            (LogicalType.FLOAT, 'DOUBLE'),
            (LogicalType.BOOLEAN, 'BOOLEAN'),
            (LogicalType.TIMESTAMP, 'DATETIME'),
            (LogicalType.DATETIME, 'DATETIME'),
            (LogicalType.DATE, 'DATE'),
            (LogicalType.TIME, 'VARCHAR(64)'),
            (LogicalType.NUMERIC, 'DECIMAL(38,9)'),
            (LogicalType.GEOGRAPHY, 'VARCHAR(2048)'),
            (LogicalType.JSON, 'JSON'),
            (LogicalType.OTHER, 'VARCHAR(1024)'),
        ],
    )
    def test_mapping_table(self, logical_type, expected):
        assert map_field(Field('col', logical_type)) == expected

    def test_every_logical_type_is_mapped(self):
        for logical_type in LogicalType:
            assert map_field(Field('col', logical_type))

    def test_repeated_field_rejected(self):
        with pytest.raises(UnsupportedTypeError) as exc_info:
            map_field(Field('tags', LogicalType.STRING, repeated=True))
        assert exc_info.value.field_name == 'tags'
        assert exc_info.value.status_code == 400

    def test_nested_field_rejected(self):
        with pytest.raises(UnsupportedTypeError):
            map_field(Field('meta', LogicalType.OTHER, nested=True))


@pytest.mark.unit
class TestColumnDefinition:
    def test_backtick_quoting(self):
        assert column_definition(Field('order', LogicalType.INTEGER)) == '`order` BIGINT'

    def test_embedded_backticks_doubled(self):
        assert quote_identifier('we`ird') == '`we``ird`'

    def test_base_type(self):
        assert base_type('DECIMAL(38,9)') == 'decimal'
        assert base_type('bigint') == 'bigint'
