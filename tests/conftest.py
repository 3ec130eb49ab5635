# tests/conftest.py
"""
Shared pytest configuration and fixtures for the bq-exporter test suite.
"""

import logging
import os

import pytest
from google.cloud.bigquery import SchemaField

from bq_exporter.config.settings import StarRocksConfig
from bq_exporter.loaders.pool import StarRocksConnectionPool
from bq_exporter.loaders.types import LoadConfig
from tests.fixtures.fakes import FakeBigQueryClient, FakeStarRocks

logging.basicConfig(level=logging.INFO)


@pytest.fixture
def starrocks_config():
    """StarRocks configuration pointing at the fake server"""
    return StarRocksConfig(host='starrocks.local', port=9030, user='loader', database='analytics')


@pytest.fixture
def fake_starrocks():
    return FakeStarRocks()


@pytest.fixture
def pool(starrocks_config, fake_starrocks):
    pool = StarRocksConnectionPool(starrocks_config, connect=fake_starrocks.connect)
    yield pool
    pool.close()


@pytest.fixture
def load_config():
    return LoadConfig(batch_size=3)


@pytest.fixture
def bigquery_client():
    return FakeBigQueryClient()


@pytest.fixture
def simple_schema_fields():
    return [
        SchemaField('id', 'INTEGER'),
        SchemaField('name', 'STRING'),
        SchemaField('created_at', 'TIMESTAMP'),
    ]


# StarRocks configuration for the opt-in integration tests
@pytest.fixture(scope='session')
def live_starrocks_config():
    if not os.getenv('STARROCKS_HOST'):
        pytest.skip('STARROCKS_HOST not set')
    return StarRocksConfig.from_env()


def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line('markers', 'unit: Unit tests (fast, no external dependencies)')
    config.addinivalue_line('markers', 'integration: Integration tests (require a live StarRocks and BigQuery)')
    config.addinivalue_line('markers', 'starrocks: Tests requiring StarRocks')
