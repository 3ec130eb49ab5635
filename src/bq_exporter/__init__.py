"""bq-exporter - move BigQuery query results to GCS Parquet or StarRocks tables."""

from bq_exporter.drivers import ExportParams, ExportResult, build_driver
from bq_exporter.loaders import StarRocksService
from bq_exporter.warehouse import BigQueryService

__all__ = ['BigQueryService', 'ExportParams', 'ExportResult', 'StarRocksService', 'build_driver']
