from typing import Optional

from ..cancellation import CancellationToken
from ..loaders.starrocks import StarRocksService
from ..warehouse.bigquery import BigQueryService
from .base import ExportParams, ExportResult

DEFAULT_TABLE = 'export'


class StarRocksDriver:
    """Loads query results into a StarRocks table"""

    name = 'STARROCKS'

    def __init__(self, service: StarRocksService):
        self.service = service

    def execute(
        self, bigquery: BigQueryService, params: ExportParams, cancel: Optional[CancellationToken] = None
    ) -> ExportResult:
        table = params.table or DEFAULT_TABLE
        database = params.database.strip() or self.service.config.database

        result = self.service.load_from_bigquery(
            bigquery,
            params.query,
            params.query_location,
            table,
            default_database=database,
            create_ddl=params.create_ddl or None,
            cancel=cancel,
        )
        return ExportResult(table=result.table, rows=result.rows_loaded)

    def close(self) -> None:
        self.service.close()
