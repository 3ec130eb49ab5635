"""
StarRocks load service: query BigQuery, reconcile the table, load in batches.
"""

import logging
from typing import Optional

from ..cancellation import CancellationToken
from ..config.settings import StarRocksConfig
from ..warehouse.bigquery import BigQueryService
from .batch import BatchLoader
from .pool import StarRocksConnectionPool
from .schema import SchemaReconciler, resolve_table
from .types import LoadConfig, LoadResult


class StarRocksService:
    """
    Loads BigQuery query results into StarRocks tables.

    Features:
    - Creates the database and table when missing, with generated or explicit DDL
    - Adds columns the query produces but the table lacks
    - Loads all rows in one transaction using multi-row INSERT batches
    """

    def __init__(self, config: StarRocksConfig, pool: Optional[StarRocksConnectionPool] = None):
        self.config = config
        self.load_config = LoadConfig.from_starrocks(config)
        self.pool = pool or StarRocksConnectionPool(config)
        self.reconciler = SchemaReconciler(self.pool, self.load_config)
        self.loader = BatchLoader(self.pool, self.load_config)
        self.logger = logging.getLogger(self.__class__.__name__)

    def load_from_bigquery(
        self,
        bigquery: BigQueryService,
        query: str,
        location: str,
        table: str,
        default_database: str = '',
        create_ddl: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> LoadResult:
        """
        Run query and load its result into table.

        Args:
            bigquery: Warehouse service to run the query with
            query: SQL to execute
            location: BigQuery location the query runs in
            table: 'table' or 'db.table'
            default_database: Database for unqualified table names (falls back to STARROCKS_DB)
            create_ddl: Explicit CREATE statement used instead of generated DDL
            cancel: Optional cancellation token for the whole operation
        """
        database, table_name = resolve_table(table, default_database or self.config.database)
        self.logger.info(f'Loading query results into {database}.{table_name} (location={location})')

        result = bigquery.run(query, location, cancel=cancel)
        self.reconciler.ensure_table(database, table_name, result.schema, explicit_ddl=create_ddl)
        return self.loader.load_all(
            result.stream,
            result.schema,
            database,
            table_name,
            prefetched_row=result.prefetched_row,
            cancel=cancel,
        )

    def close(self) -> None:
        self.pool.close()
