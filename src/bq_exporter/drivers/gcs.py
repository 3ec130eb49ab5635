from typing import Optional

from ..cancellation import CancellationToken
from ..errors import ConfigurationError
from ..warehouse.bigquery import BigQueryService
from .base import ExportParams, ExportResult


class GCSDriver:
    """Exports query results as Parquet files to Cloud Storage"""

    name = 'GCS'

    def execute(
        self, bigquery: BigQueryService, params: ExportParams, cancel: Optional[CancellationToken] = None
    ) -> ExportResult:
        if not params.output:
            raise ConfigurationError('output is required for GCS export')

        gcs_path = bigquery.export_query_to_parquet(
            params.query,
            params.output,
            params.filename,
            params.query_location,
            params.use_timestamp,
            cancel=cancel,
        )
        return ExportResult(gcs_path=gcs_path)

    def close(self) -> None:
        pass
