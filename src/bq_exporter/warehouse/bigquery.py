"""
BigQuery query execution for export and load operations.

This module wraps google-cloud-bigquery: it runs a query pinned to a
location and exposes the result as a single-pass RowStream plus its Schema,
or runs an EXPORT DATA statement that writes Parquet to Cloud Storage.
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..cancellation import CancellationToken, check
from ..errors import ConfigurationError, LoadCancelledError, QueryExecutionError
from .export import build_export_statement, build_export_uri
from .iterator import RowStream
from .types import Row, Schema

BIGQUERY_SCOPE = 'https://www.googleapis.com/auth/bigquery'

# Upper bound on a single blocking wait so cancellation is noticed promptly
POLL_INTERVAL_SECONDS = 5.0


@dataclass
class QueryResult:
    """Schema and row stream of one executed query"""

    schema: Schema
    stream: RowStream
    job_id: Optional[str] = None
    total_rows: Optional[int] = None
    prefetched_row: Optional[Row] = None


class BigQueryService:
    """
    BigQuery client wrapper.

    Example:
        service = BigQueryService.from_project('my-project')
        result = service.run('SELECT 1 AS x', 'US')
        for row in result.stream:
            ...
    """

    def __init__(self, client: Any, project_id: Optional[str] = None):
        self.client = client
        self.project_id = project_id or getattr(client, 'project', None)
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_project(cls, project_id: Optional[str] = None) -> 'BigQueryService':
        """
        Create a service for project_id, detecting it from application default
        credentials when it is not given.
        """
        from google.cloud import bigquery

        if not project_id:
            project_id = detect_project_id()
        return cls(bigquery.Client(project=project_id), project_id)

    @classmethod
    def from_settings(cls, settings: Any) -> 'BigQueryService':
        return cls.from_project(getattr(settings, 'project_id', None))

    def close(self) -> None:
        close = getattr(self.client, 'close', None)
        if callable(close):
            close()

    def run(self, query: str, location: str, cancel: Optional[CancellationToken] = None) -> QueryResult:
        """
        Execute query and return its schema and row stream.

        Some result iterators leave the schema empty until the first page is
        fetched. In that case one row is pulled ahead to force it; the row is
        returned as QueryResult.prefetched_row and must be loaded first.

        Raises:
            QueryExecutionError: Submission or execution failed
            SchemaUnavailableError: The result has no columns even after the peek
            LoadCancelledError: cancel fired before the query finished
        """
        job = self._submit(query, location, cancel)
        rows = self._wait(job, cancel)

        stream = RowStream(rows, cancel=cancel)
        schema = Schema.from_bigquery(getattr(rows, 'schema', None))
        if not schema:
            self.logger.debug('Result schema empty after execution, fetching first row')
            stream.peek()
            schema = Schema.from_bigquery(getattr(rows, 'schema', None))
        schema.require_columns()

        prefetched = stream.take_prefetched()
        total_rows = getattr(rows, 'total_rows', None)
        self.logger.info(
            f'Query {getattr(job, "job_id", "?")} returned {len(schema)} columns'
            + (f', {total_rows} rows' if total_rows is not None else '')
        )
        return QueryResult(
            schema=schema,
            stream=stream,
            job_id=getattr(job, 'job_id', None),
            total_rows=total_rows,
            prefetched_row=prefetched,
        )

    def export_query_to_parquet(
        self,
        query: str,
        output: str,
        filename: str,
        location: str,
        use_timestamp: bool,
        cancel: Optional[CancellationToken] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Export query results as Parquet files to Cloud Storage.

        Returns:
            The export URI the files were written to
        """
        export_uri = build_export_uri(output, filename, use_timestamp, now=now)
        self.logger.info(
            f'Starting BigQuery export: output_uri={output} filename={filename} '
            f'export_uri={export_uri} use_timestamp={use_timestamp}'
        )

        job = self._submit(build_export_statement(query, export_uri), location, cancel)
        self.logger.info(f'Export job submitted: {getattr(job, "job_id", "?")}')
        self._wait(job, cancel)
        self.logger.info(f'Export job completed successfully: {getattr(job, "job_id", "?")}')
        return export_uri

    def _submit(self, sql: str, location: str, cancel: Optional[CancellationToken]) -> Any:
        check(cancel)
        try:
            return self.client.query(sql, location=location)
        except Exception as e:
            raise QueryExecutionError(f'failed to start BigQuery job: {e}') from e

    def _wait(self, job: Any, cancel: Optional[CancellationToken]) -> Any:
        """Block until job finishes, polling so that cancel is honoured"""
        if cancel is None:
            try:
                return job.result()
            except Exception as e:
                raise QueryExecutionError(f'BigQuery job failed during execution: {e}') from e

        while True:
            if cancel.cancelled:
                self._cancel_job(job)
                raise LoadCancelledError(f'BigQuery job cancelled: {cancel.reason}')

            remaining = cancel.remaining()
            timeout = POLL_INTERVAL_SECONDS if remaining is None else max(0.1, min(POLL_INTERVAL_SECONDS, remaining))
            try:
                return job.result(timeout=timeout)
            except (concurrent.futures.TimeoutError, TimeoutError):
                continue
            except Exception as e:
                raise QueryExecutionError(f'BigQuery job failed during execution: {e}') from e

    def _cancel_job(self, job: Any) -> None:
        try:
            job.cancel()
            self.logger.info(f'Cancelled BigQuery job {getattr(job, "job_id", "?")}')
        except Exception as e:
            self.logger.warning(f'Failed to cancel BigQuery job: {e}')


def detect_project_id() -> str:
    """Resolve the GCP project from application default credentials"""
    import google.auth
    from google.auth.exceptions import DefaultCredentialsError

    logger = logging.getLogger(__name__)
    logger.info('GCP_PROJECT_ID not set, attempting to detect from credentials...')
    try:
        _, project_id = google.auth.default(scopes=[BIGQUERY_SCOPE])
    except DefaultCredentialsError as e:
        raise ConfigurationError(f'failed to find default credentials: {e}') from e
    if not project_id:
        raise ConfigurationError('GCP_PROJECT_ID is not set and could not be detected from credentials')
    logger.info(f'Detected project ID: {project_id}')
    return project_id
