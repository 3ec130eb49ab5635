"""CLI for bq-exporter: HTTP server and one-shot job mode."""

import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from .cancellation import CancellationToken
from .config.settings import JobSettings, ServiceSettings
from .drivers import ExportDriver, ExportParams, ExportResult, build_driver
from .errors import ExporterError
from .logging_config import configure_logging
from .warehouse.bigquery import BigQueryService

app = typer.Typer(name='bq-exporter', help='Export BigQuery query results to GCS Parquet or load them into StarRocks')
console = Console(stderr=True)
logger = logging.getLogger(__name__)


def load_settings() -> ServiceSettings:
    """Read .env and the environment, then configure logging"""
    if not load_dotenv():
        logger.debug('No .env file found, using system environment variables')
    settings = ServiceSettings.from_env()
    configure_logging(json_format=settings.log_format != 'text')
    return settings


def run_job(bigquery: BigQueryService, driver: ExportDriver, job: JobSettings) -> ExportResult:
    """Execute one export or load described by JOB_* settings"""
    params = ExportParams(
        query=job.query,
        query_location=job.query_location,
        output=job.output,
        filename=job.filename,
        use_timestamp=job.use_timestamp,
        table=job.table,
        database=job.database,
        create_ddl=job.create_ddl,
    )
    result = driver.execute(bigquery, params, cancel=CancellationToken())
    logger.info(f'Job execution completed: gcs_path={result.gcs_path} table={result.table} rows={result.rows}')
    return result


def _run_job_mode(settings: ServiceSettings) -> None:
    try:
        job = JobSettings.from_env()
        bigquery = BigQueryService.from_settings(settings)
    except ExporterError as e:
        logger.error(f'Job setup failed: {e.message}')
        raise typer.Exit(code=1)

    try:
        driver = build_driver(settings)
    except ExporterError as e:
        bigquery.close()
        logger.error(f'Failed to initialize driver: {e.message}')
        raise typer.Exit(code=1)

    try:
        run_job(bigquery, driver, job)
    except ExporterError as e:
        logger.error(f'Job execution failed: {e.message}')
        raise typer.Exit(code=1)
    finally:
        driver.close()
        bigquery.close()


@app.command()
def serve(
    host: str = typer.Option('0.0.0.0', '--host', help='Interface to bind'),
    port: Optional[int] = typer.Option(None, '--port', help='Port to listen on (default: PORT or 8080)'),
):
    """Start the HTTP API (runs the job instead when RUN_MODE=job)."""
    try:
        settings = load_settings()
    except ExporterError as e:
        console.print(f'[bold red]Configuration error:[/bold red] {e.message}')
        raise typer.Exit(code=1)

    if settings.is_job:
        _run_job_mode(settings)
        return

    import uvicorn

    from .api.app import create_app

    try:
        api = create_app(settings)
    except ExporterError as e:
        logger.error(f'Failed to initialize service: {e.message}')
        raise typer.Exit(code=1)

    listen_port = port or settings.port
    logger.info(f'Server starting on {host}:{listen_port} (driver={settings.export_driver})')
    uvicorn.run(api, host=host, port=listen_port, log_config=None, timeout_graceful_shutdown=5)
    logger.info('Server exiting')


@app.command()
def run():
    """Run a single export or load from JOB_* environment variables and exit."""
    try:
        settings = load_settings()
    except ExporterError as e:
        console.print(f'[bold red]Configuration error:[/bold red] {e.message}')
        raise typer.Exit(code=1)
    _run_job_mode(settings)


if __name__ == '__main__':
    app()
