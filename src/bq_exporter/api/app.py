"""FastAPI application factory."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..cancellation import CancellationToken
from ..config.settings import ServiceSettings
from ..drivers import ExportDriver, build_driver
from ..errors import ExporterError
from ..warehouse.bigquery import BigQueryService
from .models import ExportRequest, ExportResponse

logger = logging.getLogger(__name__)

API_KEY_HEADER = 'X-API-Key'
PUBLIC_PATHS = ('/health',)


def describe_validation_errors(errors: list) -> str:
    """One line naming each invalid request field and what is wrong with it"""
    parts = []
    for error in errors:
        location = '.'.join(str(part) for part in error.get('loc', ())[1:]) or 'body'
        parts.append(f'{location}: {error.get("msg", "invalid value")}')
    return '; '.join(parts) or 'invalid request body'


def create_app(
    settings: ServiceSettings,
    bigquery: Optional[BigQueryService] = None,
    driver: Optional[ExportDriver] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings (API key, request timeout, driver selection)
        bigquery: BigQuery service; built from settings when omitted
        driver: Export driver; built from settings when omitted

    Returns:
        Configured FastAPI application
    """
    bigquery = bigquery or BigQueryService.from_settings(settings)
    driver = driver or build_driver(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        driver.close()
        bigquery.close()

    app = FastAPI(title='bq-exporter', description='BigQuery export and StarRocks load service', lifespan=lifespan)
    app.state.settings = settings
    app.state.bigquery = bigquery
    app.state.driver = driver

    if settings.api_key:

        @app.middleware('http')
        async def require_api_key(request: Request, call_next):
            if request.url.path not in PUBLIC_PATHS and request.headers.get(API_KEY_HEADER) != settings.api_key:
                return JSONResponse(status_code=401, content={'error': 'unauthorized'})
            return await call_next(request)

    # Later middleware wraps earlier middleware; rejected calls are logged too
    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        latency_ms = (time.time() - start) * 1000

        parts = [
            f'method={request.method}',
            f'path={request.url.path}',
            f'status={response.status_code}',
            f'latency={latency_ms:.1f}ms',
            f'client_ip={request.client.host if request.client else "-"}',
        ]
        if request.url.query:
            parts.append(f'query={request.url.query}')
        job_name = request.headers.get('X-CloudScheduler-JobName')
        if job_name:
            parts.append(f'scheduler_job={job_name}')
        schedule_time = request.headers.get('X-CloudScheduler-ScheduleTime')
        if schedule_time:
            parts.append(f'scheduler_time={schedule_time}')

        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(level, f'Request processed {" ".join(parts)}')
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.exception_handler(ExporterError)
    async def handle_exporter_error(request: Request, exc: ExporterError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f'Export failed: {exc.message}')
        return JSONResponse(status_code=exc.status_code, content={'error': exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.warning(f'Invalid request body: {exc.errors()}')
        return JSONResponse(status_code=400, content={'error': describe_validation_errors(exc.errors())})

    @app.get('/health')
    def health() -> dict:
        return {'status': 'healthy'}

    @app.post('/api/export', response_model=ExportResponse, response_model_exclude_none=True)
    def export(body: ExportRequest) -> ExportResponse:
        logger.info(
            f'Received export request: location={body.query_location} output={body.output} '
            f'filename={body.filename} table={body.table} use_timestamp={body.use_timestamp}'
        )
        cancel = CancellationToken(timeout=settings.request_timeout)
        result = driver.execute(bigquery, body.to_params(), cancel=cancel)
        return ExportResponse.from_result(result)

    return app
