"""
Export destinations selected by EXPORT_DRIVER.
"""

import logging

from ..config.settings import ServiceSettings
from ..errors import ConfigurationError
from ..loaders.starrocks import StarRocksService
from .base import ExportDriver, ExportParams, ExportResult
from .gcs import GCSDriver
from .starrocks import StarRocksDriver

logger = logging.getLogger(__name__)


def build_driver(settings: ServiceSettings) -> ExportDriver:
    """Create the driver for settings.export_driver (STARROCKS loads, anything else exports to GCS)"""
    if settings.uses_starrocks:
        if settings.starrocks is None:
            raise ConfigurationError('EXPORT_DRIVER=STARROCKS requires StarRocks settings')
        logger.info(f'Using StarRocks driver ({settings.starrocks.host}:{settings.starrocks.port})')
        return StarRocksDriver(StarRocksService(settings.starrocks))

    logger.info('Using GCS export driver')
    return GCSDriver()


__all__ = ['ExportDriver', 'ExportParams', 'ExportResult', 'GCSDriver', 'StarRocksDriver', 'build_driver']
