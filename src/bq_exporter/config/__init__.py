"""
Configuration for the exporter service

Settings are read from the environment once at startup and passed
explicitly into the services that need them.
"""

from .settings import JobSettings, ServiceSettings, StarRocksConfig

__all__ = ['JobSettings', 'ServiceSettings', 'StarRocksConfig']
