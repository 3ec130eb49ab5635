import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
TRUTHY = ('true', '1', 'yes')


def _parse_bool(value: Optional[str]) -> bool:
    return (value or '').strip().lower() in TRUTHY


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f'{key} must be an integer, got {raw!r}') from e


def _parse_optional_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key, '').strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f'{key} must be a number, got {raw!r}') from e


@dataclass
class StarRocksConfig:
    """Configuration for the StarRocks destination"""

    host: str
    port: int
    user: str
    password: str = ''
    database: str = ''
    warehouse: str = 'default_warehouse'

    # Loading
    batch_size: int = DEFAULT_BATCH_SIZE
    strict_values: bool = False  # Fail instead of loading NULL for unconvertible values

    # Table layout for generated DDL
    buckets: int = 8
    replication_num: int = 1

    # Connection pool
    pool_size: int = 10
    max_connection_age: int = 1800  # 30 minutes
    connect_timeout: int = 10
    read_timeout: Optional[int] = None
    write_timeout: Optional[int] = None

    connection_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.batch_size <= 0:
            logger.warning(f'Invalid batch size {self.batch_size}, using {DEFAULT_BATCH_SIZE}')
            self.batch_size = DEFAULT_BATCH_SIZE
        if self.pool_size <= 0:
            raise ConfigurationError(f'pool_size must be positive, got {self.pool_size}')
        if not self.warehouse.strip():
            self.warehouse = 'default_warehouse'

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'StarRocksConfig':
        """Build the configuration from STARROCKS_* environment variables."""
        env = os.environ if env is None else env

        host = env.get('STARROCKS_HOST', '')
        port = env.get('STARROCKS_PORT', '')
        user = env.get('STARROCKS_USER', '')
        if not host or not port or not user:
            raise ConfigurationError('missing StarRocks env: require STARROCKS_HOST, STARROCKS_PORT, STARROCKS_USER')

        # An unparseable batch size keeps the default rather than failing startup
        try:
            batch_size = int(env.get('STARROCKS_BATCH_SIZE', '') or DEFAULT_BATCH_SIZE)
        except ValueError:
            batch_size = DEFAULT_BATCH_SIZE

        return cls(
            host=host,
            port=_parse_int(env, 'STARROCKS_PORT', 9030),
            user=user,
            password=env.get('STARROCKS_PASSWORD', ''),
            database=env.get('STARROCKS_DB', ''),
            warehouse=env.get('STARROCKS_WAREHOUSE', '') or 'default_warehouse',
            batch_size=batch_size,
            strict_values=_parse_bool(env.get('STARROCKS_STRICT_VALUES')),
            buckets=_parse_int(env, 'STARROCKS_BUCKETS', 8),
            replication_num=_parse_int(env, 'STARROCKS_REPLICATION_NUM', 1),
            pool_size=_parse_int(env, 'STARROCKS_POOL_SIZE', 10),
        )


@dataclass
class ServiceSettings:
    """Process-wide settings for the HTTP service and job runner"""

    project_id: Optional[str] = None
    export_driver: str = 'GCS'
    run_mode: str = 'server'
    api_key: Optional[str] = None
    port: int = 8080
    request_timeout: Optional[float] = None
    log_format: str = 'json'
    starrocks: Optional[StarRocksConfig] = None

    @property
    def is_job(self) -> bool:
        return self.run_mode.lower() == 'job'

    @property
    def uses_starrocks(self) -> bool:
        return self.export_driver.upper() == 'STARROCKS'

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'ServiceSettings':
        env = os.environ if env is None else env

        export_driver = (env.get('EXPORT_DRIVER') or 'GCS').upper()
        starrocks = StarRocksConfig.from_env(env) if export_driver == 'STARROCKS' else None

        return cls(
            project_id=env.get('GCP_PROJECT_ID') or None,
            export_driver=export_driver,
            run_mode=env.get('RUN_MODE') or 'server',
            api_key=env.get('API_KEY') or None,
            port=_parse_int(env, 'PORT', 8080),
            request_timeout=_parse_optional_float(env, 'REQUEST_TIMEOUT_SECONDS'),
            log_format=(env.get('LOG_FORMAT') or 'json').lower(),
            starrocks=starrocks,
        )


@dataclass
class JobSettings:
    """Parameters for a single export or load run (job mode)"""

    query: str
    query_location: str
    table: str = ''
    database: str = ''
    output: str = ''
    filename: str = ''
    create_ddl: str = ''
    use_timestamp: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'JobSettings':
        env = os.environ if env is None else env

        query = env.get('JOB_QUERY', '')
        location = env.get('JOB_QUERY_LOCATION', '')
        if not query or not location:
            raise ConfigurationError('JOB_QUERY or JOB_QUERY_LOCATION is empty')

        return cls(
            query=query,
            query_location=location,
            table=env.get('JOB_TABLE', ''),
            database=env.get('JOB_DATABASE', ''),
            output=env.get('JOB_OUTPUT', ''),
            filename=env.get('JOB_FILENAME', ''),
            create_ddl=env.get('JOB_CREATE_DDL', ''),
            use_timestamp=_parse_bool(env.get('JOB_USE_TIMESTAMP')),
        )
