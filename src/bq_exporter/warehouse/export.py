"""Object-store path templating for Parquet exports."""

from datetime import datetime
from typing import Optional

DEFAULT_BASE_NAME = 'export'
TIMESTAMP_FORMAT = '%Y%m%d-%H%M%S'


def build_export_uri(output: str, filename: str = '', use_timestamp: bool = False, now: Optional[datetime] = None) -> str:
    """
    Build the wildcard URI BigQuery writes Parquet shards to.

    - A folder ending in '/' gets '<base>[-<timestamp>]-*.parquet' appended.
    - A path with no '.parquet' suffix and no wildcard is treated as a folder
      missing its trailing slash.
    - Anything else is an explicit pattern and is used verbatim; filename and
      timestamp are ignored in that case.

    Args:
        output: gs:// folder or explicit file pattern
        filename: Base name for generated files (defaults to 'export')
        use_timestamp: Insert a YYYYMMDD-HHMMSS stamp after the base name
        now: Clock override for the timestamp

    Returns:
        The URI to pass to EXPORT DATA
    """
    base_name = filename or DEFAULT_BASE_NAME
    if use_timestamp:
        stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        pattern = f'{base_name}-{stamp}-*.parquet'
    else:
        pattern = f'{base_name}-*.parquet'

    if output.endswith('/'):
        return f'{output}{pattern}'
    if not output.endswith('.parquet') and '*' not in output:
        return f'{output}/{pattern}'
    return output


def build_export_statement(query: str, export_uri: str) -> str:
    """Wrap a query in an EXPORT DATA statement writing Parquet to export_uri"""
    return f"""
        EXPORT DATA OPTIONS(
            uri='{export_uri}',
            format='PARQUET',
            overwrite=true
        ) AS
        ({query})
    """
