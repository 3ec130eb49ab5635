"""
Driver interface shared by the export and load destinations.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from ..cancellation import CancellationToken
from ..warehouse.bigquery import BigQueryService


@dataclass
class ExportParams:
    """Parameters of one export or load request"""

    query: str
    query_location: str
    output: str = ''
    filename: str = ''
    use_timestamp: bool = False
    table: str = ''
    database: str = ''
    create_ddl: str = ''


@dataclass
class ExportResult:
    """Outcome of a driver run; gcs_path for exports, table and rows for loads"""

    gcs_path: Optional[str] = None
    table: Optional[str] = None
    rows: int = 0

    @property
    def is_load(self) -> bool:
        return self.table is not None


class ExportDriver(Protocol):
    name: str

    def execute(
        self, bigquery: BigQueryService, params: ExportParams, cancel: Optional[CancellationToken] = None
    ) -> ExportResult: ...

    def close(self) -> None: ...
