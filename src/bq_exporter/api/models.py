"""
Request and response models for the export API.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ..drivers.base import ExportParams, ExportResult


class ExportRequest(BaseModel):
    """Body of POST /api/export"""

    query: str = Field(..., min_length=1, description='SQL to run in BigQuery')
    query_location: str = Field(..., min_length=1, description='BigQuery location, e.g. US or asia-northeast1')
    output: str = Field('', description='gs:// folder or file pattern (GCS driver)')
    filename: str = Field('', description='Base name for exported files')
    use_timestamp: bool = Field(False, description='Append a timestamp to exported file names')
    table: str = Field('', description="Destination 'table' or 'db.table' (StarRocks driver)")
    database: str = Field('', description='Default database for an unqualified table')
    create_ddl: str = Field('', description='Explicit CREATE TABLE statement used instead of generated DDL')

    def to_params(self) -> ExportParams:
        return ExportParams(
            query=self.query,
            query_location=self.query_location,
            output=self.output,
            filename=self.filename,
            use_timestamp=self.use_timestamp,
            table=self.table,
            database=self.database,
            create_ddl=self.create_ddl,
        )


class ExportResponse(BaseModel):
    message: str
    gcs_path: Optional[str] = None
    table: Optional[str] = None
    rows_loaded: Optional[int] = None

    @classmethod
    def from_result(cls, result: ExportResult) -> 'ExportResponse':
        if result.is_load:
            return cls(message='Load completed successfully', table=result.table, rows_loaded=result.rows)
        return cls(message='Export completed successfully', gcs_path=result.gcs_path)
