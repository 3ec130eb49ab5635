"""
Shared types for loader operations.

This module contains types that are used across multiple modules to avoid circular imports.
"""

from dataclasses import dataclass, field
from typing import List

from ..config.settings import DEFAULT_BATCH_SIZE, StarRocksConfig


@dataclass
class LoadConfig:
    """Configuration for a single load into a relational destination"""

    batch_size: int = DEFAULT_BATCH_SIZE
    strict_values: bool = False
    buckets: int = 8
    replication_num: int = 1

    @classmethod
    def from_starrocks(cls, config: StarRocksConfig) -> 'LoadConfig':
        return cls(
            batch_size=config.batch_size,
            strict_values=config.strict_values,
            buckets=config.buckets,
            replication_num=config.replication_num,
        )


@dataclass
class DestinationColumn:
    name: str
    data_type: str


@dataclass
class DestinationTable:
    database: str
    table: str
    columns: List[DestinationColumn] = field(default_factory=list)


@dataclass
class LoadResult:
    """Result of a data loading operation"""

    table: str
    rows_loaded: int
    duration: float = 0.0
    batches: int = 0
    nulled_values: int = 0

    def __str__(self) -> str:
        return f'✅ Loaded {self.rows_loaded} rows to {self.table} in {self.duration:.2f}s ({self.batches} batches)'
