"""
Single-pass row stream over a warehouse result iterator.
"""

import logging
from typing import Any, Iterable, Iterator, Optional

from ..cancellation import CancellationToken
from ..errors import ExporterError, QueryExecutionError
from .types import Row


def to_row(value: Any) -> Row:
    """Convert a bigquery.Row (or any sequence) into a plain positional tuple"""
    if isinstance(value, tuple):
        return value
    values = getattr(value, 'values', None)
    if callable(values):
        return tuple(values())
    return tuple(value)


class RowStream:
    """
    Iterator that yields rows from a warehouse result exactly once.

    The stream can hold one buffered row for replay. That row is yielded
    before anything else pulled from the underlying iterator, which lets a
    caller look one row ahead (to force lazy schema materialization) without
    losing it or changing row order.
    """

    def __init__(self, rows: Iterable[Any], cancel: Optional[CancellationToken] = None):
        """
        Initialize the row stream.

        Args:
            rows: Underlying result iterator (e.g. google.cloud.bigquery RowIterator)
            cancel: Optional token checked before every pull
        """
        self._source = rows
        self._rows: Optional[Iterator[Any]] = None
        self._buffered: Optional[Row] = None
        self._exhausted = False
        self._cancel = cancel
        self.rows_read = 0
        self.logger = logging.getLogger(__name__)

    @property
    def exhausted(self) -> bool:
        return self._exhausted and self._buffered is None

    @property
    def prefetched_row(self) -> Optional[Row]:
        """The buffered row waiting to be replayed, if any"""
        return self._buffered

    def peek(self) -> Optional[Row]:
        """
        Pull one row ahead into the replay buffer.

        Returns:
            The buffered row, or None when the result has no rows
        """
        if self._buffered is None and not self._exhausted:
            self._buffered = self._pull()
        return self._buffered

    def take_prefetched(self) -> Optional[Row]:
        """Remove and return the buffered row so the caller can place it itself"""
        row, self._buffered = self._buffered, None
        return row

    def __iter__(self) -> Iterator[Row]:
        return self

    def __next__(self) -> Row:
        if self._cancel is not None:
            self._cancel.raise_if_cancelled()

        if self._buffered is not None:
            row, self._buffered = self._buffered, None
            return row

        row = self._pull()
        if row is None:
            raise StopIteration
        return row

    def _pull(self) -> Optional[Row]:
        if self._exhausted:
            return None
        if self._rows is None:
            self._rows = iter(self._source)
        try:
            value = next(self._rows)
        except StopIteration:
            self._exhausted = True
            self.logger.debug(f'Row stream exhausted after {self.rows_read} rows')
            return None
        except ExporterError:
            self._exhausted = True
            raise
        except Exception as e:
            self._exhausted = True
            raise QueryExecutionError(f'failed to fetch BigQuery rows: {e}') from e

        self.rows_read += 1
        return to_row(value)

    def __repr__(self) -> str:
        return f'RowStream(rows_read={self.rows_read}, buffered={self._buffered is not None})'
