"""
Destination table reconciliation for StarRocks.

Creates the destination table from a result schema when it does not exist,
or adds the columns it is missing when it does. Existing columns are never
dropped, renamed or retyped.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import ConfigurationError, DatabaseError
from ..warehouse.types import Field, Schema
from .pool import StarRocksConnectionPool
from .type_mapping import base_type, map_field, quote_identifier
from .types import DestinationColumn, DestinationTable, LoadConfig

TABLE_EXISTS_SQL = 'SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = %s AND table_name = %s'
COLUMNS_SQL = (
    'SELECT column_name, data_type FROM information_schema.columns '
    'WHERE table_schema = %s AND table_name = %s ORDER BY ordinal_position'
)


def resolve_table(identifier: str, default_database: str = '') -> Tuple[str, str]:
    """
    Split a table identifier into (database, table).

    'table' uses default_database, 'db.table' is explicit (split on the first
    dot) and '.table' falls back to default_database.

    Raises:
        ConfigurationError: No table name, or no database can be resolved
    """
    database, sep, table = identifier.partition('.')
    if not sep:
        database, table = '', identifier
    database = database.strip() or default_database.strip()
    table = table.strip()

    if not table:
        raise ConfigurationError(f'table name is empty in {identifier!r}')
    if not database:
        raise ConfigurationError(f'no database for table {table!r}: set it in the request or STARROCKS_DB')
    return database, table


class SchemaReconciler:
    """
    Brings a StarRocks table in line with a query result schema.

    Example:
        reconciler = SchemaReconciler(pool, LoadConfig())
        reconciler.ensure_table('analytics', 'events', result.schema)
    """

    def __init__(
        self,
        pool: StarRocksConnectionPool,
        config: Optional[LoadConfig] = None,
        type_mapper: Callable[[Field], str] = map_field,
    ):
        self.pool = pool
        self.config = config or LoadConfig()
        self.type_mapper = type_mapper
        self.logger = logging.getLogger(self.__class__.__name__)

    def ensure_database(self, name: str) -> None:
        if not name or not name.strip():
            raise ConfigurationError('database name is empty')
        self._execute(f'CREATE DATABASE IF NOT EXISTS {name}')

    def table_exists(self, database: str, table: str) -> bool:
        rows = self._query(TABLE_EXISTS_SQL, (database, table))
        return bool(rows) and int(rows[0][0]) > 0

    def get_existing_columns(self, database: str, table: str) -> List[DestinationColumn]:
        rows = self._query(COLUMNS_SQL, (database, table))
        return [DestinationColumn(name=row[0], data_type=str(row[1] or '')) for row in rows]

    def ensure_table(
        self, database: str, table: str, schema: Schema, explicit_ddl: Optional[str] = None
    ) -> DestinationTable:
        """
        Ensure database.table exists with a column for every schema field.

        Args:
            database: Destination database, created when missing
            table: Destination table name
            schema: Result schema the table must accommodate
            explicit_ddl: Caller-supplied CREATE statement, run verbatim instead of generated DDL

        Raises:
            UnsupportedTypeError: A field is repeated or nested (raised before any DDL)
            DatabaseError: A DDL or metadata statement failed
        """
        if explicit_ddl and explicit_ddl.strip():
            self.ensure_database(database)
            self.logger.info(f'Creating {database}.{table} from explicit DDL')
            self._execute(explicit_ddl)
            return DestinationTable(database=database, table=table)

        schema.require_columns()
        # Map everything up front so a complex field aborts before any DDL
        column_types = [self.type_mapper(f) for f in schema]

        self.ensure_database(database)
        if not self.table_exists(database, table):
            return self._create_table(database, table, schema, column_types)
        return self._evolve_table(database, table, schema, column_types)

    def build_create_table(self, database: str, table: str, schema: Schema, column_types: List[str]) -> str:
        columns = ',\n    '.join(f'{quote_identifier(f.name)} {t}' for f, t in zip(schema, column_types))
        key = quote_identifier(schema[0].name)
        return (
            f'CREATE TABLE IF NOT EXISTS {database}.{table} (\n    {columns}\n)\n'
            f'ENGINE=OLAP\n'
            f'DUPLICATE KEY({key})\n'
            f'DISTRIBUTED BY HASH({key}) BUCKETS {self.config.buckets}\n'
            f'PROPERTIES ("replication_num" = "{self.config.replication_num}")'
        )

    def _create_table(
        self, database: str, table: str, schema: Schema, column_types: List[str]
    ) -> DestinationTable:
        self._execute(self.build_create_table(database, table, schema, column_types))
        self.logger.info(f'Created table {database}.{table} with {len(schema)} columns')
        return DestinationTable(
            database=database,
            table=table,
            columns=[DestinationColumn(f.name, t) for f, t in zip(schema, column_types)],
        )

    def _evolve_table(
        self, database: str, table: str, schema: Schema, column_types: List[str]
    ) -> DestinationTable:
        existing = self.get_existing_columns(database, table)
        by_name: Dict[str, DestinationColumn] = {c.name.lower(): c for c in existing}

        added = []
        for f, column_type in zip(schema, column_types):
            current = by_name.get(f.name.lower())
            if current is None:
                self._execute(f'ALTER TABLE {database}.{table} ADD COLUMN {quote_identifier(f.name)} {column_type}')
                added.append(DestinationColumn(f.name, column_type))
            elif current.data_type and base_type(current.data_type) != base_type(column_type):
                self.logger.warning(
                    f'Column {current.name} in {database}.{table} is {current.data_type}, '
                    f'query produces {column_type}; keeping existing type'
                )

        if added:
            self.logger.info(f'Added {len(added)} columns to {database}.{table}: {", ".join(c.name for c in added)}')
        return DestinationTable(database=database, table=table, columns=existing + added)

    def _execute(self, sql: str) -> None:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(sql)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f'DDL failed: {e}') from e

    def _query(self, sql: str, params: tuple) -> list:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(sql, params)
                    return list(cursor.fetchall())
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f'metadata query failed: {e}') from e
