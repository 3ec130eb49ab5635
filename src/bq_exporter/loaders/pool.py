"""
Thread-safe pymysql connection pool for StarRocks.
"""

import logging
import threading
import time
from contextlib import contextmanager
from queue import Empty, Full, Queue
from typing import Any, Callable, Iterator, Optional

import pymysql

from ..config.settings import StarRocksConfig
from ..errors import DatabaseError


class StarRocksConnectionPool:
    """
    Thread-safe connection pool for StarRocks connections.

    Features:
    - Connection health validation (ping) before reuse
    - Connection age tracking; connections older than max_connection_age are replaced
    - Every new connection selects the configured warehouse
    """

    def __init__(self, config: StarRocksConfig, connect: Optional[Callable[..., Any]] = None):
        """
        Initialize connection pool.

        Args:
            config: StarRocks connection configuration
            connect: Connection factory, pymysql.connect unless overridden
        """
        self.config = config
        self.pool_size = config.pool_size
        self.max_connection_age = config.max_connection_age
        self._connect = connect or pymysql.connect
        self._pool: Queue[tuple[Any, float]] = Queue(maxsize=self.pool_size)  # (connection, created_at)
        self._created_at: dict[int, float] = {}
        self._active_connections = 0
        self._lock = threading.Lock()
        self._closed = False
        self.logger = logging.getLogger(__name__)

    @property
    def active_connections(self) -> int:
        return self._active_connections

    def _create_connection(self) -> Any:
        conn_params = {
            'host': self.config.host,
            'port': self.config.port,
            'user': self.config.user,
            'password': self.config.password,
            'charset': 'utf8mb4',
            'autocommit': True,
            'connect_timeout': self.config.connect_timeout,
            **self.config.connection_params,
        }
        if self.config.read_timeout is not None:
            conn_params['read_timeout'] = self.config.read_timeout
        if self.config.write_timeout is not None:
            conn_params['write_timeout'] = self.config.write_timeout

        try:
            connection = self._connect(**conn_params)
        except Exception as e:
            raise DatabaseError(f'failed to connect to StarRocks at {self.config.host}:{self.config.port}: {e}') from e

        try:
            with connection.cursor() as cursor:
                cursor.execute(f"SET warehouse = '{self.config.warehouse}'")
        except Exception as e:
            self._close_quietly(connection)
            raise DatabaseError(f'failed to set warehouse {self.config.warehouse!r}: {e}') from e

        self.logger.debug(f'Opened StarRocks connection to {self.config.host}:{self.config.port}')
        return connection

    def _validate_connection(self, connection: Any) -> bool:
        try:
            connection.ping(reconnect=False)
            return True
        except Exception:
            return False

    def _close_quietly(self, connection: Any) -> None:
        try:
            connection.close()
        except Exception as e:
            self.logger.debug(f'Ignoring error while closing connection: {e}')

    def _discard(self, connection: Any) -> None:
        self._close_quietly(connection)
        with self._lock:
            self._active_connections -= 1
            self._created_at.pop(id(connection), None)

    def _new_tracked_connection(self) -> Any:
        connection = self._create_connection()
        with self._lock:
            self._created_at[id(connection)] = time.time()
        return connection

    def _is_reusable(self, connection: Any, created_at: float) -> bool:
        if time.time() - created_at > self.max_connection_age:
            return False
        return self._validate_connection(connection)

    def kill_query(self, thread_id: int) -> None:
        """
        Interrupt the statement running on the server connection thread_id.

        The KILL is sent over a short-lived connection opened with the pool's
        settings; it does not count against pool_size, so it works while every
        pooled connection is busy.

        Raises:
            DatabaseError: Connecting or issuing the KILL failed
        """
        connection = self._create_connection()
        try:
            with connection.cursor() as cursor:
                cursor.execute(f'KILL QUERY {int(thread_id)}')
        except Exception as e:
            raise DatabaseError(f'failed to kill query on connection {thread_id}: {e}') from e
        finally:
            self._close_quietly(connection)
        self.logger.info(f'Killed running query on StarRocks connection {thread_id}')

    def acquire(self, timeout: Optional[float] = 30.0) -> Any:
        """
        Acquire a connection from the pool with health validation.

        Args:
            timeout: Maximum time to wait for a connection (seconds)

        Raises:
            DatabaseError: Pool is closed, the wait timed out, or connecting failed
        """
        if self._closed:
            raise DatabaseError('Connection pool is closed')

        try:
            connection, created_at = self._pool.get(block=False)
            if self._is_reusable(connection, created_at):
                return connection
            self._discard(connection)
        except Empty:
            pass

        with self._lock:
            can_create = self._active_connections < self.pool_size
            if can_create:
                self._active_connections += 1
        if can_create:
            try:
                return self._new_tracked_connection()
            except Exception:
                with self._lock:
                    self._active_connections -= 1
                raise

        # Pool is at capacity, wait for a connection to be released
        try:
            connection, created_at = self._pool.get(block=True, timeout=timeout)
        except Empty:
            raise DatabaseError(f'Failed to acquire connection from pool within {timeout}s')

        if self._is_reusable(connection, created_at):
            return connection
        self._discard(connection)
        with self._lock:
            self._active_connections += 1
        try:
            return self._new_tracked_connection()
        except Exception:
            with self._lock:
                self._active_connections -= 1
            raise

    def release(self, connection: Any) -> None:
        """Return a connection to the pool, closing it when the pool is closed or full"""
        if self._closed:
            self._discard(connection)
            return

        if not getattr(connection, 'open', True):
            with self._lock:
                self._active_connections -= 1
                self._created_at.pop(id(connection), None)
            return

        created_at = self._created_at.get(id(connection), time.time())
        try:
            self._pool.put((connection, created_at), block=False)
        except Full:
            self._discard(connection)

    @contextmanager
    def connection(self, timeout: Optional[float] = 30.0) -> Iterator[Any]:
        """Acquire a connection for the duration of a with block"""
        connection = self.acquire(timeout=timeout)
        try:
            yield connection
        finally:
            self.release(connection)

    def close(self) -> None:
        """Close all connections in the pool"""
        self._closed = True
        while not self._pool.empty():
            try:
                connection, _ = self._pool.get(block=False)
            except Empty:
                break
            self._close_quietly(connection)

        with self._lock:
            self._active_connections = 0
            self._created_at.clear()
