import logging
import os
import threading
import time

import duckdb

from .errors import DatabaseError, DatabaseErrorKind

logger = logging.getLogger(__name__)


def layer_tables(config):
    """Every table name the configuration refers to, in a stable order."""
    tables = [config.get('TBL_REPORTS'), config.get('TBL_REPORTS_UNCONFIRMED')]
    tables += list(config.get('AGGREGATE_LEVELS', {}).values())
    tables += list(config.get('INFRASTRUCTURE_TBLS', {}).values())
    seen = []
    for table in tables:
        if table and table not in seen:
            seen.append(table)
    return seen


class Database:
    """Process-wide DuckDB connection with the spatial layers mounted as views.

    Also the query executor: `execute` runs one parameterized query and returns
    its rows as dicts, or raises DatabaseError.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, config=None):
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._init_db(config or {})
                cls._instance = instance
        return cls._instance

    @classmethod
    def reset(cls):
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
            cls._instance = None

    def _init_db(self, config):
        self.config = config
        self.query_timeout = config.get('QUERY_TIMEOUT') or None
        self.conn = self._connect(
            config.get('DATABASE', ':memory:'),
            attempts=max(1, config.get('DB_RECONNECTION_ATTEMPTS', 1)),
            delay=config.get('DB_RECONNECTION_DELAY', 0),
        )
        # Naive created_at values are UTC; cursors inherit the global setting
        self.conn.execute("SET GLOBAL TimeZone = 'UTC'")
        if config.get('SPATIAL_EXTENSION', True):
            self.conn.install_extension('spatial')
            self.conn.load_extension('spatial')
        if config.get('CREATE_LAYER_VIEWS', True):
            self.create_layer_views(config.get('DATA_DIR', '.'), layer_tables(config))

    def _connect(self, database, attempts, delay):
        for attempt in range(1, attempts + 1):
            try:
                conn = duckdb.connect(database=database, read_only=False)
                logger.info("Connected to database '%s'", database)
                return conn
            except duckdb.Error as err:
                if attempt >= attempts:
                    logger.error('Database connection failed, maximum attempts reached: %s', err)
                    raise DatabaseError(DatabaseErrorKind.CONNECTION_FAILED) from err
                logger.error('Database connection failed, next attempt in %ss: %s', delay, err)
                time.sleep(delay)

    def create_layer_views(self, data_dir, tables):
        """Expose <data_dir>/<table>.parquet as view <table>; missing files are skipped."""
        created = []
        for table in tables:
            path = os.path.join(data_dir, f'{table}.parquet')
            if not os.path.exists(path):
                logger.warning("No GeoParquet file for layer '%s' at %s", table, path)
                continue
            escaped = path.replace("'", "''")
            self.conn.execute(f"CREATE OR REPLACE VIEW {table} AS SELECT * FROM read_parquet('{escaped}')")
            created.append(table)
        logger.info('Layer views ready: %s', ', '.join(created) or 'none')
        return created

    def get_conn(self):
        return self.conn

    def execute(self, query_text, parameters=()):
        parameters = list(parameters)
        logger.debug('execute: parameters=%s query=%s', parameters, ' '.join(query_text.split()))

        # A cursor is a separate connection to the same database, safe per thread
        try:
            cursor = self.conn.cursor()
        except duckdb.Error as err:
            logger.error('Database connection error: %s', err)
            raise DatabaseError(DatabaseErrorKind.CONNECTION_FAILED) from err

        timed_out = threading.Event()
        timer = None
        if self.query_timeout:
            def interrupt():
                timed_out.set()
                cursor.interrupt()
            timer = threading.Timer(self.query_timeout, interrupt)
            timer.daemon = True
            timer.start()

        try:
            rows = cursor.execute(query_text, parameters).fetch_arrow_table().to_pylist()
        except duckdb.ConnectionException as err:
            logger.error('Database connection error: %s', err)
            raise DatabaseError(DatabaseErrorKind.CONNECTION_FAILED) from err
        except duckdb.Error as err:
            if timed_out.is_set():
                logger.error('Database query timed out after %ss, parameters=%s', self.query_timeout, parameters)
                raise DatabaseError(DatabaseErrorKind.TIMEOUT) from err
            logger.error('Database query failed, %s, parameters=%s', err, parameters)
            raise DatabaseError(DatabaseErrorKind.QUERY_FAILED) from err
        finally:
            if timer is not None:
                timer.cancel()
            cursor.close()

        logger.debug('execute: %d rows returned', len(rows))
        return rows

    def close(self):
        self.conn.close()
