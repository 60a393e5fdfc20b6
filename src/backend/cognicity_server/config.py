import json
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, '') else default


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, '') else default


def _env_mapping(name, default):
    value = os.environ.get(name)
    return json.loads(value) if value else default


class Config:
    # Instance name, also used for the log file name
    INSTANCE = os.environ.get('COGNICITY_INSTANCE', 'cognicity-server')
    URL_PREFIX = os.environ.get('COGNICITY_URL_PREFIX', 'banjir')

    # Data cache expiry in milliseconds (1 minute)
    CACHE_TIMEOUT = _env_int('COGNICITY_CACHE_TIMEOUT', 60000)

    DATA_ROUTES = _env_bool('COGNICITY_DATA_ROUTES', True)
    AGGREGATE_ROUTES = _env_bool('COGNICITY_AGGREGATE_ROUTES', True)
    # Answer failures with an empty 204 like the legacy client expects
    EMPTY_RESPONSE_ON_ERROR = _env_bool('COGNICITY_EMPTY_RESPONSE_ON_ERROR', False)

    # Polygon level used to bucket archive aggregates
    ARCHIVE_LEVEL = os.environ.get('COGNICITY_ARCHIVE_LEVEL', 'rw')

    # DuckDB database; layers are views over <DATA_DIR>/<table>.parquet
    DATABASE = os.environ.get('COGNICITY_DATABASE', ':memory:')
    DATA_DIR = os.environ.get('COGNICITY_DATA_DIR', './data')
    SPATIAL_EXTENSION = _env_bool('COGNICITY_SPATIAL_EXTENSION', True)
    CREATE_LAYER_VIEWS = _env_bool('COGNICITY_CREATE_LAYER_VIEWS', True)
    DB_RECONNECTION_ATTEMPTS = _env_int('COGNICITY_DB_RECONNECTION_ATTEMPTS', 5)
    DB_RECONNECTION_DELAY = _env_float('COGNICITY_DB_RECONNECTION_DELAY', 3.0)
    # Seconds before a running query is interrupted, 0 disables
    QUERY_TIMEOUT = _env_float('COGNICITY_QUERY_TIMEOUT', 30.0)

    TBL_REPORTS = os.environ.get('COGNICITY_TBL_REPORTS', 'all_reports')
    TBL_REPORTS_UNCONFIRMED = os.environ.get('COGNICITY_TBL_REPORTS_UNCONFIRMED', 'tweet_reports_unconfirmed')

    # Aggregate level name -> polygon table. The first entry is the default level.
    AGGREGATE_LEVELS = _env_mapping('COGNICITY_AGGREGATE_LEVELS', {
        'city': 'jkt_city_boundary',
        'subdistrict': 'jkt_subdistrict_boundary',
        'village': 'jkt_village_boundary',
        'rw': 'jkt_rw_boundary',
    })
    INFRASTRUCTURE_TBLS = _env_mapping('COGNICITY_INFRASTRUCTURE_TBLS', {
        'waterways': 'waterways',
        'pumps': 'pumps',
        'floodgates': 'floodgates',
    })

    # Row limits for report queries, None returns everything
    REPORTS_LIMIT = _env_int('COGNICITY_REPORTS_LIMIT', None)
    UNCONFIRMED_LIMIT = _env_int('COGNICITY_UNCONFIRMED_LIMIT', None)

    # Zone used to label hourly time series buckets
    TIME_ZONE = os.environ.get('COGNICITY_TIME_ZONE', 'Asia/Jakarta')

    LOG_LEVEL = os.environ.get('COGNICITY_LOG_LEVEL', 'INFO')
    LOG_DIRECTORY = os.environ.get('COGNICITY_LOG_DIRECTORY')
    LOG_MAX_FILE_SIZE = _env_int('COGNICITY_LOG_MAX_FILE_SIZE', 1024 * 1024 * 100)
    LOG_MAX_FILES = _env_int('COGNICITY_LOG_MAX_FILES', 10)

    HOST = os.environ.get('COGNICITY_HOST', '0.0.0.0')
    PORT = _env_int('PORT', 8081)


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    DATABASE = ':memory:'
    SPATIAL_EXTENSION = False
    CREATE_LAYER_VIEWS = False
    DB_RECONNECTION_ATTEMPTS = 1
    DB_RECONNECTION_DELAY = 0
    QUERY_TIMEOUT = 5.0
    LOG_DIRECTORY = None
    LOG_LEVEL = 'DEBUG'
