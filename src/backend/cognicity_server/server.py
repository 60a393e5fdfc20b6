"""Queries against the report, aggregate and infrastructure layers.

CognicityServer turns each API operation into one parameterized query (or a
chain of them for historical aggregates) and shapes the rows into GeoJSON.
Table names come from configuration; time bounds and limits are always bound
as positional parameters.
"""
import json
import logging
import math
import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .aggregates import HOUR, AreaCountAggregator, TimeWindow
from .errors import ValidationError
from .formatting import feature_collection
from .history import HistoricalSeriesBuilder
from .validation import require_window

logger = logging.getLogger(__name__)


def _geometry(value):
    return json.loads(value) if isinstance(value, str) else value


def _isoformat(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class CognicityServer:
    def __init__(self, executor, config):
        self.executor = executor
        self.config = config
        self.aggregator = AreaCountAggregator(executor)
        self.history = HistoricalSeriesBuilder(self.aggregator.feature_collection)

    @property
    def tbl_reports(self):
        return self.config['TBL_REPORTS']

    @property
    def tbl_reports_unconfirmed(self):
        return self.config['TBL_REPORTS_UNCONFIRMED']

    def polygon_layer(self, level=None):
        """Table for an aggregate level; unknown or missing levels fall back to the first one."""
        levels = self.config['AGGREGATE_LEVELS']
        if level in levels:
            return levels[level]
        return next(iter(levels.values()))

    def _report_features(self, table, window, limit, columns):
        require_window(window)
        query = (
            f"SELECT {', '.join(columns)}, ST_AsGeoJSON(geometry) AS geometry "
            f"FROM {table} "
            "WHERE created_at >= to_timestamp($1) AND created_at <= to_timestamp($2) "
            "ORDER BY created_at DESC"
        )
        parameters = [window.start, window.end]
        if limit is not None:
            query += " LIMIT $3"
            parameters.append(limit)

        rows = self.executor.execute(query, parameters)
        return feature_collection(
            {
                'type': 'Feature',
                'geometry': _geometry(row['geometry']),
                'properties': {column: _isoformat(row[column]) for column in columns},
            }
            for row in rows
        )

    def get_reports(self, window=None, limit=None):
        """Confirmed reports, newest first. Defaults to the last hour."""
        return self._report_features(
            self.tbl_reports,
            window or TimeWindow.last_hours(1),
            limit if limit is not None else self.config.get('REPORTS_LIMIT'),
            ['pkey', 'created_at', 'text'],
        )

    def get_unconfirmed_reports(self, window=None, limit=None):
        return self._report_features(
            self.tbl_reports_unconfirmed,
            window or TimeWindow.last_hours(1),
            limit if limit is not None else self.config.get('UNCONFIRMED_LIMIT'),
            ['pkey'],
        )

    def get_reports_count(self, window=None):
        window = require_window(window or TimeWindow.last_hours(1))
        query = (
            f"SELECT (SELECT count(pkey) FROM {self.tbl_reports_unconfirmed} "
            "WHERE created_at >= to_timestamp($1) AND created_at <= to_timestamp($2)) AS uc_count, "
            f"(SELECT count(pkey) FROM {self.tbl_reports} "
            "WHERE created_at >= to_timestamp($1) AND created_at <= to_timestamp($2)) AS c_count"
        )
        rows = self.executor.execute(query, [window.start, window.end])
        row = rows[0] if rows else {}
        return {'uc_count': row.get('uc_count', 0), 'c_count': row.get('c_count', 0)}

    def get_reports_time_series(self, window=None):
        """Hourly confirmed/unconfirmed counts; defaults to 24 hours ago up to one hour ago."""
        if window is None:
            now = math.floor(time.time())
            window = TimeWindow(now - 24 * HOUR, now - HOUR)
        require_window(window)
        first = math.floor(window.start / HOUR) * HOUR
        last = math.floor(window.end / HOUR) * HOUR

        bucket = "CAST(floor(epoch(created_at) / 3600) * 3600 AS BIGINT)"
        in_range = "created_at >= to_timestamp($1) AND created_at < to_timestamp($2 + 3600)"
        query = (
            "SELECT hours.stamp, COALESCE(c.n, 0) AS c_count, COALESCE(uc.n, 0) AS uc_count "
            "FROM (SELECT range AS stamp FROM range(CAST($1 AS BIGINT), CAST($2 AS BIGINT) + 1, 3600)) AS hours "
            f"LEFT OUTER JOIN (SELECT {bucket} AS stamp, count(pkey) AS n FROM {self.tbl_reports} "
            f"WHERE {in_range} GROUP BY 1) AS c ON c.stamp = hours.stamp "
            f"LEFT OUTER JOIN (SELECT {bucket} AS stamp, count(pkey) AS n FROM {self.tbl_reports_unconfirmed} "
            f"WHERE {in_range} GROUP BY 1) AS uc ON uc.stamp = hours.stamp "
            "ORDER BY hours.stamp ASC"
        )
        rows = self.executor.execute(query, [first, last])

        zone = ZoneInfo(self.config.get('TIME_ZONE') or 'UTC')
        return [
            {
                'stamp': datetime.fromtimestamp(row['stamp'], tz=timezone.utc).astimezone(zone).strftime('%H:%M'),
                'c_count': row['c_count'],
                'uc_count': row['uc_count'],
            }
            for row in rows
        ]

    def get_count_by_area(self, window=None, level=None):
        rows = self.aggregator.feature_collection(
            window or TimeWindow.last_hours(1),
            self.polygon_layer(level),
            self.tbl_reports,
            self.tbl_reports_unconfirmed,
        )
        return rows[0]

    def get_historical_count_by_area(self, start_time, blocks, level=None):
        return self.history.historical_count_by_area(
            start_time,
            blocks,
            self.polygon_layer(level or self.config.get('ARCHIVE_LEVEL')),
            self.tbl_reports,
            self.tbl_reports_unconfirmed,
        )

    def get_infrastructure(self, name):
        tables = self.config['INFRASTRUCTURE_TBLS']
        if name not in tables:
            raise ValidationError('name', f"Unknown infrastructure layer '{name}'")
        rows = self.executor.execute(
            f"SELECT name, ST_AsGeoJSON(geometry) AS geometry FROM {tables[name]}", []
        )
        return feature_collection(
            {'type': 'Feature', 'geometry': _geometry(row['geometry']), 'properties': {'name': row['name']}}
            for row in rows
        )
