import json
import logging
import math
import time
from dataclasses import dataclass

from .formatting import feature_collection
from .validation import require_layer, require_window

logger = logging.getLogger(__name__)

HOUR = 3600


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [start, end] range of report creation times, in unix seconds."""

    start: float
    end: float

    @classmethod
    def last_hours(cls, hours, now=None):
        now = math.floor(time.time() if now is None else now)
        return cls(now - hours * HOUR, now)

    def shifted(self, seconds):
        return TimeWindow(self.start + seconds, self.end + seconds)


@dataclass
class AreaCount:
    pkey: object
    area_name: str
    geometry: dict
    count: int

    @classmethod
    def from_row(cls, row):
        geometry = row.get('geometry')
        if isinstance(geometry, str):
            geometry = json.loads(geometry)
        return cls(row['pkey'], row.get('area_name'), geometry, int(row['count'] or 0))

    def to_feature(self):
        return {
            'type': 'Feature',
            'geometry': self.geometry,
            'properties': {
                'pkey': self.pkey,
                'level_name': self.area_name,
                'count': self.count,
            },
        }


# Per-polygon count of points from one layer inside the window, zero when
# nothing matched. Used once for each point layer so neither side can drop
# polygons the other one matched.
_LAYER_COUNT_SQL = """
    SELECT p.pkey, p.area_name, p.geometry, COALESCE(matched.n, 0) AS n
    FROM {polygon_layer} AS p
    LEFT OUTER JOIN (
        SELECT b.pkey, count(a.pkey) AS n
        FROM {point_layer} AS a, {polygon_layer} AS b
        WHERE ST_Within(a.geometry, b.geometry)
            AND a.created_at >= to_timestamp($1)
            AND a.created_at <= to_timestamp($2)
        GROUP BY b.pkey
    ) AS matched ON p.pkey = matched.pkey
"""

_COUNT_BY_AREA_SQL = """
SELECT uc.pkey,
    uc.area_name,
    ST_AsGeoJSON(uc.geometry) AS geometry,
    uc.n + c.n AS count
FROM ({unconfirmed}) AS uc
JOIN ({confirmed}) AS c ON uc.pkey = c.pkey
ORDER BY uc.pkey
"""


def count_by_area_query(polygon_layer, confirmed_layer, unconfirmed_layer):
    # Layer names come from configuration, never from the request
    return _COUNT_BY_AREA_SQL.format(
        unconfirmed=_LAYER_COUNT_SQL.format(polygon_layer=polygon_layer, point_layer=unconfirmed_layer),
        confirmed=_LAYER_COUNT_SQL.format(polygon_layer=polygon_layer, point_layer=confirmed_layer),
    )


class AreaCountAggregator:
    """Sums confirmed and unconfirmed reports per polygon over a time window."""

    def __init__(self, executor):
        self.executor = executor

    def count_by_area(self, window, polygon_layer, confirmed_layer, unconfirmed_layer):
        """Return one AreaCount per polygon in `polygon_layer`, ordered by pkey.

        Raises ValidationError before querying if any argument is malformed and
        DatabaseError if the query fails.
        """
        require_window(window)
        require_layer('polygon_layer', polygon_layer)
        require_layer('confirmed_layer', confirmed_layer)
        require_layer('unconfirmed_layer', unconfirmed_layer)

        query = count_by_area_query(polygon_layer, confirmed_layer, unconfirmed_layer)
        rows = self.executor.execute(query, [window.start, window.end])
        logger.debug('count_by_area: %s polygons in %s for %s', len(rows), polygon_layer, window)
        return [AreaCount.from_row(row) for row in rows]

    def feature_collection(self, window, polygon_layer, confirmed_layer, unconfirmed_layer):
        """Counts for the whole layer as a single-row result holding a FeatureCollection."""
        counts = self.count_by_area(window, polygon_layer, confirmed_layer, unconfirmed_layer)
        return [feature_collection(area.to_feature() for area in counts)]
