"""Historical series of hourly area aggregates.

A series is built block by block: each one-hour window is aggregated only
after the previous block's query has finished, so at most one aggregate query
is in flight per request and blocks come out in chronological order without
sorting. Consecutive windows share their boundary second (block N ends where
block N+1 starts, both bounds inclusive), so a report created exactly on a
boundary is counted in both blocks.
"""
import logging
from datetime import datetime, timezone

from .aggregates import HOUR, TimeWindow
from .errors import ValidationError
from .validation import is_number, require_layer, require_timestamp

logger = logging.getLogger(__name__)

MIN_BLOCKS = 1
MAX_BLOCKS = 24


def isoformat_utc(timestamp):
    """Unix seconds to e.g. '1984-01-02T03:04:05.000Z'."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class HistoricalSeriesBuilder:
    def __init__(self, aggregate):
        # aggregate(window, polygon_layer, confirmed_layer, unconfirmed_layer) -> rows
        self.aggregate = aggregate

    def historical_count_by_area(self, start_time, blocks, polygon_layer, confirmed_layer, unconfirmed_layer):
        require_timestamp('start_time', start_time)
        if not is_number(blocks) or not MIN_BLOCKS <= blocks <= MAX_BLOCKS or int(blocks) != blocks:
            raise ValidationError('blocks', f"'blocks' must be an integer between {MIN_BLOCKS} and {MAX_BLOCKS}")
        require_layer('polygon_layer', polygon_layer)
        require_layer('confirmed_layer', confirmed_layer)
        require_layer('unconfirmed_layer', unconfirmed_layer)

        window = TimeWindow(start_time, start_time + HOUR)
        series = []
        for _ in range(int(blocks)):
            # Errors propagate untouched: no partial series is ever returned
            rows = self.aggregate(window, polygon_layer, confirmed_layer, unconfirmed_layer)
            block = dict(rows[0]) if rows else {}
            block['start_time'] = isoformat_utc(window.start)
            block['end_time'] = isoformat_utc(window.end)
            series.append(block)
            window = window.shifted(HOUR)

        logger.debug('historical_count_by_area: %d blocks from %s on %s', len(series), start_time, polygon_layer)
        return {'blocks': series}
