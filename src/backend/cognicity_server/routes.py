import logging
import math
import time

from flask import Blueprint, Response, current_app, jsonify, request

from .aggregates import TimeWindow
from .cache import CacheKey, Expiry
from .errors import CognicityError, ValidationError
from .formatting import prepare_response
from .validation import parse_iso8601, validate_number_parameter

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__)

# Endpoints served only when aggregates are enabled
AGGREGATE_ENDPOINTS = {'api.aggregates_live', 'api.aggregates_archive'}

DEFAULT_ARCHIVE_HOURS = 6
DEFAULT_ARCHIVE_BLOCKS = 6


def _server():
    return current_app.extensions['cognicity_server']


def _cache():
    return current_app.extensions['cognicity_cache']


def _format():
    # Any format other than topojson is served as GeoJSON and shares its cache entry
    return 'topojson' if request.args.get('format') == 'topojson' else None


def _hours():
    # Only 3 and 6 hour windows are offered, anything else means one hour
    hours = request.args.get('hours')
    return int(hours) if hours in ('3', '6') else 1


def _write(prepared):
    return Response(prepared.body or '', status=prepared.status, headers=prepared.headers)


def _respond(key, expiry, produce):
    fmt = _format()
    prepared = _cache().get_or_compute(key, lambda: prepare_response(produce(), fmt), expiry)
    return _write(prepared)


@bp.before_request
def check_enabled():
    config = current_app.config
    if not config.get('DATA_ROUTES', True):
        return jsonify({'error': 'Data routes are disabled'}), 404
    if request.endpoint in AGGREGATE_ENDPOINTS and not config.get('AGGREGATE_ROUTES', True):
        return jsonify({'error': 'Aggregate routes are disabled'}), 404
    return None


@bp.route('/reports/confirmed', methods=['GET'])
def reports_confirmed():
    key = CacheKey.build('reports/confirmed', format=_format())
    return _respond(key, Expiry.TEMPORARY, lambda: _server().get_reports())


@bp.route('/reports/unconfirmed', methods=['GET'])
def reports_unconfirmed():
    key = CacheKey.build('reports/unconfirmed', format=_format())
    return _respond(key, Expiry.TEMPORARY, lambda: _server().get_unconfirmed_reports())


@bp.route('/reports/count', methods=['GET'])
def reports_count():
    hours = _hours()
    key = CacheKey.build('reports/count', hours=hours)
    return _respond(key, Expiry.TEMPORARY, lambda: _server().get_reports_count(TimeWindow.last_hours(hours)))


@bp.route('/reports/timeseries', methods=['GET'])
def reports_timeseries():
    key = CacheKey.build('reports/timeseries')
    return _respond(key, Expiry.TEMPORARY, lambda: _server().get_reports_time_series())


@bp.route('/aggregates/live', methods=['GET'])
def aggregates_live():
    server = _server()
    level = request.args.get('level')
    polygon_layer = server.polygon_layer(level)
    hours = _hours()
    logger.debug("Parsed options polygon_layer='%s' hours=%s", polygon_layer, hours)

    key = CacheKey.build('aggregates/live', polygon_layer=polygon_layer, hours=hours, format=_format())
    return _respond(
        key,
        Expiry.TEMPORARY,
        lambda: server.get_count_by_area(TimeWindow.last_hours(hours), level),
    )


@bp.route('/aggregates/archive', methods=['GET'])
def aggregates_archive():
    now = math.floor(time.time())

    if request.args.get('start_time'):
        start_time = parse_iso8601(request.args.get('start_time'))
    else:
        start_time = now - DEFAULT_ARCHIVE_HOURS * 3600
    if not validate_number_parameter(start_time, 0, now):
        raise ValidationError(
            'start_time',
            "'start_time' parameter is not valid, it must be an ISO8601 string for a time between 1970 and now",
        )

    if request.args.get('blocks'):
        try:
            blocks = float(request.args.get('blocks'))
        except ValueError:
            blocks = math.nan
        blocks = math.floor(blocks) if math.isfinite(blocks) else blocks
    else:
        blocks = DEFAULT_ARCHIVE_BLOCKS
    if not validate_number_parameter(blocks, 1, 24):
        raise ValidationError('blocks', "'blocks' parameter is not valid, it must be a number between 1 and 24")

    series = _server().get_historical_count_by_area(start_time, blocks)
    return _write(prepare_response(series, _format()))


@bp.route('/infrastructure/<name>', methods=['GET'])
def infrastructure(name):
    key = CacheKey.build('infrastructure', name=name, format=_format())
    return _respond(key, Expiry.PERMANENT, lambda: _server().get_infrastructure(name))


@bp.errorhandler(CognicityError)
def handle_error(err):
    logger.error('Request failed: %s %s, %s: %s', request.method, request.path, err.status, err.message)
    if current_app.config.get('EMPTY_RESPONSE_ON_ERROR'):
        return Response(status=204)
    return jsonify({'error': err.message}), err.status
