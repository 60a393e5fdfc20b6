import pytest

from cognicity_server import create_app
from cognicity_server.config import TestingConfig
from cognicity_server.errors import DatabaseError, DatabaseErrorKind

from conftest import MockExecutor, area_row

API = '/banjir/data/api/v1'


def test_live_aggregates(client, executor):
    executor.queue([area_row(1, 3), area_row(2, 0)])
    response = client.get(f'{API}/aggregates/live?level=rw')

    assert response.status_code == 200
    data = response.get_json()
    assert data['type'] == 'FeatureCollection'
    assert [f['properties']['count'] for f in data['features']] == [3, 0]
    assert 'FROM jkt_rw_boundary AS p' in executor.calls[0][0]
    start, end = executor.calls[0][1]
    assert end - start == 3600


@pytest.mark.parametrize('hours, seconds', [('3', 10800), ('6', 21600), ('12', 3600), ('', 3600)])
def test_live_aggregate_hours(client, executor, hours, seconds):
    client.get(f'{API}/aggregates/live?hours={hours}')
    start, end = executor.calls[0][1]
    assert end - start == seconds


def test_live_aggregates_are_cached_per_level(client, executor):
    executor.queue([area_row(1, 3)], [area_row(1, 9)])

    first = client.get(f'{API}/aggregates/live?level=rw').get_json()
    second = client.get(f'{API}/aggregates/live?level=rw').get_json()
    other = client.get(f'{API}/aggregates/live?level=village').get_json()

    assert first == second
    assert other['features'][0]['properties']['count'] == 9
    assert executor.call_count == 2


def test_cleared_cache_recomputes(app, client, executor):
    client.get(f'{API}/reports/confirmed')
    app.extensions['cognicity_cache'].clear()
    client.get(f'{API}/reports/confirmed')
    assert executor.call_count == 2


def test_topojson_format_is_cached_separately(client, executor):
    executor.queue([area_row(1, 3)], [area_row(1, 3)])
    geojson = client.get(f'{API}/aggregates/live').get_json()
    topology = client.get(f'{API}/aggregates/live?format=topojson').get_json()

    assert geojson['type'] == 'FeatureCollection'
    assert topology['type'] == 'Topology'
    assert executor.call_count == 2


def test_archive(client, executor):
    response = client.get(f'{API}/aggregates/archive?start_time=1984-01-02T03:04:05Z&blocks=3')

    assert response.status_code == 200
    blocks = response.get_json()['blocks']
    assert [block['start_time'] for block in blocks] == [
        '1984-01-02T03:04:05.000Z',
        '1984-01-02T04:04:05.000Z',
        '1984-01-02T05:04:05.000Z',
    ]
    assert executor.call_count == 3
    assert all('FROM jkt_rw_boundary AS p' in query for query, _ in executor.calls)


def test_archive_defaults_to_six_blocks(client, executor):
    response = client.get(f'{API}/aggregates/archive')
    assert len(response.get_json()['blocks']) == 6


def test_archive_is_not_cached(client, executor):
    client.get(f'{API}/aggregates/archive?start_time=1984-01-02T03:04:05Z&blocks=1')
    client.get(f'{API}/aggregates/archive?start_time=1984-01-02T03:04:05Z&blocks=1')
    assert executor.call_count == 2


@pytest.mark.parametrize('query, field', [
    ('start_time=03:04:05PM%20Jan%202nd%201984%20UST', 'start_time'),
    ('start_time=2999-01-01T00:00:00Z', 'start_time'),
    ('start_time=1984-01-02T03:04:05Z&blocks=25', 'blocks'),
    ('start_time=1984-01-02T03:04:05Z&blocks=0', 'blocks'),
    ('start_time=1984-01-02T03:04:05Z&blocks=many', 'blocks'),
])
def test_archive_rejects_invalid_parameters(client, executor, query, field):
    response = client.get(f'{API}/aggregates/archive?{query}')

    assert response.status_code == 400
    assert f"'{field}' parameter is not valid" in response.get_json()['error']
    assert executor.call_count == 0


def test_archive_error_returns_no_partial_series(client, executor):
    executor.queue([area_row(1, 1)], DatabaseError(DatabaseErrorKind.QUERY_FAILED))
    response = client.get(f'{API}/aggregates/archive?start_time=1984-01-02T03:04:05Z&blocks=3')

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Database query error'}
    assert executor.call_count == 2


def test_database_errors_are_not_cached(client, executor):
    executor.queue(DatabaseError(DatabaseErrorKind.CONNECTION_FAILED), [area_row(1, 2)])

    failed = client.get(f'{API}/aggregates/live')
    succeeded = client.get(f'{API}/aggregates/live')

    assert failed.status_code == 500
    assert failed.get_json() == {'error': 'Database connection error'}
    assert succeeded.status_code == 200


def test_legacy_empty_response_on_error():
    class LegacyConfig(TestingConfig):
        EMPTY_RESPONSE_ON_ERROR = True

    executor = MockExecutor(DatabaseError(DatabaseErrorKind.QUERY_FAILED))
    client = create_app(LegacyConfig, executor=executor).test_client()
    response = client.get(f'{API}/reports/unconfirmed')

    assert response.status_code == 204
    assert response.data == b''


def test_reports(client, executor):
    executor.queue([{'pkey': 3, 'geometry': '{"type":"Point","coordinates":[0,0]}'}])
    data = client.get(f'{API}/reports/unconfirmed').get_json()
    assert data['features'][0]['properties'] == {'pkey': 3}


def test_reports_count(client, executor):
    executor.queue([{'uc_count': 12, 'c_count': 4}])
    response = client.get(f'{API}/reports/count?hours=6')

    assert response.get_json() == {'uc_count': 12, 'c_count': 4}
    start, end = executor.calls[0][1]
    assert end - start == 21600


def test_reports_timeseries(client, executor):
    executor.queue([{'stamp': 0, 'c_count': 1, 'uc_count': 2}])
    response = client.get(f'{API}/reports/timeseries')
    assert response.get_json() == [{'stamp': '07:00', 'c_count': 1, 'uc_count': 2}]


def test_infrastructure_is_cached_permanently(app, client, executor):
    executor.queue([{'name': 'Kali 1', 'geometry': '{"type":"LineString","coordinates":[[0,0],[1,1]]}'}])

    first = client.get(f'{API}/infrastructure/waterways')
    cache = app.extensions['cognicity_cache']
    cache._clock = lambda: 10 ** 12
    second = client.get(f'{API}/infrastructure/waterways')

    assert first.get_json() == second.get_json()
    assert first.get_json()['features'][0]['properties'] == {'name': 'Kali 1'}
    assert executor.call_count == 1


def test_unknown_formats_share_the_geojson_entry(app, client, executor):
    executor.queue([{'name': 'Pump 1', 'geometry': '{"type":"Point","coordinates":[0,0]}'}])

    responses = [client.get(f'{API}/infrastructure/pumps?format=x{i}') for i in range(5)]
    plain = client.get(f'{API}/infrastructure/pumps')

    assert all(r.get_json() == plain.get_json() for r in responses)
    assert plain.get_json()['type'] == 'FeatureCollection'
    assert len(app.extensions['cognicity_cache']) == 1
    assert executor.call_count == 1


def test_unknown_infrastructure(client, executor):
    response = client.get(f'{API}/infrastructure/bridges')
    assert response.status_code == 400
    assert executor.call_count == 0


def test_cors_headers_on_data_routes(client):
    response = client.get(f'{API}/reports/confirmed', headers={'Origin': 'http://example.com'})
    # Older flask-cors answers '*', newer releases echo the request origin
    assert response.headers['Access-Control-Allow-Origin'] in ('*', 'http://example.com')


def test_aggregate_routes_can_be_disabled(executor):
    class NoAggregatesConfig(TestingConfig):
        AGGREGATE_ROUTES = False

    client = create_app(NoAggregatesConfig, executor=executor).test_client()

    assert client.get(f'{API}/aggregates/live').status_code == 404
    assert client.get(f'{API}/aggregates/archive').status_code == 404
    assert client.get(f'{API}/reports/confirmed').status_code == 200
    assert executor.call_count == 1


def test_data_routes_can_be_disabled(executor):
    class NoDataConfig(TestingConfig):
        DATA_ROUTES = False

    client = create_app(NoDataConfig, executor=executor).test_client()
    assert client.get(f'{API}/reports/confirmed').status_code == 404
    assert executor.call_count == 0
