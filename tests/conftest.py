import pytest

from cognicity_server import create_app
from cognicity_server.config import TestingConfig
from cognicity_server.db import Database


class MockExecutor:
    """Stands in for the database: records every call, replays queued results.

    A queued Exception instance is raised instead of returned. With nothing
    queued an empty row list is returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def execute(self, query_text, parameters=()):
        self.calls.append((query_text, list(parameters)))
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def call_count(self):
        return len(self.calls)


def area_row(pkey, count, name=None):
    return {
        'pkey': pkey,
        'area_name': name or f'RW {pkey:03d}',
        'geometry': '{"type":"Polygon","coordinates":[[[0,0],[1,0],[1,1],[0,1],[0,0]]]}',
        'count': count,
    }


@pytest.fixture
def executor():
    return MockExecutor()


@pytest.fixture
def config():
    return {key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()}


@pytest.fixture
def app(executor):
    app = create_app(TestingConfig, executor=executor)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def reset_database():
    Database.reset()
    yield
    Database.reset()
