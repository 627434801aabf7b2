import pytest

from app import app as flask_app
from forum_db import init_database, get_db


@pytest.fixture
def app(tmp_path):
    db_path = str(tmp_path / 'linkboard-test.db')
    flask_app.config.update(TESTING=True, DATABASE=db_path, SECRET_KEY='test-secret')
    init_database(db_path)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def count_rows(app):
    def count(table):
        with app.app_context():
            return get_db().execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    return count
