import pytest
from werkzeug.security import generate_password_hash

from fieldsurvey import create_app
from fieldsurvey.config import TestConfig
from fieldsurvey.extensions import db
from fieldsurvey.models import Administrador, Empresa, Pesquisador

PASSWORD = 'passw0rd-Test!'


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    """For tests that call the services directly (no HTTP requests inside)."""
    with app.app_context():
        yield app


def _insert(app, row) -> str:
    with app.app_context():
        db.session.add(row)
        db.session.commit()
        return row.id


@pytest.fixture()
def make_admin(app):
    def _make(email='root@test.local', name='Root'):
        return _insert(app, Administrador(nome=name, email=email, esta_ativo=True,
                                          senha_hash=generate_password_hash(PASSWORD)))
    return _make


@pytest.fixture()
def make_company(app):
    def _make(name='ACME', email='acme@test.local', active=True):
        return _insert(app, Empresa(nome=name, email_contato=email, esta_ativa=active,
                                    senha_hash=generate_password_hash(PASSWORD)))
    return _make


@pytest.fixture()
def make_researcher(app):
    def _make(name='Rita', email='rita@test.local', active=True):
        return _insert(app, Pesquisador(nome=name, email=email, esta_ativo=active,
                                        senha_hash=generate_password_hash(PASSWORD)))
    return _make


@pytest.fixture()
def login(client):
    def _login(email, role=None, password=PASSWORD):
        resp = client.post('/auth/login', json={'email': email, 'password': password, 'role': role})
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()
    return _login
