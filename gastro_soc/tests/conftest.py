import pytest

from gastro_soc.app_container import AppContainer
from gastro_soc.main import create_app

# Fecha sin reservas en los datos por defecto
FUTURE_DATE = '2030-06-20'


@pytest.fixture
def container(tmp_path):
    AppContainer.reset_instance()
    c = AppContainer(
        data_dir=str(tmp_path),
        database_url='',
        sync_mode='immediate',
        poll_interval=0,
    )
    c.start(listen=False)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def president(container):
    return container.state.get_member('SOC-001')


@pytest.fixture
def treasurer(container):
    return container.state.get_member('SOC-002')


@pytest.fixture
def socia(container):
    return container.state.get_member('SOC-003')


@pytest.fixture
def app(container):
    flask_app = create_app(container)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def login(client, pin):
    """Inicia sesión con PIN y devuelve el token CSRF de la sesión."""
    token = client.get('/api/session').get_json()['csrf_token']
    r = client.post('/api/login', json={'pin': pin}, headers={'X-CSRF-Token': token})
    assert r.status_code == 200, r.get_json()
    return r.get_json()['csrf_token']
