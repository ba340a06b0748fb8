import os

import pytest

from gastro_soc import performance_logger


@pytest.fixture
def logs_dir(tmp_path, monkeypatch):
    folder = str(tmp_path / 'logs')
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    monkeypatch.setattr(performance_logger, 'LOGS_DIR', folder)
    for attr, filename in (('PERFORMANCE_LOG', 'performance.log'),
                           ('SLOW_ROUTES_LOG', 'slow_routes.log'),
                           ('SLOW_FUNCTIONS_LOG', 'slow_functions.log')):
        monkeypatch.setattr(performance_logger, attr, os.path.join(folder, filename))
    return folder


def _read(path):
    with open(path, encoding='utf-8') as f:
        return f.read()


def test_route_uses_readable_name(logs_dir, monkeypatch):
    monkeypatch.setattr(performance_logger, 'THRESHOLD_WARNING', 10_000)
    monkeypatch.setattr(performance_logger, 'THRESHOLD_CRITICAL', 20_000)
    performance_logger.log_route('POST', '/api/events/EV-001/settle',
                                 '/api/events/<event_id>/settle', 12, 'SOC-002')
    content = _read(os.path.join(logs_dir, 'performance.log'))
    assert 'Liquidar evento' in content
    assert 'socia=SOC-002' in content
    assert not os.path.exists(os.path.join(logs_dir, 'slow_routes.log'))


def test_slow_route_logged_as_critical(logs_dir):
    performance_logger.log_route('GET', '/api/audit', None, 900)
    content = _read(os.path.join(logs_dir, 'slow_routes.log'))
    assert '[CRITICAL]' in content
    assert 'Ver registro de actividad' in content
    assert 'Socia: anónima' in content


def test_slow_function_logged(logs_dir, monkeypatch):
    monkeypatch.setattr(performance_logger, 'THRESHOLD_WARNING', 0)

    @performance_logger.profile_function(name="Recarga de prueba")
    def reload():
        return 'ok'

    assert reload() == 'ok'
    assert 'Función: Recarga de prueba' in _read(os.path.join(logs_dir, 'slow_functions.log'))


def test_profiling_disabled_returns_function_untouched(monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', False)

    def load():
        return 1

    assert performance_logger.profile_function(load) is load
