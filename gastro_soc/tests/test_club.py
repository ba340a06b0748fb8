import pytest

from gastro_soc.errors import NotFoundError, PermissionDeniedError, ValidationError

from .conftest import FUTURE_DATE


def test_message_board(container, socia):
    messages = container.message_service
    assert messages.unread_count() == 1
    sent = messages.send_message(socia, '  Mañá hai reunión  ')
    assert sent.content == 'Mañá hai reunión'
    assert messages.unread_count() == 2
    messages.mark_read('MSG-001')
    assert messages.unread_count() == 1
    with pytest.raises(NotFoundError):
        messages.mark_read('MSG-404')
    with pytest.raises(ValidationError):
        messages.send_message(socia, '   ')


def test_announcements_need_manage_settings(container, president, socia):
    messages = container.message_service
    with pytest.raises(PermissionDeniedError):
        messages.post_announcement(socia, 'Aviso', 'Texto')
    messages.post_announcement(president, 'Asemblea', 'Xoves ás 20:00')
    assert [a.title for a in messages.list_announcements()] == ['Asemblea']


def test_locations(container, president, socia):
    settings = container.settings_service
    with pytest.raises(PermissionDeniedError):
        settings.save_location(socia, {'name': 'Bodega', 'capacity': 6})
    location = settings.save_location(president, {'name': 'Bodega', 'capacity': 6})
    event = container.event_service.create_event(president, 'Cata', FUTURE_DATE, location.id)
    assert event.zone_id == location.id

    settings.save_location(president, {'id': 'LOC-004', 'name': 'Sala de Xuntas', 'capacity': 10})
    assert container.state.get_location('LOC-004').capacity == 10
    with pytest.raises(ValidationError):
        settings.save_location(president, {'name': 'Patio', 'capacity': -1})


def test_dashboard_counts(container, president):
    container.state.get_product('PROD-003').current_stock = 1
    container.event_service.create_event(president, 'Futura', FUTURE_DATE, 'LOC-001')
    data = container.stats_service.dashboard(president, today='2030-01-01')
    assert data['critical_stock'] == 1
    assert [e['title'] for e in data['upcoming_events']] == ['Futura']
    assert len(data['pending_payment_events']) == 2
    assert data['monthly_trend'][0]['month'] == '2025-01'


def test_activity_is_logged(container, president):
    container.event_service.settle(president, 'EV-001')
    logs = container.audit_service.get_recent(10)
    types = [log['type'] for log in logs]
    assert 'PAGO' in types
    assert container.audit_service.search('EV-001')
