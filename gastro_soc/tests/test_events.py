import pytest

from gastro_soc.errors import EventLockedError, NotFoundError, ValidationError, ZoneConflictError
from gastro_soc.models.entities import EventStatus

from .conftest import FUTURE_DATE


def test_create_event_defaults(container, president):
    event = container.event_service.create_event(president, 'Xuntanza', FUTURE_DATE, 'LOC-004', guest_count=3)
    assert event.organizer_id == 'SOC-001'
    assert event.attendee_ids == ['SOC-001']
    assert event.status == EventStatus.PROGRAMADA
    assert event.total_cost == 9.0
    assert container.event_service.get_event(event.id) is event


def test_zone_conflict(container, president):
    with pytest.raises(ZoneConflictError) as exc_info:
        container.event_service.create_event(president, 'Outra cea', '2025-02-15', 'LOC-001')
    assert exc_info.value.details['event_id'] == 'EV-001'

    other = container.event_service.create_event(president, 'Outra cea', '2025-02-15', 'LOC-003')
    assert other.zone_id == 'LOC-003'


def test_cancelled_event_frees_the_zone(container, president):
    container.event_service.cancel(president, 'EV-001')
    event = container.event_service.create_event(president, 'Substituta', '2025-02-15', 'LOC-001')
    assert container.event_service.find_zone_conflict('2025-02-15', 'LOC-001', exclude_id=event.id) is None


def test_unknown_zone_rejected(container, president):
    with pytest.raises(NotFoundError):
        container.event_service.create_event(president, 'Sen sitio', FUTURE_DATE, 'LOC-999')


def test_invalid_date_rejected(container, president):
    with pytest.raises(ValidationError):
        container.event_service.create_event(president, 'Mal', '15/02/2030', 'LOC-001')


def test_update_checks_conflicts_excluding_itself(container, president):
    events = container.event_service
    event = events.create_event(president, 'Merenda', FUTURE_DATE, 'LOC-001')
    updated = events.update_event(president, event.id, {'title': 'Merenda grande', 'guestCount': 1})
    assert updated.title == 'Merenda grande'
    assert updated.total_cost == 3.0

    with pytest.raises(ZoneConflictError):
        events.update_event(president, event.id, {'date': '2025-02-15'})
    assert event.date == FUTURE_DATE


def test_settle_uses_stored_total(container, treasurer):
    event, txn = container.event_service.settle(treasurer, 'EV-001', 'Bizum')
    assert txn.amount == 45.0
    assert txn.description == 'Evento: Cea de Benvida 2025'
    assert event.settled_by == 'SOC-002'
    assert event.payment_method.value == 'Bizum'


def test_settle_cancelled_event_rejected(container, president):
    container.event_service.cancel(president, 'EV-001')
    before = len(container.state.transactions)
    with pytest.raises(EventLockedError):
        container.event_service.settle(president, 'EV-001')
    assert len(container.state.transactions) == before


def test_finalized_event_can_still_be_settled(container, president):
    events = container.event_service
    events.finalize(president, 'EV-001')
    with pytest.raises(EventLockedError):
        events.cancel(president, 'EV-001')
    event, _ = events.settle(president, 'EV-001')
    assert event.status == EventStatus.FINALIZADA
    assert event.is_paid


def test_paid_event_cannot_be_cancelled_or_deleted(container, president):
    events = container.event_service
    events.settle(president, 'EV-001')
    with pytest.raises(EventLockedError):
        events.cancel(president, 'EV-001')
    with pytest.raises(EventLockedError):
        events.delete_event(president, 'EV-001')


def test_delete_event_returns_stock(container, president):
    event = container.event_service.create_event(president, 'Festa', FUTURE_DATE, 'LOC-003')
    container.consumption_service.add_product_consumption(president, event.id, 'PROD-001', 12)
    assert container.state.get_product('PROD-001').current_stock == 36

    container.event_service.delete_event(president, event.id)
    assert container.state.get_product('PROD-001').current_stock == 48
    assert container.event_service.get_event(event.id) is None
    assert all(row['id'] != event.id for row in container.store.read_all('events'))


def test_list_events_filters(container, president):
    container.event_service.create_event(president, 'Futura', FUTURE_DATE, 'LOC-001')
    assert [e.id for e in container.event_service.list_events(status='Programada', date_from='2030-01-01')] \
        == [container.state.events[-1].id]
