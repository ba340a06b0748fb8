import pytest

from gastro_soc.errors import EventLockedError, InsufficientStockError, NotFoundError, ValidationError
from gastro_soc.models.entities import PaymentStatus, TransactionCategory
from gastro_soc.services import recompute_total

from .conftest import FUTURE_DATE


@pytest.fixture
def event(container, president):
    return container.event_service.create_event(president, 'Cata de viños', FUTURE_DATE, 'LOC-002')


def test_wine_scenario(container, president, event):
    wine = container.state.get_product('PROD-002')
    wine.sale_price = 10.0
    wine.current_stock = 12
    consumptions = container.consumption_service

    line = consumptions.add_product_consumption(president, event.id, 'PROD-002', 4)
    assert wine.current_stock == 8
    assert line.total_cost == 40.0
    assert event.total_cost == 40.0

    consumptions.set_guest_count(president, event.id, 2)
    assert event.total_cost == 46.0

    consumptions.remove_consumption(president, event.id, line.id)
    assert wine.current_stock == 12
    assert event.total_cost == 6.0

    settled, txn = container.event_service.settle(president, event.id, 'Efectivo')
    assert settled.payment_status == PaymentStatus.PAGADA
    assert txn.amount == 6.0
    assert txn.category == TransactionCategory.EVENTO
    assert txn.related_event_id == event.id

    with pytest.raises(EventLockedError):
        container.event_service.settle(president, event.id, 'Efectivo')
    linked = [t for t in container.state.transactions if t.related_event_id == event.id]
    assert len(linked) == 1


def test_line_price_is_copied(container, president, event):
    wine = container.state.get_product('PROD-002')
    line = container.consumption_service.add_product_consumption(president, event.id, 'PROD-002', 2)
    wine.sale_price = 50.0
    assert line.unit_cost == 9.0
    assert recompute_total(event) == 18.0


def test_insufficient_stock_leaves_event_untouched(container, president, event):
    with pytest.raises(InsufficientStockError):
        container.consumption_service.add_product_consumption(president, event.id, 'PROD-003', 6)
    assert container.state.get_product('PROD-003').current_stock == 5
    assert event.consumptions == []
    assert event.total_cost == 0.0


def test_custom_and_service_lines(container, president, event):
    consumptions = container.consumption_service
    consumptions.add_custom_consumption(president, event.id, 'Pan e empanada', '22.50')
    consumptions.add_service_consumption(president, event.id, 'Limpeza', 15)
    assert [c.type.value for c in event.consumptions] == ['custom', 'service']
    assert event.total_cost == 37.5
    assert container.state.get_product('PROD-001').current_stock == 48


def test_custom_line_needs_label(container, president, event):
    with pytest.raises(ValidationError):
        container.consumption_service.add_custom_consumption(president, event.id, '  ', 10)


def test_remove_then_readd_restores_same_state(container, president, event):
    consumptions = container.consumption_service
    first = consumptions.add_product_consumption(president, event.id, 'PROD-001', 6)
    total_after_add = event.total_cost
    consumptions.remove_consumption(president, event.id, first.id)
    consumptions.add_product_consumption(president, event.id, 'PROD-001', 6)
    assert event.total_cost == total_after_add
    assert container.state.get_product('PROD-001').current_stock == 42


def test_remove_line_of_deleted_product(container, president, event):
    consumptions = container.consumption_service
    line = consumptions.add_product_consumption(president, event.id, 'PROD-004', 3)
    container.inventory_service.delete_product(president, 'PROD-004')
    consumptions.remove_consumption(president, event.id, line.id)
    assert container.state.get_product('PROD-004') is None
    assert event.total_cost == 0.0


def test_remove_unknown_line(container, president, event):
    with pytest.raises(NotFoundError):
        container.consumption_service.remove_consumption(president, event.id, 'CONS-NOPE')


def test_paid_event_is_locked(container, president, event):
    consumptions = container.consumption_service
    line = consumptions.add_product_consumption(president, event.id, 'PROD-001', 2)
    container.event_service.settle(president, event.id)

    with pytest.raises(EventLockedError):
        consumptions.add_product_consumption(president, event.id, 'PROD-001', 1)
    with pytest.raises(EventLockedError):
        consumptions.set_guest_count(president, event.id, 4)
    with pytest.raises(EventLockedError):
        consumptions.remove_consumption(president, event.id, line.id)
    assert container.state.get_product('PROD-001').current_stock == 46
    assert [c.id for c in event.consumptions] == [line.id]


def test_inactive_product_rejected(container, president, event):
    container.inventory_service.deactivate_product(president, 'PROD-001')
    with pytest.raises(ValidationError):
        container.consumption_service.add_product_consumption(president, event.id, 'PROD-001', 1)
    assert container.state.get_product('PROD-001').current_stock == 48


def test_fractional_quantity_rejected(container, president, event):
    with pytest.raises(ValidationError):
        container.consumption_service.add_product_consumption(president, event.id, 'PROD-001', 2.9)
    assert event.consumptions == []
    assert container.state.get_product('PROD-001').current_stock == 48


def test_non_finite_custom_amount_rejected(container, president, event):
    with pytest.raises(ValidationError):
        container.consumption_service.add_custom_consumption(president, event.id, 'Pan', 'inf')
    assert event.total_cost == 0.0
