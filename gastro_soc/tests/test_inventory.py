import pytest

from gastro_soc.errors import InsufficientStockError, NotFoundError, PermissionDeniedError, ValidationError
from gastro_soc.models.entities import TransactionCategory


def test_withdraw_and_restore(container):
    inventory = container.inventory_service
    product = inventory.withdraw('PROD-001', 8)
    assert product.current_stock == 40
    inventory.restore('PROD-001', 3)
    assert container.state.get_product('PROD-001').current_stock == 43


def test_withdraw_more_than_stock_changes_nothing(container):
    with pytest.raises(InsufficientStockError) as exc_info:
        container.inventory_service.withdraw('PROD-003', 6)
    assert exc_info.value.details == {'product_id': 'PROD-003', 'requested': 6, 'available': 5}
    assert container.state.get_product('PROD-003').current_stock == 5


def test_restore_of_missing_product_is_ignored(container):
    assert container.inventory_service.restore('PROD-999', 2) is None


def test_invalid_quantity_rejected(container, president):
    with pytest.raises(ValidationError):
        container.inventory_service.decrement_stock(president, 'PROD-001', 0)
    with pytest.raises(ValidationError):
        container.inventory_service.increment_stock(president, 'PROD-001', 'muchas')
    with pytest.raises(ValidationError):
        container.inventory_service.increment_stock(president, 'PROD-001', 2.5)
    container.inventory_service.increment_stock(president, 'PROD-001', 2.0)
    assert container.state.get_product('PROD-001').current_stock == 50


def test_increment_unknown_product(container, president):
    with pytest.raises(NotFoundError):
        container.inventory_service.increment_stock(president, 'PROD-999', 1)


def test_audit_records_variance(container, president):
    before = len(container.state.transactions)
    variance = container.inventory_service.apply_audit(president, 'PROD-001', 45)

    product = container.state.get_product('PROD-001')
    assert variance == -3
    assert product.current_stock == 45
    assert product.last_audit_date is not None

    adjustment = container.state.transactions[-1]
    assert len(container.state.transactions) == before + 1
    assert adjustment.amount == pytest.approx(-2.4)
    assert adjustment.category == TransactionCategory.OTROS


def test_audit_without_variance_records_nothing(container, president):
    before = len(container.state.transactions)
    assert container.inventory_service.apply_audit(president, 'PROD-004', 20) == 0
    assert len(container.state.transactions) == before


def test_shrinkage_floors_at_zero(container, president):
    product, txn = container.inventory_service.apply_shrinkage(president, 'PROD-003', 7, 'caducado')
    assert product.current_stock == 0
    assert txn.amount == pytest.approx(-84.0)
    assert 'caducado' in txn.description


def test_purchase_updates_cost_and_records_expense(container, president):
    product, txn = container.inventory_service.register_purchase(
        president, 'PROD-002', 6, unit_cost=5.0
    )
    assert product.current_stock == 18
    assert product.cost_price == 5.0
    assert txn.amount == pytest.approx(-30.0)
    assert txn.category == TransactionCategory.COMPRA_INSUMOS


def test_save_product_creates_and_edits(container, president):
    inventory = container.inventory_service
    created = inventory.save_product(president, {
        'name': 'Queixo Tetilla', 'category': 'Alimento', 'unit': 'Peza',
        'currentStock': 4, 'minStock': 2, 'costPrice': 6.5, 'salePrice': 9.0,
    })
    assert created.id.startswith('PROD-')
    assert inventory.get_product(created.id).name == 'Queixo Tetilla'

    data = created.to_dict()
    data['salePrice'] = 10.0
    edited = inventory.save_product(president, data)
    assert inventory.get_product(created.id).sale_price == 10.0
    assert edited.id == created.id


def test_save_product_rejects_unknown_category(container, president):
    with pytest.raises(ValidationError):
        container.inventory_service.save_product(president, {'name': 'X', 'category': 'Juguetes'})


def test_deactivated_products_hidden_from_list(container, president):
    inventory = container.inventory_service
    inventory.deactivate_product(president, 'PROD-004')
    ids = [p.id for p in inventory.list_products()]
    assert 'PROD-004' not in ids
    assert 'PROD-004' in [p.id for p in inventory.list_products(include_inactive=True)]


def test_low_stock_products(container):
    container.state.get_product('PROD-003').current_stock = 2
    assert [p.id for p in container.inventory_service.low_stock_products()] == ['PROD-003']


def test_stock_level_thresholds(container):
    product = container.state.get_product('PROD-003')
    assert product.stock_level() == 'ok'
    product.current_stock = 2
    assert product.stock_level() == 'bajo'
    product.current_stock = 1
    assert product.stock_level() == 'emergencia'


def test_save_product_rejects_non_finite_price(container, president):
    with pytest.raises(ValidationError):
        container.inventory_service.save_product(president, {'name': 'X', 'salePrice': 'nan'})


def test_user_role_cannot_manage_inventory(container, president):
    usuaria = container.member_service.save_member(president, {
        'fullName': 'Invitada Usuaria', 'phone': '600009999', 'role': 'Usuaria',
    })
    container.permission_service.update_role_permissions(president, 'Usuaria', {'manage_inventory': False})
    with pytest.raises(PermissionDeniedError):
        container.inventory_service.increment_stock(usuaria, 'PROD-001', 5)
    assert container.state.get_product('PROD-001').current_stock == 48


def test_stock_changes_are_persisted(container, president):
    container.inventory_service.decrement_stock(president, 'PROD-001', 10)
    rows = container.store.read_all('inventory')
    row = next(r for r in rows if r['id'] == 'PROD-001')
    assert row['currentStock'] == 38
