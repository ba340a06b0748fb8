import pytest

from gastro_soc.errors import NotFoundError, ValidationError
from gastro_soc.models.entities import PaymentMethod, TransactionCategory


def test_balances_from_default_data(container):
    transactions = container.transaction_service
    assert transactions.projected_balance() == pytest.approx(1164.80)
    assert transactions.confirmed_balance() == pytest.approx(1250.00)


def test_append_and_reconcile(container, treasurer):
    transactions = container.transaction_service
    txn = transactions.append(treasurer, {
        'description': 'Recibo Auga', 'amount': -40, 'category': 'Suministros (Luz/Agua/Internet)',
        'paymentMethod': 'Transferencia', 'date': '2025-02-20',
    })
    assert txn.id.startswith('TR-')
    assert txn.payment_method == PaymentMethod.TRANSFERENCIA
    assert transactions.projected_balance() == pytest.approx(1124.80)
    assert transactions.confirmed_balance() == pytest.approx(1250.00)

    transactions.toggle_reconciled(treasurer, txn.id)
    assert transactions.confirmed_balance() == pytest.approx(1210.00)
    transactions.toggle_reconciled(treasurer, txn.id)
    assert transactions.confirmed_balance() == pytest.approx(1250.00)


def test_closed_category_list(container, treasurer):
    with pytest.raises(ValidationError):
        container.transaction_service.append(treasurer, {
            'description': 'Lotería', 'amount': 100, 'category': 'Premios',
        })


def test_append_requires_description(container, treasurer):
    with pytest.raises(ValidationError):
        container.transaction_service.append(treasurer, {'description': '', 'amount': 5, 'category': 'Otros'})


def test_non_finite_amount_rejected(container, treasurer):
    transactions = container.transaction_service
    for amount in ('nan', 'inf', float('-inf')):
        with pytest.raises(ValidationError):
            transactions.append(treasurer, {'description': 'Erro', 'amount': amount, 'category': 'Otros'})
    assert len(container.state.transactions) == 3
    assert transactions.projected_balance() == pytest.approx(1164.80)


def test_update_replaces_whole_record(container, treasurer):
    transactions = container.transaction_service
    replacement = transactions.update(treasurer, 'TR-003', {
        'description': 'Recibo Luz Enero (corrixido)', 'amount': -90.0,
        'category': 'Suministros (Luz/Agua/Internet)', 'date': '2025-02-01', 'isReconciled': True,
    })
    assert replacement.id == 'TR-003'
    assert transactions.get('TR-003').amount == -90.0
    assert transactions.confirmed_balance() == pytest.approx(1160.00)


def test_update_unknown_transaction(container, treasurer):
    with pytest.raises(NotFoundError):
        container.transaction_service.update(treasurer, 'TR-999', {
            'description': 'Nada', 'amount': 1, 'category': 'Otros',
        })


def test_monthly_totals_and_filters(container):
    transactions = container.transaction_service
    totals = transactions.monthly_totals()
    assert list(totals) == ['2025-01', '2025-02']
    assert totals['2025-01'] == {'income': 1500.0, 'expense': 250.0, 'net': 1250.0}
    assert totals['2025-02']['expense'] == pytest.approx(85.2)

    january = transactions.list_transactions(month='2025-01')
    assert [t.id for t in january] == ['TR-002', 'TR-001']
    supplies = transactions.list_transactions(category=TransactionCategory.SUMINISTROS.value)
    assert [t.id for t in supplies] == ['TR-003']


def test_summary(container):
    summary = container.transaction_service.summary()
    assert summary['pending_reconciliation'] == 1
    assert summary['pending_amount'] == pytest.approx(-85.2)


def test_monthly_fee_charge(container, treasurer):
    txn = container.member_service.charge_monthly_fee(treasurer, 'SOC-003', 'Bizum', month='2025-03')
    assert txn.amount == 30.0
    assert txn.category == TransactionCategory.CUOTA
    assert txn.related_member_id == 'SOC-003'
    assert txn.description == 'Cuota 2025-03: Iago Montes'
