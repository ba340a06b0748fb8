import pytest

from gastro_soc.errors import AuthenticationError, PermissionDeniedError, ValidationError
from gastro_soc.models.entities import PaymentStatus
from gastro_soc.services import can


def test_board_and_member_capabilities(container, president, socia):
    permissions = container.permission_service
    assert permissions.can(president, 'manage_finance')
    assert permissions.can(socia, 'manage_events')
    assert not permissions.can(socia, 'manage_finance')
    assert not permissions.can(socia, 'view_sensitive_data')


def test_fails_closed(container, president):
    assert not container.permission_service.can(None, 'manage_events')
    assert not container.permission_service.can(president, 'launch_rockets')
    assert not can([], president, 'manage_events')


def test_socia_cannot_settle(container, socia):
    before = len(container.state.transactions)
    with pytest.raises(PermissionDeniedError) as exc_info:
        container.event_service.settle(socia, 'EV-001')
    assert exc_info.value.capability == 'manage_finance'
    assert container.state.get_event('EV-001').payment_status == PaymentStatus.PENDIENTE
    assert len(container.state.transactions) == before


def test_socia_cannot_touch_treasury_or_members(container, socia):
    with pytest.raises(PermissionDeniedError):
        container.transaction_service.append(socia, {'description': 'X', 'amount': 1, 'category': 'Otros'})
    with pytest.raises(PermissionDeniedError):
        container.member_service.set_status(socia, 'SOC-004', 'Inactiva')
    assert container.state.get_member('SOC-004').is_active


def test_granting_capability_takes_effect(container, president, socia):
    container.permission_service.update_role_permissions(president, 'Socia', {'manage_finance': True})
    event, _ = container.event_service.settle(socia, 'EV-001')
    assert event.is_paid
    row = next(r for r in container.store.read_all('roleDefinitions') if r['id'] == 'Socia')
    assert row['permissions']['manage_finance'] is True


def test_role_update_rejects_unknown_capability(container, president):
    with pytest.raises(ValidationError):
        container.permission_service.update_role_permissions(president, 'Socia', {'fly': True})


def test_role_update_needs_manage_settings(container, socia):
    with pytest.raises(PermissionDeniedError):
        container.permission_service.update_role_permissions(socia, 'Socia', {'manage_finance': True})


# =========================================================================
# SOCIAS
# =========================================================================

def test_pin_login(container):
    members = container.member_service
    assert members.authenticate_pin('0628').id == 'SOC-001'
    with pytest.raises(AuthenticationError):
        members.authenticate_pin('123')
    with pytest.raises(AuthenticationError):
        members.authenticate_pin('9999')


def test_inactive_member_cannot_log_in(container, president):
    container.member_service.set_status(president, 'SOC-003', 'Inactiva')
    with pytest.raises(AuthenticationError):
        container.member_service.authenticate_pin('3333')


def test_sensitive_fields_hidden(container, president, socia):
    members = container.member_service
    other = members.member_view(socia, container.state.get_member('SOC-002'))
    assert 'iban' not in other and 'dni' not in other and 'pin' not in other
    own = members.member_view(socia, socia)
    assert own['pin'] == '3333'
    full = members.member_view(president, socia)
    assert full['dni'] == '11223344C'


def test_new_member_gets_next_id_and_phone_pin(container, president):
    member = container.member_service.save_member(president, {
        'fullName': 'Uxía Castro', 'phone': '611 22 55 77', 'role': 'Socia',
    })
    assert member.id == 'SOC-005'
    assert member.pin == '5577'


def test_duplicate_pin_rejected(container, president):
    with pytest.raises(ValidationError):
        container.member_service.save_member(president, {
            'fullName': 'Copia', 'phone': '699990628', 'role': 'Socia',
        })


def test_cannot_delete_self(container, president):
    with pytest.raises(ValidationError):
        container.member_service.delete_member(president, 'SOC-001')


def test_fee_rejected_for_inactive_member(container, president):
    container.member_service.set_status(president, 'SOC-004', 'Inactiva')
    with pytest.raises(ValidationError):
        container.member_service.charge_monthly_fee(president, 'SOC-004')
