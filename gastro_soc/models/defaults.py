# ==============================================================================
# DATOS POR DEFECTO
# ==============================================================================
# Conjunto inicial del club. Se usa al crear un almacén vacío, para rellenar
# claves ausentes del snapshot y como modo degradado si falla la carga.
# Todas las funciones devuelven copias nuevas.
# ==============================================================================

from typing import Any, Dict, List

from .entities import (
    CAPABILITIES,
    Event,
    Location,
    Member,
    MemberStatus,
    Product,
    ProductCategory,
    Role,
    RoleDefinition,
    RolePermissions,
    SystemMessage,
    Transaction,
    TransactionCategory,
    PaymentMethod,
    EventStatus,
    PaymentStatus,
    UserMessage,
)

_SEDE = 'Sede Social Ghala'
_IBAN = 'ES91 1234 5678 9012 3456 7890'
_JOIN_DATE = '2025-01-01'


def pin_from_phone(phone: str) -> str:
    """PIN por defecto: últimos 4 dígitos del teléfono."""
    digits = ''.join(ch for ch in (phone or '') if ch.isdigit())
    return digits[-4:]


def avatar_url(full_name: str) -> str:
    return f"https://ui-avatars.com/api/?name={full_name.replace(' ', '+')}&background=random"


def default_locations() -> List[Location]:
    return [
        Location('LOC-001', 'Comedor Principal', 40),
        Location('LOC-002', 'Txoko (Cocina)', 10),
        Location('LOC-003', 'Terraza Jardín', 25),
        Location('LOC-004', 'Sala de Juntas', 8),
    ]


def default_role_definitions() -> List[RoleDefinition]:
    """La junta tiene todos los permisos; socias y usuarias solo eventos y economato."""
    board = {cap: True for cap in CAPABILITIES}
    basic = {'manage_events': True, 'manage_inventory': True}
    return [
        RoleDefinition(Role.PRESIDENT, 'Presidenta', RolePermissions(**board)),
        RoleDefinition(Role.TREASURER, 'Tesorera', RolePermissions(**board)),
        RoleDefinition(Role.SECRETARY, 'Secretaria', RolePermissions(**board)),
        RoleDefinition(Role.MEMBER, 'Socia', RolePermissions(**basic)),
        RoleDefinition(Role.USER, 'Usuaria', RolePermissions(**basic)),
    ]


def _member(member_id, full_name, dni, phone, role, email=None) -> Member:
    return Member(
        id=member_id,
        full_name=full_name,
        role=role,
        pin=pin_from_phone(phone),
        dni=dni,
        email=email or f"{member_id.lower()}@ghala.org",
        phone=phone,
        address=_SEDE,
        iban=_IBAN,
        status=MemberStatus.ACTIVE,
        join_date=_JOIN_DATE,
        avatar_url=avatar_url(full_name),
        documents_signed={'statutes': True, 'paymentCommitment': True, 'date': _JOIN_DATE},
    )


def default_members() -> List[Member]:
    return [
        _member('SOC-001', 'Anxo Bernárdez (Presidente)', '12345678A', '600000628',
                Role.PRESIDENT, email='anxo@ghala.org'),
        _member('SOC-002', 'Sabela Rey (Tesourería)', '87654321B', '600002222', Role.TREASURER),
        _member('SOC-003', 'Iago Montes', '11223344C', '600003333', Role.MEMBER),
        _member('SOC-004', 'Socia Demo 1', '44332211D', '600004444', Role.MEMBER),
    ]


def default_inventory() -> List[Product]:
    return [
        Product('PROD-001', 'Estrella Galicia 0,33l', ProductCategory.BEBIDA, 'Botella',
                48, 24, 12, 0.8, 1.5, 'Distribuciones Rías Baixas'),
        Product('PROD-002', 'Viño Branco Albariño', ProductCategory.BEBIDA, 'Botella',
                12, 6, 3, 4.5, 9.0, 'Adega Local'),
        Product('PROD-003', 'Café en Grán 1kg', ProductCategory.ALIMENTO, 'Paquete',
                5, 2, 1, 12.0, 15.0, 'Tostadeiro Galego'),
        Product('PROD-004', 'Auga Mineral 0,5l', ProductCategory.BEBIDA, 'Botella',
                20, 10, 5, 0.3, 1.0, 'Mondariz'),
    ]


def default_events() -> List[Event]:
    return [
        Event(
            id='EV-001',
            title='Cea de Benvida 2025',
            date='2025-02-15',
            zone_id='LOC-001',
            organizer_id='SOC-001',
            attendee_ids=['SOC-001', 'SOC-002', 'SOC-003'],
            attendees=15,
            guest_count=5,
            status=EventStatus.PROGRAMADA,
            total_cost=45.0,
            payment_status=PaymentStatus.PENDIENTE,
            payment_method=PaymentMethod.EFECTIVO,
        ),
    ]


def default_transactions() -> List[Transaction]:
    return [
        Transaction('TR-001', '2025-01-01', 'Fondo Inicial Irmandade', 1500.0,
                    TransactionCategory.OTROS, is_reconciled=True,
                    payment_method=PaymentMethod.EFECTIVO),
        Transaction('TR-002', '2025-01-15', 'Compra Bebidas Distribuidor', -250.0,
                    TransactionCategory.COMPRA_INSUMOS, is_reconciled=True,
                    payment_method=PaymentMethod.TRANSFERENCIA),
        Transaction('TR-003', '2025-02-01', 'Recibo Luz Enero', -85.20,
                    TransactionCategory.SUMINISTROS, is_reconciled=False,
                    payment_method=PaymentMethod.TRANSFERENCIA),
    ]


def default_user_messages() -> List[UserMessage]:
    return [
        UserMessage('MSG-001', 'SOC-002',
                    'Boas a todas! Alguén sabe onde quedou a chave da bodega?',
                    '2025-02-10T10:00:00+00:00', is_read=False),
        UserMessage('MSG-002', 'SOC-001',
                    'Está colgada detrás da porta da cociña, Sabela.',
                    '2025-02-10T10:15:00+00:00', is_read=True),
    ]


def default_system_messages() -> List[SystemMessage]:
    return []


def default_snapshot() -> Dict[str, List[Dict[str, Any]]]:
    """Snapshot completo con el formato persistido (claves camelCase)."""
    return {
        'members': [m.to_dict() for m in default_members()],
        'inventory': [p.to_dict() for p in default_inventory()],
        'events': [e.to_dict() for e in default_events()],
        'transactions': [t.to_dict() for t in default_transactions()],
        'locations': [loc.to_dict() for loc in default_locations()],
        'roleDefinitions': [r.to_dict() for r in default_role_definitions()],
        'systemMessages': [s.to_dict() for s in default_system_messages()],
        'userMessages': [m.to_dict() for m in default_user_messages()],
    }
