# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del club
# ==============================================================================
# Entidades del dominio como dataclasses, el agregado ClubState y el
# conjunto de datos por defecto. Independiente del almacén (JSON o SQL).
# ==============================================================================

from .entities import (
    # Economato
    Product,
    ProductCategory,

    # Eventos
    Event,
    EventConsumption,
    ConsumptionType,
    EventStatus,
    PaymentStatus,
    PaymentMethod,

    # Tesorería
    Transaction,
    TransactionCategory,

    # Socias y roles
    Member,
    MemberStatus,
    Role,
    RolePermissions,
    RoleDefinition,
    CAPABILITIES,

    # Espacios y mensajes
    Location,
    UserMessage,
    SystemMessage,

    # Auditoría
    AuditLog,

    # Utilidades
    new_id,
    now_iso,
    today_iso,
    money,
)
from .state import ClubState, TABLE_BINDINGS, row_id
from . import defaults

__all__ = [
    'Product',
    'ProductCategory',
    'Event',
    'EventConsumption',
    'ConsumptionType',
    'EventStatus',
    'PaymentStatus',
    'PaymentMethod',
    'Transaction',
    'TransactionCategory',
    'Member',
    'MemberStatus',
    'Role',
    'RolePermissions',
    'RoleDefinition',
    'CAPABILITIES',
    'Location',
    'UserMessage',
    'SystemMessage',
    'AuditLog',
    'new_id',
    'now_iso',
    'today_iso',
    'money',
    'ClubState',
    'TABLE_BINDINGS',
    'row_id',
    'defaults',
]
