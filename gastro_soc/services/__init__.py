# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Toda regla del club vive aquí; las rutas solo traducen petición → service
# → respuesta.
#
# PRINCIPIOS:
# 1. Cada operación que modifica el estado recibe la socia que actúa y
#    pasa por PermissionService.require() antes de tocar nada
# 2. Se muta ClubState primero y después se replica con StoreMirror
# 3. Los errores son excepciones tipadas (gastro_soc.errors)
#
# ESTRUCTURA:
# ├── permission_service.py  → Puerta de permisos por rol
# ├── inventory_service.py   → Economato: stock, recuentos, mermas, compras
# ├── consumption_service.py → Consumos de eventos y total
# ├── event_service.py       → Reservas, liquidación, cancelación
# ├── transaction_service.py → Tesorería y saldos
# ├── member_service.py      → Socias, PIN, cuotas
# ├── message_service.py     → Tablón y avisos
# ├── settings_service.py    → Espacios y roles
# ├── stats_service.py       → Panel principal
# ├── audit_service.py       → Registro de actividad
# └── sync_service.py        → Carga, réplica y recarga del almacén
# ==============================================================================

from .audit_service import AuditService
from .permission_service import PermissionService, can
from .transaction_service import TransactionService
from .inventory_service import InventoryService
from .consumption_service import ConsumptionService, recompute_total
from .event_service import EventService
from .member_service import MemberService
from .message_service import MessageService
from .settings_service import SettingsService
from .stats_service import StatsService
from .sync_service import StoreMirror, SyncService, reconcile

__all__ = [
    'AuditService',
    'PermissionService',
    'can',
    'TransactionService',
    'InventoryService',
    'ConsumptionService',
    'recompute_total',
    'EventService',
    'MemberService',
    'MessageService',
    'SettingsService',
    'StatsService',
    'StoreMirror',
    'SyncService',
    'reconcile',
]
