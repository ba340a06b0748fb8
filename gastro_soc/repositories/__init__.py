# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Encapsula toda la persistencia. Los services trabajan contra ITableStore,
# así que cambiar el almacén local por el remoto solo toca app_container.py.
#
# ESTRUCTURA:
# ├── interfaces.py          → Protocolos (ITableStore, IAuditRepository)
# ├── base.py                → Base JSON con escritura atómica
# ├── notifier.py            → Suscripciones a cambios por canal
# ├── snapshot_repository.py → SnapshotStore (archivo JSON único)
# ├── sql_store.py           → SqlTableStore (SQLAlchemy)
# └── audit_repository.py    → audit.json
# ==============================================================================

from .interfaces import (
    ALL_TABLES,
    TABLES,
    ITableStore,
    IAuditRepository,
)
from .base import BaseRepository, ListRepository
from .snapshot_repository import SnapshotStore
from .sql_store import SqlTableStore
from .audit_repository import AuditRepository

__all__ = [
    'ALL_TABLES',
    'TABLES',
    'ITableStore',
    'IAuditRepository',
    'BaseRepository',
    'ListRepository',
    'SnapshotStore',
    'SqlTableStore',
    'AuditRepository',
]
