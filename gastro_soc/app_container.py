# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se decide qué almacén se usa y cómo se conectan los
# services. Facilita:
#   - Inyección de dependencias
#   - Testing (contenedor sobre una carpeta temporal y réplica inmediata)
#   - Cambiar de almacén sin tocar los services
#
# ═══════════════════════════════════════════════════════════════════════════════
# ELECCIÓN DEL ALMACÉN
# ═══════════════════════════════════════════════════════════════════════════════
#
#   GASTRO_DATABASE_URL definida  → SqlTableStore (SQLAlchemy)
#   sin definir                   → SnapshotStore (<DATA_DIR>/gastro_soc_v12_stable.json)
#
# Si la base de datos no responde al arrancar se usa el snapshot local y el
# estado queda marcado como degradado.
# ==============================================================================

import atexit
import os
from typing import Optional

from . import config
from .errors import PersistenceError
from .models.state import ClubState

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS
# ═══════════════════════════════════════════════════════════════════════════════
from .repositories import (
    AuditRepository,
    SnapshotStore,
    SqlTableStore,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS
# ═══════════════════════════════════════════════════════════════════════════════
from .services import (
    AuditService,
    ConsumptionService,
    EventService,
    InventoryService,
    MemberService,
    MessageService,
    PermissionService,
    SettingsService,
    StatsService,
    StoreMirror,
    SyncService,
    TransactionService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de estado, almacén y services.

    Uso:
        container = AppContainer(data_dir='/srv/gastro')
        container.start()
        container.event_service.settle(actor, 'EV-001', 'Efectivo')
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, *args, **kwargs):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None, database_url: str = None, sync_mode: str = None,
                 poll_interval: float = None):
        """
        Args:
            data_dir: Carpeta de datos (snapshot, audit.json, logs/)
            database_url: URL SQLAlchemy; vacía = snapshot local
            sync_mode: 'immediate' | 'deferred'
            poll_interval: Segundos entre sondeos de cambios externos (0 = off)
        """
        if self._initialized:
            return

        self.data_dir = data_dir or config.DATA_DIR
        self.database_url = config.DATABASE_URL if database_url is None else database_url
        self.sync_mode = sync_mode or config.SYNC_MODE
        self.poll_interval = config.SYNC_POLL_INTERVAL if poll_interval is None else poll_interval

        self._state: Optional[ClubState] = None
        self._store = None
        self._store_degraded = False
        self._mirror: Optional[StoreMirror] = None
        self._audit_repo: Optional[AuditRepository] = None

        self._audit_service: Optional[AuditService] = None
        self._permission_service: Optional[PermissionService] = None
        self._transaction_service: Optional[TransactionService] = None
        self._inventory_service: Optional[InventoryService] = None
        self._consumption_service: Optional[ConsumptionService] = None
        self._event_service: Optional[EventService] = None
        self._member_service: Optional[MemberService] = None
        self._message_service: Optional[MessageService] = None
        self._settings_service: Optional[SettingsService] = None
        self._stats_service: Optional[StatsService] = None
        self._sync_service: Optional[SyncService] = None

        self._started = False
        self._initialized = True

    # =========================================================================
    # ESTADO Y PERSISTENCIA
    # =========================================================================

    @property
    def state(self) -> ClubState:
        """Estado en memoria (vacío hasta start())."""
        if self._state is None:
            self._state = ClubState()
        return self._state

    @property
    def snapshot_path(self) -> str:
        return os.path.join(self.data_dir, config.SNAPSHOT_FILE)

    @property
    def store(self):
        """Almacén activo (SqlTableStore o SnapshotStore)."""
        if self._store is None:
            if self.database_url:
                try:
                    self._store = SqlTableStore(self.database_url)
                except PersistenceError as exc:
                    print(f"[ADVERTENCIA] Base de datos no disponible ({exc.message}); "
                          f"usando {self.snapshot_path}")
                    self._store_degraded = True
            if self._store is None:
                self._store = SnapshotStore(self.snapshot_path)
        return self._store

    @property
    def mirror(self) -> StoreMirror:
        if self._mirror is None:
            self._mirror = StoreMirror(self.store, self.sync_mode)
        return self._mirror

    @property
    def audit_repo(self) -> AuditRepository:
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self.data_dir)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def permission_service(self) -> PermissionService:
        if self._permission_service is None:
            self._permission_service = PermissionService(self.state, self.mirror, self.audit_service)
        return self._permission_service

    @property
    def transaction_service(self) -> TransactionService:
        if self._transaction_service is None:
            self._transaction_service = TransactionService(
                self.state,
                self.permission_service,
                self.mirror,
                self.audit_service
            )
        return self._transaction_service

    @property
    def inventory_service(self) -> InventoryService:
        if self._inventory_service is None:
            self._inventory_service = InventoryService(
                self.state,
                self.permission_service,
                self.transaction_service,
                self.mirror,
                self.audit_service
            )
        return self._inventory_service

    @property
    def consumption_service(self) -> ConsumptionService:
        if self._consumption_service is None:
            self._consumption_service = ConsumptionService(
                self.state,
                self.permission_service,
                self.inventory_service,
                self.mirror,
                self.audit_service
            )
        return self._consumption_service

    @property
    def event_service(self) -> EventService:
        if self._event_service is None:
            self._event_service = EventService(
                self.state,
                self.permission_service,
                self.transaction_service,
                self.inventory_service,
                self.mirror,
                self.audit_service
            )
        return self._event_service

    @property
    def member_service(self) -> MemberService:
        if self._member_service is None:
            self._member_service = MemberService(
                self.state,
                self.permission_service,
                self.transaction_service,
                self.mirror,
                self.audit_service
            )
        return self._member_service

    @property
    def message_service(self) -> MessageService:
        if self._message_service is None:
            self._message_service = MessageService(
                self.state, self.permission_service, self.mirror, self.audit_service
            )
        return self._message_service

    @property
    def settings_service(self) -> SettingsService:
        if self._settings_service is None:
            self._settings_service = SettingsService(
                self.state, self.permission_service, self.mirror, self.audit_service
            )
        return self._settings_service

    @property
    def stats_service(self) -> StatsService:
        if self._stats_service is None:
            self._stats_service = StatsService(
                self.state, self.permission_service, self.transaction_service
            )
        return self._stats_service

    @property
    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            self._sync_service = SyncService(self.state, self.store, self.mirror, self.audit_service)
        return self._sync_service

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def start(self, listen: bool = True) -> ClubState:
        """
        Carga el estado y, opcionalmente, empieza a escuchar cambios.
        Solo la primera llamada tiene efecto.
        """
        if self._started:
            return self.state
        self.sync_service.load()
        if self._store_degraded:
            self.state.degraded = True
        if listen:
            self.sync_service.start_listening(self.poll_interval)
        atexit.register(self.mirror.flush)
        self._started = True
        return self.state

    def reset(self) -> None:
        """
        Detiene la escucha, vacía la réplica y suelta todas las instancias.
        Útil para testing.
        """
        if self._sync_service is not None:
            self._sync_service.stop_listening()
        if self._mirror is not None:
            self._mirror.close()
            atexit.unregister(self._mirror.flush)
        if isinstance(self._store, SqlTableStore):
            self._store.dispose()

        self._state = None
        self._store = None
        self._store_degraded = False
        self._mirror = None
        self._audit_repo = None
        self._audit_service = None
        self._permission_service = None
        self._transaction_service = None
        self._inventory_service = None
        self._consumption_service = None
        self._event_service = None
        self._member_service = None
        self._message_service = None
        self._settings_service = None
        self._stats_service = None
        self._sync_service = None
        self._started = False

    @classmethod
    def get_instance(cls, **kwargs) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            **kwargs: Parámetros de __init__ (solo se usan en la primera llamada)
        """
        if cls._instance is None:
            return cls(**kwargs)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(**kwargs) -> AppContainer:
    """
    Obtiene el contenedor global de dependencias.

    Uso en rutas:
        from gastro_soc.app_container import get_container
        container = get_container()
        container.event_service.create_event(...)
    """
    return AppContainer.get_instance(**kwargs)
