# ==============================================================================
# SERVICIO DE SINCRONIZACIÓN
# ==============================================================================
# Dos piezas:
#
#   StoreMirror  → replica en el almacén cada cambio ya aplicado en memoria.
#                  Modo 'immediate': escribe en la misma petición y propaga
#                  PersistenceError. Modo 'deferred': cola + hilo escritor
#                  (write-behind); los fallos se imprimen, se guardan en
#                  `failed` y se reintentan en flush().
#
#   SyncService  → carga inicial (con modo degradado), recarga por
#                  reconciliación (altas/cambios/bajas por id) y escucha de
#                  cambios del almacén.
# ==============================================================================

import threading
from queue import Queue
from typing import Any, Callable, Dict, List, Optional, Tuple

from .. import config
from ..errors import PersistenceError
from ..models.defaults import default_snapshot
from ..models.state import TABLE_BINDINGS, ClubState, row_id
from ..performance_logger import profile_function
from ..repositories.interfaces import TABLES

# Tablas que se rellenan con los valores por defecto si llegan vacías
REQUIRED_TABLES = ('locations', 'roleDefinitions')

# (operación, tabla, fila o id)
MirrorOp = Tuple[str, str, Any]


class StoreMirror:
    """
    Réplica de cambios hacia un ITableStore.

    Uso:
        mirror = StoreMirror(store, mode='deferred')
        mirror.save('events', event)         # encola upsert
        mirror.remove('events', 'EV-001')    # encola delete
        mirror.flush()                       # al apagar
    """

    def __init__(self, store, mode: str = config.SYNC_MODE_DEFERRED):
        if mode not in (config.SYNC_MODE_IMMEDIATE, config.SYNC_MODE_DEFERRED):
            raise ValueError(f"Modo de sincronización desconocido: {mode}")
        self.store = store
        self.mode = mode
        self.failed: List[MirrorOp] = []
        self._queue: Queue = Queue()
        self._writer_thread: Optional[threading.Thread] = None
        self._lock = threading.RLock()
        self._pending = 0

    @property
    def immediate(self) -> bool:
        return self.mode == config.SYNC_MODE_IMMEDIATE

    @property
    def pending(self) -> int:
        """Escrituras encoladas aún no aplicadas."""
        with self._lock:
            return self._pending

    # ═══════════════════════════════════════════════════════════════════════════
    # API
    # ═══════════════════════════════════════════════════════════════════════════

    def save(self, table: str, entity) -> None:
        """Replica el estado actual de una entidad (upsert)."""
        self._submit(('upsert', table, entity.to_dict()))

    def remove(self, table: str, entity_id: str) -> None:
        self._submit(('delete', table, entity_id))

    def _submit(self, op: MirrorOp) -> None:
        if self.immediate:
            self._apply(op)
            return
        with self._lock:
            self._pending += 1
            self._start_writer()
        self._queue.put(op)

    def _apply(self, op: MirrorOp) -> None:
        action, table, payload = op
        if action == 'upsert':
            self.store.upsert(table, payload)
        else:
            self.store.delete(table, payload)

    # ═══════════════════════════════════════════════════════════════════════════
    # ESCRITURA EN SEGUNDO PLANO
    # ═══════════════════════════════════════════════════════════════════════════

    def _start_writer(self) -> None:
        """Inicia el hilo escritor si no está corriendo"""
        if self._writer_thread is None or not self._writer_thread.is_alive():
            self._writer_thread = threading.Thread(
                target=self._writer_loop, name='gastro-soc-mirror', daemon=True
            )
            self._writer_thread.start()

    def _writer_loop(self) -> None:
        while True:
            op = self._queue.get()
            if op is None:
                self._queue.task_done()
                break
            try:
                self._apply(op)
            except PersistenceError as exc:
                print(f"[ERROR SYNC] {op[0]} {op[1]}: {exc.message}")
                with self._lock:
                    self.failed.append(op)
            finally:
                with self._lock:
                    self._pending -= 1
                self._queue.task_done()

    def wait(self) -> None:
        """Bloquea hasta que la cola esté vacía."""
        with self._lock:
            running = self._writer_thread is not None and self._writer_thread.is_alive()
        if running:
            self._queue.join()

    def flush(self) -> int:
        """
        Vacía la cola y reintenta las escrituras fallidas.

        Returns:
            Número de escrituras que siguen fallando
        """
        self.wait()
        with self._lock:
            retry, self.failed = self.failed, []
        still_failing = []
        for op in retry:
            try:
                self._apply(op)
            except PersistenceError as exc:
                print(f"[ERROR SYNC] Reintento {op[0]} {op[1]}: {exc.message}")
                still_failing.append(op)
        with self._lock:
            self.failed = still_failing + self.failed
            return len(self.failed)

    def close(self) -> None:
        """flush() y parada del hilo escritor."""
        self.flush()
        with self._lock:
            thread = self._writer_thread
        if thread is not None and thread.is_alive():
            self._queue.put(None)
            thread.join(timeout=2)


# ==============================================================================
# RECONCILIACIÓN
# ==============================================================================

def reconcile(items: list, incoming_rows: List[Dict[str, Any]], entity_cls) -> Dict[str, int]:
    """
    Aplica sobre una colección viva el contenido entrante del almacén.

    Las entidades se emparejan por id: las que ya no vienen se eliminan,
    las que cambian se sustituyen en su posición y las nuevas se añaden
    al final en el orden del almacén.

    Returns:
        {'added': n, 'updated': n, 'removed': n}
    """
    incoming = [entity_cls.from_dict(row) for row in incoming_rows]
    incoming_by_id = {row_id(entity): entity for entity in incoming}
    counts = {'added': 0, 'updated': 0, 'removed': 0}

    kept_ids = set()
    index = 0
    while index < len(items):
        current = items[index]
        current_id = row_id(current)
        replacement = incoming_by_id.get(current_id)
        if replacement is None:
            del items[index]
            counts['removed'] += 1
            continue
        if replacement.to_dict() != current.to_dict():
            items[index] = replacement
            counts['updated'] += 1
        kept_ids.add(current_id)
        index += 1

    for entity in incoming:
        if row_id(entity) not in kept_ids:
            items.append(entity)
            kept_ids.add(row_id(entity))
            counts['added'] += 1
    return counts


class SyncService:
    """
    Coordina el estado en memoria con el almacén.

    Uso:
        sync = SyncService(state, store, mirror)
        sync.load()                 # al arrancar
        sync.start_listening()      # recarga ante cambios externos
    """

    def __init__(self, state: ClubState, store, mirror: StoreMirror = None, audit_service=None):
        self.state = state
        self.store = store
        self.mirror = mirror
        self.audit_service = audit_service
        self.stale = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._poll_thread: Optional[threading.Thread] = None
        self._stop_polling = threading.Event()

    def _read_snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Lee todas las tablas y valida que se puedan convertir en entidades.

        Raises:
            PersistenceError: Si el almacén falla o devuelve filas inválidas
        """
        snapshot = {table: self.store.read_all(table) for table in TABLES}
        defaults = None
        for table in REQUIRED_TABLES:
            if not snapshot.get(table):
                if defaults is None:
                    defaults = default_snapshot()
                snapshot[table] = defaults[table]
        for table, rows in snapshot.items():
            _, entity_cls = TABLE_BINDINGS[table]
            for row in rows:
                try:
                    entity_cls.from_dict(row)
                except (KeyError, TypeError, ValueError) as exc:
                    raise PersistenceError(f"Fila inválida en '{table}': {exc}") from exc
        return snapshot

    def _replace_state(self, snapshot: Dict[str, List[Dict[str, Any]]], degraded: bool) -> None:
        fresh = ClubState.from_snapshot(snapshot)
        with self.state.lock:
            for table in TABLE_BINDINGS:
                self.state.collection(table)[:] = fresh.collection(table)
            self.state.degraded = degraded

    @profile_function(name="Carga inicial del estado")
    def load(self) -> ClubState:
        """
        Carga el estado completo. Si el almacén falla se usan los datos por
        defecto en memoria y el estado queda marcado como degradado.
        """
        try:
            snapshot = self._read_snapshot()
        except PersistenceError as exc:
            print(f"[ADVERTENCIA] No se pudo cargar el almacén ({exc.message}); usando datos por defecto")
            self._replace_state(default_snapshot(), degraded=True)
            if self.audit_service:
                self.audit_service.log_system("Carga fallida: modo degradado con datos por defecto",
                                              {'error': exc.message})
            return self.state
        self._replace_state(snapshot, degraded=False)
        return self.state

    @profile_function(name="Recargar estado desde el almacén")
    def reload(self) -> Dict[str, Dict[str, int]]:
        """
        Reconciliación completa contra el almacén.

        Returns:
            {tabla: {'added': n, 'updated': n, 'removed': n}}

        Raises:
            PersistenceError: Si el almacén no responde (el estado no cambia)
        """
        snapshot = self._read_snapshot()
        summary = {}
        with self.state.lock:
            for table, (attr, entity_cls) in TABLE_BINDINGS.items():
                summary[table] = reconcile(getattr(self.state, attr), snapshot[table], entity_cls)
            self.state.degraded = False
        self.stale = False
        return summary

    def refresh(self) -> Dict[str, Dict[str, int]]:
        """Vacía las escrituras pendientes y recarga (recarga manual)."""
        if self.mirror:
            self.mirror.flush()
        return self.reload()

    # ═══════════════════════════════════════════════════════════════════════════
    # ESCUCHA DE CAMBIOS
    # ═══════════════════════════════════════════════════════════════════════════

    def _on_change(self, table: str) -> None:
        # Con escrituras propias en vuelo, recargar pisaría cambios optimistas
        if self.mirror and self.mirror.pending:
            self.stale = True
            return
        self.reload()

    def poll(self) -> bool:
        """
        Comprueba cambios externos del almacén y recarga si hace falta.

        Returns:
            True si el almacén cambió desde la última comprobación
        """
        check = getattr(self.store, 'check_for_changes', None)
        changed = bool(check and check())
        if changed and not self.listening:
            # sin suscripción nadie ha recargado todavía
            self.stale = True
        if self.stale and not (self.mirror and self.mirror.pending):
            self.reload()
        return changed

    def start_listening(self, poll_interval: float = 0) -> None:
        """
        Se suscribe a los cambios del almacén.

        Args:
            poll_interval: Si > 0, arranca un hilo que llama a poll() cada N segundos
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)
        if poll_interval > 0 and (self._poll_thread is None or not self._poll_thread.is_alive()):
            self._stop_polling.clear()
            self._poll_thread = threading.Thread(
                target=self._poll_loop, args=(poll_interval,), name='gastro-soc-poll', daemon=True
            )
            self._poll_thread.start()

    def _poll_loop(self, interval: float) -> None:
        while not self._stop_polling.wait(interval):
            try:
                self.poll()
            except PersistenceError as exc:
                print(f"[ERROR SYNC] Sondeo fallido: {exc.message}")

    def stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._stop_polling.set()
        if self._poll_thread is not None:
            self._poll_thread.join(timeout=2)
            self._poll_thread = None

    @property
    def listening(self) -> bool:
        return self._unsubscribe is not None
