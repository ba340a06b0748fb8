# ==============================================================================
# ALMACÉN LOCAL - Snapshot JSON
# ==============================================================================
# Todo el estado del club en un único archivo:
#
#   {
#     "members": [...], "inventory": [...], "events": [...],
#     "transactions": [...], "userMessages": [...],
#     "locations": [...], "roleDefinitions": [...], "systemMessages": [...]
#   }
#
# Claves ausentes o archivo corrupto → datos por defecto.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from .base import BaseRepository
from .interfaces import ALL_TABLES, TABLES, validate_table
from .notifier import ChangeNotifier
from ..models.defaults import default_snapshot

# Tablas que nunca pueden quedar vacías (sin ellas no se puede reservar ni autorizar)
REQUIRED_TABLES = ('locations', 'roleDefinitions')


class SnapshotStore(ChangeNotifier, BaseRepository):
    """
    Implementación de ITableStore sobre un archivo JSON.

    Uso:
        store = SnapshotStore('/data/gastro_soc_v12_stable.json')
        rows = store.read_all('inventory')
        store.upsert('inventory', product.to_dict())
    """

    def __init__(self, file_path: str):
        self._last_mtime: Optional[float] = None
        self._init_channel(os.path.abspath(file_path))
        super().__init__(file_path)
        self._last_mtime = self._current_mtime()

    def _empty_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return default_snapshot()

    def _current_mtime(self) -> Optional[float]:
        try:
            return os.path.getmtime(self.file_path)
        except OSError:
            return None

    def load_snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Lee el snapshot completo rellenando las claves ausentes.

        Returns:
            Diccionario tabla → filas
        """
        data = self._read_raw()
        if not isinstance(data, dict):
            data = {}
        defaults = None
        snapshot = {}
        for table in TABLES:
            rows = data.get(table)
            if not isinstance(rows, list) or (table in REQUIRED_TABLES and not rows):
                if defaults is None:
                    defaults = default_snapshot()
                rows = defaults[table]
            snapshot[table] = rows
        return snapshot

    # ═══════════════════════════════════════════════════════════════════════════
    # ITableStore
    # ═══════════════════════════════════════════════════════════════════════════

    def read_all(self, table: str) -> List[Dict[str, Any]]:
        validate_table(table)
        return self.load_snapshot()[table]

    def upsert(self, table: str, row: Dict[str, Any]) -> None:
        validate_table(table)
        with self._file_lock:
            snapshot = self.load_snapshot()
            rows = snapshot[table]
            for index, existing in enumerate(rows):
                if existing.get('id') == row.get('id'):
                    rows[index] = row
                    break
            else:
                rows.append(row)
            self._write_raw(snapshot)
            self._last_mtime = self._current_mtime()
        self._notify(table)

    def delete(self, table: str, row_id: str) -> None:
        validate_table(table)
        with self._file_lock:
            snapshot = self.load_snapshot()
            rows = snapshot[table]
            remaining = [r for r in rows if r.get('id') != row_id]
            if len(remaining) == len(rows):
                return
            snapshot[table] = remaining
            self._write_raw(snapshot)
            self._last_mtime = self._current_mtime()
        self._notify(table)

    def check_for_changes(self) -> bool:
        """
        Detecta ediciones externas del archivo comparando la fecha de modificación.
        Si cambió, avisa a todos los suscriptores (incluidos los propios).

        Returns:
            True si el archivo cambió desde la última lectura/escritura propia
        """
        mtime = self._current_mtime()
        if mtime is None or mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        self._notify(ALL_TABLES, include_self=True)
        return True
