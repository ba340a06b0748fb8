# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que cumplen los almacenes del club. Los services y el
# SyncService dependen de ITableStore, no de una implementación concreta:
#
#   SnapshotStore  → un único archivo JSON local (modo por defecto)
#   SqlTableStore  → base de datos vía SQLAlchemy (GASTRO_DATABASE_URL)
#
# Cambiar de uno a otro solo toca app_container.py.
# ==============================================================================

from typing import Any, Callable, Dict, List, Protocol, runtime_checkable


# Tablas que conoce el almacén
TABLES = (
    'members',
    'inventory',
    'events',
    'transactions',
    'locations',
    'roleDefinitions',
    'systemMessages',
    'userMessages',
)

# Aviso de cambio que afecta a todas las tablas
ALL_TABLES = '*'

# Callback de cambio: recibe el nombre de la tabla modificada o ALL_TABLES
ChangeCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class ITableStore(Protocol):
    """
    Almacén de filas por tabla. Cada fila es el dict persistido de una
    entidad y se identifica por su campo 'id'.
    """

    def read_all(self, table: str) -> List[Dict[str, Any]]:
        """Todas las filas de la tabla (lista vacía si no hay)."""
        ...

    def upsert(self, table: str, row: Dict[str, Any]) -> None:
        """Inserta o reemplaza la fila con el mismo id."""
        ...

    def delete(self, table: str, row_id: str) -> None:
        """Elimina la fila; no falla si no existe."""
        ...

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Registra un callback de cambios; devuelve la función para darse de baja."""
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """Interfaz para el repositorio de auditoría."""

    def load(self) -> List[Dict[str, Any]]:
        ...

    def log(self, log_type: str, user: str, message: str,
            related_id: str = '', details: Dict[str, Any] = None) -> None:
        ...


def validate_table(table: str) -> str:
    """Comprueba que la tabla es conocida."""
    if table not in TABLES:
        raise KeyError(f"Tabla desconocida: {table}")
    return table
