# ==============================================================================
# ESTADO DE LA APLICACIÓN
# ==============================================================================
# ClubState es el agregado único en memoria con todas las colecciones.
# Los services lo mutan primero (actualización optimista) y después se
# replica al almacén. El lock serializa cada comprobación+mutación.
# ==============================================================================

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .entities import (
    Event,
    Location,
    Member,
    Product,
    Role,
    RoleDefinition,
    SystemMessage,
    Transaction,
    UserMessage,
)


# tabla persistida → (atributo de ClubState, clase de entidad)
TABLE_BINDINGS = {
    'members': ('members', Member),
    'inventory': ('inventory', Product),
    'events': ('events', Event),
    'transactions': ('transactions', Transaction),
    'locations': ('locations', Location),
    'roleDefinitions': ('role_definitions', RoleDefinition),
    'systemMessages': ('system_messages', SystemMessage),
    'userMessages': ('user_messages', UserMessage),
}


def row_id(entity) -> str:
    """Id de fila de una entidad (los roles usan su valor de enum)."""
    value = entity.id
    return value.value if isinstance(value, Role) else value


@dataclass
class ClubState:
    """
    Colecciones del club en memoria.

    Attributes:
        degraded: True si la carga inicial falló y se usan los datos por defecto
    """
    members: List[Member] = field(default_factory=list)
    inventory: List[Product] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)
    role_definitions: List[RoleDefinition] = field(default_factory=list)
    system_messages: List[SystemMessage] = field(default_factory=list)
    user_messages: List[UserMessage] = field(default_factory=list)
    degraded: bool = False
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    # ═══════════════════════════════════════════════════════════════════════════
    # ACCESO POR TABLA
    # ═══════════════════════════════════════════════════════════════════════════

    def collection(self, table: str) -> list:
        """Lista viva de la tabla indicada."""
        attr, _ = TABLE_BINDINGS[table]
        return getattr(self, attr)

    @staticmethod
    def _find(items, entity_id):
        for item in items:
            if row_id(item) == entity_id:
                return item
        return None

    def find(self, table: str, entity_id: str):
        return self._find(self.collection(table), entity_id)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._find(self.inventory, product_id)

    def get_event(self, event_id: str) -> Optional[Event]:
        return self._find(self.events, event_id)

    def get_member(self, member_id: str) -> Optional[Member]:
        return self._find(self.members, member_id)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._find(self.transactions, transaction_id)

    def get_location(self, location_id: str) -> Optional[Location]:
        return self._find(self.locations, location_id)

    def get_role_definition(self, role) -> Optional[RoleDefinition]:
        for definition in self.role_definitions:
            if definition.id == role:
                return definition
        return None

    # ═══════════════════════════════════════════════════════════════════════════
    # SNAPSHOT
    # ═══════════════════════════════════════════════════════════════════════════

    def to_snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Serializa todas las tablas al formato persistido."""
        with self.lock:
            return {
                table: [item.to_dict() for item in self.collection(table)]
                for table in TABLE_BINDINGS
            }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, List[Dict[str, Any]]],
                      degraded: bool = False) -> 'ClubState':
        """Construye el estado desde un snapshot (las tablas ausentes quedan vacías)."""
        state = cls(degraded=degraded)
        for table, (attr, entity_cls) in TABLE_BINDINGS.items():
            rows = snapshot.get(table) or []
            setattr(state, attr, [entity_cls.from_dict(row) for row in rows])
        return state
