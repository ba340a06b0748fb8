# ==============================================================================
# SERVICIO DE CONFIGURACIÓN DEL LOCAL
# ==============================================================================
# Espacios reservables y consulta de roles. Todo cambio requiere
# manage_settings; los permisos de cada rol se editan en PermissionService.
# ==============================================================================

from typing import Any, Dict, List

from ..errors import ValidationError
from ..models.entities import Location, Member, RoleDefinition, new_id
from ..models.state import ClubState
from .permission_service import PermissionService


class SettingsService:

    def __init__(self, state: ClubState, permissions: PermissionService,
                 mirror=None, audit_service=None):
        self.state = state
        self.permissions = permissions
        self.mirror = mirror
        self.audit_service = audit_service

    def list_locations(self) -> List[Location]:
        with self.state.lock:
            return list(self.state.locations)

    def save_location(self, actor: Member, data: Dict[str, Any]) -> Location:
        """
        Alta o edición de un espacio.

        Args:
            data: {'id'?: 'LOC-...', 'name': ..., 'capacity': ...}
        """
        self.permissions.require(actor, 'manage_settings')
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("El espacio necesita un nombre")
        try:
            capacity = int(data.get('capacity') or 0)
        except (TypeError, ValueError):
            raise ValidationError("El aforo debe ser un número entero")
        if capacity < 0:
            raise ValidationError("El aforo no puede ser negativo")

        with self.state.lock:
            existing = self.state.get_location(data.get('id')) if data.get('id') else None
            if existing is None:
                location = Location(id=data.get('id') or new_id('LOC'), name=name, capacity=capacity)
                self.state.locations.append(location)
            else:
                existing.name = name
                existing.capacity = capacity
                location = existing

        if self.mirror:
            self.mirror.save('locations', location)
        if self.audit_service:
            action = 'creado' if existing is None else 'actualizado'
            self.audit_service.log(
                self.audit_service.TYPE_SISTEMA, actor.id,
                f"Espacio {action}: {name} (aforo {capacity}) por {actor.id}", location.id
            )
        return location

    def list_roles(self) -> List[RoleDefinition]:
        with self.state.lock:
            return list(self.state.role_definitions)
