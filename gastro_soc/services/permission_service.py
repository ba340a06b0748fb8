# ==============================================================================
# SERVICIO DE PERMISOS
# ==============================================================================
# Puerta única de autorización. Cada operación que modifica el estado llama
# a require() ANTES de tocar nada; las rutas solo deciden qué mostrar.
#
# Regla: ante cualquier duda (socia inexistente, rol sin definición,
# capacidad desconocida) se deniega.
# ==============================================================================

from typing import Dict, Iterable, Optional

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..models.entities import CAPABILITIES, Member, Role, RoleDefinition, RolePermissions
from ..models.state import ClubState


def can(role_definitions: Iterable[RoleDefinition], member: Optional[Member], capability: str) -> bool:
    """
    Comprueba si una socia tiene una capacidad.

    Args:
        role_definitions: Definiciones de roles vigentes
        member: Socia (None → denegado)
        capability: Nombre de la capacidad (manage_events, manage_finance...)

    Returns:
        True solo si el rol de la socia está definido y otorga la capacidad
    """
    if member is None or capability not in CAPABILITIES:
        return False
    for definition in role_definitions:
        if definition.id == member.role:
            return definition.permissions.allows(capability)
    return False


class PermissionService:
    """
    Autorización basada en las definiciones de rol del estado.

    Uso:
        permissions.require(actor, 'manage_finance')   # lanza si no puede
    """

    def __init__(self, state: ClubState, mirror=None, audit_service=None):
        self.state = state
        self.mirror = mirror
        self.audit_service = audit_service

    def can(self, member: Optional[Member], capability: str) -> bool:
        return can(self.state.role_definitions, member, capability)

    def require(self, member: Optional[Member], capability: str) -> None:
        """
        Raises:
            PermissionDeniedError: Si la socia no tiene la capacidad
        """
        if not self.can(member, capability):
            raise PermissionDeniedError(capability, member.id if member else None)

    def permissions_for(self, member: Optional[Member]) -> Dict[str, bool]:
        """Mapa capacidad → bool para la sesión actual."""
        return {cap: self.can(member, cap) for cap in CAPABILITIES}

    def update_role_permissions(self, actor: Member, role: str, permissions: Dict[str, bool]) -> RoleDefinition:
        """
        Cambia las capacidades de un rol.

        Args:
            actor: Socia que hace el cambio (requiere manage_settings)
            role: Valor del rol ('Presidenta', 'Socia'...)
            permissions: Capacidades a fijar; las no indicadas se mantienen

        Returns:
            Definición de rol actualizada
        """
        self.require(actor, 'manage_settings')
        try:
            role_enum = Role(role)
        except ValueError:
            raise ValidationError(f"Rol desconocido: {role}")
        unknown = [key for key in permissions if key not in CAPABILITIES]
        if unknown:
            raise ValidationError(f"Capacidades desconocidas: {', '.join(unknown)}")

        with self.state.lock:
            definition = self.state.get_role_definition(role_enum)
            if definition is None:
                raise NotFoundError('Rol', role)
            merged = definition.permissions.to_dict()
            merged.update({key: bool(value) for key, value in permissions.items()})
            definition.permissions = RolePermissions.from_dict(merged)

        if self.mirror:
            self.mirror.save('roleDefinitions', definition)
        if self.audit_service:
            self.audit_service.log_role_change(actor.id, role, merged)
        return definition
