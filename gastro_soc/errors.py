# ==============================================================================
# ERRORES DEL DOMINIO
# ==============================================================================
# Toda operación que viola una regla lanza una subclase de ClubError antes
# de mutar el estado. Ninguna se reintenta automáticamente; main.py las
# traduce a respuestas JSON con el código HTTP de cada clase.
# ==============================================================================


class ClubError(Exception):
    """
    Error base de la aplicación.

    Attributes:
        message: Mensaje legible para mostrar a la socia
        code: Identificador estable del tipo de error
        http_status: Código HTTP con el que se responde
    """
    code = 'error'
    http_status = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        d = {'ok': False, 'error': self.message, 'code': self.code}
        if self.details:
            d['details'] = self.details
        return d


class ValidationError(ClubError):
    """Faltan datos obligatorios o tienen un valor no admitido."""
    code = 'validation'
    http_status = 400


class AuthenticationError(ClubError):
    code = 'authentication'
    http_status = 401


class PermissionDeniedError(ClubError):
    """El rol de la socia no tiene la capacidad requerida."""
    code = 'permission_denied'
    http_status = 403

    def __init__(self, capability: str, member_id: str = None):
        super().__init__(
            f"Sin permiso para esta acción ({capability})",
            capability=capability,
            member_id=member_id,
        )
        self.capability = capability


class NotFoundError(ClubError):
    code = 'not_found'
    http_status = 404

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} '{entity_id}' no encontrado", kind=kind, id=entity_id)


class InsufficientStockError(ClubError):
    """Se pide más cantidad de la que hay en el economato."""
    code = 'insufficient_stock'
    http_status = 409

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Stock insuficiente: solicitadas {requested}, disponibles {available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ZoneConflictError(ClubError):
    """Ya hay una reserva activa en ese espacio y fecha."""
    code = 'zone_conflict'
    http_status = 409

    def __init__(self, zone_id: str, date: str, event_id: str):
        super().__init__(
            f"El espacio ya está reservado el {date}",
            zone_id=zone_id,
            date=date,
            event_id=event_id,
        )


class EventLockedError(ClubError):
    """Transición no permitida o modificación de un evento ya pagado/cancelado."""
    code = 'event_locked'
    http_status = 409


class PersistenceError(ClubError):
    """El almacén no pudo leer o escribir."""
    code = 'persistence'
    http_status = 503
