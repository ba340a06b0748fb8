# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de actividad del club con mensajes humanizados.
# ==============================================================================

from typing import Any, Dict, List

from ..repositories.audit_repository import AuditRepository


class AuditService:
    """
    Servicio para registro y consulta de actividad.

    Centraliza:
    - Registro con mensajes humanizados
    - Categorización (EVENTO, PAGO, STOCK, PRODUCTO, SOCIA, SISTEMA)
    - Búsqueda y filtrado de logs

    La regla de oro: todo movimiento de dinero o de stock deja un log.
    """

    # Tipos de eventos de auditoría
    TYPE_EVENTO = 'EVENTO'
    TYPE_PAGO = 'PAGO'
    TYPE_STOCK = 'STOCK'
    TYPE_PRODUCTO = 'PRODUCTO'
    TYPE_SOCIA = 'SOCIA'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento (EVENTO, PAGO, STOCK...)
            user: Socia que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado
            details: Detalles adicionales
        """
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_event_created(self, user: str, event_id: str, title: str, date: str, zone_id: str) -> None:
        message = f"Reserva creada: {title} ({date}, {zone_id}) por {user}"
        self.log(self.TYPE_EVENTO, user, message, event_id, {'date': date, 'zone_id': zone_id})

    def log_event_status_change(self, user: str, event_id: str, old_status: str, new_status: str) -> None:
        """Registra un cambio de estado de una reserva."""
        message = f"Evento {event_id}: {old_status} → {new_status} por {user}"
        self.log(self.TYPE_EVENTO, user, message, event_id, {'from': old_status, 'to': new_status})

    def log_event_deleted(self, user: str, event_id: str, title: str) -> None:
        message = f"Reserva eliminada: {title} ({event_id}) por {user}"
        self.log(self.TYPE_EVENTO, user, message, event_id)

    def log_consumption(
        self,
        user: str,
        event_id: str,
        action: str,
        line: Dict[str, Any],
        total: float
    ) -> None:
        """
        Registra un alta o baja de consumo en un evento.

        Args:
            user: Socia
            event_id: Evento afectado
            action: 'añadido' o 'retirado'
            line: Línea de consumo serializada
            total: Total del evento tras el cambio
        """
        message = (
            f"Consumo {action} en {event_id}: {line.get('quantity')}x {line.get('name')} "
            f"- Total evento: {total:.2f} €"
        )
        self.log(self.TYPE_EVENTO, user, message, event_id, {'line': line, 'total': total})

    def log_settlement(self, user: str, event_id: str, amount: float, method: str) -> None:
        """
        Registra la liquidación de un evento.
        REGLA DE ORO: Si entra dinero, siempre se debe llamar esta función.
        """
        message = f"Evento {event_id} liquidado: {amount:.2f} € ({method}) - Registrado por {user}"
        self.log(self.TYPE_PAGO, user, message, event_id, {'amount': amount, 'method': method})

    def log_transaction(self, user: str, transaction_id: str, description: str,
                        amount: float, category: str, action: str = 'registrado') -> None:
        sign = '+' if amount >= 0 else ''
        message = f"Apunte {action}: {description} ({sign}{amount:.2f} €, {category}) por {user}"
        self.log(
            self.TYPE_PAGO,
            user,
            message,
            transaction_id,
            {'amount': amount, 'category': category, 'action': action}
        )

    def log_stock_movement(
        self,
        user: str,
        product_id: str,
        product_name: str,
        delta: int,
        reason: str,
        new_stock: int = None
    ) -> None:
        """
        Registra una entrada o salida de stock.

        Args:
            user: Socia
            product_id: Producto
            product_name: Nombre del producto
            delta: Variación (positiva = entrada)
            reason: Motivo (evento, compra, merma, recuento...)
            new_stock: Stock resultante (opcional)
        """
        kind = "Entrada" if delta >= 0 else "Salida"
        stock_info = f" - Nuevo stock: {new_stock}" if new_stock is not None else ""
        message = f"{kind} de stock: {delta:+d} {product_name} - Motivo: {reason}{stock_info} - Por {user}"
        self.log(
            self.TYPE_STOCK,
            user,
            message,
            product_id,
            {'delta': delta, 'reason': reason, 'new_stock': new_stock}
        )

    def log_product_saved(self, user: str, product_id: str, name: str, created: bool) -> None:
        action = "creado" if created else "actualizado"
        message = f"Producto {action}: {name} ({product_id}) por {user}"
        self.log(self.TYPE_PRODUCTO, user, message, product_id, {'name': name})

    def log_product_deleted(self, user: str, product_id: str, name: str, soft: bool = False) -> None:
        action = "dado de baja" if soft else "eliminado"
        message = f"Producto {action}: {name} ({product_id}) por {user}"
        self.log(self.TYPE_PRODUCTO, user, message, product_id, {'soft': soft})

    def log_member_change(self, user: str, member_id: str, full_name: str, action: str,
                          details: Dict[str, Any] = None) -> None:
        message = f"Socia {action}: {full_name} ({member_id}) por {user}"
        self.log(self.TYPE_SOCIA, user, message, member_id, details)

    def log_role_change(self, user: str, role: str, permissions: Dict[str, bool]) -> None:
        enabled = ", ".join(k for k, v in permissions.items() if v) or "ninguno"
        message = f"Permisos del rol {role} actualizados por {user}: {enabled}"
        self.log(self.TYPE_SISTEMA, user, message, role, {'permissions': permissions})

    def log_user_login(self, user: str) -> None:
        """Registra un inicio de sesión."""
        self.log(self.TYPE_SISTEMA, user, f"Inicio de sesión: {user}")

    def log_user_logout(self, user: str) -> None:
        """Registra un cierre de sesión."""
        self.log(self.TYPE_SISTEMA, user, f"Cierre de sesión: {user}")

    def log_system(self, message: str, details: Dict[str, Any] = None) -> None:
        self.log(self.TYPE_SISTEMA, 'sistema', message, '', details)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.audit_repo.get_recent_logs(limit)

    def search(self, query: str = '', log_type: str = None, user: str = None) -> List[Dict[str, Any]]:
        return self.audit_repo.search_logs(query, log_type, user)
