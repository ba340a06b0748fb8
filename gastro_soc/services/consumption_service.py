# ==============================================================================
# SERVICIO DE CONSUMOS DE EVENTOS
# ==============================================================================
# Construye la cuenta de una reserva:
#
#   total = Σ líneas (cantidad × precio copiado al añadir) + invitadas × GUEST_FEE
#
# Las líneas de producto mueven stock del economato: al añadir se descuenta
# (si no hay suficiente, no cambia nada) y al quitar se devuelve. El total se
# recalcula tras cada cambio. Un evento pagado o cancelado no admite cambios.
# ==============================================================================

from typing import Any

from .. import config
from ..errors import EventLockedError, NotFoundError, ValidationError
from ..models.entities import (
    ConsumptionType,
    Event,
    EventConsumption,
    Member,
    money,
    new_id,
)
from ..models.state import ClubState
from .inventory_service import InventoryService, parse_quantity
from .permission_service import PermissionService


def recompute_total(event: Event) -> float:
    """Recalcula y guarda el total del evento."""
    lines = sum(line.total_cost for line in event.consumptions)
    event.total_cost = money(lines + event.guest_count * config.GUEST_FEE)
    return event.total_cost


def ensure_editable(event: Event) -> None:
    """
    Raises:
        EventLockedError: Si el evento está pagado o cancelado
    """
    if event.is_paid:
        raise EventLockedError(f"El evento {event.id} ya está pagado y no admite cambios")
    if event.is_cancelled:
        raise EventLockedError(f"El evento {event.id} está cancelado y no admite cambios")


class ConsumptionService:
    """
    Altas y bajas de consumos de un evento (requiere manage_events).
    """

    CAPABILITY = 'manage_events'

    def __init__(
        self,
        state: ClubState,
        permissions: PermissionService,
        inventory: InventoryService,
        mirror=None,
        audit_service=None
    ):
        self.state = state
        self.permissions = permissions
        self.inventory = inventory
        self.mirror = mirror
        self.audit_service = audit_service

    def _get_event(self, event_id: str) -> Event:
        event = self.state.get_event(event_id)
        if event is None:
            raise NotFoundError('Evento', event_id)
        return event

    def _commit(self, actor: Member, event: Event, line: EventConsumption, action: str) -> None:
        if self.mirror:
            self.mirror.save('events', event)
        if self.audit_service:
            self.audit_service.log_consumption(actor.id, event.id, action, line.to_dict(), event.total_cost)

    # =========================================================================
    # ALTAS
    # =========================================================================

    def add_product_consumption(self, actor: Member, event_id: str, product_id: str,
                                quantity: int) -> EventConsumption:
        """
        Añade una línea de producto descontando stock.

        El precio de venta se copia en la línea: cambios posteriores del
        precio del producto no alteran eventos ya anotados.

        Raises:
            InsufficientStockError: Si no hay stock (ni el evento ni el stock cambian)
            EventLockedError: Si el evento está pagado o cancelado
        """
        self.permissions.require(actor, self.CAPABILITY)
        quantity = parse_quantity(quantity)
        with self.state.lock:
            ensure_editable(self._get_event(event_id))
            product = self.state.get_product(product_id)
            if product is None:
                raise NotFoundError('Producto', product_id)
            if not product.is_active:
                raise ValidationError(f"El producto {product.name} está dado de baja")

        product = self.inventory.withdraw(product_id, quantity, actor.id, reason=f"evento {event_id}")

        with self.state.lock:
            event = self.state.get_event(event_id)
            locked = event is None or event.is_paid or event.is_cancelled
            if not locked:
                line = EventConsumption(
                    id=new_id('CONS'),
                    type=ConsumptionType.PRODUCT,
                    name=product.name,
                    quantity=quantity,
                    unit_cost=product.sale_price,
                    product_id=product.id,
                )
                event.consumptions.append(line)
                recompute_total(event)
        if locked:
            # liquidado, cancelado o borrado mientras se descontaba
            self.inventory.restore(product_id, quantity, actor.id, reason=f"evento {event_id}")
            ensure_editable(self._get_event(event_id))
        self._commit(actor, event, line, 'añadido')
        return line

    def _add_fixed_line(self, actor: Member, event_id: str, label: str, amount: Any,
                        line_type: ConsumptionType) -> EventConsumption:
        self.permissions.require(actor, self.CAPABILITY)
        label = (label or '').strip()
        if not label:
            raise ValidationError("El concepto es obligatorio")
        try:
            amount = money(amount)
        except (TypeError, ValueError):
            raise ValidationError("El importe debe ser numérico")
        with self.state.lock:
            event = self._get_event(event_id)
            ensure_editable(event)
            line = EventConsumption(
                id=new_id('CONS'),
                type=line_type,
                name=label,
                quantity=1,
                unit_cost=amount,
            )
            event.consumptions.append(line)
            recompute_total(event)
        self._commit(actor, event, line, 'añadido')
        return line

    def add_custom_consumption(self, actor: Member, event_id: str, label: str, amount: Any) -> EventConsumption:
        """Gasto libre (compra en el súper para la cena...), sin tocar el economato."""
        return self._add_fixed_line(actor, event_id, label, amount, ConsumptionType.CUSTOM)

    def add_service_consumption(self, actor: Member, event_id: str, label: str, amount: Any) -> EventConsumption:
        """Servicio (limpieza, alquiler de menaje...), sin tocar el economato."""
        return self._add_fixed_line(actor, event_id, label, amount, ConsumptionType.SERVICE)

    # =========================================================================
    # BAJAS Y AJUSTES
    # =========================================================================

    def remove_consumption(self, actor: Member, event_id: str, line_id: str) -> EventConsumption:
        """
        Quita una línea. Si es de producto devuelve la cantidad anotada al
        economato (si el producto ya no existe, no se devuelve nada).
        """
        self.permissions.require(actor, self.CAPABILITY)
        with self.state.lock:
            event = self._get_event(event_id)
            ensure_editable(event)
            line = event.find_consumption(line_id)
            if line is None:
                raise NotFoundError('Consumo', line_id)
            event.consumptions.remove(line)
            recompute_total(event)
        if line.is_product and line.product_id:
            self.inventory.restore(line.product_id, line.quantity, actor.id, reason=f"evento {event_id}")
        self._commit(actor, event, line, 'retirado')
        return line

    def set_guest_count(self, actor: Member, event_id: str, guest_count: Any) -> Event:
        """Cambia el número de invitadas no socias y recalcula el total."""
        self.permissions.require(actor, self.CAPABILITY)
        guests = parse_quantity(guest_count, allow_zero=True)
        with self.state.lock:
            event = self._get_event(event_id)
            ensure_editable(event)
            event.guest_count = guests
            recompute_total(event)
        if self.mirror:
            self.mirror.save('events', event)
        if self.audit_service:
            self.audit_service.log(
                self.audit_service.TYPE_EVENTO, actor.id,
                f"Invitadas de {event.id}: {guests} - Total evento: {event.total_cost:.2f} €",
                event.id, {'guest_count': guests, 'total': event.total_cost}
            )
        return event
