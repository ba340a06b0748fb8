# ==============================================================================
# SERVICIO DE EVENTOS (RESERVAS)
# ==============================================================================
# Ciclo de vida de una reserva:
#
#   Programada ──cancel()──→ Cancelada
#       │
#       └──finalize()──→ Finalizada
#
#   Pendiente ──settle()──→ Pagada   (irreversible; una sola vez)
#
# Un espacio solo puede tener una reserva no cancelada por fecha.
# La liquidación congela el total y genera su apunte de ingreso.
# ==============================================================================

from datetime import date as date_cls
from typing import Any, Dict, List, Optional, Tuple

from ..errors import EventLockedError, NotFoundError, ValidationError, ZoneConflictError
from ..models.entities import (
    Event,
    EventStatus,
    Member,
    PaymentMethod,
    PaymentStatus,
    Transaction,
    TransactionCategory,
    new_id,
    today_iso,
)
from ..models.state import ClubState
from .consumption_service import ensure_editable, recompute_total
from .inventory_service import InventoryService, parse_quantity
from .permission_service import PermissionService
from .transaction_service import TransactionService, parse_payment_method


def _parse_date(value: Any) -> str:
    try:
        return date_cls.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValidationError(f"Fecha no válida: {value} (formato AAAA-MM-DD)")


class EventService:
    """
    Servicio de reservas.

    Responsabilidades:
    - Alta y edición con control de conflictos de espacio
    - Transiciones de estado (cancelar, finalizar)
    - Liquidación con apunte en tesorería
    - Borrado con devolución de stock
    """

    def __init__(
        self,
        state: ClubState,
        permissions: PermissionService,
        transactions: TransactionService,
        inventory: InventoryService,
        mirror=None,
        audit_service=None
    ):
        self.state = state
        self.permissions = permissions
        self.transactions = transactions
        self.inventory = inventory
        self.mirror = mirror
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def _get_event(self, event_id: str) -> Event:
        event = self.state.get_event(event_id)
        if event is None:
            raise NotFoundError('Evento', event_id)
        return event

    def get_event(self, event_id: str) -> Optional[Event]:
        return self.state.get_event(event_id)

    def list_events(self, status: str = None, date_from: str = None) -> List[Event]:
        """Reservas ordenadas por fecha, con filtros opcionales."""
        with self.state.lock:
            events = list(self.state.events)
        if status:
            events = [e for e in events if e.status.value == status]
        if date_from:
            events = [e for e in events if e.date >= date_from]
        return sorted(events, key=lambda e: (e.date, e.title))

    def find_zone_conflict(self, date: str, zone_id: str, exclude_id: str = None) -> Optional[Event]:
        """Reserva no cancelada que ya ocupa el espacio en esa fecha."""
        for event in self.state.events:
            if event.id == exclude_id or event.is_cancelled:
                continue
            if event.date == date and event.zone_id == zone_id:
                return event
        return None

    def _check_zone(self, date: str, zone_id: str, exclude_id: str = None) -> None:
        if self.state.get_location(zone_id) is None:
            raise NotFoundError('Espacio', zone_id)
        conflict = self.find_zone_conflict(date, zone_id, exclude_id)
        if conflict is not None:
            raise ZoneConflictError(zone_id, date, conflict.id)

    # =========================================================================
    # ALTA Y EDICIÓN
    # =========================================================================

    def create_event(
        self,
        actor: Member,
        title: str,
        date: str,
        zone_id: str,
        organizer_id: str = None,
        attendee_ids: List[str] = None,
        attendees: int = None,
        guest_count: int = 0,
        payment_method: Any = PaymentMethod.EFECTIVO,
    ) -> Event:
        """
        Crea una reserva.

        Args:
            actor: Socia que reserva (requiere manage_events)
            title: Título
            date: Fecha AAAA-MM-DD
            zone_id: Espacio (LOC-...)
            organizer_id: Organizadora; por defecto la propia socia
            attendee_ids: Socias apuntadas; por defecto la organizadora
            attendees: Total de asistentes; por defecto las socias apuntadas
            guest_count: Invitadas no socias

        Raises:
            ZoneConflictError: Si el espacio ya está reservado ese día
        """
        self.permissions.require(actor, 'manage_events')
        title = (title or '').strip()
        if not title:
            raise ValidationError("El título es obligatorio")
        date = _parse_date(date)
        guests = parse_quantity(guest_count or 0, allow_zero=True)
        organizer = organizer_id or actor.id
        attendee_list = list(attendee_ids) if attendee_ids else [organizer]
        total_attendees = parse_quantity(attendees, allow_zero=True) if attendees is not None \
            else max(1, len(attendee_list))

        with self.state.lock:
            self._check_zone(date, zone_id)
            event = Event(
                id=new_id('EV'),
                title=title,
                date=date,
                zone_id=zone_id,
                organizer_id=organizer,
                attendee_ids=attendee_list,
                attendees=total_attendees,
                guest_count=guests,
                payment_method=parse_payment_method(payment_method),
            )
            recompute_total(event)
            self.state.events.append(event)

        if self.mirror:
            self.mirror.save('events', event)
        if self.audit_service:
            self.audit_service.log_event_created(actor.id, event.id, title, date, zone_id)
        return event

    def update_event(self, actor: Member, event_id: str, changes: Dict[str, Any]) -> Event:
        """
        Edita título, fecha, espacio, asistentes o invitadas de una reserva
        no pagada ni cancelada. Cambiar fecha o espacio vuelve a comprobar
        conflictos (excluyendo la propia reserva).
        """
        self.permissions.require(actor, 'manage_events')
        with self.state.lock:
            event = self._get_event(event_id)
            ensure_editable(event)

            title = changes.get('title', event.title)
            title = (title or '').strip()
            if not title:
                raise ValidationError("El título es obligatorio")
            date = _parse_date(changes['date']) if 'date' in changes else event.date
            zone_id = changes.get('zoneId', event.zone_id)
            if date != event.date or zone_id != event.zone_id:
                self._check_zone(date, zone_id, exclude_id=event.id)
            guests = parse_quantity(changes['guestCount'], allow_zero=True) \
                if 'guestCount' in changes else event.guest_count
            attendees = parse_quantity(changes['attendees'], allow_zero=True) \
                if 'attendees' in changes else event.attendees
            method = parse_payment_method(changes['paymentMethod']) \
                if 'paymentMethod' in changes else event.payment_method

            event.title = title
            event.date = date
            event.zone_id = zone_id
            event.guest_count = guests
            event.attendees = attendees
            event.payment_method = method
            if 'attendeeIds' in changes:
                event.attendee_ids = list(changes['attendeeIds'] or [])
            if changes.get('organizerId'):
                event.organizer_id = changes['organizerId']
            recompute_total(event)

        if self.mirror:
            self.mirror.save('events', event)
        if self.audit_service:
            self.audit_service.log(
                self.audit_service.TYPE_EVENTO, actor.id,
                f"Reserva editada: {event.title} ({event.date}, {event.zone_id}) por {actor.id}",
                event.id, {'changes': sorted(changes.keys())}
            )
        return event

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    def settle(self, actor: Member, event_id: str,
               payment_method: Any = PaymentMethod.EFECTIVO) -> Tuple[Event, Transaction]:
        """
        Liquida el evento: congela el total, lo marca Pagada y registra el
        ingreso en tesorería. Solo una vez.

        Raises:
            EventLockedError: Si ya estaba pagado o está cancelado (no se anota nada)
        """
        self.permissions.require(actor, 'manage_finance')
        method = parse_payment_method(payment_method)
        with self.state.lock:
            event = self._get_event(event_id)
            if event.is_paid:
                raise EventLockedError(f"El evento {event.id} ya fue liquidado")
            if event.is_cancelled:
                raise EventLockedError(f"El evento {event.id} está cancelado")
            total = event.total_cost
            event.payment_status = PaymentStatus.PAGADA
            event.payment_method = method
            event.settled_by = actor.id
            event.settlement_date = today_iso()

        if self.mirror:
            self.mirror.save('events', event)
        transaction = self.transactions.record(
            f"Evento: {event.title}",
            total,
            TransactionCategory.EVENTO,
            payment_method=method,
            related_event_id=event.id,
            user=actor.id,
        )
        if self.audit_service:
            self.audit_service.log_settlement(actor.id, event.id, total, method.value)
        return event, transaction

    def _transition(self, actor: Member, event_id: str, new_status: EventStatus) -> Event:
        self.permissions.require(actor, 'manage_events')
        with self.state.lock:
            event = self._get_event(event_id)
            if event.is_paid:
                raise EventLockedError(f"El evento {event.id} ya está pagado")
            if event.status != EventStatus.PROGRAMADA:
                raise EventLockedError(
                    f"No se puede pasar de {event.status.value} a {new_status.value}"
                )
            old_status = event.status
            event.status = new_status
        if self.mirror:
            self.mirror.save('events', event)
        if self.audit_service:
            self.audit_service.log_event_status_change(actor.id, event.id, old_status.value, new_status.value)
        return event

    def cancel(self, actor: Member, event_id: str) -> Event:
        """Cancela la reserva (libera el espacio; el stock consumido no vuelve)."""
        return self._transition(actor, event_id, EventStatus.CANCELADA)

    def finalize(self, actor: Member, event_id: str) -> Event:
        """Marca la reserva como celebrada; sigue pendiente de liquidar."""
        return self._transition(actor, event_id, EventStatus.FINALIZADA)

    def delete_event(self, actor: Member, event_id: str) -> Event:
        """
        Borra una reserva no pagada junto con sus consumos, devolviendo al
        economato el stock de las líneas de producto.
        """
        self.permissions.require(actor, 'manage_events')
        with self.state.lock:
            event = self._get_event(event_id)
            if event.is_paid:
                raise EventLockedError(f"El evento {event.id} ya está pagado y no se puede borrar")
            self.state.events.remove(event)

        for line in event.consumptions:
            if line.is_product and line.product_id:
                self.inventory.restore(line.product_id, line.quantity, actor.id,
                                       reason=f"borrado evento {event.id}")
        if self.mirror:
            self.mirror.remove('events', event.id)
        if self.audit_service:
            self.audit_service.log_event_deleted(actor.id, event.id, event.title)
        return event
