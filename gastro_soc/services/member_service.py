# ==============================================================================
# SERVICIO DE SOCIAS
# ==============================================================================
# Acceso por PIN, fichas de socias y cobro de cuotas.
#
# El PIN es una credencial de 4 dígitos sin hash: identifica a la socia en
# el local, no protege contra ataques. Por defecto son los 4 últimos
# dígitos del teléfono y no puede repetirse entre socias.
# ==============================================================================

import re
from typing import Any, Dict, List, Optional

from .. import config
from ..errors import AuthenticationError, NotFoundError, ValidationError
from ..models.defaults import avatar_url, pin_from_phone
from ..models.entities import (
    Member,
    MemberStatus,
    PaymentMethod,
    Role,
    Transaction,
    TransactionCategory,
    money,
    today_iso,
)
from ..models.state import ClubState
from .permission_service import PermissionService
from .transaction_service import TransactionService, parse_payment_method

PIN_PATTERN = re.compile(r'^\d{%d}$' % config.PIN_LENGTH)


class MemberService:
    """
    Servicio de socias.

    Responsabilidades:
    - Autenticación por PIN
    - Alta, edición, baja y cambio de estado (manage_members)
    - Ocultación de datos sensibles (view_sensitive_data)
    - Cuotas mensuales (manage_finance)
    """

    def __init__(
        self,
        state: ClubState,
        permissions: PermissionService,
        transactions: TransactionService,
        mirror=None,
        audit_service=None
    ):
        self.state = state
        self.permissions = permissions
        self.transactions = transactions
        self.mirror = mirror
        self.audit_service = audit_service

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def authenticate_pin(self, pin: str) -> Member:
        """
        Identifica a la socia por su PIN.

        Returns:
            Socia autenticada

        Raises:
            AuthenticationError: PIN mal formado, desconocido o socia no activa
        """
        pin = str(pin or '').strip()
        if not PIN_PATTERN.match(pin):
            raise AuthenticationError(f"El PIN debe tener {config.PIN_LENGTH} dígitos")
        with self.state.lock:
            member = next((m for m in self.state.members if m.pin == pin), None)
        if member is None:
            raise AuthenticationError("PIN incorrecto")
        if not member.is_active:
            raise AuthenticationError("La socia no está activa")
        if self.audit_service:
            self.audit_service.log_user_login(member.id)
        return member

    def get_member(self, member_id: str) -> Optional[Member]:
        return self.state.get_member(member_id)

    def _get_member(self, member_id: str) -> Member:
        member = self.state.get_member(member_id)
        if member is None:
            raise NotFoundError('Socia', member_id)
        return member

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def member_view(self, viewer: Optional[Member], member: Member) -> Dict[str, Any]:
        """Ficha visible para `viewer`: sin DNI/IBAN/PIN si no tiene view_sensitive_data."""
        if viewer is not None and viewer.id == member.id:
            return member.to_dict()
        if self.permissions.can(viewer, 'view_sensitive_data'):
            return member.to_dict()
        return member.to_public_dict()

    def list_members(self, viewer: Optional[Member], status: str = None) -> List[Dict[str, Any]]:
        with self.state.lock:
            members = list(self.state.members)
        if status:
            members = [m for m in members if m.status.value == status]
        return [self.member_view(viewer, m) for m in members]

    def next_member_id(self) -> str:
        """Siguiente id correlativo SOC-###."""
        highest = 0
        for member in self.state.members:
            match = re.match(r'^SOC-(\d+)$', member.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"SOC-{highest + 1:03d}"

    # =========================================================================
    # ALTA, EDICIÓN Y BAJA
    # =========================================================================

    def _validate_pin(self, pin: str, member_id: str) -> str:
        if not PIN_PATTERN.match(pin):
            raise ValidationError(f"El PIN debe tener {config.PIN_LENGTH} dígitos")
        for other in self.state.members:
            if other.pin == pin and other.id != member_id:
                raise ValidationError("Ese PIN ya lo usa otra socia")
        return pin

    def save_member(self, actor: Member, data: Dict[str, Any]) -> Member:
        """
        Alta o edición de una socia.

        Args:
            data: Campos en formato persistido (fullName, phone, role, pin...).
                  Con un id existente se edita; si no, se crea con el siguiente SOC-###.
                  Sin PIN se usan los 4 últimos dígitos del teléfono.
        """
        self.permissions.require(actor, 'manage_members')
        full_name = (data.get('fullName') or '').strip()
        if not full_name:
            raise ValidationError("El nombre es obligatorio")
        role = data.get('role') or Role.USER.value
        if role not in {r.value for r in Role}:
            raise ValidationError(f"Rol no válido: {role}")
        status = data.get('status') or MemberStatus.ACTIVE.value
        if status not in {s.value for s in MemberStatus}:
            raise ValidationError(f"Estado no válido: {status}")
        if data.get('monthlyFee') not in (None, ''):
            try:
                if money(data['monthlyFee']) < 0:
                    raise ValidationError("La cuota no puede ser negativa")
            except (TypeError, ValueError):
                raise ValidationError("La cuota debe ser numérica")

        payload = dict(data)
        payload.update({'fullName': full_name, 'role': role, 'status': status})
        if payload.get('monthlyFee') == '':
            payload['monthlyFee'] = None

        with self.state.lock:
            existing = self.state.get_member(payload.get('id')) if payload.get('id') else None
            member_id = existing.id if existing else (payload.get('id') or self.next_member_id())
            pin = str(payload.get('pin') or '').strip() or pin_from_phone(payload.get('phone', ''))
            payload['pin'] = self._validate_pin(pin, member_id)
            payload['id'] = member_id
            if existing is None:
                payload.setdefault('joinDate', today_iso())
                payload.setdefault('avatarUrl', avatar_url(full_name))
                member = Member.from_dict(payload)
                self.state.members.append(member)
            else:
                merged = existing.to_dict()
                merged.update(payload)
                member = Member.from_dict(merged)
                self.state.members[self.state.members.index(existing)] = member

        if self.mirror:
            self.mirror.save('members', member)
        if self.audit_service:
            action = 'dada de alta' if existing is None else 'actualizada'
            self.audit_service.log_member_change(actor.id, member.id, member.full_name, action)
        return member

    def set_status(self, actor: Member, member_id: str, status: str) -> Member:
        self.permissions.require(actor, 'manage_members')
        try:
            new_status = MemberStatus(status)
        except ValueError:
            raise ValidationError(f"Estado no válido: {status}")
        with self.state.lock:
            member = self._get_member(member_id)
            old_status = member.status
            member.status = new_status
        if self.mirror:
            self.mirror.save('members', member)
        if self.audit_service:
            self.audit_service.log_member_change(
                actor.id, member.id, member.full_name,
                f"{old_status.value} → {new_status.value}",
            )
        return member

    def delete_member(self, actor: Member, member_id: str) -> Member:
        """Elimina la ficha. Una socia no puede eliminarse a sí misma."""
        self.permissions.require(actor, 'manage_members')
        if actor.id == member_id:
            raise ValidationError("No puedes eliminar tu propia ficha")
        with self.state.lock:
            member = self._get_member(member_id)
            self.state.members.remove(member)
        if self.mirror:
            self.mirror.remove('members', member_id)
        if self.audit_service:
            self.audit_service.log_member_change(actor.id, member.id, member.full_name, 'eliminada')
        return member

    # =========================================================================
    # CUOTAS
    # =========================================================================

    @staticmethod
    def effective_monthly_fee(member: Member) -> float:
        """Cuota personalizada o, si no tiene, la general."""
        if member.monthly_fee is not None:
            return money(member.monthly_fee)
        return money(config.SOC_FEE)

    def charge_monthly_fee(self, actor: Member, member_id: str,
                           payment_method: Any = PaymentMethod.TRANSFERENCIA,
                           month: str = None) -> Transaction:
        """
        Anota el cobro de la cuota mensual de una socia activa.

        Args:
            month: Mes cobrado 'AAAA-MM' (por defecto el actual)
        """
        self.permissions.require(actor, 'manage_finance')
        method = parse_payment_method(payment_method, PaymentMethod.TRANSFERENCIA)
        month = month or today_iso()[:7]
        if not re.match(r'^\d{4}-\d{2}$', month):
            raise ValidationError(f"Mes no válido: {month} (formato AAAA-MM)")
        member = self._get_member(member_id)
        if not member.is_active:
            raise ValidationError(f"{member.full_name} no está activa")
        return self.transactions.record(
            f"Cuota {month}: {member.full_name}",
            self.effective_monthly_fee(member),
            TransactionCategory.CUOTA,
            payment_method=method,
            related_member_id=member.id,
            user=actor.id,
        )
