# ==============================================================================
# SERVICIO DE TESORERÍA
# ==============================================================================
# Libro de apuntes del club. Importe positivo = ingreso, negativo = gasto.
# No hay borrado: los errores se corrigen editando o con un apunte inverso.
# Los saldos se calculan siempre al leer, nunca se guardan.
# ==============================================================================

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Union

from ..errors import NotFoundError, ValidationError
from ..models.entities import (
    Member,
    PaymentMethod,
    Transaction,
    TransactionCategory,
    money,
    new_id,
    today_iso,
)
from ..models.state import ClubState
from .permission_service import PermissionService


def parse_category(value: Any) -> TransactionCategory:
    """Valida una categoría contra la enumeración cerrada."""
    try:
        return TransactionCategory(value)
    except ValueError:
        raise ValidationError(f"Categoría no válida: {value}")


def parse_payment_method(value: Any, default: PaymentMethod = PaymentMethod.EFECTIVO) -> PaymentMethod:
    if value in (None, ''):
        return default
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Método de pago no válido: {value}")


class TransactionService:
    """
    Servicio del libro de tesorería.

    Las operaciones públicas requieren manage_finance. record() es la
    entrada sin comprobación que usan los demás services para los apuntes
    emparejados (liquidaciones, mermas, recuentos, compras y cuotas).
    """

    def __init__(self, state: ClubState, permissions: PermissionService,
                 mirror=None, audit_service=None):
        self.state = state
        self.permissions = permissions
        self.mirror = mirror
        self.audit_service = audit_service

    # =========================================================================
    # CONSTRUCCIÓN Y VALIDACIÓN
    # =========================================================================

    def _build(self, data: Dict[str, Any], transaction_id: str = None) -> Transaction:
        """
        Crea un Transaction validado desde un diccionario de la API.

        Raises:
            ValidationError: Descripción vacía, importe no numérico o categoría fuera de la lista
        """
        description = (data.get('description') or '').strip()
        if not description:
            raise ValidationError("La descripción es obligatoria")
        try:
            amount = money(data.get('amount'))
        except (TypeError, ValueError):
            raise ValidationError("El importe debe ser numérico")
        return Transaction(
            id=transaction_id or data.get('id') or new_id('TR'),
            date=data.get('date') or today_iso(),
            description=description,
            amount=amount,
            category=parse_category(data.get('category')),
            related_event_id=data.get('relatedEventId') or None,
            related_member_id=data.get('relatedMemberId') or None,
            is_reconciled=bool(data.get('isReconciled', False)),
            payment_method=parse_payment_method(data.get('paymentMethod')),
        )

    @staticmethod
    def _coerce(transaction: Union[Transaction, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(transaction, Transaction):
            return transaction.to_dict()
        return dict(transaction)

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def record(
        self,
        description: str,
        amount: float,
        category: TransactionCategory,
        payment_method: PaymentMethod = PaymentMethod.EFECTIVO,
        related_event_id: str = None,
        related_member_id: str = None,
        user: str = None,
        date: str = None,
    ) -> Transaction:
        """
        Añade un apunte sin comprobar permisos (el llamador ya lo hizo).

        Returns:
            Apunte creado
        """
        transaction = Transaction(
            id=new_id('TR'),
            date=date or today_iso(),
            description=description,
            amount=money(amount),
            category=category,
            related_event_id=related_event_id,
            related_member_id=related_member_id,
            payment_method=payment_method,
        )
        with self.state.lock:
            self.state.transactions.append(transaction)
        if self.mirror:
            self.mirror.save('transactions', transaction)
        if self.audit_service:
            self.audit_service.log_transaction(
                user or 'sistema', transaction.id, description, transaction.amount,
                transaction.category.value,
            )
        return transaction

    def append(self, actor: Member, transaction: Union[Transaction, Dict[str, Any]]) -> Transaction:
        """Registra un apunte manual (requiere manage_finance)."""
        self.permissions.require(actor, 'manage_finance')
        data = self._coerce(transaction)
        data.pop('id', None)
        new_txn = self._build(data)
        with self.state.lock:
            self.state.transactions.append(new_txn)
        if self.mirror:
            self.mirror.save('transactions', new_txn)
        if self.audit_service:
            self.audit_service.log_transaction(
                actor.id, new_txn.id, new_txn.description, new_txn.amount, new_txn.category.value
            )
        return new_txn

    def update(self, actor: Member, transaction_id: str,
               transaction: Union[Transaction, Dict[str, Any]]) -> Transaction:
        """
        Reemplaza por completo un apunte existente (mismo id).

        Raises:
            NotFoundError: Si el apunte no existe
        """
        self.permissions.require(actor, 'manage_finance')
        replacement = self._build(self._coerce(transaction), transaction_id=transaction_id)
        with self.state.lock:
            for index, existing in enumerate(self.state.transactions):
                if existing.id == transaction_id:
                    self.state.transactions[index] = replacement
                    break
            else:
                raise NotFoundError('Apunte', transaction_id)
        if self.mirror:
            self.mirror.save('transactions', replacement)
        if self.audit_service:
            self.audit_service.log_transaction(
                actor.id, replacement.id, replacement.description, replacement.amount,
                replacement.category.value, action='editado'
            )
        return replacement

    def toggle_reconciled(self, actor: Member, transaction_id: str) -> Transaction:
        """Marca/desmarca un apunte como comprobado en banco o caja."""
        self.permissions.require(actor, 'manage_finance')
        with self.state.lock:
            transaction = self.state.get_transaction(transaction_id)
            if transaction is None:
                raise NotFoundError('Apunte', transaction_id)
            transaction.is_reconciled = not transaction.is_reconciled
        if self.mirror:
            self.mirror.save('transactions', transaction)
        if self.audit_service:
            action = 'conciliado' if transaction.is_reconciled else 'desconciliado'
            self.audit_service.log_transaction(
                actor.id, transaction.id, transaction.description, transaction.amount,
                transaction.category.value, action=action
            )
        return transaction

    # =========================================================================
    # CONSULTAS Y SALDOS
    # =========================================================================

    def list_transactions(self, month: str = None, category: str = None) -> List[Transaction]:
        """Apuntes más recientes primero, con filtros opcionales."""
        with self.state.lock:
            items = list(self.state.transactions)
        if month:
            items = [t for t in items if t.month == month]
        if category:
            wanted = parse_category(category)
            items = [t for t in items if t.category == wanted]
        return sorted(items, key=lambda t: t.date, reverse=True)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self.state.get_transaction(transaction_id)

    def projected_balance(self) -> float:
        """Suma de todos los apuntes."""
        with self.state.lock:
            return money(sum(t.amount for t in self.state.transactions))

    def confirmed_balance(self) -> float:
        """Suma solo de los apuntes conciliados."""
        with self.state.lock:
            return money(sum(t.amount for t in self.state.transactions if t.is_reconciled))

    def monthly_totals(self) -> Dict[str, Dict[str, float]]:
        """
        Ingresos, gastos y neto por mes.

        Returns:
            OrderedDict 'YYYY-MM' → {'income', 'expense', 'net'} en orden cronológico
        """
        totals: Dict[str, Dict[str, float]] = {}
        with self.state.lock:
            for t in self.state.transactions:
                bucket = totals.setdefault(t.month, {'income': 0.0, 'expense': 0.0, 'net': 0.0})
                if t.amount >= 0:
                    bucket['income'] += t.amount
                else:
                    bucket['expense'] += -t.amount
                bucket['net'] += t.amount
        return OrderedDict(
            (month, {key: money(value) for key, value in bucket.items()})
            for month, bucket in sorted(totals.items())
        )

    def summary(self) -> Dict[str, Any]:
        with self.state.lock:
            pending = [t for t in self.state.transactions if not t.is_reconciled]
            return {
                'projected_balance': self.projected_balance(),
                'confirmed_balance': self.confirmed_balance(),
                'pending_reconciliation': len(pending),
                'pending_amount': money(sum(t.amount for t in pending)),
            }
