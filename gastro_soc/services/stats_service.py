# ==============================================================================
# SERVICIO DE ESTADÍSTICAS DEL PANEL
# ==============================================================================
# Resumen para el panel principal. Los saldos solo se incluyen si quien
# mira tiene view_sensitive_data.
# ==============================================================================

from typing import Any, Dict, List, Optional

from ..models.entities import EventStatus, Member, today_iso
from ..models.state import ClubState
from .permission_service import PermissionService
from .transaction_service import TransactionService


class StatsService:
    """
    Estadísticas del club calculadas al vuelo desde el estado.

    Responsabilidades:
    - Saldos previsto y conciliado
    - Alertas de stock
    - Próximas reservas y reservas pendientes de cobro
    - Evolución mensual de ingresos y gastos
    """

    # Meses que muestra la tendencia del panel
    TREND_MONTHS = 6

    def __init__(self, state: ClubState, permissions: PermissionService,
                 transactions: TransactionService):
        self.state = state
        self.permissions = permissions
        self.transactions = transactions

    def critical_stock_count(self) -> int:
        """Productos activos con stock en o por debajo del mínimo."""
        return sum(1 for p in self.state.inventory if p.is_active and p.is_critical)

    def upcoming_events(self, today: str = None, limit: int = 5) -> List[Dict[str, Any]]:
        today = today or today_iso()
        upcoming = [
            e for e in self.state.events
            if e.status == EventStatus.PROGRAMADA and e.date >= today
        ]
        upcoming.sort(key=lambda e: e.date)
        return [e.to_dict() for e in upcoming[:limit]]

    def pending_payment_events(self) -> List[Dict[str, Any]]:
        """Reservas no canceladas que aún no se han liquidado."""
        return [
            e.to_dict() for e in self.state.events
            if not e.is_paid and not e.is_cancelled
        ]

    def monthly_trend(self) -> List[Dict[str, Any]]:
        totals = self.transactions.monthly_totals()
        months = list(totals.items())[-self.TREND_MONTHS:]
        return [dict(month=month, **values) for month, values in months]

    def dashboard(self, viewer: Optional[Member], today: str = None) -> Dict[str, Any]:
        """
        Datos del panel principal para `viewer`.

        Returns:
            Diccionario con stock crítico, eventos, socias y (si procede) saldos
        """
        with self.state.lock:
            data = {
                'critical_stock': self.critical_stock_count(),
                'upcoming_events': self.upcoming_events(today),
                'pending_payment_events': self.pending_payment_events(),
                'active_members': sum(1 for m in self.state.members if m.is_active),
                'unread_messages': sum(1 for m in self.state.user_messages if not m.is_read),
                'degraded': self.state.degraded,
            }
        if self.permissions.can(viewer, 'view_sensitive_data'):
            data['balance'] = {
                'projected': self.transactions.projected_balance(),
                'confirmed': self.transactions.confirmed_balance(),
            }
            data['monthly_trend'] = self.monthly_trend()
        return data
