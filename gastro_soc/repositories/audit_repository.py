# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula el acceso a audit.json
# La auditoría se almacena como lista, más reciente primero: [{log1}, {log2}, ...]
# ==============================================================================

import os
from typing import Any, Dict, List

from .base import ListRepository
from ..models.entities import AuditLog


class AuditRepository(ListRepository):
    """
    Repositorio del registro de actividad del club.

    Formato de datos en audit.json:
    [
        {
            "type": "PAGO",
            "user": "SOC-002",
            "message": "Evento EV-001 liquidado: 46.00 € (Efectivo)",
            "timestamp": "2025-02-15 22:10:00",
            "related_id": "EV-001",
            "details": {...}
        }
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, data_dir: str):
        """
        Args:
            data_dir: Carpeta de datos
        """
        super().__init__(os.path.join(data_dir, 'audit.json'))

    def load(self) -> List[Dict[str, Any]]:
        """
        Carga todos los logs.

        Returns:
            Lista de logs (más recientes primero)
        """
        return sorted(self.get_all(), key=lambda x: x.get('timestamp', ''), reverse=True)

    def save(self, logs: List[Dict[str, Any]]) -> None:
        """Guarda los logs respetando MAX_LOGS."""
        if len(logs) > self.MAX_LOGS:
            logs = logs[:self.MAX_LOGS]
        self.save_all(logs)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (EVENTO, PAGO, STOCK, PRODUCTO, SOCIA, SISTEMA)
            user: Socia que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (evento, producto, apunte...)
            details: Detalles adicionales
        """
        entry = AuditLog(
            type=log_type,
            user=user or 'sistema',
            message=message,
            related_id=related_id or '',
            details=details or {},
        )
        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, entry.to_dict())
            self.save(logs)

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.load()[:limit]

    def search_logs(
        self,
        query: str = '',
        log_type: str = None,
        user: str = None
    ) -> List[Dict[str, Any]]:
        """
        Búsqueda de logs con filtros combinables.

        Args:
            query: Texto libre (tipo, usuaria, mensaje, id relacionado)
            log_type: Filtrar por tipo
            user: Filtrar por socia

        Returns:
            Lista de logs que coinciden
        """
        logs = self.load()
        if log_type:
            logs = [log for log in logs if log.get('type') == log_type]
        if user:
            logs = [log for log in logs if log.get('user') == user]
        if query:
            query_lower = query.lower()
            logs = [
                log for log in logs
                if any(
                    query_lower in str(log.get(key, '')).lower()
                    for key in ('type', 'user', 'message', 'related_id')
                )
            ]
        return logs
