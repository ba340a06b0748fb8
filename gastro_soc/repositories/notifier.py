# ==============================================================================
# NOTIFICACIÓN DE CAMBIOS ENTRE ALMACENES
# ==============================================================================
# Los almacenes que apuntan al mismo recurso (mismo archivo o misma URL de
# base de datos) comparten un canal. Una escritura avisa a los suscriptores
# de las DEMÁS instancias del canal; los cambios hechos fuera del proceso
# se detectan con check_for_changes() de cada almacén.
# ==============================================================================

import threading
from typing import Callable, Dict, List, Tuple

from ..errors import ClubError


class ChangeNotifier:
    """Mixin de suscripción por canal."""

    _channels: Dict[str, List[Tuple[object, Callable[[str], None]]]] = {}
    _channels_lock = threading.Lock()

    def _init_channel(self, channel: str) -> None:
        self._channel = channel

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        Registra un callback que recibe el nombre de la tabla modificada.

        Returns:
            Función sin argumentos que da de baja la suscripción
        """
        entry = (self, callback)
        with self._channels_lock:
            self._channels.setdefault(self._channel, []).append(entry)

        def unsubscribe() -> None:
            with self._channels_lock:
                entries = self._channels.get(self._channel, [])
                if entry in entries:
                    entries.remove(entry)

        return unsubscribe

    def _notify(self, table: str, include_self: bool = False) -> None:
        with self._channels_lock:
            entries = list(self._channels.get(self._channel, []))
        for owner, callback in entries:
            if owner is self and not include_self:
                continue
            try:
                callback(table)
            except ClubError as exc:
                print(f"[ERROR SYNC] Suscriptor de '{table}' falló: {exc.message}")
