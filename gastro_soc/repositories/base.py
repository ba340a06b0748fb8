# ==============================================================================
# REPOSITORIO BASE - Acceso a archivos JSON
# ==============================================================================

import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..errors import PersistenceError


class BaseRepository(ABC):
    """
    Clase base para los repositorios sobre un archivo JSON.

    Lectura tolerante (archivo corrupto o ausente → datos vacíos) y
    escritura atómica vía archivo temporal + os.replace, protegida por
    un lock compartido entre todos los repositorios del proceso.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        directory = os.path.dirname(file_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"No se pudo crear {directory}: {exc}") from exc
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura inicial del archivo (dict, list...)."""

    def _read_raw(self) -> Any:
        """
        Lee el archivo JSON.

        Returns:
            Datos parseados, o _empty_data() si el archivo está corrupto o no existe

        Raises:
            PersistenceError: Si el archivo existe pero no se puede leer
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return self._empty_data()
            except OSError as exc:
                raise PersistenceError(f"No se pudo leer {self.file_path}: {exc}") from exc

    def _write_raw(self, data: Any) -> None:
        """
        Escribe el archivo completo.

        Raises:
            PersistenceError: Si falla la escritura (el archivo original queda intacto)
        """
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except (OSError, TypeError, ValueError) as exc:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise PersistenceError(f"No se pudo escribir {self.file_path}: {exc}") from exc


class ListRepository(BaseRepository):
    """
    Repositorio para datos almacenados como lista.

    Ejemplo: audit.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)
