# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y funciones sin afectar a las socias.
# Guarda logs legibles en <DATA_DIR>/logs/ para análisis humano.
#
# ACTIVAR/DESACTIVAR: variable de entorno GASTRO_PROFILING
# ==============================================================================

import os
import time
import threading
from datetime import datetime
from functools import wraps

from . import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = os.path.join(config.DATA_DIR, 'logs')

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Nombres legibles de las rutas de la API
ROUTE_NAMES = {
    # Sesión
    'POST /api/login': 'Iniciar sesión',
    'POST /api/logout': 'Cerrar sesión',
    'GET /api/session': 'Ver sesión',

    # Panel
    'GET /api/dashboard': 'Ver panel principal',

    # Economato
    'GET /api/inventory': 'Ver economato',
    'POST /api/inventory': 'Guardar producto',
    'DELETE /api/inventory/<product_id>': 'Eliminar producto',
    'POST /api/inventory/<product_id>/deactivate': 'Dar de baja producto',
    'POST /api/inventory/<product_id>/restock': 'Reponer stock',
    'POST /api/inventory/<product_id>/purchase': 'Registrar compra',
    'POST /api/inventory/<product_id>/audit': 'Recuento de stock',
    'POST /api/inventory/<product_id>/shrinkage': 'Registrar merma',

    # Eventos
    'GET /api/events': 'Ver reservas',
    'POST /api/events': 'Crear reserva',
    'PUT /api/events/<event_id>': 'Editar reserva',
    'DELETE /api/events/<event_id>': 'Eliminar reserva',
    'POST /api/events/<event_id>/consumptions': 'Añadir consumo',
    'DELETE /api/events/<event_id>/consumptions/<line_id>': 'Quitar consumo',
    'POST /api/events/<event_id>/guests': 'Cambiar invitadas',
    'POST /api/events/<event_id>/settle': 'Liquidar evento',
    'POST /api/events/<event_id>/cancel': 'Cancelar evento',
    'POST /api/events/<event_id>/finalize': 'Finalizar evento',

    # Tesorería
    'GET /api/transactions': 'Ver tesorería',
    'POST /api/transactions': 'Registrar apunte',
    'PUT /api/transactions/<transaction_id>': 'Editar apunte',
    'POST /api/transactions/<transaction_id>/reconcile': 'Conciliar apunte',

    # Socias
    'GET /api/members': 'Ver socias',
    'POST /api/members': 'Guardar socia',
    'POST /api/members/<member_id>/fee': 'Cobrar cuota',

    # Sincronización
    'POST /api/sync/reload': 'Recargar datos',

    # Actividad
    'GET /api/audit': 'Ver registro de actividad',
}


# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def configure_logs_dir(logs_dir):
    """Redirige los archivos de log a otra carpeta (tests, despliegues)."""
    global LOGS_DIR, PERFORMANCE_LOG, SLOW_ROUTES_LOG, SLOW_FUNCTIONS_LOG
    LOGS_DIR = logs_dir
    PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
    SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
    SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')


def _ensure_logs_dir():
    os.makedirs(LOGS_DIR, exist_ok=True)


_log_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DE LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Añade contenido a un archivo de log; un fallo de disco no interrumpe la petición"""
    try:
        with _log_lock:
            _ensure_logs_dir()
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError as exc:
        print(f"[ADVERTENCIA] No se pudo escribir {filepath}: {exc}")


def _get_route_name(method, path, rule=None):
    """
    Nombre legible de una ruta: primero la ruta exacta, después la regla
    de Flask con parámetros; si no, la ruta tal cual.
    """
    for key in (f"{method} {path}", f"{method} {rule}" if rule else None):
        if key in ROUTE_NAMES:
            return ROUTE_NAMES[key]
    return f"{method} {path}"


def _slowness(time_ms):
    """(etiqueta, umbral superado) o None si la llamada fue rápida."""
    if time_ms >= THRESHOLD_CRITICAL:
        return 'CRITICAL', THRESHOLD_CRITICAL
    if time_ms >= THRESHOLD_WARNING:
        return 'WARNING', THRESHOLD_WARNING
    return None


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route(method, path, rule, time_ms, member_id=None):
    """
    Anota una petición en performance.log y, si fue lenta, en slow_routes.log

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada (/api/events/EV-001/settle)
        rule: Regla de Flask (/api/events/<event_id>/settle)
        time_ms: Tiempo en milisegundos
        member_id: Socia con sesión abierta (opcional)
    """
    if not ENABLE_PROFILING:
        return

    action = _get_route_name(method, path, rule)
    member = member_id or 'anónima'
    _write_log(PERFORMANCE_LOG, (
        f"\n[PERFORMANCE] {_get_timestamp()} | {action} | socia={member} | "
        f"{method} {path} | {time_ms:.0f} ms\n"
    ))

    slow = _slowness(time_ms)
    if slow:
        level, threshold = slow
        _write_log(SLOW_ROUTES_LOG, (
            f"\n[{level}] {_get_timestamp()}\n"
            f"Acción: {action}\n"
            f"Socia: {member}\n"
            f"Detalle: {method} {path}\n"
            f"Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)\n"
        ))


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app, logs_dir=None):
    """
    Registra los hooks before_request y after_request en la app.

    Uso:
        from gastro_soc.performance_logger import init_profiling
        init_profiling(app, os.path.join(data_dir, 'logs'))
    """
    if not ENABLE_PROFILING:
        return
    if logs_dir:
        configure_logs_dir(logs_dir)

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time') or request.path.startswith('/static'):
            return response
        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        log_route(request.method, request.path, rule, elapsed, session.get('member_id'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA CARGAS Y RECARGAS DEL ESTADO
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Mide una función y anota en slow_functions.log las llamadas lentas.

    Uso:
        @profile_function(name="Recargar estado desde el almacén")
        def reload():
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        label = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                slow = _slowness(elapsed_ms)
                if slow:
                    _write_log(SLOW_FUNCTIONS_LOG, (
                        f"\n[{slow[0]}] {_get_timestamp()}\n"
                        f"Función: {label}\n"
                        f"Tiempo: {elapsed_ms:.0f} ms\n"
                    ))

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


__all__ = [
    'ENABLE_PROFILING',
    'configure_logs_dir',
    'init_profiling',
    'log_route',
    'profile_function',
]
