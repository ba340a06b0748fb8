# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Constantes de negocio y parámetros de despliegue.
# Todo lo desplegable se puede sobrescribir con variables de entorno:
#
#   GASTRO_SECRET_KEY    → clave de sesión Flask (obligatoria en producción)
#   GASTRO_DATA_DIR      → carpeta de datos (snapshot JSON, audit.json, logs/)
#   GASTRO_DATABASE_URL  → si se define, se usa el almacén remoto SQL
#   GASTRO_SYNC_MODE     → 'immediate' (espera escritura) | 'deferred' (cola)
#   GASTRO_SYNC_POLL     → segundos entre sondeos de cambios externos (0 = off)
#   GASTRO_PROFILING     → '1' / '0' activa el profiling de rutas
#   GASTRO_PRODUCTION    → '1' / '0' modo producción
# ==============================================================================

import os


def _env_flag(name: str, default: bool) -> bool:
    """Lee una variable de entorno booleana ('1', 'true', 'si'...)."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'on')


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTES DE NEGOCIO
# ═══════════════════════════════════════════════════════════════════════════════

# Recargo fijo por cada invitada no socia en un evento
GUEST_FEE = 3.00

# Cuota mensual por defecto de una socia (se puede personalizar por socia)
SOC_FEE = 30.00

# Longitud del PIN de acceso
PIN_LENGTH = 4


# ═══════════════════════════════════════════════════════════════════════════════
# DESPLIEGUE
# ═══════════════════════════════════════════════════════════════════════════════

BASE = os.path.dirname(os.path.abspath(__file__))

PRODUCTION_MODE = _env_flag('GASTRO_PRODUCTION', False)

DATA_DIR = os.environ.get('GASTRO_DATA_DIR') or os.path.join(BASE, 'data')

# Archivo del snapshot local (almacén por defecto)
SNAPSHOT_FILE = 'gastro_soc_v12_stable.json'

DATABASE_URL = os.environ.get('GASTRO_DATABASE_URL', '')

SYNC_MODE_IMMEDIATE = 'immediate'
SYNC_MODE_DEFERRED = 'deferred'
SYNC_MODE = os.environ.get('GASTRO_SYNC_MODE', SYNC_MODE_DEFERRED)

# Segundos entre comprobaciones de cambios externos (0 = sin sondeo)
SYNC_POLL_INTERVAL = float(os.environ.get('GASTRO_SYNC_POLL', '5') or 0)

ENABLE_PROFILING = _env_flag('GASTRO_PROFILING', True)

_DEFAULT_SECRET = "gastro_soc_dev_secret_key_change_in_production"
SECRET_KEY = os.environ.get('GASTRO_SECRET_KEY')

if PRODUCTION_MODE and not SECRET_KEY:
    print("[ADVERTENCIA] GASTRO_PRODUCTION activo sin GASTRO_SECRET_KEY definida")


def flask_settings() -> dict:
    """
    Configuración para app.config.update().

    Returns:
        Diccionario con secret key y cookies de sesión
    """
    return {
        'SECRET_KEY': SECRET_KEY or _DEFAULT_SECRET,
        'SESSION_COOKIE_HTTPONLY': True,
        'SESSION_COOKIE_SECURE': False,       # HTTP en red local
        'SESSION_COOKIE_SAMESITE': 'Lax',
        'PERMANENT_SESSION_LIFETIME': 86400,  # 24 horas
    }
